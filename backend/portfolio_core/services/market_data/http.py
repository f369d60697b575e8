# backend/portfolio_core/services/market_data/http.py
"""
Thin JSON-over-HTTP helper shared by the REST providers.

Wraps an `httpx.Client` and translates transport problems and status codes
into the service exception taxonomy, so provider classes only deal with
payload shapes:

    timeout / connection error -> ProviderUnavailableError
    HTTP 429                   -> RateLimitError (carries Retry-After; the retry
                                  policy in base.py waits that long)
    HTTP 404                   -> ProviderNoDataError
    other non-2xx              -> ProviderUnavailableError
    body is not JSON           -> ProviderNoDataError

Tests inject an `httpx.Client` built on `httpx.MockTransport`.
"""

import logging
from typing import Any

import httpx

from portfolio_core.services.exceptions import (
    ProviderNoDataError,
    ProviderUnavailableError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

USER_AGENT = "portfolio-core/0.1"


def build_client(base_url: str, timeout: float) -> httpx.Client:
    """Client with a per-request timeout; one per provider instance."""
    return httpx.Client(
        base_url=base_url,
        timeout=httpx.Timeout(timeout),
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
    )


class JsonHttpClient:
    """
    JSON request helper bound to one provider.

    Args:
        provider: Provider tag used in raised errors
        client: Configured httpx client (owns base URL and timeout)
    """

    def __init__(self, provider: str, client: httpx.Client) -> None:
        self._provider = provider
        self._client = client

    def get(self, path: str, params: dict[str, Any] | None = None, headers: dict[str, str] | None = None) -> Any:
        return self._request("GET", path, params=params, headers=headers)

    def post(self, path: str, json: Any, headers: dict[str, str] | None = None) -> Any:
        return self._request("POST", path, json=json, headers=headers)

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderUnavailableError(self._provider, f"timeout calling {path}: {e}")
        except httpx.RequestError as e:
            raise ProviderUnavailableError(self._provider, f"network error calling {path}: {e}")

        if response.status_code == 429:
            raise RateLimitError(self._provider, retry_after=self._retry_after(response))

        if response.status_code == 404:
            raise ProviderNoDataError(self._provider, path, "not found (HTTP 404)")

        if response.is_error:
            raise ProviderUnavailableError(
                self._provider,
                f"HTTP {response.status_code} from {path}: {response.text[:200]}",
            )

        try:
            return response.json()
        except ValueError:
            raise ProviderNoDataError(self._provider, path, "response body is not JSON")

    @staticmethod
    def _retry_after(response: httpx.Response) -> int | None:
        value = response.headers.get("Retry-After")
        if value and value.isdigit():
            return int(value)
        return None
