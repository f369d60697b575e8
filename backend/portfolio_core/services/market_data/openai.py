# backend/portfolio_core/services/market_data/openai.py
"""
OpenAI chat completions client used for real estate value estimates.

Only the raw completion text is returned; turning it into a number is the
caller's job, since the model's reply is free-form.
"""

import logging
from typing import Any

import httpx

from portfolio_core.services.exceptions import (
    ConfigurationMissingError,
    ProviderNoDataError,
)
from portfolio_core.services.market_data.base import CompletionProvider
from portfolio_core.services.market_data.http import JsonHttpClient, build_client

logger = logging.getLogger(__name__)


class OpenAICompletionProvider(CompletionProvider):

    # One estimate per property; a slow retry loop is not worth it
    MAX_RETRY_ATTEMPTS = 2

    def __init__(
            self,
            api_key: str | None,
            model: str = "gpt-4o-mini",
            base_url: str = "https://api.openai.com/v1",
            timeout: float = 10.0,
            http_client: httpx.Client | None = None,
            **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key
        self._model = model
        self._http = JsonHttpClient(self.name, http_client or build_client(base_url, timeout))

    @property
    def name(self) -> str:
        return "openai"

    def complete(self, prompt: str, max_tokens: int = 50) -> str:
        if not self._api_key:
            raise ConfigurationMissingError(self.name, "OPENAI_API_KEY")
        return self._execute_with_retry(self._create_completion, prompt, max_tokens)

    def _create_completion(self, prompt: str, max_tokens: int) -> str:
        payload = self._http.post(
            "/chat/completions",
            json={
                "model": self._model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": max_tokens,
            },
            headers={"Authorization": f"Bearer {self._api_key}"},
        )

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ProviderNoDataError(self.name, self._model, "completion without content")

        if not content:
            raise ProviderNoDataError(self.name, self._model, "empty completion")
        return str(content)
