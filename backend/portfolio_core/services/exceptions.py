# backend/portfolio_core/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The router layer is responsible for mapping these to HTTP responses.

Most of them never reach a caller: provider-level errors are caught by the
price resolver and history reconstructor and treated as "try the next
provider". They exist so that every failure is classified in the logs.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── MarketDataError
    │   ├── ProviderUnavailableError    network / HTTP failure
    │   ├── ProviderNoDataError         success response, unusable payload
    │   ├── RateLimitError              HTTP 429
    │   ├── ConfigurationMissingError   no credential configured
    │   └── ResolutionExhaustedError    every provider in a chain failed
    ├── FXRateError
    │   ├── FXRateNotFoundError
    │   └── FXProviderError
    └── AnalyticsError
        └── InsufficientHistoryError

    CircuitBreakerOpen (from circuit_breaker module)
"""


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ValidationError(ServiceError):
    """
    Raised when a request is well-formed but violates a service rule
    (e.g. too many assets for history reconstruction).
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for market data provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a provider cannot be reached or answers with an error status.

    This is a retryable error.
    """

    def __init__(self, provider: str, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Provider '{provider}' is unavailable: {reason}", provider=provider)


class ProviderNoDataError(MarketDataError):
    """
    Raised when a provider answered successfully but the payload holds no
    usable value (missing field, zero or negative price, unparseable text).

    This is NOT a retryable error.
    """

    def __init__(self, provider: str, identifier: str, reason: str = "no usable price") -> None:
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"Provider '{provider}' returned no data for '{identifier}': {reason}", provider=provider)


class RateLimitError(MarketDataError):
    """
    Raised when the provider's rate limit has been exceeded.

    This is a retryable error (with backoff).

    Attributes:
        retry_after: Seconds to wait before retrying (if provided by API)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


class ConfigurationMissingError(MarketDataError):
    """Raised when a provider is called without its credential configured."""

    def __init__(self, provider: str, setting: str) -> None:
        self.setting = setting
        super().__init__(f"Provider '{provider}' is not configured ({setting} is unset)", provider=provider)


class ResolutionExhaustedError(MarketDataError):
    """
    Every provider in an asset class's chain failed for one identifier.

    Never raised to callers of the resolver: the identifier is simply
    absent from the result map and the valuation falls back to cost basis.

    Attributes:
        identifier: Identifier that could not be priced
        attempts: Provider name -> failure message, in chain order
    """

    def __init__(self, identifier: str, attempts: dict[str, str]) -> None:
        self.identifier = identifier
        self.attempts = attempts
        tried = ", ".join(f"{name}: {reason}" for name, reason in attempts.items()) or "no providers"
        super().__init__(f"No provider could price '{identifier}' ({tried})")


# =============================================================================
# FX RATE ERRORS
# =============================================================================


class FXRateError(ServiceError):
    """
    Base exception for FX rate errors.

    Attributes:
        base_currency: Currency being converted from
        quote_currency: Currency being converted into
    """

    def __init__(
            self,
            message: str,
            base_currency: str | None = None,
            quote_currency: str | None = None,
    ) -> None:
        self.base_currency = base_currency
        self.quote_currency = quote_currency
        super().__init__(message)


class FXRateNotFoundError(FXRateError):
    """Raised when neither the provider nor the fallback table knows the pair."""

    def __init__(self, base_currency: str, quote_currency: str) -> None:
        super().__init__(
            f"No FX rate available for {base_currency}/{quote_currency}",
            base_currency=base_currency,
            quote_currency=quote_currency,
        )


class FXProviderError(FXRateError):
    """
    Raised when the FX rate provider fails.

    Attributes:
        provider: Name of the FX data provider
        reason: Specific reason for failure
    """

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"FX provider '{provider}' error: {reason}")


# =============================================================================
# ANALYTICS ERRORS
# =============================================================================


class AnalyticsError(ServiceError):
    """Base exception for analytics calculation errors."""
    pass


class InsufficientHistoryError(AnalyticsError):
    """
    Raised internally when a value series is too short for risk metrics.

    Public analytics functions translate this into NaN outputs.
    """

    def __init__(self, observations: int, required: int) -> None:
        self.observations = observations
        self.required = required
        super().__init__(f"Need at least {required} observations, got {observations}")


from portfolio_core.services.circuit_breaker import CircuitBreakerOpen  # noqa: E402

__all__ = [
    "ServiceError",
    "ValidationError",
    "MarketDataError",
    "ProviderUnavailableError",
    "ProviderNoDataError",
    "RateLimitError",
    "ConfigurationMissingError",
    "ResolutionExhaustedError",
    "FXRateError",
    "FXRateNotFoundError",
    "FXProviderError",
    "AnalyticsError",
    "InsufficientHistoryError",
    "CircuitBreakerOpen",
]
