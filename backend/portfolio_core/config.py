# backend/portfolio_core/config.py
"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables with validation:
- ENVIRONMENT: Runtime mode (development, test, production)
- DATABASE_URL: Connection string for the price cache table
- BASE_CURRENCY: Reporting currency for every aggregate
- *_API_KEY: Credentials for the upstream market data providers

Environment-specific behavior:
- test: Falls back to in-memory SQLite and never requires credentials
- development: Requires DATABASE_URL unless CACHE_BACKEND=memory
- production: Requires DATABASE_URL and refuses SQLite

Missing provider credentials are NOT a configuration error. A provider
without a key raises ConfigurationMissingError when called, and the price
resolver simply moves on to the next provider in the chain.

Usage:
    from portfolio_core.config import settings

    if settings.is_production:
        ...
"""
from decimal import Decimal
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# The .env file lives in the project root (parent of backend/)
_BACKEND_DIR = Path(__file__).resolve().parent.parent
_PROJECT_ROOT = _BACKEND_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables:
        - ENVIRONMENT: Runtime environment (development, test, production)
        - DATABASE_URL: SQLAlchemy URL for the price cache
        - CACHE_BACKEND: "sql" (default) or "memory"
        - BASE_CURRENCY: Reporting currency (default: "EUR")
        - LOG_LEVEL / LOG_FORMAT: Logging configuration

    Provider credentials (all optional):
        - TIINGO_API_KEY: Tiingo IEX quotes
        - FINNHUB_API_KEY: Finnhub quotes and symbol search
        - OPENAI_API_KEY: Real estate value estimation
    """

    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Runtime environment (development, test, production)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="Log output format"
    )

    app_name: str = "Portfolio Price Core"
    debug: bool = False

    # =========================================================================
    # PRICE CACHE STORAGE
    # =========================================================================
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy connection string for the price cache"
    )
    cache_backend: Literal["sql", "memory"] = Field(
        default="sql",
        description="Where resolved quotations are cached"
    )

    # =========================================================================
    # REPORTING
    # =========================================================================
    base_currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="ISO 4217 code all aggregates are reported in"
    )
    risk_free_rate: Decimal = Field(
        default=Decimal("0.025"),
        ge=0,
        le=1,
        description="Annual risk-free rate used by the Sharpe ratio"
    )

    # =========================================================================
    # MARKET DATA PROVIDERS
    # =========================================================================
    tiingo_api_key: str | None = Field(default=None, description="Tiingo API token")
    tiingo_base_url: str = "https://api.tiingo.com"

    finnhub_api_key: str | None = Field(default=None, description="Finnhub API token")
    finnhub_base_url: str = "https://finnhub.io/api/v1"

    coingecko_base_url: str = "https://api.coingecko.com/api/v3"

    fx_base_url: str = "https://api.exchangerate-api.com/v4"

    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"

    provider_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Per-request timeout for every upstream provider"
    )
    breaker_failure_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures before a provider circuit opens"
    )
    breaker_recovery_timeout: float = Field(
        default=60.0,
        ge=0,
        description="Seconds an open provider circuit waits before probing"
    )

    # =========================================================================
    # HISTORY RECONSTRUCTION
    # =========================================================================
    history_max_assets: int = Field(
        default=15,
        ge=1,
        le=100,
        description="Portfolios above this size skip history reconstruction"
    )
    history_lookback_days: int = Field(
        default=365,
        ge=30,
        le=1825,
        description="Trailing window of the daily value series"
    )
    history_max_workers: int = Field(
        default=4,
        ge=1,
        le=16,
        description="Parallel provider calls during history reconstruction"
    )

    # =========================================================================
    # CORS
    # =========================================================================
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("base_currency", mode="before")
    @classmethod
    def normalize_base_currency(cls, value):
        # Runs before the length check so " usd " is accepted
        return value.strip().upper() if isinstance(value, str) else value

    @model_validator(mode="after")
    def validate_cache_config(self) -> "Settings":
        """
        Validate cache storage configuration based on environment.

        Rules:
        - test: SQLite in-memory is provided when DATABASE_URL is unset
        - memory backend: DATABASE_URL is not needed
        - development: DATABASE_URL required, SQLite allowed
        - production: DATABASE_URL required, SQLite refused
        """
        if self.environment == "test":
            if self.database_url is None:
                object.__setattr__(self, "database_url", "sqlite:///:memory:")
            return self

        if self.cache_backend == "memory":
            return self

        if self.database_url is None:
            raise ValueError(
                f"DATABASE_URL is required in {self.environment} environment "
                "when CACHE_BACKEND=sql. Set DATABASE_URL or use CACHE_BACKEND=memory."
            )

        if self.environment == "production" and self.is_sqlite:
            raise ValueError(
                "Production environment requires a server database for the price cache. "
                f"DATABASE_URL must not be SQLite, got: {self.database_url[:20]}..."
            )

        return self

    @property
    def is_sqlite(self) -> bool:
        """Check if the cache uses SQLite."""
        return self.database_url is not None and self.database_url.lower().startswith("sqlite")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        return self.environment == "test"


settings = Settings()
