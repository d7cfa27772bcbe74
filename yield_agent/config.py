import os

from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Pick up the key names the CoinGecko SDKs document."""

        super().model_post_init(__context)

        if not self.coingecko_api_key:
            fallback = os.getenv("COINGECKO_PRO_API_KEY") or os.getenv("COINGECKO_DEMO_API_KEY")
            if fallback:
                object.__setattr__(self, "coingecko_api_key", fallback)
                if os.getenv("COINGECKO_PRO_API_KEY"):
                    object.__setattr__(self, "coingecko_pro", True)

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="auto",
        description="Log renderer: json, console, or auto (console at DEBUG, json otherwise)",
    )

    # Token metadata provider
    coingecko_api_key: str = Field(default="", description="Coingecko API key")
    coingecko_pro: bool = Field(default=False, description="Use the Coingecko Pro API host and header")
    coingecko_base_url: str = Field(
        default="",
        description="Override the Coingecko API base URL",
    )

    # Protocol discovery / transaction data provider
    enso_api_key: str = Field(
        default="",
        description="Enso API key",
        validation_alias=AliasChoices("enso_api_key", "ENSO_API_KEY", "ENSO_KEY"),
    )
    enso_base_url: str = Field(
        default="https://api.enso.finance",
        description="Enso API base URL",
    )

    # Requests and retries
    request_timeout_seconds: int = Field(default=15, ge=1, description="Request timeout")
    retry_max_attempts: int = Field(default=3, ge=1, description="Attempts for rate-limited provider calls")
    retry_initial_delay_seconds: float = Field(default=1.0, ge=0, description="First backoff delay")
    retry_max_delay_seconds: float = Field(default=30.0, ge=0, description="Backoff delay cap")

    # Discovery and ranking
    discovery_max_concurrency: int = Field(
        default=4,
        ge=1,
        description="Maximum per-chain discovery queries in flight",
    )
    ranking_scoring_limit: int = Field(
        default=20,
        ge=1,
        description="Protocols (by TVL) sent through safety scoring",
    )
    ranking_result_limit: int = Field(
        default=15,
        ge=1,
        description="Protocols returned after ranking",
    )
    search_result_limit: int = Field(
        default=10,
        ge=1,
        description="Search results expanded into full token metadata",
    )

    @property
    def has_coingecko_key(self) -> bool:
        return bool(self.coingecko_api_key)

    @property
    def has_enso_key(self) -> bool:
        return bool(self.enso_api_key)

    @property
    def resolved_coingecko_base_url(self) -> str:
        if self.coingecko_base_url:
            return self.coingecko_base_url.rstrip("/")
        if self.coingecko_pro:
            return "https://pro-api.coingecko.com/api/v3"
        return "https://api.coingecko.com/api/v3"


# Global settings instance
settings = Settings()
