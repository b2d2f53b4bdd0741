from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheSettings(BaseModel):
    quote_ttl_seconds: float = 15.0
    series_ttl_seconds: float = 300.0
    portfolio_history_ttl_seconds: float = 300.0
    risk_ttl_seconds: float = 600.0


class TimeoutSettings(BaseModel):
    primary_quote_seconds: float = 8.0
    secondary_quote_seconds: float = 5.0
    history_seconds: float = 5.0


class HealthSettings(BaseModel):
    primary_cooldown_seconds: float = 60.0


class RiskSettings(BaseModel):
    lookback_days: int = 60
    min_returns: int = 10
    low_threshold: float = 0.015
    high_threshold: float = 0.03


class ProviderSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QUOTEDESK_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )
    finnhub_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FINNHUB_API_KEY", "QUOTEDESK_FINNHUB_API_KEY"),
    )
    finnhub_base_url: str = "https://finnhub.io"
    stooq_base_url: str = "https://stooq.com"
    stooq_market_suffix: str = "us"
    candle_resolution: str = "D"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QUOTEDESK_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "QUOTEDESK_LOG_LEVEL"),
    )
    log_format: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

    candle_max_days: int = 30
    max_batch_symbols: int = 20
    coalesce_requests: bool = False
    provider_workers: int = 8
    ticker_symbols: List[str] = Field(
        default_factory=lambda: [
            "AAPL",
            "MSFT",
            "AMZN",
            "TSLA",
            "NVDA",
            "GOOGL",
            "META",
            "NFLX",
        ]
    )

    cache: CacheSettings = Field(default_factory=CacheSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    health: HealthSettings = Field(default_factory=HealthSettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)


settings = Settings()
