from __future__ import annotations

import math
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


QuoteSource = Literal["primary", "secondary", "cache"]
RiskLevel = Literal["LOW", "MEDIUM", "HIGH"]


def finite_or_none(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


class Quote(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    price: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return finite_or_none(self.price) is None

    @classmethod
    def empty(cls, symbol: str) -> Quote:
        return cls(symbol=symbol)


class CacheEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    quote: Quote
    fetched_at: float
    source: QuoteSource


class ResolvedQuote(BaseModel):
    quote: Quote
    stale: bool
    source: QuoteSource


class HistoricalSeries(BaseModel):
    model_config = ConfigDict(frozen=True)

    labels: list[str] = Field(default_factory=list)
    prices: list[float] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_aligned(self) -> HistoricalSeries:
        if len(self.labels) != len(self.prices):
            raise ValueError("labels and prices must have the same length")
        return self

    def __len__(self) -> int:
        return len(self.prices)


class RiskCacheEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: Optional[RiskLevel] = None
    fetched_at: float


class ProviderHealthState(BaseModel):
    blocked_until: Optional[float] = None


class ProviderHealth(BaseModel):
    primary_blocked: bool
