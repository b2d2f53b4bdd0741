from __future__ import annotations

import datetime
from typing import Optional

from pydantic import BaseModel, Field

from quotedesk.schemas.quote import HistoricalSeries, Quote, RiskLevel


class Holding(BaseModel):
    symbol: str
    qty: float = 0.0
    avg: float = 0.0


class HoldingValuation(BaseModel):
    symbol: str
    qty: float
    avg: float
    price: float
    value: float
    pl: float
    pl_percent: float
    source: str
    stale: bool
    user_risk_tolerance: Optional[RiskLevel] = None
    stock_risk: Optional[RiskLevel] = None
    risk_warning: bool = False


class PortfolioValuation(BaseModel):
    ok: bool = True
    total_value: float = 0.0
    allocation: list[HoldingValuation] = Field(default_factory=list)


class PortfolioHistory(BaseModel):
    labels: list[str] = Field(default_factory=list)
    values: list[float] = Field(default_factory=list)


class ChartCard(BaseModel):
    symbol: str
    quote: Quote
    graph: HistoricalSeries


class TickerRow(BaseModel):
    symbol: str
    price: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    ok: bool
    stale: bool
    source: str


class TickerSnapshot(BaseModel):
    updated_at: datetime.datetime
    ttl_seconds: float
    primary_cooldown: bool
    symbols: list[TickerRow] = Field(default_factory=list)
