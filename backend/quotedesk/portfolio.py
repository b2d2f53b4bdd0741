from __future__ import annotations

import asyncio
import math
import time
from typing import Hashable, Optional

from quotedesk.cache import Clock, TimedCache, normalize_symbol
from quotedesk.history import HistoricalSeriesCache
from quotedesk.pipeline import QuoteResolver
from quotedesk.risk import RiskEstimator, normalize_risk_tolerance, risk_rank
from quotedesk.schemas.portfolio import (
    Holding,
    HoldingValuation,
    PortfolioHistory,
    PortfolioValuation,
)
from quotedesk.schemas.quote import HistoricalSeries


def _round2(value: float) -> float:
    return round(value, 2)


class PortfolioViews:
    def __init__(
        self,
        resolver: QuoteResolver,
        history: HistoricalSeriesCache,
        risk: RiskEstimator,
        history_ttl_seconds: float = 300.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self.resolver = resolver
        self.history = history
        self.risk = risk
        self._history_cache: TimedCache[Hashable, PortfolioHistory] = TimedCache(
            history_ttl_seconds, clock
        )

    async def value_holding(self, holding: Holding, user_risk: Optional[str]) -> HoldingValuation:
        valuation, _ = await self._value_holding(holding, user_risk)
        return valuation

    async def _value_holding(
        self, holding: Holding, user_risk: Optional[str]
    ) -> tuple[HoldingValuation, float]:
        symbol = normalize_symbol(holding.symbol)
        qty = float(holding.qty or 0)
        avg = float(holding.avg or 0)

        resolved, stock_risk = await asyncio.gather(
            self.resolver.resolve(symbol), self.risk.estimate(symbol)
        )
        price = resolved.quote.price
        if price is not None and math.isfinite(price):
            source, stale = resolved.source, resolved.stale
        else:
            price, source, stale = avg, "avg-fallback", True

        value = price * qty
        pl = (price - avg) * qty
        cost = avg * qty
        pl_percent = pl / cost * 100 if cost > 0 else 0.0
        risk_warning = bool(user_risk and stock_risk and risk_rank(stock_risk) > risk_rank(user_risk))

        valuation = HoldingValuation(
            symbol=symbol,
            qty=qty,
            avg=_round2(avg),
            price=_round2(price),
            value=_round2(value),
            pl=_round2(pl),
            pl_percent=_round2(pl_percent),
            source=source,
            stale=stale,
            user_risk_tolerance=user_risk,
            stock_risk=stock_risk,
            risk_warning=risk_warning,
        )
        return valuation, value

    async def value_portfolio(
        self, holdings: list[Holding], risk_tolerance: Optional[str] = None
    ) -> PortfolioValuation:
        user_risk = normalize_risk_tolerance(risk_tolerance)
        valued = await asyncio.gather(
            *(self._value_holding(holding, user_risk) for holding in holdings)
        )
        # Rounded once over the unrounded market values.
        total = sum(value for _, value in valued)
        allocation = [valuation for valuation, _ in valued]
        return PortfolioValuation(ok=True, total_value=_round2(total), allocation=allocation)

    async def portfolio_history(
        self, cache_key: Hashable, holdings: list[Holding], days: int = 30
    ) -> PortfolioHistory:
        hit, cached = self._history_cache.get_fresh((cache_key, days))
        if hit and cached is not None:
            return cached

        if not holdings:
            history = PortfolioHistory()
            self._history_cache.put((cache_key, days), history)
            return history

        symbols = [normalize_symbol(holding.symbol) for holding in holdings]
        unique = list(dict.fromkeys(symbols))
        fetched = await asyncio.gather(*(self.history.get_series(symbol, days) for symbol in unique))
        series_by_symbol: dict[str, HistoricalSeries] = dict(zip(unique, fetched))

        base_labels = series_by_symbol[symbols[0]].labels
        prices_by_symbol = {
            symbol: dict(zip(series.labels, series.prices))
            for symbol, series in series_by_symbol.items()
        }

        values: list[float] = []
        for label in base_labels:
            total = 0.0
            for symbol, holding in zip(symbols, holdings):
                price = prices_by_symbol[symbol].get(label)
                if price is not None and math.isfinite(price):
                    total += price * float(holding.qty or 0)
            values.append(_round2(total))

        history = PortfolioHistory(labels=list(base_labels), values=values)
        self._history_cache.put((cache_key, days), history)
        return history
