from __future__ import annotations

import logging
import math
import statistics
import time
from typing import Optional, Sequence

from quotedesk.cache import Clock, TimedCache, normalize_symbol
from quotedesk.history import HistoricalSeriesCache
from quotedesk.schemas.quote import RiskLevel

logger = logging.getLogger(__name__)

RISK_RANKS: dict[str, int] = {"LOW": 1, "MEDIUM": 2, "HIGH": 3}


def simple_returns(prices: Sequence[float]) -> list[float]:
    returns: list[float] = []
    for previous, current in zip(prices, prices[1:]):
        if not math.isfinite(previous) or previous <= 0 or not math.isfinite(current):
            continue
        returns.append((current - previous) / previous)
    return returns


def sample_stddev(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    return statistics.stdev(values)


def classify_volatility(
    volatility: float, low_threshold: float = 0.015, high_threshold: float = 0.03
) -> RiskLevel:
    if volatility < low_threshold:
        return "LOW"
    if volatility < high_threshold:
        return "MEDIUM"
    return "HIGH"


def risk_rank(level: Optional[str]) -> int:
    return RISK_RANKS.get(level or "", 0)


def normalize_risk_tolerance(risk_tolerance: Optional[str]) -> Optional[RiskLevel]:
    text = (risk_tolerance or "").lower()
    if "low" in text or "conservative" in text:
        return "LOW"
    if "med" in text or "balanced" in text:
        return "MEDIUM"
    if "high" in text or "aggressive" in text:
        return "HIGH"
    return None


class RiskEstimator:
    """Coarse risk level from the volatility of daily simple returns.

    ``None`` (too little history) is cached like any other result.
    """

    def __init__(
        self,
        history: HistoricalSeriesCache,
        lookback_days: int = 60,
        min_returns: int = 10,
        low_threshold: float = 0.015,
        high_threshold: float = 0.03,
        ttl_seconds: float = 600.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self.history = history
        self.lookback_days = lookback_days
        self.min_returns = min_returns
        self.low_threshold = low_threshold
        self.high_threshold = high_threshold
        self._cache: TimedCache[str, Optional[RiskLevel]] = TimedCache(ttl_seconds, clock)

    async def estimate(self, symbol: str) -> Optional[RiskLevel]:
        key = normalize_symbol(symbol)
        if not key:
            return None

        hit, level = self._cache.get_fresh(key)
        if hit:
            return level

        series = await self.history.get_series(key, self.lookback_days)
        returns = simple_returns(series.prices)
        if len(returns) < self.min_returns:
            logger.debug("not enough history for %s risk (%d returns)", key, len(returns))
            level = None
        else:
            volatility = sample_stddev(returns)
            level = classify_volatility(volatility, self.low_threshold, self.high_threshold)
            logger.debug("%s volatility %.4f -> %s", key, volatility, level)

        self._cache.put(key, level)
        return level
