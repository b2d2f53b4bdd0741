from __future__ import annotations

import datetime
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from quotedesk.cache import Clock, TimedCache, normalize_symbol
from quotedesk.config.settings import Settings, settings as default_settings
from quotedesk.health import ProviderHealthTracker
from quotedesk.providers import finnhub, stooq
from quotedesk.schemas.provider import ProviderSeries
from quotedesk.schemas.quote import HistoricalSeries
from quotedesk.upstream import call_upstream, provider_executor

logger = logging.getLogger(__name__)

SeriesAdapter = Callable[[str, int, float], ProviderSeries]


@dataclass(frozen=True)
class HistoryStep:
    name: str
    fetch: SeriesAdapter
    max_days: int | None = None
    # Provider id whose cooldown this step shares and feeds.
    cooldown_provider: str | None = None
    workers: int = 4
    executor: ThreadPoolExecutor = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "executor", provider_executor(self.name, self.workers))

    def applies(self, days: int) -> bool:
        return self.max_days is None or days <= self.max_days


def finnhub_candle_series(symbol: str, days: int, timeout: float) -> ProviderSeries:
    # Calendar range with slack for weekends/holidays; trimmed to the last ``days`` closes.
    end = datetime.datetime.now(tz=datetime.timezone.utc)
    start = end - datetime.timedelta(days=days * 2 + 7)
    result = finnhub.fetch_candles(symbol, start, end, timeout)
    if result.status != "ok":
        return result
    series = HistoricalSeries(
        labels=result.series.labels[-days:],
        prices=result.series.prices[-days:],
    )
    return result.model_copy(update={"series": series})


def build_default_history_steps(settings: Settings = default_settings) -> list[HistoryStep]:
    return [
        HistoryStep(
            name="finnhub-candles",
            fetch=finnhub_candle_series,
            max_days=settings.candle_max_days,
            cooldown_provider=finnhub.PROVIDER,
            workers=settings.provider_workers,
        ),
        HistoryStep(
            name=stooq.PROVIDER,
            fetch=stooq.fetch_daily_series,
            workers=settings.provider_workers,
        ),
    ]


class HistoricalSeriesCache:
    """Short-TTL cache of ``(symbol, days)`` -> series.

    Empty results are cached as well, so a ticker with no data is not
    re-requested until the entry expires. Steps tied to a provider
    cooldown are skipped while it runs, and a 429 from them starts it.
    """

    def __init__(
        self,
        steps: list[HistoryStep],
        ttl_seconds: float = 300.0,
        timeout: float = 5.0,
        clock: Clock = time.monotonic,
        health: Optional[ProviderHealthTracker] = None,
    ) -> None:
        self.steps = list(steps)
        self.timeout = timeout
        self.health = health
        self._clock = clock
        self._cache: TimedCache[tuple[str, int], HistoricalSeries] = TimedCache(ttl_seconds, clock)

    def _in_cooldown(self, step: HistoryStep) -> bool:
        if self.health is None or step.cooldown_provider is None:
            return False
        return self.health.is_blocked(step.cooldown_provider, self._clock())

    async def get_series(self, symbol: str, days: int) -> HistoricalSeries:
        key = (normalize_symbol(symbol), int(days))
        if not key[0] or key[1] <= 0:
            return HistoricalSeries()

        hit, cached = self._cache.get_fresh(key)
        if hit and cached is not None:
            return cached

        series = HistoricalSeries()
        for step in self.steps:
            if not step.applies(key[1]):
                continue
            if self._in_cooldown(step):
                logger.debug("%s in cooldown, skipping history for %s", step.name, key[0])
                continue
            result = await call_upstream(
                step.name,
                step.fetch,
                key[0],
                key[1],
                self.timeout,
                timeout=self.timeout,
                executor=step.executor,
            )
            if result is not None and result.status == "ok" and len(result.series):
                series = result.series
                break
            if result is not None and result.status == "rate_limited":
                if self.health is not None and step.cooldown_provider is not None:
                    self.health.record_rate_limit(step.cooldown_provider, self._clock())
            logger.debug(
                "%s gave no history for %s (%s)",
                step.name,
                key[0],
                result.status if result is not None else "timeout",
            )

        self._cache.put(key, series)
        return series
