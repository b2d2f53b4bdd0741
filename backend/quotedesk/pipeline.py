from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable

from quotedesk.cache import Clock, QuoteCache, normalize_symbol
from quotedesk.config.settings import Settings, settings as default_settings
from quotedesk.health import ProviderHealthTracker
from quotedesk.providers import finnhub, yahoo
from quotedesk.schemas.provider import ProviderQuote
from quotedesk.schemas.quote import Quote, QuoteSource, ResolvedQuote
from quotedesk.upstream import call_upstream, provider_executor

logger = logging.getLogger(__name__)

QuoteAdapter = Callable[[str, float], ProviderQuote]


@dataclass(frozen=True)
class ProviderStep:
    name: str
    source: QuoteSource
    fetch: QuoteAdapter
    timeout: float
    honours_cooldown: bool = False
    workers: int = 8
    executor: ThreadPoolExecutor = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "executor", provider_executor(self.name, self.workers))


def build_default_steps(settings: Settings = default_settings) -> list[ProviderStep]:
    return [
        ProviderStep(
            name=finnhub.PROVIDER,
            source="primary",
            fetch=finnhub.fetch_quote,
            timeout=settings.timeouts.primary_quote_seconds,
            honours_cooldown=True,
            workers=settings.provider_workers,
        ),
        ProviderStep(
            name=yahoo.PROVIDER,
            source="secondary",
            fetch=yahoo.fetch_quote,
            timeout=settings.timeouts.secondary_quote_seconds,
            workers=settings.provider_workers,
        ),
    ]


class QuoteResolver:
    """Ordered-fallback quote resolution.

    Fresh cache, then each provider step in order, then the last cached
    value marked stale, then an empty quote. ``resolve`` never raises for an
    unreachable symbol.
    """

    def __init__(
        self,
        cache: QuoteCache,
        health: ProviderHealthTracker,
        steps: list[ProviderStep],
        quote_ttl: float = 15.0,
        clock: Clock = time.monotonic,
        coalesce: bool = False,
    ) -> None:
        self.cache = cache
        self.health = health
        self.steps = list(steps)
        self.quote_ttl = quote_ttl
        self._clock = clock
        self._coalesce = coalesce
        self._in_flight: dict[str, asyncio.Future] = {}

    async def resolve(self, symbol: str) -> ResolvedQuote:
        key = normalize_symbol(symbol)
        if not self._coalesce:
            return await self._resolve(key)

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._resolve(key))
            self._in_flight[key] = task
            task.add_done_callback(lambda _done, key=key: self._in_flight.pop(key, None))
        return await asyncio.shield(task)

    async def resolve_many(self, symbols: Iterable[str]) -> dict[str, ResolvedQuote]:
        keys = list(dict.fromkeys(normalize_symbol(symbol) for symbol in symbols))
        keys = [key for key in keys if key]
        results = await asyncio.gather(*(self.resolve(key) for key in keys))
        return dict(zip(keys, results))

    async def _resolve(self, key: str) -> ResolvedQuote:
        if not key:
            return ResolvedQuote(quote=Quote.empty(key), stale=True, source="cache")

        entry = self.cache.get(key)
        if entry is not None and self.cache.is_fresh(entry, self._clock(), self.quote_ttl):
            logger.debug("fresh cache hit for %s", key)
            return ResolvedQuote(quote=entry.quote, stale=False, source=entry.source)

        for step in self.steps:
            if step.honours_cooldown and self.health.is_blocked(step.name, self._clock()):
                logger.debug("%s in cooldown, skipping for %s", step.name, key)
                continue

            result = await call_upstream(
                step.name, step.fetch, key, step.timeout, timeout=step.timeout, executor=step.executor
            )
            if result is None:
                continue
            if result.status == "rate_limited":
                if step.honours_cooldown:
                    self.health.record_rate_limit(step.name, self._clock())
                continue
            if not result.usable:
                logger.debug("%s returned %s for %s", step.name, result.status, key)
                continue

            quote = result.quote
            if quote.symbol != key:
                quote = quote.model_copy(update={"symbol": key})
            self.cache.put(key, quote, step.source)
            return ResolvedQuote(quote=quote, stale=False, source=step.source)

        entry = self.cache.get(key)
        if entry is not None:
            logger.info("all providers failed for %s; serving cached quote", key)
            return ResolvedQuote(quote=entry.quote, stale=True, source="cache")

        logger.info("no quote available for %s", key)
        return ResolvedQuote(quote=Quote.empty(key), stale=True, source="cache")
