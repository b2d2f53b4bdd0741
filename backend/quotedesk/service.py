from __future__ import annotations

import datetime
import math
import time
from typing import Hashable, Iterable, Optional

from quotedesk.cache import Clock, QuoteCache, normalize_symbol
from quotedesk.config.settings import Settings, settings as default_settings
from quotedesk.health import ProviderHealthTracker
from quotedesk.history import HistoricalSeriesCache, HistoryStep, build_default_history_steps
from quotedesk.pipeline import ProviderStep, QuoteResolver, build_default_steps
from quotedesk.portfolio import PortfolioViews
from quotedesk.providers import finnhub
from quotedesk.risk import RiskEstimator
from quotedesk.schemas.portfolio import (
    ChartCard,
    Holding,
    PortfolioHistory,
    PortfolioValuation,
    TickerRow,
    TickerSnapshot,
)
from quotedesk.schemas.quote import HistoricalSeries, ProviderHealth, ResolvedQuote, RiskLevel


def parse_symbol_list(symbols: str | Iterable[str], limit: int) -> list[str]:
    if isinstance(symbols, str):
        symbols = symbols.split(",")
    cleaned = [normalize_symbol(symbol) for symbol in symbols]
    return list(dict.fromkeys(symbol for symbol in cleaned if symbol))[:limit]


class QuoteService:
    """Caller-facing entry point; holds the one instance of each stateful part."""

    def __init__(
        self,
        settings: Settings,
        cache: QuoteCache,
        health: ProviderHealthTracker,
        resolver: QuoteResolver,
        history: HistoricalSeriesCache,
        risk: RiskEstimator,
        portfolio: PortfolioViews,
        clock: Clock = time.monotonic,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.health = health
        self.resolver = resolver
        self.history = history
        self.risk = risk
        self.portfolio = portfolio
        self._clock = clock

    async def resolve_quote(self, symbol: str) -> ResolvedQuote:
        return await self.resolver.resolve(symbol)

    async def resolve_quotes(self, symbols: str | Iterable[str]) -> dict[str, ResolvedQuote]:
        return await self.resolver.resolve_many(
            parse_symbol_list(symbols, self.settings.max_batch_symbols)
        )

    async def get_series(self, symbol: str, days: int) -> HistoricalSeries:
        return await self.history.get_series(symbol, days)

    async def estimate_risk(self, symbol: str) -> Optional[RiskLevel]:
        return await self.risk.estimate(symbol)

    def provider_health(self) -> ProviderHealth:
        primary = next(
            (step.name for step in self.resolver.steps if step.source == "primary"),
            finnhub.PROVIDER,
        )
        return ProviderHealth(primary_blocked=self.health.is_blocked(primary, self._clock()))

    async def ticker(self, symbols: Optional[Iterable[str]] = None) -> TickerSnapshot:
        resolved = await self.resolver.resolve_many(symbols or self.settings.ticker_symbols)
        rows = [
            TickerRow(
                symbol=symbol,
                price=result.quote.price,
                change=result.quote.change,
                change_percent=result.quote.change_percent,
                ok=not result.quote.is_empty,
                stale=result.stale,
                source=result.source,
            )
            for symbol, result in resolved.items()
        ]
        return TickerSnapshot(
            updated_at=datetime.datetime.now(tz=datetime.timezone.utc),
            ttl_seconds=self.resolver.quote_ttl,
            primary_cooldown=self.provider_health().primary_blocked,
            symbols=rows,
        )

    async def chart_card(self, symbol: str, days: int = 30) -> ChartCard:
        resolved = await self.resolver.resolve(symbol)
        graph = await self.history.get_series(symbol, days)
        if not len(graph):
            price = resolved.quote.price
            flat = price if price is not None and math.isfinite(price) else 0.0
            graph = HistoricalSeries(labels=["1", "2", "3"], prices=[flat, flat, flat])
        return ChartCard(symbol=resolved.quote.symbol, quote=resolved.quote, graph=graph)

    async def value_portfolio(
        self, holdings: list[Holding], risk_tolerance: Optional[str] = None
    ) -> PortfolioValuation:
        return await self.portfolio.value_portfolio(holdings, risk_tolerance)

    async def portfolio_history(
        self, cache_key: Hashable, holdings: list[Holding], days: int = 30
    ) -> PortfolioHistory:
        return await self.portfolio.portfolio_history(cache_key, holdings, days)


def build_service(
    settings: Settings = default_settings,
    quote_steps: Optional[list[ProviderStep]] = None,
    history_steps: Optional[list[HistoryStep]] = None,
    clock: Clock = time.monotonic,
) -> QuoteService:
    cache = QuoteCache(clock=clock)
    health = ProviderHealthTracker(
        cooldowns={finnhub.PROVIDER: settings.health.primary_cooldown_seconds},
        default_cooldown=settings.health.primary_cooldown_seconds,
    )
    resolver = QuoteResolver(
        cache,
        health,
        quote_steps if quote_steps is not None else build_default_steps(settings),
        quote_ttl=settings.cache.quote_ttl_seconds,
        clock=clock,
        coalesce=settings.coalesce_requests,
    )
    history = HistoricalSeriesCache(
        history_steps if history_steps is not None else build_default_history_steps(settings),
        ttl_seconds=settings.cache.series_ttl_seconds,
        timeout=settings.timeouts.history_seconds,
        clock=clock,
        health=health,
    )
    risk = RiskEstimator(
        history,
        lookback_days=settings.risk.lookback_days,
        min_returns=settings.risk.min_returns,
        low_threshold=settings.risk.low_threshold,
        high_threshold=settings.risk.high_threshold,
        ttl_seconds=settings.cache.risk_ttl_seconds,
        clock=clock,
    )
    portfolio = PortfolioViews(
        resolver,
        history,
        risk,
        history_ttl_seconds=settings.cache.portfolio_history_ttl_seconds,
        clock=clock,
    )
    return QuoteService(settings, cache, health, resolver, history, risk, portfolio, clock=clock)
