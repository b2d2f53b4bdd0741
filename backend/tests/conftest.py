from __future__ import annotations

import time

import pytest

from quotedesk.cache import QuoteCache
from quotedesk.health import ProviderHealthTracker
from quotedesk.history import HistoricalSeriesCache, HistoryStep
from quotedesk.pipeline import ProviderStep, QuoteResolver
from quotedesk.schemas.provider import ProviderQuote, ProviderSeries
from quotedesk.schemas.quote import HistoricalSeries, Quote


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    def __init__(self, body: str) -> None:
        self.body = body.encode("utf-8")

    def read(self) -> bytes:
        return self.body

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        return None


class FakeUrlopen:
    def __init__(self, body: str | None = None, error: Exception | None = None) -> None:
        self.body = body
        self.error = error
        self.urls: list[str] = []
        self.timeouts: list[float] = []

    def __call__(self, request, timeout: float) -> FakeResponse:
        self.urls.append(request.full_url)
        self.timeouts.append(timeout)
        if self.error is not None:
            raise self.error
        return FakeResponse(self.body or "")


class FakeQuoteAdapter:
    def __init__(
        self,
        provider: str,
        price: float | None = None,
        status: str = "ok",
        change: float | None = None,
        change_percent: float | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.provider = provider
        self.price = price
        self.status = status
        self.change = change
        self.change_percent = change_percent
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    def __call__(self, symbol: str, timeout: float) -> ProviderQuote:
        self.calls.append(symbol)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.status != "ok":
            return ProviderQuote(provider=self.provider, symbol=symbol, status=self.status)
        quote = Quote(
            symbol=symbol,
            price=self.price,
            change=self.change,
            change_percent=self.change_percent,
        )
        return ProviderQuote(provider=self.provider, symbol=symbol, status="ok", quote=quote)


class FakeSeriesAdapter:
    def __init__(self, provider: str, series: HistoricalSeries | None = None, status: str = "ok") -> None:
        self.provider = provider
        self.series = series or HistoricalSeries()
        self.status = status
        self.calls: list[tuple[str, int]] = []

    def __call__(self, symbol: str, days: int, timeout: float) -> ProviderSeries:
        self.calls.append((symbol, days))
        status = self.status
        if status == "ok" and not len(self.series):
            status = "empty"
        return ProviderSeries(provider=self.provider, symbol=symbol, status=status, series=self.series)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def primary() -> FakeQuoteAdapter:
    return FakeQuoteAdapter("finnhub", price=101.0, change=1.0, change_percent=1.0)


@pytest.fixture
def secondary() -> FakeQuoteAdapter:
    return FakeQuoteAdapter("yahoo", price=99.0, change=-1.0, change_percent=-1.0)


def make_steps(primary: FakeQuoteAdapter, secondary: FakeQuoteAdapter) -> list[ProviderStep]:
    return [
        ProviderStep(name="finnhub", source="primary", fetch=primary, timeout=8.0, honours_cooldown=True),
        ProviderStep(name="yahoo", source="secondary", fetch=secondary, timeout=5.0),
    ]


@pytest.fixture
def cache(clock: FakeClock) -> QuoteCache:
    return QuoteCache(clock=clock)


@pytest.fixture
def health() -> ProviderHealthTracker:
    return ProviderHealthTracker(cooldowns={"finnhub": 60.0})


@pytest.fixture
def resolver(
    cache: QuoteCache,
    health: ProviderHealthTracker,
    primary: FakeQuoteAdapter,
    secondary: FakeQuoteAdapter,
    clock: FakeClock,
) -> QuoteResolver:
    return QuoteResolver(cache, health, make_steps(primary, secondary), quote_ttl=15.0, clock=clock)


def make_history(
    clock: FakeClock, *adapters: FakeSeriesAdapter, candle_max_days: int | None = None
) -> HistoricalSeriesCache:
    steps = []
    for index, adapter in enumerate(adapters):
        max_days = candle_max_days if index == 0 and len(adapters) > 1 else None
        steps.append(HistoryStep(name=adapter.provider, fetch=adapter, max_days=max_days))
    return HistoricalSeriesCache(steps, ttl_seconds=300.0, timeout=5.0, clock=clock)
