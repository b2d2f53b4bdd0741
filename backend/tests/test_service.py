import asyncio

import pytest

from conftest import FakeSeriesAdapter, make_steps
from quotedesk.config.settings import Settings
from quotedesk.history import HistoryStep
from quotedesk.schemas.portfolio import Holding
from quotedesk.schemas.quote import HistoricalSeries, Quote
from quotedesk.service import build_service, parse_symbol_list


@pytest.fixture
def daily() -> FakeSeriesAdapter:
    return FakeSeriesAdapter(
        "stooq", HistoricalSeries(labels=["2024-01-02", "2024-01-03"], prices=[100.0, 101.0])
    )


@pytest.fixture
def service(clock, primary, secondary, daily):
    return build_service(
        Settings(ticker_symbols=["AAPL", "MSFT"]),
        quote_steps=make_steps(primary, secondary),
        history_steps=[HistoryStep(name="stooq", fetch=daily)],
        clock=clock,
    )


def test_parse_symbol_list_cleans_and_caps() -> None:
    raw = " aapl, msft,,AAPL ," + ",".join(f"S{index}" for index in range(30))

    symbols = parse_symbol_list(raw, limit=20)

    assert symbols[:3] == ["AAPL", "MSFT", "S0"]
    assert len(symbols) == 20


def test_resolve_quote_and_batch(service, primary) -> None:
    single = asyncio.run(service.resolve_quote("aapl"))
    batch = asyncio.run(service.resolve_quotes("aapl,tsla"))

    assert single.source == "primary"
    assert list(batch) == ["AAPL", "TSLA"]
    assert batch["AAPL"].quote.price == 101.0
    assert primary.calls == ["AAPL", "TSLA"]


def test_provider_health_reports_primary_cooldown(service, primary, clock) -> None:
    assert service.provider_health().primary_blocked is False

    primary.status = "rate_limited"
    asyncio.run(service.resolve_quote("AAPL"))
    assert service.provider_health().primary_blocked is True

    clock.advance(60)
    assert service.provider_health().primary_blocked is False


def test_ticker_snapshot(service, primary, secondary) -> None:
    primary.status = "error"
    secondary.status = "error"
    service.cache.put("AAPL", Quote(symbol="AAPL", price=190.0), "primary")

    snapshot = asyncio.run(service.ticker())

    assert snapshot.ttl_seconds == 15.0
    assert snapshot.primary_cooldown is False
    rows = {row.symbol: row for row in snapshot.symbols}
    assert list(rows) == ["AAPL", "MSFT"]
    assert rows["AAPL"].ok is True
    assert rows["AAPL"].stale is False
    assert rows["MSFT"].ok is False
    assert rows["MSFT"].price is None
    assert rows["MSFT"].source == "cache"


def test_chart_card_uses_series(service) -> None:
    card = asyncio.run(service.chart_card("aapl"))

    assert card.symbol == "AAPL"
    assert card.graph.prices == [100.0, 101.0]


def test_chart_card_flat_line_without_history(service, daily) -> None:
    daily.series = HistoricalSeries()

    card = asyncio.run(service.chart_card("AAPL"))

    assert card.graph.labels == ["1", "2", "3"]
    assert card.graph.prices == [101.0, 101.0, 101.0]


def test_estimate_risk_and_series(service, daily) -> None:
    assert asyncio.run(service.estimate_risk("AAPL")) is None
    assert asyncio.run(service.get_series("AAPL", 30)).prices == [100.0, 101.0]
    assert daily.calls == [("AAPL", 60), ("AAPL", 30)]


def test_portfolio_operations(service) -> None:
    holdings = [Holding(symbol="AAPL", qty=1, avg=100.0)]

    valuation = asyncio.run(service.value_portfolio(holdings, "low"))
    history = asyncio.run(service.portfolio_history(7, holdings))

    assert valuation.total_value == 101.0
    assert history.values == [100.0, 101.0]