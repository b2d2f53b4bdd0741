from urllib.error import HTTPError, URLError

from conftest import FakeUrlopen
from quotedesk.providers import stooq

CSV_WITH_BAD_ROW = """Date,Open,High,Low,Close,Volume
2024-01-02,187.15,188.44,183.89,185.64,82488700
2024-01-03,184.22,185.88,183.43,184.25,58414500
2024-01-04,182.15,183.09,180.88,N/D,71983600
2024-01-05,181.99,182.76,180.17,181.18,62303300
2024-01-08,182.09,185.60,181.50,185.56,59144500
2024-01-09,183.92,185.15,182.73,185.14,42841800
"""


def test_malformed_close_row_is_dropped() -> None:
    series = stooq.parse_daily_csv(CSV_WITH_BAD_ROW, days=60)

    assert series.labels == [
        "2024-01-02",
        "2024-01-03",
        "2024-01-05",
        "2024-01-08",
        "2024-01-09",
    ]
    assert series.prices == [185.64, 184.25, 181.18, 185.56, 185.14]


def test_only_trailing_window_is_kept() -> None:
    series = stooq.parse_daily_csv(CSV_WITH_BAD_ROW, days=2)

    assert series.labels == ["2024-01-08", "2024-01-09"]


def test_header_only_or_no_data_is_empty() -> None:
    assert len(stooq.parse_daily_csv("Date,Open,High,Low,Close,Volume\n", days=30)) == 0
    assert len(stooq.parse_daily_csv("No data", days=30)) == 0
    assert len(stooq.parse_daily_csv("", days=30)) == 0


def test_symbol_gets_market_suffix() -> None:
    assert stooq.stooq_symbol(" AAPL ") == "aapl.us"


def test_fetch_daily_series(monkeypatch) -> None:
    fake = FakeUrlopen(body=CSV_WITH_BAD_ROW)
    monkeypatch.setattr("quotedesk.providers.stooq.urlopen", fake)

    result = stooq.fetch_daily_series("aapl", days=30, timeout=5.0)

    assert result.status == "ok"
    assert result.symbol == "AAPL"
    assert len(result.series) == 5
    assert "s=aapl.us" in fake.urls[0]
    assert "i=d" in fake.urls[0]
    assert fake.timeouts == [5.0]


def test_fetch_unknown_symbol_is_empty(monkeypatch) -> None:
    monkeypatch.setattr("quotedesk.providers.stooq.urlopen", FakeUrlopen(body="No data"))

    result = stooq.fetch_daily_series("ZZZZ", days=30, timeout=5.0)

    assert result.status == "empty"
    assert len(result.series) == 0


def test_fetch_transport_failures(monkeypatch) -> None:
    monkeypatch.setattr("quotedesk.providers.stooq.urlopen", FakeUrlopen(error=URLError("down")))
    assert stooq.fetch_daily_series("AAPL", days=30, timeout=5.0).status == "error"

    error = HTTPError("https://stooq.com/q/d/l/", 429, "Too Many Requests", None, None)
    monkeypatch.setattr("quotedesk.providers.stooq.urlopen", FakeUrlopen(error=error))
    assert stooq.fetch_daily_series("AAPL", days=30, timeout=5.0).status == "rate_limited"
