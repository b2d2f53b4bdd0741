from __future__ import annotations

import datetime
import json
import logging
import socket
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from quotedesk.config.settings import settings
from quotedesk.schemas.provider import ProviderQuote, ProviderSeries
from quotedesk.schemas.quote import HistoricalSeries, Quote, finite_or_none

logger = logging.getLogger(__name__)

PROVIDER = "finnhub"

_QUOTE_PATH = "/api/v1/quote"
_CANDLE_PATH = "/api/v1/stock/candle"


def _build_url(path: str, params: dict[str, str]) -> str:
    base_url = settings.providers.finnhub_base_url.rstrip("/")
    return f"{base_url}{path}?{urlencode(params)}"


def _get_json(url: str, timeout: float) -> tuple[str, object | None]:
    request = Request(url, headers={"Accept": "application/json"})
    try:
        with urlopen(request, timeout=timeout) as response:
            body = response.read().decode("utf-8")
        return "ok", json.loads(body)
    except HTTPError as exc:
        if exc.code == 429:
            logger.warning("finnhub rate limited (HTTP 429)")
            return "rate_limited", None
        logger.info("finnhub HTTP %s", exc.code)
        return "error", None
    except (URLError, json.JSONDecodeError, UnicodeDecodeError, TimeoutError, socket.timeout) as exc:
        logger.info("finnhub request failed: %s", exc)
        return "error", None


def fetch_quote(symbol: str, timeout: float) -> ProviderQuote:
    symbol = symbol.strip().upper()
    api_key = settings.providers.finnhub_api_key
    if not api_key:
        return ProviderQuote(provider=PROVIDER, symbol=symbol, status="missing_key")

    url = _build_url(_QUOTE_PATH, {"symbol": symbol, "token": api_key})
    status, payload = _get_json(url, timeout)
    if status != "ok":
        return ProviderQuote(provider=PROVIDER, symbol=symbol, status=status)

    if not isinstance(payload, dict):
        return ProviderQuote(provider=PROVIDER, symbol=symbol, status="error")

    price = finite_or_none(payload.get("c"))
    previous_close = finite_or_none(payload.get("pc"))
    # Unknown tickers come back as a 200 with every field zeroed.
    if price is None or (price == 0 and not previous_close):
        return ProviderQuote(provider=PROVIDER, symbol=symbol, status="empty")

    quote = Quote(
        symbol=symbol,
        price=price,
        change=finite_or_none(payload.get("d")),
        change_percent=finite_or_none(payload.get("dp")),
    )
    return ProviderQuote(provider=PROVIDER, symbol=symbol, status="ok", quote=quote)


def fetch_candles(
    symbol: str,
    start: datetime.datetime,
    end: datetime.datetime,
    timeout: float,
    resolution: str | None = None,
) -> ProviderSeries:
    symbol = symbol.strip().upper()
    api_key = settings.providers.finnhub_api_key
    if not api_key:
        return ProviderSeries(provider=PROVIDER, symbol=symbol, status="missing_key")

    url = _build_url(
        _CANDLE_PATH,
        {
            "symbol": symbol,
            "resolution": resolution or settings.providers.candle_resolution,
            "from": str(int(start.timestamp())),
            "to": str(int(end.timestamp())),
            "token": api_key,
        },
    )
    status, payload = _get_json(url, timeout)
    if status != "ok":
        return ProviderSeries(provider=PROVIDER, symbol=symbol, status=status)

    if not isinstance(payload, dict):
        return ProviderSeries(provider=PROVIDER, symbol=symbol, status="error")

    if payload.get("s") != "ok":
        return ProviderSeries(provider=PROVIDER, symbol=symbol, status="empty")

    series = parse_candles(payload)
    status = "ok" if len(series) else "empty"
    return ProviderSeries(provider=PROVIDER, symbol=symbol, status=status, series=series)


def parse_candles(payload: dict) -> HistoricalSeries:
    times = payload.get("t") or []
    closes = payload.get("c") or []
    if not isinstance(times, list) or not isinstance(closes, list):
        return HistoricalSeries()

    points: list[tuple[int, float]] = []
    for ts_value, close_value in zip(times, closes):
        if not isinstance(ts_value, (int, float)):
            continue
        close = finite_or_none(close_value)
        if close is None:
            continue
        points.append((int(ts_value), close))

    points.sort(key=lambda point: point[0])
    labels = [
        datetime.datetime.fromtimestamp(ts, tz=datetime.timezone.utc).date().isoformat()
        for ts, _ in points
    ]
    return HistoricalSeries(labels=labels, prices=[close for _, close in points])
