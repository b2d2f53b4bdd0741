from __future__ import annotations

import logging
import math
import socket
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from quotedesk.config.settings import settings
from quotedesk.schemas.provider import ProviderSeries
from quotedesk.schemas.quote import HistoricalSeries

logger = logging.getLogger(__name__)

PROVIDER = "stooq"

_DAILY_PATH = "/q/d/l/"


def stooq_symbol(symbol: str) -> str:
    suffix = settings.providers.stooq_market_suffix
    return f"{symbol.strip().lower()}.{suffix}" if suffix else symbol.strip().lower()


def _build_url(params: dict[str, str]) -> str:
    base_url = settings.providers.stooq_base_url.rstrip("/")
    return f"{base_url}{_DAILY_PATH}?{urlencode(params)}"


def parse_daily_csv(csv_text: str, days: int) -> HistoricalSeries:
    """Parse a Stooq ``Date,Open,High,Low,Close,Volume`` table.

    Only the trailing ``days`` rows are considered. Rows whose close is not a
    finite number are dropped rather than failing the whole series.
    """
    lines = csv_text.strip().splitlines()
    if len(lines) <= 1 or days <= 0:
        return HistoricalSeries()

    rows = lines[1:][-days:]
    points: list[tuple[str, float]] = []
    for row in rows:
        parts = row.strip().split(",")
        if len(parts) < 5:
            continue
        label = parts[0].strip()
        try:
            close = float(parts[4])
        except ValueError:
            continue
        if not label or not math.isfinite(close):
            continue
        points.append((label, close))

    points.sort(key=lambda point: point[0])
    return HistoricalSeries(
        labels=[label for label, _ in points],
        prices=[close for _, close in points],
    )


def fetch_daily_series(symbol: str, days: int, timeout: float) -> ProviderSeries:
    symbol = symbol.strip().upper()
    url = _build_url({"s": stooq_symbol(symbol), "i": "d"})
    request = Request(url)
    try:
        with urlopen(request, timeout=timeout) as response:
            body = response.read().decode("utf-8", errors="replace")
    except HTTPError as exc:
        status = "rate_limited" if exc.code == 429 else "error"
        logger.info("stooq HTTP %s for %s", exc.code, symbol)
        return ProviderSeries(provider=PROVIDER, symbol=symbol, status=status)
    except (URLError, TimeoutError, socket.timeout) as exc:
        logger.info("stooq request failed for %s: %s", symbol, exc)
        return ProviderSeries(provider=PROVIDER, symbol=symbol, status="error")

    series = parse_daily_csv(body, days)
    status = "ok" if len(series) else "empty"
    return ProviderSeries(provider=PROVIDER, symbol=symbol, status=status, series=series)
