"""Yahoo Finance quotes through yfinance, used as the secondary quote source."""
from __future__ import annotations

import logging

import yfinance as yf

from quotedesk.schemas.provider import ProviderQuote
from quotedesk.schemas.quote import Quote, finite_or_none

logger = logging.getLogger(__name__)

PROVIDER = "yahoo"


def _closes(frame) -> list[float]:
    if frame is None or getattr(frame, "empty", True) or "Close" not in frame:
        return []
    closes = (finite_or_none(value) for value in frame["Close"].tolist())
    return [close for close in closes if close is not None]


def fetch_quote(symbol: str, timeout: float) -> ProviderQuote:
    # Daily bars carry the HTTP timeout through to yfinance; today's bar holds the live price.
    symbol = symbol.strip().upper()
    try:
        frame = yf.Ticker(symbol).history(period="5d", interval="1d", timeout=timeout)
        closes = _closes(frame)
    except Exception as exc:
        logger.info("yahoo quote failed for %s: %s", symbol, exc)
        return ProviderQuote(provider=PROVIDER, symbol=symbol, status="error")

    if not closes:
        return ProviderQuote(provider=PROVIDER, symbol=symbol, status="empty")

    price = closes[-1]
    previous_close = closes[-2] if len(closes) > 1 else None
    change = None
    change_percent = None
    if previous_close:
        change = price - previous_close
        change_percent = change / previous_close * 100

    quote = Quote(symbol=symbol, price=price, change=change, change_percent=change_percent)
    return ProviderQuote(provider=PROVIDER, symbol=symbol, status="ok", quote=quote)
