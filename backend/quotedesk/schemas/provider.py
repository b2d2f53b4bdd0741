from typing import Literal, Optional

from pydantic import BaseModel, Field

from quotedesk.schemas.quote import HistoricalSeries, Quote


ProviderStatus = Literal["ok", "empty", "error", "rate_limited", "missing_key"]


class ProviderQuote(BaseModel):
    provider: str
    symbol: str
    status: ProviderStatus = "error"
    quote: Optional[Quote] = None

    @property
    def usable(self) -> bool:
        return self.status == "ok" and self.quote is not None and not self.quote.is_empty


class ProviderSeries(BaseModel):
    provider: str
    symbol: str
    status: ProviderStatus = "error"
    series: HistoricalSeries = Field(default_factory=HistoricalSeries)
