"""Models for CoinGecko provider (quote metadata and API params)."""
from pydantic import BaseModel


class CoinGeckoQuoteMetadata(BaseModel):
    """Metadata for a crypto quote."""

    provider: str = "coingecko"
    coin_id: str
    market_cap: float | None = None
    change_24h: float | None = None


class CoinGeckoSimplePriceParams(BaseModel):
    """Params for /simple/price (get_quote). Merge with 'ids' at call site."""

    vs_currencies: str = "usd"
    include_market_cap: str = "true"
    include_24hr_vol: str = "true"
    include_24hr_change: str = "true"
    include_last_updated_at: str = "true"
