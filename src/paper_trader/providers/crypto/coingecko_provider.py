"""CoinGecko market data provider for cryptocurrencies."""
import logging
import os

import httpx

from paper_trader.db import AssetType
from paper_trader.providers.core import MarketProviderABC
from paper_trader.providers.core.utils import crypto_base_ticker
from paper_trader.providers.crypto.models import (CoinGeckoQuoteMetadata,
                                                  CoinGeckoSimplePriceParams)
from paper_trader.schemas import MarketQuote
from paper_trader.utils import decimal_from_number, parse_timestamp

logger = logging.getLogger(__name__)


class CoinGeckoProvider(MarketProviderABC):
    """Market data provider for cryptocurrencies via CoinGecko API.

    Accepts either CoinGecko IDs ("bitcoin") or exchange pair symbols as
    stored on holdings ("BINANCE:BTCUSDT", "ETH-USD"). Pair symbols are
    reduced to their base ticker and resolved to a CoinGecko ID through the
    /search endpoint; resolutions are cached for the provider's lifetime.
    Quotes are always in USD.
    """

    BASE_URL = "https://api.coingecko.com/api/v3"
    PRO_BASE_URL = "https://pro-api.coingecko.com/api/v3"

    def __init__(
        self,
        api_key: str | None = None,
        use_pro_api: bool = False,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the CoinGecko provider.

        Args:
            api_key: CoinGecko API key. Defaults to COINGECKO_API_KEY env var.
            use_pro_api: Whether to use the Pro API endpoint.
            timeout: HTTP timeout in seconds.
            client: Preconfigured client (tests pass one with a mock transport).
        """
        self._api_key = api_key or os.getenv("COINGECKO_API_KEY")
        self._use_pro_api = use_pro_api or bool(self._api_key)
        self._coin_ids: dict[str, str] = {}

        if client is not None:
            self._client = client
            return
        headers: dict[str, str] = {"Accept": "application/json"}
        if self._api_key:
            headers["x-cg-pro-api-key"] = self._api_key
        base = self.PRO_BASE_URL if self._use_pro_api else self.BASE_URL
        self._client = httpx.AsyncClient(base_url=base, headers=headers, timeout=timeout)

    async def resolve_coin_id(self, symbol: str) -> str:
        """Resolve a ticker, pair symbol or ID to a CoinGecko coin ID.

        Raises:
            ValueError: No coin matches the symbol.
        """
        base = crypto_base_ticker(symbol)
        if not base:
            raise ValueError(f"Coin '{symbol}' not found")
        if base in self._coin_ids:
            return self._coin_ids[base]

        response = await self._client.get("/search", params={"query": base})
        response.raise_for_status()
        coins = response.json().get("coins") or []

        # Search results come ranked by market cap; prefer a ticker match, then an ID match.
        match = next((c for c in coins if str(c.get("symbol", "")).upper() == base), None)
        if match is None:
            match = next((c for c in coins if c.get("id") == base.lower()), None)
        if match is None:
            raise ValueError(f"Coin '{symbol}' not found")

        coin_id = match["id"]
        logger.debug("Resolved crypto symbol %s to CoinGecko id %s", symbol, coin_id)
        self._coin_ids[base] = coin_id
        return coin_id

    async def get_quote(self, symbol: str) -> MarketQuote:
        """Fetch the current USD quote for a cryptocurrency.

        Args:
            symbol: Pair symbol, ticker or CoinGecko ID (e.g. "BINANCE:BTCUSDT", "bitcoin").

        Returns:
            MarketQuote with the current price; `symbol` is echoed as given.
        """
        coin_id = await self.resolve_coin_id(symbol)
        params = CoinGeckoSimplePriceParams().model_dump() | {"ids": coin_id}
        response = await self._client.get("/simple/price", params=params)
        response.raise_for_status()
        data = response.json()

        row = data.get(coin_id)
        if not row or row.get("usd") is None:
            raise ValueError(f"Coin '{coin_id}' not found")

        meta = CoinGeckoQuoteMetadata(
            coin_id=coin_id,
            market_cap=row.get("usd_market_cap"),
            change_24h=row.get("usd_24h_change"),
        )
        return MarketQuote(
            source=AssetType.CRYPTO,
            symbol=symbol,
            value=decimal_from_number(row["usd"]),
            volume=decimal_from_number(row.get("usd_24h_vol")),
            timestamp=parse_timestamp(row.get("last_updated_at")),
            metadata=meta.model_dump(),
        )

    async def refresh(self) -> None:
        """Forget cached symbol resolutions."""
        self._coin_ids.clear()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
