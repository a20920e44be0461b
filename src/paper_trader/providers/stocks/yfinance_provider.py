"""Yahoo Finance market data provider for stocks."""
import asyncio
from decimal import Decimal

import yfinance as yf

from paper_trader.db import AssetType
from paper_trader.providers.core import MarketProviderABC
from paper_trader.providers.core.utils import normalize_stock_symbol
from paper_trader.schemas import MarketQuote
from paper_trader.utils import decimal_from_number, utc_now


class YFinanceProvider(MarketProviderABC):
    """Market data provider for stocks via Yahoo Finance.

    Uses the yfinance library; no API key required. yfinance is blocking,
    so each lookup runs in a worker thread.
    """

    def _extract_price_volume(
        self, ticker: yf.Ticker, symbol: str
    ) -> tuple[Decimal, Decimal | None]:
        """Extract price and volume from ticker; raises if price unavailable."""
        info = getattr(ticker, "fast_info", None)
        if info and (price := info.get("lastPrice") or info.get("regularMarketPrice")):
            return decimal_from_number(price), decimal_from_number(info.get("lastVolume"))
        full = ticker.info
        price = full.get("currentPrice") or full.get("regularMarketPrice")
        if price is None:
            raise ValueError(f"Stock '{symbol}' not found or has no price data")
        return decimal_from_number(price), decimal_from_number(full.get("volume"))

    def _fetch_quote_sync(self, symbol: str) -> MarketQuote:
        """Fetch a single quote synchronously (run in thread)."""
        ticker = yf.Ticker(symbol)
        try:
            price, volume = self._extract_price_volume(ticker, symbol)
        except ValueError:
            raise
        except Exception as e:
            raise ValueError(f"Failed to fetch quote for '{symbol}': {e}") from e
        return MarketQuote(
            source=AssetType.STOCK,
            symbol=symbol,
            value=price,
            volume=volume,
            timestamp=utc_now(),
            metadata={"provider": "yfinance"},
        )

    async def get_quote(self, symbol: str) -> MarketQuote:
        """Fetch the current quote for a stock symbol ("AAPL" or "NASDAQ:AAPL")."""
        sym = normalize_stock_symbol(symbol)
        return await asyncio.to_thread(self._fetch_quote_sync, sym)
