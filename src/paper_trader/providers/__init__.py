"""Market data providers for stocks and crypto.

All providers implement MarketProviderABC and return unified MarketQuote
objects whose prices are Decimals:

- YFinanceProvider: Stock market data via Yahoo Finance
- CoinGeckoProvider: Cryptocurrency data via CoinGecko API

Example:
    async with CoinGeckoProvider() as provider:
        quote = await provider.get_quote("BINANCE:BTCUSDT")
        print(f"{quote.symbol}: ${quote.value}")
"""
from paper_trader.providers.core import MarketProviderABC, ProviderErrorMapper
from paper_trader.providers.crypto import CoinGeckoProvider
from paper_trader.providers.stocks import YFinanceProvider

__all__ = [
    "CoinGeckoProvider",
    "MarketProviderABC",
    "ProviderErrorMapper",
    "YFinanceProvider",
]
