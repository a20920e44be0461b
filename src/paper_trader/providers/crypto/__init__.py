"""Cryptocurrency market data providers."""
from paper_trader.providers.crypto.coingecko_provider import CoinGeckoProvider

__all__ = ["CoinGeckoProvider"]
