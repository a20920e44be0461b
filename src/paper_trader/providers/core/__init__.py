"""Core provider abstractions."""
from paper_trader.providers.core.error_mapper import ProviderErrorMapper
from paper_trader.providers.core.market_provider_abc import MarketProviderABC

__all__ = [
    "MarketProviderABC",
    "ProviderErrorMapper",
]
