"""Price oracle: a fresh unit price per symbol and asset class."""
import asyncio
import logging
import os
from collections.abc import Mapping
from decimal import Decimal

from paper_trader.db import AssetType
from paper_trader.errors import PriceUnavailable
from paper_trader.providers.core import MarketProviderABC
from paper_trader.providers.core.error_mapper import PROVIDER_EXCEPTIONS
from paper_trader.schemas import MarketQuote

logger = logging.getLogger(__name__)

PRICE_TIMEOUT_SECONDS = float(os.getenv("PRICE_TIMEOUT_SECONDS", "10"))


class PriceOracle:
    """Routes price lookups to the provider registered for each asset class.

    Never caches: every call reaches the provider, so each trade executes
    against a live quote.
    """

    def __init__(
        self,
        providers: Mapping[AssetType, MarketProviderABC],
        *,
        timeout: float = PRICE_TIMEOUT_SECONDS,
    ) -> None:
        self._providers = dict(providers)
        self._timeout = timeout

    def provider_for(self, asset_type: AssetType | str) -> MarketProviderABC:
        """Return the provider for an asset class; ValueError if none is registered."""
        try:
            return self._providers[AssetType(asset_type)]
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unsupported asset type: {asset_type}") from exc

    async def fetch_quote(self, symbol: str, asset_type: AssetType | str) -> MarketQuote:
        """Fetch a quote, letting provider exceptions propagate unchanged."""
        provider = self.provider_for(asset_type)
        return await asyncio.wait_for(provider.get_quote(symbol), timeout=self._timeout)

    async def get_price(self, symbol: str, asset_type: AssetType | str) -> Decimal:
        """Current unit price for a symbol.

        Raises:
            PriceUnavailable: the provider failed, timed out, or quoted a non-positive price.
        """
        try:
            quote = await self.fetch_quote(symbol, asset_type)
        except PROVIDER_EXCEPTIONS as exc:
            logger.warning("No %s price for %s: %r", asset_type, symbol, exc)
            raise PriceUnavailable(symbol) from exc
        if quote.value is None or not quote.value.is_finite() or quote.value <= 0:
            logger.warning("Rejected %s price for %s: %s", asset_type, symbol, quote.value)
            raise PriceUnavailable(symbol)
        return quote.value
