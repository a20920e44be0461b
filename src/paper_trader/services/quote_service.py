"""Quote service: live quotes for the dashboard with provider errors mapped to HTTP."""
from collections.abc import Mapping

from paper_trader.db import AssetType
from paper_trader.providers.core import ProviderErrorMapper
from paper_trader.providers.core.error_mapper import PROVIDER_EXCEPTIONS
from paper_trader.schemas import MarketQuote
from paper_trader.services.price_oracle import PriceOracle


class QuoteService:
    """Serves quotes through the price oracle; maps provider errors to HTTP.

    Each asset class has its own error mapper so details name the right
    resource and upstream API.
    """

    def __init__(
        self,
        oracle: PriceOracle,
        error_mappers: Mapping[AssetType, ProviderErrorMapper],
    ) -> None:
        self._oracle = oracle
        self._error_mappers = dict(error_mappers)

    async def get_quote(self, asset_type: AssetType, symbol: str) -> MarketQuote:
        """Get current quote. Raises HTTPException on provider errors."""
        mapper = self._error_mappers.get(asset_type, ProviderErrorMapper())
        try:
            return await self._oracle.fetch_quote(symbol, asset_type)
        except PROVIDER_EXCEPTIONS as e:
            mapper.raise_http(e, symbol=symbol)


def create_quote_service(oracle: PriceOracle) -> QuoteService:
    """Create a QuoteService with per-asset-class error labels."""
    return QuoteService(
        oracle,
        {
            AssetType.STOCK: ProviderErrorMapper(resource_name="Stock", api_name="Stocks API"),
            AssetType.CRYPTO: ProviderErrorMapper(resource_name="Crypto", api_name="CoinGecko"),
        },
    )
