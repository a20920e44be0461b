"""Abstract base class for market data providers."""
from abc import ABC, abstractmethod

from paper_trader.schemas import MarketQuote


class MarketProviderABC(ABC):
    """Base interface for all market data providers.

    Each provider implements this interface to give the price oracle a
    uniform way to fetch a current quote, whatever the upstream API.
    """

    @abstractmethod
    async def get_quote(self, symbol: str) -> MarketQuote:
        """Fetch the current quote for a symbol.

        Args:
            symbol: The asset symbol (e.g., "AAPL", "BINANCE:BTCUSDT", "bitcoin").

        Returns:
            A MarketQuote with the current unit price.

        Raises:
            ValueError: The symbol is unknown or has no price data.
        """

    async def refresh(self) -> None:
        """Force refresh: clear caches or re-establish connections.

        No-op by default.
        """

    async def close(self) -> None:
        """Clean up resources (connections, clients).

        Override in subclasses if cleanup is needed.
        """

    async def __aenter__(self) -> "MarketProviderABC":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        """Async context manager exit - calls close()."""
        await self.close()
