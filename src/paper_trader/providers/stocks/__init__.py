"""Stock market data providers."""
from paper_trader.providers.stocks.yfinance_provider import YFinanceProvider

__all__ = ["YFinanceProvider"]
