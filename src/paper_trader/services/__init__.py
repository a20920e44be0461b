"""Service layer: price oracle, ledger store, trade engine and portfolio valuation."""
from paper_trader.services.ledger_store import LedgerStore
from paper_trader.services.portfolio_service import PortfolioService
from paper_trader.services.price_oracle import PriceOracle
from paper_trader.services.quote_service import QuoteService, create_quote_service
from paper_trader.services.trade_service import TradeService

__all__ = [
    "LedgerStore",
    "PortfolioService",
    "PriceOracle",
    "QuoteService",
    "TradeService",
    "create_quote_service",
]
