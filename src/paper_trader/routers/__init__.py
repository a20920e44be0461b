"""API routers.

Includes routes for:
- /trade - Paper trading: buy, sell, transaction history
- /portfolio - Portfolio snapshot at live prices
- /quotes - Live quotes for stocks and crypto
"""
from paper_trader.routers.portfolio import router as portfolio_router
from paper_trader.routers.quotes import router as quotes_router
from paper_trader.routers.trade import router as trade_router

__all__ = [
    "portfolio_router",
    "quotes_router",
    "trade_router",
]
