"""FastAPI dependency injection: app.state holds singletons; Depends() resolves them.

Lifespan (main.py) builds the container once and attaches the services to
app.state; these getters are used by Depends() and replaced in tests via
app.dependency_overrides.
"""
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from paper_trader.services import PortfolioService, QuoteService, TradeService


def get_trade_service(request: Request) -> TradeService:
    """Resolve TradeService from app.state (created at startup)."""
    return request.app.state.trade_service


def get_portfolio_service(request: Request) -> PortfolioService:
    """Resolve PortfolioService from app.state."""
    return request.app.state.portfolio_service


def get_quote_service(request: Request) -> QuoteService:
    """Resolve QuoteService from app.state."""
    return request.app.state.quote_service


def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Authenticated user id forwarded by the app's auth layer in X-User-Id.

    Identity is trusted as given; no authorization happens here.
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return user_id


# Type aliases for route injection
TradeServiceDep = Annotated[TradeService, Depends(get_trade_service)]
PortfolioServiceDep = Annotated[PortfolioService, Depends(get_portfolio_service)]
QuoteServiceDep = Annotated[QuoteService, Depends(get_quote_service)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]
