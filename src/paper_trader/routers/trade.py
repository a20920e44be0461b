"""Paper trading routes: buy, sell and transaction history.

Trade failures are answered with a TradeResult (success=false, error_kind)
and the status code of the error kind, never with a bare HTTP error.
"""
import logging

from fastapi import APIRouter, Query, Response

from paper_trader.deps import CurrentUserId, TradeServiceDep
from paper_trader.errors import TradeError
from paper_trader.schemas import TradeRequest, TradeResult, TransactionView

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/trade", tags=["trade"])


def _failure(response: Response, exc: TradeError) -> TradeResult:
    logger.info("Trade rejected (%s): %s", exc.kind, exc.message)
    response.status_code = exc.status_code
    return TradeResult.from_error(exc)


@router.post("/buy", response_model=TradeResult)
async def buy(
    order: TradeRequest,
    response: Response,
    service: TradeServiceDep,
    user_id: CurrentUserId,
) -> TradeResult:
    """Buy at the live price, debiting virtual cash."""
    try:
        return await service.buy(user_id, order.symbol, order.quantity, order.asset_type)
    except TradeError as exc:
        return _failure(response, exc)


@router.post("/sell", response_model=TradeResult)
async def sell(
    order: TradeRequest,
    response: Response,
    service: TradeServiceDep,
    user_id: CurrentUserId,
) -> TradeResult:
    """Sell part or all of a position at the live price, crediting virtual cash."""
    try:
        return await service.sell(user_id, order.symbol, order.quantity, order.asset_type)
    except TradeError as exc:
        return _failure(response, exc)


@router.get("/transactions", response_model=list[TransactionView])
async def recent_transactions(
    service: TradeServiceDep,
    user_id: CurrentUserId,
    limit: int = Query(default=20, ge=1, le=100, description="Max transactions"),
) -> list[TransactionView]:
    """Latest executed trades, newest first."""
    return await service.recent_transactions(user_id, limit)
