"""Portfolio snapshot route."""
from fastapi import APIRouter

from paper_trader.deps import CurrentUserId, PortfolioServiceDep
from paper_trader.schemas import PortfolioSnapshot

router = APIRouter(prefix="/portfolio", tags=["portfolio"])


@router.get("", response_model=PortfolioSnapshot)
async def get_portfolio(
    service: PortfolioServiceDep,
    user_id: CurrentUserId,
) -> PortfolioSnapshot:
    """Cash, holdings valued at live prices, and their total.

    Positions whose price cannot be fetched are valued at 0.
    """
    return await service.snapshot(user_id)
