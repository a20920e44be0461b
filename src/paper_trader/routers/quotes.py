"""Live quote routes for the trade dialog (stocks via Yahoo Finance, crypto via CoinGecko)."""
from fastapi import APIRouter

from paper_trader.db import AssetType
from paper_trader.deps import QuoteServiceDep
from paper_trader.schemas import MarketQuote

router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.get("/{asset_type}/{symbol}", response_model=MarketQuote)
async def get_quote(
    asset_type: AssetType,
    symbol: str,
    service: QuoteServiceDep,
) -> MarketQuote:
    """Get the current quote for a symbol.

    Args:
        asset_type: "stock" or "crypto".
        symbol: Ticker ("AAPL") or crypto pair/ID ("BINANCE:BTCUSDT", "bitcoin").
    """
    return await service.get_quote(asset_type, symbol)
