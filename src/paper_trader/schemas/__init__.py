"""Pydantic schemas for API and runtime use. Not persisted to DB."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from paper_trader.db import AssetType, TradeSide
from paper_trader.errors import TradeError
from paper_trader.utils import utc_now


class MarketQuote(BaseModel):
    """Unified quote across providers (stock, crypto)."""

    source: AssetType
    symbol: str
    value: Decimal  # unit price
    volume: Decimal | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: dict | None = None


class TradeRequest(BaseModel):
    """Buy or sell order from the dashboard. Quantity is sent as a decimal string."""

    symbol: str = Field(min_length=1, max_length=64)
    quantity: str | int | float
    asset_type: AssetType = AssetType.STOCK


class TradeResult(BaseModel):
    """Outcome of a buy or sell. On failure, error_kind names the TradeError kind."""

    success: bool
    message: str
    new_cash_balance: str | None = None
    error_kind: str | None = None

    @classmethod
    def from_error(cls, exc: TradeError) -> "TradeResult":
        return cls(success=False, message=exc.message, error_kind=exc.kind)


class PositionView(BaseModel):
    """Holding enriched with its live price; decimals rendered as strings."""

    symbol: str
    asset_type: AssetType
    quantity: str
    average_cost: str
    price: str
    value: str


class PortfolioSnapshot(BaseModel):
    cash: str
    holdings_value: str
    portfolio_value: str
    positions: list[PositionView]


class TransactionView(BaseModel):
    symbol: str
    asset_type: AssetType
    side: TradeSide
    quantity: str
    price: str
    total: str
    created_at: datetime


__all__ = [
    "MarketQuote",
    "PortfolioSnapshot",
    "PositionView",
    "TradeRequest",
    "TradeResult",
    "TransactionView",
]
