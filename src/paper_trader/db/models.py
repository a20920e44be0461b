"""Database models for the paper trading ledger.

Only ledger state is persisted: one account per user, one holding per
(user, symbol), and the append-only transaction log. Quotes are fetched on
demand and never stored. Decimal columns are written as fixed-point strings.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Column, DateTime, Index, String, UniqueConstraint
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel

from paper_trader.utils import quantize_storage, utc_now


class AssetType(str, Enum):
    """Asset class a symbol is priced under."""

    STOCK = "stock"
    CRYPTO = "crypto"


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class DecimalString(TypeDecorator):
    """Decimal persisted as a 12-digit fixed-point string, read back as Decimal."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):  # noqa: ANN001
        if value is None:
            return None
        return format(quantize_storage(Decimal(value)), "f")

    def process_result_value(self, value, dialect):  # noqa: ANN001
        if value is None:
            return None
        return Decimal(value)


def _decimal_column() -> Column:
    return Column(DecimalString(64), nullable=False)


def _timestamp_column() -> Column:
    return Column(DateTime(timezone=True), nullable=False)


class Account(SQLModel, table=True):
    """Virtual cash balance for a user. Created lazily on the first trade."""

    user_id: str = Field(primary_key=True)
    cash: Decimal = Field(sa_column=_decimal_column())
    created_at: datetime = Field(default_factory=utc_now, sa_column=_timestamp_column())
    updated_at: datetime = Field(default_factory=utc_now, sa_column=_timestamp_column())


class Holding(SQLModel, table=True):
    """A user's open position in one symbol. Deleted when quantity reaches zero."""

    __table_args__ = (UniqueConstraint("user_id", "symbol", name="uq_holding_user_symbol"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    symbol: str = Field(index=True)  # AAPL | BINANCE:BTCUSDT
    asset_type: AssetType = Field(default=AssetType.STOCK)
    quantity: Decimal = Field(sa_column=_decimal_column())
    average_cost: Decimal = Field(sa_column=_decimal_column())  # per unit
    created_at: datetime = Field(default_factory=utc_now, sa_column=_timestamp_column())
    updated_at: datetime = Field(default_factory=utc_now, sa_column=_timestamp_column())


class Transaction(SQLModel, table=True):
    """One executed trade. Append-only: never updated or deleted."""

    __tablename__ = "ledger_transaction"
    __table_args__ = (Index("ix_ledger_transaction_user_created", "user_id", "created_at"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    symbol: str
    asset_type: AssetType = Field(default=AssetType.STOCK)
    side: TradeSide
    quantity: Decimal = Field(sa_column=_decimal_column())
    price: Decimal = Field(sa_column=_decimal_column())  # execution price per unit
    total: Decimal = Field(sa_column=_decimal_column())  # quantity * price
    created_at: datetime = Field(default_factory=utc_now, sa_column=_timestamp_column())
