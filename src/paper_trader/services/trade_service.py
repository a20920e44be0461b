"""Trade engine: buy and sell against live prices with all-or-nothing commits."""
import asyncio
import logging
from decimal import Decimal

from paper_trader.db import AssetType
from paper_trader.errors import (InsufficientPosition, NoPosition,
                                 PriceUnavailable)
from paper_trader.schemas import TradeResult, TransactionView
from paper_trader.services.ledger_store import LedgerStore
from paper_trader.services.price_oracle import PriceOracle
from paper_trader.utils import format_money, format_quantity, parse_quantity

logger = logging.getLogger(__name__)


def normalize_symbol(symbol: str) -> str:
    """Canonical holding key: trimmed and uppercase ("binance:btcusdt" -> "BINANCE:BTCUSDT")."""
    return symbol.strip().upper()


def parse_asset_type(asset_type: AssetType | str, symbol: str) -> AssetType:
    """Asset class of an order; an unknown class has no price source."""
    try:
        return AssetType(asset_type)
    except ValueError as exc:
        raise PriceUnavailable(symbol) from exc


class TradeService:
    """Validates and executes paper trades.

    Errors from paper_trader.errors are raised, never swallowed; when one is
    raised no ledger state has changed. Callers may retry the whole call.
    """

    def __init__(self, oracle: PriceOracle, store: LedgerStore) -> None:
        self._oracle = oracle
        self._store = store

    async def buy(
        self,
        user_id: str,
        symbol: str,
        quantity: Decimal | str | int | float,
        asset_type: AssetType | str = AssetType.STOCK,
    ) -> TradeResult:
        """Buy `quantity` units of `symbol` at the current price.

        Adding to an existing position prices it with the asset class the
        position was opened with.

        Raises:
            InvalidQuantity: before any price lookup.
            PriceUnavailable, InsufficientFunds, PersistenceFailure.
        """
        qty = parse_quantity(quantity)
        sym = normalize_symbol(symbol)
        asset = parse_asset_type(asset_type, sym)

        holding = await asyncio.to_thread(self._store.get_holding, user_id, sym)
        if holding is not None:
            asset = self._held_asset_type(sym, asset, holding.asset_type)

        price = await self._oracle.get_price(sym, asset)
        new_cash = await asyncio.to_thread(self._store.apply_buy, user_id, sym, asset, qty, price)

        logger.info("BUY %s %s @ %s for user %s; cash now %s", qty, sym, price, user_id, new_cash)
        return TradeResult(
            success=True,
            message="Purchase completed",
            new_cash_balance=format_money(new_cash),
        )

    async def sell(
        self,
        user_id: str,
        symbol: str,
        quantity: Decimal | str | int | float,
        asset_type: AssetType | str = AssetType.STOCK,
    ) -> TradeResult:
        """Sell `quantity` units of `symbol` at the current price.

        The position is checked before the price lookup so a sell that cannot
        succeed fails without an upstream call. The holding's own asset class
        is used for pricing and for the transaction record.

        Raises:
            InvalidQuantity, NoPosition, InsufficientPosition,
            PriceUnavailable, PersistenceFailure.
        """
        qty = parse_quantity(quantity)
        sym = normalize_symbol(symbol)
        requested = parse_asset_type(asset_type, sym)

        holding = await asyncio.to_thread(self._store.get_holding, user_id, sym)
        if holding is None:
            raise NoPosition()
        if holding.quantity < qty:
            raise InsufficientPosition()
        asset = self._held_asset_type(sym, requested, holding.asset_type)

        price = await self._oracle.get_price(sym, asset)
        new_cash = await asyncio.to_thread(self._store.apply_sell, user_id, sym, asset, qty, price)

        logger.info("SELL %s %s @ %s for user %s; cash now %s", qty, sym, price, user_id, new_cash)
        return TradeResult(
            success=True,
            message="Sale completed",
            new_cash_balance=format_money(new_cash),
        )

    @staticmethod
    def _held_asset_type(symbol: str, requested: AssetType, held: AssetType) -> AssetType:
        if requested != held:
            logger.warning(
                "Order for %s requested as %s but held as %s; using %s",
                symbol, requested.value, held.value, held.value,
            )
        return held

    async def recent_transactions(self, user_id: str, limit: int = 20) -> list[TransactionView]:
        """The user's latest transactions, newest first."""
        rows = await asyncio.to_thread(self._store.recent_transactions, user_id, limit)
        return [
            TransactionView(
                symbol=t.symbol,
                asset_type=t.asset_type,
                side=t.side,
                quantity=format_quantity(t.quantity),
                price=format_money(t.price),
                total=format_money(t.total),
                created_at=t.created_at,
            )
            for t in rows
        ]
