"""Portfolio snapshot: cash plus holdings valued at live prices."""
import asyncio
import logging
from decimal import Decimal

from paper_trader.db import Holding
from paper_trader.errors import PriceUnavailable
from paper_trader.schemas import PortfolioSnapshot, PositionView
from paper_trader.services.ledger_store import LedgerStore
from paper_trader.services.price_oracle import PriceOracle
from paper_trader.utils import format_money, format_quantity, round_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class PortfolioService:
    """Read-only valuation of a user's paper portfolio.

    Best effort: a position whose price cannot be fetched is valued at zero
    instead of failing the whole snapshot.
    """

    def __init__(self, oracle: PriceOracle, store: LedgerStore) -> None:
        self._oracle = oracle
        self._store = store

    async def _price_or_zero(self, holding: Holding) -> Decimal:
        try:
            return await self._oracle.get_price(holding.symbol, holding.asset_type)
        except PriceUnavailable as exc:
            logger.warning("Snapshot: pricing %s failed, valuing at 0: %s", holding.symbol, exc)
            return ZERO

    async def snapshot(self, user_id: str) -> PortfolioSnapshot:
        """Value every holding concurrently and aggregate with cash."""
        cash, holdings = await asyncio.to_thread(self._store.load_portfolio, user_id)
        prices = await asyncio.gather(*(self._price_or_zero(h) for h in holdings))

        positions: list[PositionView] = []
        holdings_value = ZERO
        for holding, price in zip(holdings, prices):
            # Totals add the rounded position values so the displayed figures sum exactly.
            value = round_money(price * holding.quantity)
            holdings_value += value
            positions.append(
                PositionView(
                    symbol=holding.symbol,
                    asset_type=holding.asset_type,
                    quantity=format_quantity(holding.quantity),
                    average_cost=format_quantity(holding.average_cost),
                    price=format_money(price),
                    value=format_money(value),
                )
            )

        cash = round_money(cash)
        return PortfolioSnapshot(
            cash=format_money(cash),
            holdings_value=format_money(holdings_value),
            portfolio_value=format_money(cash + holdings_value),
            positions=positions,
        )
