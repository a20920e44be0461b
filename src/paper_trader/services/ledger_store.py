"""Ledger store: cash balances, holdings and the transaction log.

Every trade is applied as one atomic unit scoped to the user: the account
row is locked first (SELECT ... FOR UPDATE), then the holding is read,
balance and holding are mutated and the transaction record appended, all in
a single database transaction. Readers never see a partially applied trade.

Methods here are synchronous; the trade service runs them in a worker
thread.
"""
import logging
import os
import threading
import weakref
from collections.abc import Callable
from decimal import Decimal
from typing import TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlmodel import Session, col, select

from paper_trader.db import (Account, AssetType, Holding, TradeSide,
                             Transaction)
from paper_trader.db.sessions import get_session
from paper_trader.errors import (InsufficientFunds, InsufficientPosition,
                                 NoPosition, PersistenceFailure)
from paper_trader.utils import (quantize_storage, utc_now,
                                weighted_average_cost)

logger = logging.getLogger(__name__)

STARTING_CASH = Decimal(os.getenv("PAPER_STARTING_CASH", "100000.00"))
MAX_ATTEMPTS = int(os.getenv("TRADE_MAX_ATTEMPTS", "3"))

T = TypeVar("T")


class LedgerStore:
    """Persistent ledger state behind per-user atomic commits."""

    def __init__(
        self,
        engine: Engine,
        *,
        starting_cash: Decimal = STARTING_CASH,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        """Initialize the store.

        Args:
            engine: SQLAlchemy engine the sessions bind to.
            starting_cash: Seed balance for accounts created on first trade.
            max_attempts: Attempts per atomic unit when the commit hits a
                transient conflict (lock timeout, deadlock, concurrent insert).
        """
        self._engine = engine
        self._starting_cash = starting_cash
        self._max_attempts = max(1, max_attempts)
        # Locks live only while some unit for that user holds a reference.
        self._user_locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._user_locks_guard = threading.Lock()

    @property
    def starting_cash(self) -> Decimal:
        return self._starting_cash

    # ---- Reads ----

    def get_cash(self, user_id: str) -> Decimal:
        """Current cash; the seed value when the user has never traded."""
        with get_session(self._engine) as session:
            account = session.get(Account, user_id)
            return account.cash if account else self._starting_cash

    def get_holding(self, user_id: str, symbol: str) -> Holding | None:
        with get_session(self._engine) as session:
            return _find_holding(session, user_id, symbol)

    def load_portfolio(self, user_id: str) -> tuple[Decimal, list[Holding]]:
        """Cash and holdings read in one session so they come from one state."""
        with get_session(self._engine) as session:
            account = session.get(Account, user_id)
            cash = account.cash if account else self._starting_cash
            holdings = session.exec(
                select(Holding)
                .where(Holding.user_id == user_id)
                .order_by(col(Holding.symbol))
            ).all()
            return cash, list(holdings)

    def recent_transactions(self, user_id: str, limit: int = 20) -> list[Transaction]:
        """Newest first."""
        with get_session(self._engine) as session:
            rows = session.exec(
                select(Transaction)
                .where(Transaction.user_id == user_id)
                .order_by(col(Transaction.created_at).desc(), col(Transaction.id).desc())
                .limit(limit)
            ).all()
            return list(rows)

    # ---- Atomic trade units ----

    def apply_buy(
        self,
        user_id: str,
        symbol: str,
        asset_type: AssetType,
        quantity: Decimal,
        price: Decimal,
    ) -> Decimal:
        """Debit cash, upsert the holding and log a BUY. Returns the new cash balance.

        Raises:
            InsufficientFunds: cash is below quantity * price.
            PersistenceFailure: the commit failed; nothing was written.
        """
        total = price * quantity

        def unit(session: Session) -> Decimal:
            account = self._lock_account(session, user_id)
            if account.cash < total:
                raise InsufficientFunds()
            now = utc_now()
            account.cash = quantize_storage(account.cash - total)
            account.updated_at = now
            session.add(account)

            holding = _find_holding(session, user_id, symbol)
            # A position keeps the asset class it was opened with.
            recorded_type = asset_type if holding is None else holding.asset_type
            if holding is None:
                holding = Holding(
                    user_id=user_id,
                    symbol=symbol,
                    asset_type=asset_type,
                    quantity=quantity,
                    average_cost=price,
                )
            else:
                holding.average_cost = quantize_storage(
                    weighted_average_cost(holding.quantity, holding.average_cost, quantity, price)
                )
                holding.quantity = holding.quantity + quantity
                holding.updated_at = now
            session.add(holding)

            session.add(
                Transaction(
                    user_id=user_id,
                    symbol=symbol,
                    asset_type=recorded_type,
                    side=TradeSide.BUY,
                    quantity=quantity,
                    price=price,
                    total=total,
                    created_at=now,
                )
            )
            return account.cash

        return self._run_atomic(unit, user_id)

    def apply_sell(
        self,
        user_id: str,
        symbol: str,
        asset_type: AssetType,
        quantity: Decimal,
        price: Decimal,
    ) -> Decimal:
        """Credit cash, reduce or delete the holding and log a SELL. Returns the new cash balance.

        The holding is re-checked under the account lock since it may have
        changed after the caller's pre-check.

        Raises:
            NoPosition: the user holds none of the symbol.
            InsufficientPosition: the holding is smaller than quantity.
            PersistenceFailure: the commit failed; nothing was written.
        """
        proceeds = price * quantity

        def unit(session: Session) -> Decimal:
            account = self._lock_account(session, user_id)
            holding = _find_holding(session, user_id, symbol)
            if holding is None:
                raise NoPosition()
            if holding.quantity < quantity:
                raise InsufficientPosition()

            now = utc_now()
            account.cash = quantize_storage(account.cash + proceeds)
            account.updated_at = now
            session.add(account)

            remaining = holding.quantity - quantity
            if remaining <= 0:
                session.delete(holding)
            else:
                # Average cost is left as is; realized P&L is not tracked.
                holding.quantity = remaining
                holding.updated_at = now
                session.add(holding)

            session.add(
                Transaction(
                    user_id=user_id,
                    symbol=symbol,
                    asset_type=asset_type,
                    side=TradeSide.SELL,
                    quantity=quantity,
                    price=price,
                    total=proceeds,
                    created_at=now,
                )
            )
            return account.cash

        return self._run_atomic(unit, user_id)

    def _lock_account(self, session: Session, user_id: str) -> Account:
        """Lock the user's account row, creating it with the seed balance if absent."""
        account = session.exec(
            select(Account).where(Account.user_id == user_id).with_for_update()
        ).first()
        if account is None:
            account = Account(user_id=user_id, cash=self._starting_cash)
            session.add(account)
            # Surface a concurrent first-trade insert now, as an IntegrityError.
            session.flush()
        return account

    def _user_lock(self, user_id: str) -> threading.Lock:
        with self._user_locks_guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._user_locks[user_id] = lock
            return lock

    def _run_atomic(self, unit: Callable[[Session], T], user_id: str) -> T:
        """Run `unit` in one transaction, retrying transient conflicts.

        Units for one user are also serialized in-process: SQLite ignores
        FOR UPDATE, and the row lock alone only orders writers across processes.
        Domain errors raised by `unit` roll back and propagate untouched.
        """
        with self._user_lock(user_id):
            return self._run_with_retries(unit, user_id)

    def _run_with_retries(self, unit: Callable[[Session], T], user_id: str) -> T:
        last_exc: SQLAlchemyError | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                with get_session(self._engine) as session:
                    return unit(session)
            except (IntegrityError, OperationalError) as exc:
                last_exc = exc
                logger.warning(
                    "Ledger commit conflict for user %s (attempt %d/%d): %s",
                    user_id, attempt, self._max_attempts, exc,
                )
            except SQLAlchemyError as exc:
                logger.exception("Ledger commit failed for user %s", user_id)
                raise PersistenceFailure() from exc
        raise PersistenceFailure() from last_exc


def _find_holding(session: Session, user_id: str, symbol: str) -> Holding | None:
    return session.exec(
        select(Holding).where(Holding.user_id == user_id, Holding.symbol == symbol)
    ).first()
