"""Tests for the trade engine: buys, sells, and all-or-nothing failure handling."""
import asyncio
import gc
from datetime import timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from paper_trader.db import (Account, AssetType, Holding, TradeSide,
                             Transaction)
from paper_trader.errors import (InsufficientFunds, InsufficientPosition,
                                 InvalidQuantity, NoPosition,
                                 PersistenceFailure, PriceUnavailable)
from paper_trader.services import ledger_store as ledger_store_module
from paper_trader.utils import utc_now

USER = "user-1"


def _ledger_state(store, user_id=USER):
    cash, holdings = store.load_portfolio(user_id)
    txs = store.recent_transactions(user_id, limit=100)
    return cash, [(h.symbol, h.quantity, h.average_cost) for h in holdings], len(txs)


class TestScenarios:
    """The AAPL walkthrough: buy, buy more, sell out, plus the rejection cases."""

    @pytest.mark.asyncio
    async def test_a_first_buy(self, trade_service, store) -> None:
        result = await trade_service.buy(USER, "AAPL", "10", AssetType.STOCK)

        assert result.success is True
        assert result.message == "Purchase completed"
        assert result.new_cash_balance == "98140.80"
        holding = store.get_holding(USER, "AAPL")
        assert holding.quantity == Decimal("10")
        assert holding.average_cost == Decimal("185.92")
        assert holding.asset_type == AssetType.STOCK
        txs = store.recent_transactions(USER)
        assert len(txs) == 1
        assert txs[0].side == TradeSide.BUY
        assert txs[0].total == Decimal("1859.20")
        assert txs[0].price == Decimal("185.92")

    @pytest.mark.asyncio
    async def test_b_second_buy_reweights_average(self, trade_service, store, stocks) -> None:
        await trade_service.buy(USER, "AAPL", "10")
        stocks.set_price("AAPL", "190.00")

        result = await trade_service.buy(USER, "AAPL", "5")

        assert result.new_cash_balance == "97190.80"
        holding = store.get_holding(USER, "AAPL")
        assert holding.quantity == Decimal("15")
        assert holding.average_cost == Decimal("187.28")
        assert store.recent_transactions(USER)[0].total == Decimal("950.00")

    @pytest.mark.asyncio
    async def test_c_sell_everything_deletes_holding(self, trade_service, store, stocks) -> None:
        await trade_service.buy(USER, "AAPL", "10")
        stocks.set_price("AAPL", "190.00")
        await trade_service.buy(USER, "AAPL", "5")
        stocks.set_price("AAPL", "200.00")

        result = await trade_service.sell(USER, "AAPL", "15")

        assert result.success is True
        assert result.message == "Sale completed"
        assert result.new_cash_balance == "100190.80"
        assert store.get_holding(USER, "AAPL") is None
        latest = store.recent_transactions(USER)[0]
        assert latest.side == TradeSide.SELL
        assert latest.quantity == Decimal("15")
        assert latest.total == Decimal("3000.00")

    @pytest.mark.asyncio
    async def test_d_sell_without_position(self, trade_service, store, stocks) -> None:
        await trade_service.buy(USER, "AAPL", "1")
        before = _ledger_state(store)

        with pytest.raises(NoPosition) as exc_info:
            await trade_service.sell(USER, "TSLA", "1")

        assert exc_info.value.message == "No position to sell"
        assert _ledger_state(store) == before
        assert "TSLA" not in stocks.calls

    @pytest.mark.asyncio
    async def test_e_negative_quantity_rejected_before_price_lookup(
        self, trade_service, store, stocks
    ) -> None:
        with pytest.raises(InvalidQuantity):
            await trade_service.buy(USER, "AAPL", -5)

        assert stocks.calls == []
        assert _ledger_state(store) == (Decimal("100000.00"), [], 0)


class TestBuy:
    @pytest.mark.asyncio
    async def test_symbol_is_normalized(self, trade_service, store, stocks) -> None:
        await trade_service.buy(USER, "  aapl ", "1")

        assert stocks.calls == ["AAPL"]
        assert store.get_holding(USER, "AAPL") is not None

    @pytest.mark.asyncio
    async def test_insufficient_funds_changes_nothing(self, trade_service, store) -> None:
        with pytest.raises(InsufficientFunds) as exc_info:
            await trade_service.buy(USER, "AAPL", "1000")

        assert exc_info.value.message == "Insufficient virtual balance"
        assert _ledger_state(store) == (Decimal("100000.00"), [], 0)

    @pytest.mark.asyncio
    async def test_can_spend_exactly_all_cash(self, trade_service, store, stocks) -> None:
        stocks.set_price("AAPL", "10000.00")

        result = await trade_service.buy(USER, "AAPL", "10")

        assert result.new_cash_balance == "0.00"
        with pytest.raises(InsufficientFunds):
            await trade_service.buy(USER, "AAPL", "0.0001")
        assert store.get_cash(USER) == Decimal("0")

    @pytest.mark.asyncio
    async def test_price_failure_leaves_ledger_untouched(self, trade_service, store) -> None:
        await trade_service.buy(USER, "AAPL", "2")
        before = _ledger_state(store)

        with pytest.raises(PriceUnavailable) as exc_info:
            await trade_service.buy(USER, "NOPE", "1")

        assert exc_info.value.message == "Price unavailable for NOPE"
        assert _ledger_state(store) == before

    @pytest.mark.asyncio
    async def test_fractional_crypto(self, trade_service, store) -> None:
        result = await trade_service.buy(USER, "binance:btcusdt", "0.12345678", "crypto")

        holding = store.get_holding(USER, "BINANCE:BTCUSDT")
        assert holding.quantity == Decimal("0.12345678")
        assert holding.asset_type == AssetType.CRYPTO
        # 0.12345678 * 64250.12 = 7932.1129298136
        assert result.new_cash_balance == "92067.89"
        txs = await trade_service.recent_transactions(USER)
        assert txs[0].quantity == "0.12345678"
        assert txs[0].asset_type == AssetType.CRYPTO

    @pytest.mark.asyncio
    async def test_concurrent_buys_serialize(self, trade_service, store) -> None:
        await asyncio.gather(*(trade_service.buy(USER, "AAPL", "1") for _ in range(5)))

        holding = store.get_holding(USER, "AAPL")
        assert holding.quantity == Decimal("5")
        assert holding.average_cost == Decimal("185.92")
        assert store.get_cash(USER) == Decimal("100000.00") - 5 * Decimal("185.92")
        assert len(store.recent_transactions(USER)) == 5

    @pytest.mark.asyncio
    async def test_users_are_independent(self, trade_service, store) -> None:
        await trade_service.buy(USER, "AAPL", "10")
        await trade_service.buy("user-2", "MSFT", "1")

        assert store.get_holding("user-2", "AAPL") is None
        assert store.get_cash("user-2") == Decimal("100000.00") - Decimal("410.10")
        assert len(store.recent_transactions(USER)) == 1

    @pytest.mark.asyncio
    async def test_quantity_finer_than_storage_rejected(self, trade_service, store, stocks) -> None:
        with pytest.raises(InvalidQuantity):
            await trade_service.buy(USER, "AAPL", "0.0000000000001")

        assert stocks.calls == []
        assert _ledger_state(store) == (Decimal("100000.00"), [], 0)

    @pytest.mark.asyncio
    async def test_adding_to_position_uses_the_held_asset_type(
        self, trade_service, store, stocks, crypto
    ) -> None:
        await trade_service.buy(USER, "BINANCE:BTCUSDT", "1", AssetType.CRYPTO)
        stock_calls = len(stocks.calls)

        await trade_service.buy(USER, "BINANCE:BTCUSDT", "1", AssetType.STOCK)

        assert len(stocks.calls) == stock_calls
        assert crypto.calls.count("BINANCE:BTCUSDT") == 2
        assert store.get_holding(USER, "BINANCE:BTCUSDT").quantity == Decimal("2")
        assert [t.asset_type for t in store.recent_transactions(USER)] == [AssetType.CRYPTO] * 2

    @pytest.mark.asyncio
    async def test_unknown_asset_type_is_a_trade_error(self, trade_service, store, stocks, crypto) -> None:
        with pytest.raises(PriceUnavailable) as exc_info:
            await trade_service.buy(USER, "AAPL", "1", "bond")

        assert exc_info.value.message == "Price unavailable for AAPL"
        assert stocks.calls == crypto.calls == []
        assert _ledger_state(store) == (Decimal("100000.00"), [], 0)


class TestSell:
    @pytest.mark.asyncio
    async def test_partial_sell_keeps_average_cost(self, trade_service, store, stocks) -> None:
        await trade_service.buy(USER, "AAPL", "10")
        stocks.set_price("AAPL", "250.00")

        result = await trade_service.sell(USER, "AAPL", "4")

        holding = store.get_holding(USER, "AAPL")
        assert holding.quantity == Decimal("6")
        assert holding.average_cost == Decimal("185.92")
        assert result.new_cash_balance == "99140.80"

    @pytest.mark.asyncio
    async def test_oversell_fails_before_price_lookup(self, trade_service, store, stocks) -> None:
        await trade_service.buy(USER, "AAPL", "10")
        calls_before = len(stocks.calls)
        before = _ledger_state(store)

        with pytest.raises(InsufficientPosition) as exc_info:
            await trade_service.sell(USER, "AAPL", "10.5")

        assert exc_info.value.message == "Sell quantity exceeds holdings"
        assert len(stocks.calls) == calls_before
        assert _ledger_state(store) == before

    @pytest.mark.asyncio
    async def test_price_failure_on_sell_changes_nothing(self, trade_service, store, stocks) -> None:
        await trade_service.buy(USER, "AAPL", "10")
        del stocks.prices["AAPL"]
        before = _ledger_state(store)

        with pytest.raises(PriceUnavailable):
            await trade_service.sell(USER, "AAPL", "5")

        assert _ledger_state(store) == before

    @pytest.mark.asyncio
    async def test_sell_prices_with_the_held_asset_type(self, trade_service, store, stocks, crypto) -> None:
        await trade_service.buy(USER, "BINANCE:BTCUSDT", "1", AssetType.CRYPTO)
        stock_calls = len(stocks.calls)

        await trade_service.sell(USER, "BINANCE:BTCUSDT", "1", AssetType.STOCK)

        assert len(stocks.calls) == stock_calls
        assert crypto.calls.count("BINANCE:BTCUSDT") == 2
        assert store.recent_transactions(USER)[0].asset_type == AssetType.CRYPTO

    @pytest.mark.asyncio
    async def test_sell_zero_rejected(self, trade_service) -> None:
        with pytest.raises(InvalidQuantity):
            await trade_service.sell(USER, "AAPL", "0")

    @pytest.mark.asyncio
    async def test_sell_finer_than_storage_leaves_ledger_alone(self, trade_service, store) -> None:
        await trade_service.buy(USER, "AAPL", "10")
        before = _ledger_state(store)

        with pytest.raises(InvalidQuantity):
            await trade_service.sell(USER, "AAPL", "0.0000000000004")

        assert _ledger_state(store) == before
        assert store.get_holding(USER, "AAPL").quantity == Decimal("10")

    @pytest.mark.asyncio
    async def test_unknown_asset_type_on_sell(self, trade_service, store) -> None:
        await trade_service.buy(USER, "AAPL", "1")

        with pytest.raises(PriceUnavailable):
            await trade_service.sell(USER, "AAPL", "1", "bond")

        assert store.get_holding(USER, "AAPL").quantity == Decimal("1")


class TestLedgerInvariants:
    @pytest.mark.asyncio
    async def test_cash_never_negative_and_holdings_positive(self, trade_service, store, stocks) -> None:
        orders = [
            ("buy", "AAPL", "300"), ("buy", "MSFT", "100"), ("sell", "AAPL", "150"),
            ("buy", "MSFT", "200"), ("sell", "MSFT", "100"), ("sell", "AAPL", "150"),
            ("buy", "AAPL", "1000"), ("sell", "MSFT", "1"),
        ]
        for side, symbol, qty in orders:
            try:
                await getattr(trade_service, side)(USER, symbol, qty)
            except (InsufficientFunds, InsufficientPosition, NoPosition):
                pass
            cash, holdings = store.load_portfolio(USER)
            assert cash >= 0
            assert all(h.quantity > 0 for h in holdings)

        assert store.get_holding(USER, "AAPL") is None

    @pytest.mark.asyncio
    async def test_transactions_newest_first(self, trade_service) -> None:
        await trade_service.buy(USER, "AAPL", "1")
        await trade_service.buy(USER, "MSFT", "2")
        await trade_service.sell(USER, "AAPL", "1")

        txs = await trade_service.recent_transactions(USER, limit=2)

        assert [(t.side, t.symbol) for t in txs] == [(TradeSide.SELL, "AAPL"), (TradeSide.BUY, "MSFT")]
        assert txs[1].quantity == "2.00000000"
        assert txs[1].price == "410.10"
        assert txs[1].total == "820.20"


def _operational_error() -> OperationalError:
    return OperationalError("SELECT ...", {}, Exception("database is locked"))


class TestPersistence:
    """The first `_find_holding` call is the service's position pre-check;
    failures are injected into the calls made inside the atomic unit."""

    @pytest.mark.asyncio
    async def test_commit_failure_rolls_back_the_debit(self, trade_service, store, monkeypatch) -> None:
        original = ledger_store_module._find_holding
        calls = []

        def broken_find(session, user_id, symbol):
            calls.append(symbol)
            if len(calls) == 1:
                return original(session, user_id, symbol)
            raise _operational_error()

        monkeypatch.setattr(ledger_store_module, "_find_holding", broken_find)

        with pytest.raises(PersistenceFailure) as exc_info:
            await trade_service.buy(USER, "AAPL", "1")

        assert exc_info.value.message == "Failed to complete trade"
        assert len(calls) == 1 + store._max_attempts
        monkeypatch.undo()
        assert _ledger_state(store) == (Decimal("100000.00"), [], 0)

    @pytest.mark.asyncio
    async def test_transient_conflict_is_retried(self, trade_service, store, monkeypatch) -> None:
        original = ledger_store_module._find_holding
        calls = []

        def flaky_find(session, user_id, symbol):
            calls.append(symbol)
            if len(calls) == 2:
                raise _operational_error()
            return original(session, user_id, symbol)

        monkeypatch.setattr(ledger_store_module, "_find_holding", flaky_find)

        result = await trade_service.buy(USER, "AAPL", "1")

        assert result.success is True
        assert len(calls) == 3
        assert len(store.recent_transactions(USER)) == 1
        assert store.get_cash(USER) == Decimal("99814.08")


class TestTimestamps:
    def test_ledger_columns_are_timezone_aware(self) -> None:
        for table in (Account.__table__, Holding.__table__, Transaction.__table__):
            for name in ("created_at", "updated_at"):
                if name in table.c:
                    assert table.c[name].type.timezone is True

    def test_default_timestamps_carry_utc(self) -> None:
        tx = Transaction(
            user_id=USER, symbol="AAPL", side=TradeSide.BUY,
            quantity=Decimal("1"), price=Decimal("1"), total=Decimal("1"),
        )
        assert tx.created_at.tzinfo is timezone.utc

    @pytest.mark.asyncio
    async def test_trade_records_its_time(self, trade_service, store) -> None:
        started = utc_now().replace(tzinfo=None, microsecond=0)

        await trade_service.buy(USER, "AAPL", "1")

        created = store.recent_transactions(USER)[0].created_at
        assert created.replace(tzinfo=None) >= started


class TestUserLocks:
    def test_lock_is_shared_while_held(self, store) -> None:
        lock = store._user_lock(USER)
        assert store._user_lock(USER) is lock
        assert store._user_lock("user-2") is not lock

    @pytest.mark.asyncio
    async def test_locks_are_released_after_trades(self, trade_service, store) -> None:
        for n in range(5):
            await trade_service.buy(f"user-{n}", "AAPL", "1")
        gc.collect()

        assert len(store._user_locks) == 0
