"""Shared fixtures: a file-backed SQLite ledger and deterministic price providers."""
import asyncio
from decimal import Decimal

import pytest

from paper_trader.db import AssetType
from paper_trader.db.sessions import create_db_engine, init_db
from paper_trader.providers.core import MarketProviderABC
from paper_trader.schemas import MarketQuote
from paper_trader.services import (LedgerStore, PortfolioService, PriceOracle,
                                   TradeService)

USER = "user-1"


class FakeProvider(MarketProviderABC):
    """In-memory provider: quotes whatever price was set, records every lookup."""

    def __init__(self, source: AssetType, prices: dict[str, str] | None = None) -> None:
        self.source = source
        self.prices = {k: Decimal(v) for k, v in (prices or {}).items()}
        self.calls: list[str] = []
        self.delay = 0.0
        self.closed = False

    def set_price(self, symbol: str, price: str) -> None:
        self.prices[symbol] = Decimal(price)

    async def get_quote(self, symbol: str) -> MarketQuote:
        self.calls.append(symbol)
        if self.delay:
            await asyncio.sleep(self.delay)
        if symbol not in self.prices:
            raise ValueError(f"'{symbol}' not found")
        return MarketQuote(source=self.source, symbol=symbol, value=self.prices[symbol])

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def stocks() -> FakeProvider:
    return FakeProvider(AssetType.STOCK, {"AAPL": "185.92", "MSFT": "410.10"})


@pytest.fixture
def crypto() -> FakeProvider:
    return FakeProvider(AssetType.CRYPTO, {"BINANCE:BTCUSDT": "64250.12"})


@pytest.fixture
def oracle(stocks, crypto) -> PriceOracle:
    return PriceOracle({AssetType.STOCK: stocks, AssetType.CRYPTO: crypto}, timeout=1.0)


@pytest.fixture
def store(engine) -> LedgerStore:
    return LedgerStore(engine, starting_cash=Decimal("100000.00"), max_attempts=3)


@pytest.fixture
def trade_service(oracle, store) -> TradeService:
    return TradeService(oracle, store)


@pytest.fixture
def portfolio_service(oracle, store) -> PortfolioService:
    return PortfolioService(oracle, store)
