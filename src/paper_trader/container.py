"""DI container: the composition root for providers, store and services.

The FastAPI lifespan builds one Container and publishes its singletons on
app.state; routes resolve them through the getters in paper_trader.deps.
"""
from dependency_injector import containers, providers

from paper_trader.db import AssetType
from paper_trader.db.sessions import create_db_engine
from paper_trader.providers import CoinGeckoProvider, YFinanceProvider
from paper_trader.services import (LedgerStore, PortfolioService, PriceOracle,
                                   TradeService, create_quote_service)


class Container(containers.DeclarativeContainer):
    config = providers.Configuration()

    engine = providers.Singleton(create_db_engine, config.database_url)

    stocks_provider = providers.Singleton(YFinanceProvider)
    crypto_provider = providers.Singleton(CoinGeckoProvider)
    market_providers = providers.Dict(
        {
            AssetType.STOCK: stocks_provider,
            AssetType.CRYPTO: crypto_provider,
        }
    )

    price_oracle = providers.Singleton(PriceOracle, market_providers)
    ledger_store = providers.Singleton(LedgerStore, engine)

    trade_service = providers.Singleton(TradeService, price_oracle, ledger_store)
    portfolio_service = providers.Singleton(PortfolioService, price_oracle, ledger_store)
    quote_service = providers.Singleton(create_quote_service, price_oracle)
