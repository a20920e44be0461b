"""Database package: models and session management."""
from paper_trader.db.models import (Account, AssetType, Holding, TradeSide,
                                    Transaction)

__all__ = ["Account", "AssetType", "Holding", "TradeSide", "Transaction"]
