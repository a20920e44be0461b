"""Paper trading service: virtual cash, holdings and trade ledger at live prices."""

__version__ = "0.1.0"
