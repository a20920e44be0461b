"""Shared utilities for market data providers."""

# Quote currencies stripped from exchange pair symbols, longest first.
QUOTE_CURRENCIES = ("USDT", "USDC", "BUSD", "USD")


def strip_exchange_prefix(symbol: str) -> str:
    """Drop an exchange qualifier: "NASDAQ:AAPL" -> "AAPL"."""
    return symbol.rsplit(":", 1)[-1]


def normalize_stock_symbol(symbol: str) -> str:
    """Normalize a stock symbol (uppercase, no exchange prefix)."""
    return strip_exchange_prefix(symbol.strip()).upper()


def crypto_base_ticker(symbol: str) -> str:
    """Extract the base asset from a crypto pair symbol.

    "BINANCE:BTCUSDT" -> "BTC", "BTC-USD" -> "BTC", "eth/usdc" -> "ETH",
    "SOL" -> "SOL".
    """
    sym = strip_exchange_prefix(symbol.strip()).upper()
    for sep in ("-", "/"):
        if sep in sym:
            return sym.split(sep, 1)[0]
    for quote in QUOTE_CURRENCIES:
        if sym.endswith(quote) and len(sym) > len(quote):
            return sym[: -len(quote)]
    return sym
