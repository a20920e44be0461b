"""Trade error taxonomy.

Every error aborts the whole trade; nothing is partially applied. Each kind
carries the user-facing message and the HTTP status the trade routes use.
"""


class TradeError(Exception):
    """Base class for trade failures."""

    kind: str = "trade_error"
    status_code: int = 400
    default_message: str = "Trade failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidQuantity(TradeError):
    """Quantity is unparseable, non-finite, or not greater than zero."""

    kind = "invalid_quantity"
    status_code = 422
    default_message = "Quantity must be greater than zero"


class PriceUnavailable(TradeError):
    """No live quote could be obtained for the symbol."""

    kind = "price_unavailable"
    status_code = 503
    default_message = "Price unavailable"

    def __init__(self, symbol: str | None = None, message: str | None = None) -> None:
        self.symbol = symbol
        if message is None and symbol:
            message = f"Price unavailable for {symbol}"
        super().__init__(message)


class InsufficientFunds(TradeError):
    kind = "insufficient_funds"
    status_code = 409
    default_message = "Insufficient virtual balance"


class NoPosition(TradeError):
    kind = "no_position"
    status_code = 409
    default_message = "No position to sell"


class InsufficientPosition(TradeError):
    kind = "insufficient_position"
    status_code = 409
    default_message = "Sell quantity exceeds holdings"


class PersistenceFailure(TradeError):
    """The atomic commit could not complete; all writes were rolled back."""

    kind = "persistence_failure"
    status_code = 500
    default_message = "Failed to complete trade"


__all__ = [
    "InsufficientFunds",
    "InsufficientPosition",
    "InvalidQuantity",
    "NoPosition",
    "PersistenceFailure",
    "PriceUnavailable",
    "TradeError",
]
