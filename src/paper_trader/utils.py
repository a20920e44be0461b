"""Shared utilities: decimal parsing, quantization and formatting.

Money and quantities never pass through float arithmetic. Inputs are parsed
from their string form, stored as 12-digit fixed-point strings, and rendered
with 2 places for money and 8 places for quantities.
"""
from datetime import datetime, timezone
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, InvalidOperation

from paper_trader.errors import InvalidQuantity

STORAGE_EXPONENT = Decimal("1e-12")
MONEY_EXPONENT = Decimal("0.01")
QUANTITY_EXPONENT = Decimal("1e-8")


def to_decimal(value: Decimal | str | int | float) -> Decimal:
    """Parse a value into a finite Decimal via its string form.

    Raises:
        InvalidQuantity: value is empty, unparseable, NaN or infinite.
    """
    if isinstance(value, bool):
        raise InvalidQuantity(f"Invalid quantity: {value!r}")
    if isinstance(value, Decimal):
        parsed = value
    else:
        try:
            parsed = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise InvalidQuantity(f"Invalid quantity: {value!r}") from exc
    if not parsed.is_finite():
        raise InvalidQuantity(f"Invalid quantity: {value!r}")
    return parsed


def parse_quantity(value: Decimal | str | int | float) -> Decimal:
    """Parse a trade quantity; it must be strictly positive.

    The quantity must also be representable in the 12 fractional digits kept
    at rest, otherwise the stored holding would not match the trade.
    """
    quantity = to_decimal(value)
    if quantity <= 0:
        raise InvalidQuantity()
    try:
        stored = quantize_storage(quantity)
    except InvalidOperation as exc:
        raise InvalidQuantity(f"Invalid quantity: {value!r}") from exc
    if stored != quantity:
        raise InvalidQuantity("Quantity supports at most 12 decimal places")
    return quantity


def decimal_from_number(value: float | int | str | None) -> Decimal | None:
    """Convert a provider number to Decimal through str(); preserve None."""
    if value is None:
        return None
    return Decimal(str(value))


def weighted_average_cost(
    existing_quantity: Decimal,
    existing_average: Decimal,
    quantity: Decimal,
    price: Decimal,
) -> Decimal:
    """Average cost per unit after adding `quantity` units bought at `price`."""
    if existing_quantity <= 0:
        return price
    total_cost = existing_quantity * existing_average + quantity * price
    return total_cost / (existing_quantity + quantity)


def quantize_storage(value: Decimal) -> Decimal:
    """Round to the 12 fractional digits kept at rest."""
    return value.quantize(STORAGE_EXPONENT, rounding=ROUND_HALF_EVEN)


def round_money(value: Decimal) -> Decimal:
    """Round half up to cents."""
    return value.quantize(MONEY_EXPONENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    """Render a money amount with 2 fractional digits (e.g. "98140.80")."""
    return format(round_money(value), "f")


def format_quantity(value: Decimal) -> str:
    """Render a quantity with 8 fractional digits so crypto fractions survive."""
    return format(value.quantize(QUANTITY_EXPONENT, rounding=ROUND_HALF_UP), "f")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(ts: float | None) -> datetime:
    """Convert optional Unix timestamp (seconds) to an aware UTC datetime; fallback to now."""
    return datetime.fromtimestamp(ts, tz=timezone.utc) if ts is not None else utc_now()
