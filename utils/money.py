from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Coerce a number, Decimal or numeric string to a cent-quantized Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"invalid money value: {value!r}") from exc


def format_money(amount) -> str:
    return f"{to_money(amount):.2f}"


def fraction(value) -> Decimal:
    """Ratio (e.g. an alert threshold stored as DOUBLE) as an exact Decimal."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
