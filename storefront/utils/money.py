from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    # str() first so float rows from the database keep their printed value
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(amount) -> Decimal:
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(amount) -> str:
    """1000 -> "1000", 99.5 -> "99.50"."""
    q = quantize(amount)
    if q == q.to_integral_value():
        return str(q.to_integral_value())
    return str(q)
