"""
Precision-safe money arithmetic.

Every monetary value in the engine goes through these helpers so binary
floating point never enters a commission calculation.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from affiliate_engine.config.constants import MONEY_QUANT

Number = Decimal | int | float | str

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Number | None) -> Decimal:
    """
    Convert a value to Decimal.

    Floats are converted through ``str`` so ``0.1`` becomes ``Decimal("0.1")``
    instead of its binary expansion. ``None`` becomes zero.

    Args:
        value: Value to convert

    Returns:
        Decimal value

    Raises:
        ValueError: If the value is not a finite number
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(value)
        except (InvalidOperation, TypeError) as e:
            raise ValueError(f"Invalid decimal value: {value!r}") from e

    if not result.is_finite():
        raise ValueError(f"Decimal value must be finite: {value!r}")
    return result


def add(a: Number, b: Number) -> Decimal:
    """Return a + b."""
    return to_decimal(a) + to_decimal(b)


def sub(a: Number, b: Number) -> Decimal:
    """Return a - b."""
    return to_decimal(a) - to_decimal(b)


def mul(a: Number, b: Number) -> Decimal:
    """Return a * b."""
    return to_decimal(a) * to_decimal(b)


def div(a: Number, b: Number) -> Decimal:
    """
    Return a / b.

    Raises:
        ZeroDivisionError: If b is zero
    """
    divisor = to_decimal(b)
    if divisor == ZERO:
        raise ZeroDivisionError("Decimal division by zero")
    return to_decimal(a) / divisor


def percent(base: Number, rate: Number) -> Decimal:
    """
    Calculate ``rate`` percent of ``base``.

    Example:
        >>> percent(Decimal("100"), Decimal("15"))
        Decimal('15')
    """
    return to_decimal(base) * to_decimal(rate) / HUNDRED


def eq(a: Number, b: Number) -> bool:
    return to_decimal(a) == to_decimal(b)


def lt(a: Number, b: Number) -> bool:
    return to_decimal(a) < to_decimal(b)


def lte(a: Number, b: Number) -> bool:
    return to_decimal(a) <= to_decimal(b)


def gt(a: Number, b: Number) -> bool:
    return to_decimal(a) > to_decimal(b)


def gte(a: Number, b: Number) -> bool:
    return to_decimal(a) >= to_decimal(b)


def is_zero(value: Number) -> bool:
    return to_decimal(value) == ZERO


def clamp(value: Number, low: Number, high: Number | None = None) -> Decimal:
    """
    Clamp value into [low, high].

    Args:
        value: Value to clamp
        low: Lower bound
        high: Optional upper bound

    Returns:
        Clamped value
    """
    result = max(to_decimal(value), to_decimal(low))
    if high is not None:
        result = min(result, to_decimal(high))
    return result


def quantize_money(value: Number) -> Decimal:
    """Round to cents using ROUND_HALF_UP."""
    return to_decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def from_order(
    line_total: Number,
    tax: Number | None,
    shipping: Number | None,
    exclude_tax: bool,
    exclude_shipping: bool,
) -> Decimal:
    """
    Commission base for an order line.

    Subtracts tax and/or attributed shipping according to program
    configuration. Never negative.

    Args:
        line_total: Line total as charged
        tax: Tax included in the line total
        shipping: Shipping attributed to the line
        exclude_tax: Remove tax from the base
        exclude_shipping: Remove shipping from the base

    Returns:
        Commission base amount
    """
    base = to_decimal(line_total)
    if exclude_tax:
        base -= to_decimal(tax)
    if exclude_shipping:
        base -= to_decimal(shipping)
    return clamp(base, ZERO)
