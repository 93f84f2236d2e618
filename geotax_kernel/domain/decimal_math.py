"""
Decimal arithmetic -- exact rates and money with one rounding rule.

Responsibility:
    Parse monetary and rate quantities directly from text, sum optional
    rates, and round with ROUND_HALF_EVEN.  Every other component uses
    these helpers; nothing else in the system calls ``quantize``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - No binary floating point: ``to_decimal`` refuses floats.
    - Banker's rounding is the single global rule, applied once per
      computed quantity: rates to 6 places, money to 2 places.
    - ``sum_rates`` skips ``None`` and is order independent.

Failure modes:
    - ArithmeticParseError on malformed or non-finite text.
    - TypeError when handed a float.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Context, Decimal, InvalidOperation, localcontext

from geotax_kernel.exceptions import ArithmeticParseError

RATE_DECIMAL_PLACES = 6
MONEY_DECIMAL_PLACES = 2
COORDINATE_DECIMAL_PLACES = 6

# Money columns are Numeric(12, 2).  One integer digit of headroom keeps
# subtotal + tax inside the column for any composite rate below 900%.
MAX_SUBTOTAL = Decimal("999999999.99")
ROUNDING = ROUND_HALF_EVEN

# Wide enough that no intermediate product is rounded before quantize.
_CONTEXT = Context(prec=38, rounding=ROUNDING)

_ZERO = Decimal("0")


def to_decimal(value: str | int | Decimal) -> Decimal:
    """
    Parse a value into an exact Decimal.

    Preconditions: value is text, an int, or already a Decimal.
    Postconditions: Returns a finite Decimal equal to the textual value.

    Raises:
        ArithmeticParseError: If text is empty, malformed, NaN or infinite.
        TypeError: If value is a float (binary representation error).
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise TypeError("bool is not a decimal quantity")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        raise TypeError(
            "float values are not accepted; pass the original text instead"
        )
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ArithmeticParseError(value, "empty")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ArithmeticParseError(value) from None
    else:
        raise TypeError(f"Unsupported decimal source type: {type(value).__name__}")

    if not result.is_finite():
        raise ArithmeticParseError(value, "not finite")
    return result


def sum_rates(*rates: str | Decimal | None) -> Decimal:
    """Sum any number of optional rates; ``None`` entries are skipped."""
    total = _ZERO
    with localcontext(_CONTEXT):
        for rate in rates:
            if rate is not None:
                total = total + to_decimal(rate)
    return total


def round_half_even(value: Decimal, decimal_places: int) -> Decimal:
    """
    Round to ``decimal_places`` fractional digits using ROUND_HALF_EVEN.

    This is the ONLY sanctioned rounding function in the system.
    """
    exponent = Decimal(1).scaleb(-decimal_places)
    with localcontext(_CONTEXT):
        return value.quantize(exponent, rounding=ROUNDING)


def round_rate(value: Decimal) -> Decimal:
    """Round a rate to 6 fractional digits."""
    return round_half_even(value, RATE_DECIMAL_PLACES)


def round_money(value: Decimal) -> Decimal:
    """Round a money amount to 2 fractional digits."""
    return round_half_even(value, MONEY_DECIMAL_PLACES)


def round_coordinate(value: Decimal) -> Decimal:
    """Round a WGS84 degree value to the 6 fractional digits that are stored."""
    return round_half_even(value, COORDINATE_DECIMAL_PLACES)


def multiply(a: Decimal, b: Decimal) -> Decimal:
    """Exact product (no rounding)."""
    with localcontext(_CONTEXT):
        return a * b


def add(a: Decimal, b: Decimal) -> Decimal:
    """Exact sum (no rounding)."""
    with localcontext(_CONTEXT):
        return a + b


def calc_tax(
    subtotal: str | Decimal,
    composite_rate: Decimal,
) -> tuple[Decimal, Decimal]:
    """
    Compute (tax_amount, total_amount) for a subtotal.

    The tax is rounded ONCE to 2 places.  The total is subtotal + tax
    with no further rounding, so ``total - subtotal == tax`` exactly.
    """
    sub = to_decimal(subtotal)
    tax = round_money(multiply(sub, composite_rate))
    total = add(sub, tax)
    return tax, total


def format_rate(value: Decimal) -> str:
    """Render a rate with exactly 6 fractional digits."""
    return f"{round_rate(value):.{RATE_DECIMAL_PLACES}f}"


def format_money(value: Decimal) -> str:
    """Render a money amount with exactly 2 fractional digits."""
    return f"{round_money(value):.{MONEY_DECIMAL_PLACES}f}"


def fractional_digits(value: Decimal) -> int:
    """Number of fractional digits as written (``Decimal("1.50")`` -> 2)."""
    exponent = value.as_tuple().exponent
    if not isinstance(exponent, int) or exponent >= 0:
        return 0
    return -exponent
