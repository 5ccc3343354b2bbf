"""
Fixed-Point Arithmetic Module

All amounts and rates are unsigned integers scaled by PRECISION. Decimal is
used only at the edges, to convert human-entered values into units and back.
NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_DOWN, InvalidOperation, localcontext
from typing import Union

from .errors import InvalidAmountError

# One whole unit of the ledger (and one whole rate of 100% per second)
DECIMALS = 18
PRECISION = 10 ** DECIMALS

# Largest representable amount; callers pass it to mean "everything"
MAX_AMOUNT = 2 ** 256 - 1

SECONDS_PER_YEAR = 365 * 24 * 60 * 60

# Decimal digits needed to carry any unsigned amount times PRECISION exactly
DECIMAL_PRECISION = 100

# Longest decimal string of an in-range amount
MAX_AMOUNT_DIGITS = len(str(MAX_AMOUNT))


def accrued_interest(principal: int, rate: int, elapsed: int) -> int:
    """
    Linear interest on principal over elapsed seconds.

    The rate is per second and scaled by PRECISION, so the triple product
    is divided back exactly once, truncating toward zero.
    """
    if elapsed <= 0 or principal == 0 or rate == 0:
        return 0
    return principal * rate * elapsed // PRECISION


def validate_amount(amount: int, allow_max: bool = False) -> int:
    """
    Check that amount is a positive integer inside the unsigned range.

    Args:
        amount: Quantity in smallest units
        allow_max: Whether the MAX_AMOUNT sentinel is acceptable here

    Returns:
        The amount unchanged

    Raises:
        InvalidAmountError: If amount is not a positive int in range
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"Amount must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount}")
    if amount > MAX_AMOUNT:
        raise InvalidAmountError(f"Amount {amount} exceeds the unsigned range")
    if amount == MAX_AMOUNT and not allow_max:
        raise InvalidAmountError("The maximum-amount sentinel is not accepted here")
    return amount


def validate_rate(rate: int) -> int:
    """Check that a per-second rate is a non-negative integer in range"""
    if isinstance(rate, bool) or not isinstance(rate, int):
        raise InvalidAmountError(f"Rate must be an integer, got {type(rate).__name__}")
    if rate < 0 or rate > MAX_AMOUNT:
        raise InvalidAmountError(f"Rate {rate} is out of range")
    return rate


def to_units(value: Union[str, Decimal, int]) -> int:
    """
    Convert a whole-unit value (e.g. "12.5") into smallest units.

    Digits beyond DECIMALS are truncated, never rounded up.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        value = Decimal(value)
    elif not isinstance(value, Decimal):
        try:
            value = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmountError(f"Cannot convert '{value}' to an amount")
    if not value.is_finite() or value < 0:
        raise InvalidAmountError(f"Amount must be a finite non-negative number, got {value}")
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return int((value * PRECISION).to_integral_value(rounding=ROUND_DOWN))


def from_units(units: int) -> Decimal:
    """Convert smallest units back into a whole-unit Decimal"""
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return Decimal(units) / Decimal(PRECISION)


def annual_rate_to_per_second(annual_rate: Union[str, Decimal]) -> int:
    """
    Convert a simple annual rate (0.05 for 5%) into a scaled per-second rate.

    Truncates so the stored rate never promises more than the annual figure.
    """
    if not isinstance(annual_rate, Decimal):
        try:
            annual_rate = Decimal(str(annual_rate).strip())
        except InvalidOperation:
            raise InvalidAmountError(f"Cannot convert '{annual_rate}' to a rate")
    if not annual_rate.is_finite() or annual_rate < 0:
        raise InvalidAmountError(f"Annual rate must be non-negative, got {annual_rate}")
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        scaled = annual_rate * PRECISION / SECONDS_PER_YEAR
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def per_second_rate_to_annual(rate: int) -> Decimal:
    """Approximate simple annual rate for display"""
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return Decimal(rate) * SECONDS_PER_YEAR / Decimal(PRECISION)


def parse_amount(value: str) -> int:
    """
    Parse a wire amount: a base-10 integer string or "max" for the sentinel
    """
    text = str(value).strip().lower()
    if text == "max":
        return MAX_AMOUNT
    # isdigit alone admits non-ASCII digits that int() refuses
    if not (text.isascii() and text.isdigit()):
        raise InvalidAmountError(f"Amount must be a non-negative integer string or 'max', got '{value}'")
    if len(text) > MAX_AMOUNT_DIGITS:
        raise InvalidAmountError(f"Amount has more than {MAX_AMOUNT_DIGITS} digits")
    return int(text)
