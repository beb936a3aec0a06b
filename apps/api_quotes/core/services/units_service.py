"""
Human <-> raw (token base units) conversions.

Everything is done with Decimal / int so no float rounding leaks into the
amounts sent to the quoter or persisted in the quote.
"""

from decimal import Decimal, InvalidOperation, localcontext

from ..domain.exceptions import InvalidInput

MAX_UINT256 = (1 << 256) - 1


def to_decimal(amount) -> Decimal:
    if isinstance(amount, float):
        # go through str() so 0.1 stays 0.1
        amount = str(amount)
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInput(f"amount '{amount}' is not a number")
    if not value.is_finite():
        raise InvalidInput(f"amount '{amount}' is not a number")
    return value


def to_raw(amount, decimals: int) -> int:
    """
    Convert a human amount ("1.5") into base units for a token with `decimals`.
    Rejects non-positive amounts, amounts with more precision than the token
    has and amounts that do not fit in a uint256.
    """
    value = to_decimal(amount)
    if value <= 0:
        raise InvalidInput("amount must be > 0")
    with localcontext() as ctx:
        ctx.prec = 100
        try:
            scaled = value.scaleb(int(decimals))
            if scaled > MAX_UINT256:
                raise InvalidInput(f"amount {amount} is too large")
            if scaled != scaled.to_integral_value():
                raise InvalidInput(f"amount {amount} has more than {decimals} decimals")
        except ArithmeticError:
            # exponent out of the context range (e.g. "1e999999")
            raise InvalidInput(f"amount {amount} is out of range")
        raw = int(scaled)
    if raw <= 0:
        raise InvalidInput("amount must be > 0")
    return raw


def from_raw(raw: int, decimals: int) -> str:
    """
    Format base units as a plain human string, e.g. (1500000, 6) -> "1.5".
    """
    with localcontext() as ctx:
        ctx.prec = 100
        value = Decimal(int(raw)).scaleb(-int(decimals))
        text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
