"""
Slippage tolerance -> basis points -> min-out / max-in bounds.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ..domain.enums.quote_enums import QuoteMode
from ..domain.exceptions import InvalidSlippage

BPS_DENOM = 10_000
MIN_SLIPPAGE_PCT = Decimal("0.1")
MAX_SLIPPAGE_PCT = Decimal("50")


def slippage_pct_to_bps(slippage_pct) -> int:
    """
    0.50 (%) -> 50 bps. Valid range is [0.1, 50.0] % i.e. [10, 5000] bps.
    """
    try:
        pct = Decimal(str(slippage_pct))
    except (InvalidOperation, ValueError):
        raise InvalidSlippage(slippage_pct, MIN_SLIPPAGE_PCT, MAX_SLIPPAGE_PCT)
    if not pct.is_finite() or pct < MIN_SLIPPAGE_PCT or pct > MAX_SLIPPAGE_PCT:
        raise InvalidSlippage(slippage_pct, MIN_SLIPPAGE_PCT, MAX_SLIPPAGE_PCT)
    return int((pct * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def min_amount_out(amount_out: int, bps: int) -> int:
    return int(amount_out) * (BPS_DENOM - int(bps)) // BPS_DENOM


def max_amount_in(amount_in: int, bps: int) -> int:
    return int(amount_in) * (BPS_DENOM + int(bps)) // BPS_DENOM


def slippage_bound(amount: int, bps: int, mode: QuoteMode) -> int:
    """
    EXACT_IN: `amount` is the quoted amount out, returns amountOutMinimum.
    EXACT_OUT: `amount` is the quoted amount in, returns amountInMaximum.
    """
    if int(amount) < 0:
        raise ValueError("amount must be >= 0")
    if mode == QuoteMode.EXACT_IN:
        return min_amount_out(amount, bps)
    return max_amount_in(amount, bps)
