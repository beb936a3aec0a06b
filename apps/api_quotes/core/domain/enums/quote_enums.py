# apps/api_quotes/core/domain/enums/quote_enums.py

from enum import Enum


class QuoteMode(str, Enum):
    """
    Which side of the trade the caller fixes.
    """
    EXACT_IN = "EXACT_IN"     # amount in fixed, best amount out wanted
    EXACT_OUT = "EXACT_OUT"   # amount out fixed, cheapest amount in wanted


class QuoteStatus(str, Enum):
    """
    Lifecycle of a persisted quote.
    """
    ACTIVE = "active"         # created by GenerateQuoteUseCase
    EXPIRED = "expired"       # now > expires_at (lazy on read or by the sweep)
    USED = "used"             # consumed by a swap (at most once)
    CANCELLED = "cancelled"   # withdrawn by the caller


class RouteKind(str, Enum):
    SINGLE = "single"
    MULTI = "multi"
