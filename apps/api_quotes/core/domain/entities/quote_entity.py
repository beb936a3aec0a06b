# apps/api_quotes/core/domain/entities/quote_entity.py

from typing import List, Optional

from pydantic import BaseModel, Field

from ..enums.quote_enums import QuoteMode, QuoteStatus
from .route_entity import RouteHop


class QuoteEntity(BaseModel):
    """
    Canonical representation of a priced trade, as stored in the 'quotes'
    collection and returned by the HTTP layer.

    Amounts are raw integers (token base units) serialized as decimal strings.
    Exactly one of amount_out_minimum / amount_in_maximum is set:
      - EXACT_IN  -> amount_out_minimum
      - EXACT_OUT -> amount_in_maximum
    """

    quote_id: str
    chain_id: int
    token_in: str            # lowercase 0x address
    token_out: str           # lowercase 0x address
    amount_in: str
    amount_out: str
    decimals_in: int
    decimals_out: int
    mode: QuoteMode

    route: List[RouteHop]
    path: str                # 0x-hex packed path (reversed for EXACT_OUT)

    slippage_bps: int
    amount_out_minimum: Optional[str] = None
    amount_in_maximum: Optional[str] = None

    price_impact_pct: str = "0"
    estimated_gas: str = "0"

    created_at: int          # epoch ms
    expires_at: int          # epoch ms
    status: QuoteStatus = QuoteStatus.ACTIVE
    swap_id: Optional[str] = None
    used_at: Optional[int] = None

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expires_at


class QuoteCacheEntry(BaseModel):
    """
    Short-lived projection of a quote keyed by the request fingerprint.
    Its TTL is independent from (and never longer than) the quote's own expiry.
    """

    fingerprint: str
    chain_id: int
    quote: QuoteEntity
    hit_count: int = 0
    last_hit_at: Optional[int] = None
    created_at: int
    updated_at: int
    expires_at: int
    source: str = "quoter"


class QuoteRequestLog(BaseModel):
    """
    Audit record of one inbound quote request.
    Terminal fields (success, error_message, response_time_ms, cache_hit,
    quote_id, completed_at) are set once when the request completes.
    """

    request_id: str
    chain_id: int
    token_in: str
    token_out: str
    amount_in: Optional[str] = None
    amount_out: Optional[str] = None
    mode: QuoteMode = QuoteMode.EXACT_IN
    fee: Optional[int] = None
    slippage_pct: Optional[float] = None

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    user_id: Optional[str] = None
    user_address: Optional[str] = None
    rate_limit_key: Optional[str] = None

    created_at: int

    success: bool = False
    error_message: Optional[str] = None
    response_time_ms: Optional[int] = None
    cache_hit: Optional[bool] = None
    quote_id: Optional[str] = None
    completed_at: Optional[int] = None


class RequesterInfo(BaseModel):
    """
    Caller metadata captured at the HTTP boundary.
    """
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    user_id: Optional[str] = None
    user_address: Optional[str] = None
    rate_limit_key: Optional[str] = None


class QuoteCommand(BaseModel):
    """
    Validated, typed input of GenerateQuoteUseCase.

    `amount` is human-readable: the input amount for EXACT_IN and the
    desired output amount for EXACT_OUT.
    """
    token_in: str
    token_out: str
    amount: str
    mode: QuoteMode = QuoteMode.EXACT_IN
    slippage_pct: float = 0.5
    ttl_sec: Optional[int] = None
    fee: Optional[int] = None
    sqrt_price_limit_x96: int = 0
    requester: RequesterInfo = Field(default_factory=RequesterInfo)


class SwapTransaction(BaseModel):
    """
    Unsigned SwapRouter call built from an active quote. The caller signs
    and broadcasts it; the gateway never holds keys.
    """
    quote_id: str
    chain_id: int
    to: str                  # checksummed router address
    data: str                # 0x-hex calldata
    value: str = "0"
    method: str              # exactInputSingle | exactInput | exactOutputSingle | exactOutput
    recipient: str
    deadline: int            # unix seconds
    amount_in: str
    amount_out: str
    amount_out_minimum: Optional[str] = None
    amount_in_maximum: Optional[str] = None
