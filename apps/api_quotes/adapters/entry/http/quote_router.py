import asyncio
import logging
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from ....core.domain.entities.quote_entity import QuoteCommand, QuoteEntity, RequesterInfo
from ....core.domain.enums.quote_enums import QuoteMode
from ....core.domain.exceptions import QuoteEngineError, QuoteExpired, QuoteNotFound
from ....core.services.units_service import from_raw
from .deps import get_gateway, get_requester

router = APIRouter(prefix="/quote", tags=["quote"])
logger = logging.getLogger("quote_router")

TimeRange = Literal["1h", "24h", "7d", "30d"]

# =========================
# DTOs
# =========================

class QuoteRequestDTO(BaseModel):
    token_in: str = Field(..., examples=["0x7b79995e5f793a07bc00c21412e50ecae098e7f9"])
    token_out: str = Field(..., examples=["0x1c7d4b196cb0c7b01d743fbc6116a902379c7238"])
    amount_in: Optional[str] = Field(None, description="Human units, required for EXACT_IN")
    amount_out: Optional[str] = Field(None, description="Human units, required for EXACT_OUT")
    mode: QuoteMode = QuoteMode.EXACT_IN
    slippage_pct: float = Field(0.5, description="Percent, 0.5 = 0.5%")
    ttl_sec: Optional[int] = None
    fee: Optional[int] = Field(None, description="Fee tier hint (500 | 3000 | 10000)")
    sqrt_price_limit_x96: int = 0
    user_id: Optional[str] = None
    user_address: Optional[str] = None

    @field_validator("amount_in", "amount_out", mode="before")
    @classmethod
    def amount_as_text(cls, v: Any) -> Optional[str]:
        # keep decimals exact: 0.1 must not become 0.1000000000000000055...
        if v is None:
            return None
        return str(v).strip()

    @field_validator("token_in", "token_out")
    @classmethod
    def strip_token(cls, v: str) -> str:
        return v.strip()


class UseQuoteDTO(BaseModel):
    swap_id: Optional[str] = None


class PopulateSwapDTO(BaseModel):
    recipient: str = Field(..., description="Address receiving the output tokens")
    deadline_sec: Optional[int] = Field(None, description="Seconds from now, default 600")


# =========================
# helpers
# =========================

def _http_error(exc: QuoteEngineError) -> HTTPException:
    if isinstance(exc, QuoteNotFound):
        status = 404
    elif isinstance(exc, QuoteExpired):
        status = 410
    else:
        status = 400
    return HTTPException(status_code=status, detail={"error": exc.code, "msg": exc.msg})


def _project(quote: QuoteEntity, **extra) -> Dict[str, Any]:
    """
    Quote document plus human-readable amounts.
    """
    out = quote.model_dump(mode="json")
    out["amount_in_formatted"] = from_raw(int(quote.amount_in), quote.decimals_in)
    out["amount_out_formatted"] = from_raw(int(quote.amount_out), quote.decimals_out)
    if quote.amount_out_minimum is not None:
        out["amount_out_minimum_formatted"] = from_raw(int(quote.amount_out_minimum), quote.decimals_out)
    if quote.amount_in_maximum is not None:
        out["amount_in_maximum_formatted"] = from_raw(int(quote.amount_in_maximum), quote.decimals_in)
    out.update(extra)
    return out


async def _generate(gateway, dto: QuoteRequestDTO, mode: QuoteMode, requester: RequesterInfo) -> Dict[str, Any]:
    amount = dto.amount_in if mode == QuoteMode.EXACT_IN else dto.amount_out
    cmd = QuoteCommand(
        token_in=dto.token_in,
        token_out=dto.token_out,
        amount=amount or "",
        mode=mode,
        slippage_pct=dto.slippage_pct,
        ttl_sec=dto.ttl_sec,
        fee=dto.fee,
        sqrt_price_limit_x96=dto.sqrt_price_limit_x96,
        requester=requester.model_copy(update={"user_id": dto.user_id, "user_address": dto.user_address}),
    )
    try:
        result = await asyncio.wait_for(
            gateway.generate.execute(cmd),
            timeout=gateway.settings.QUOTE_TIMEOUT_SEC,
        )
    except asyncio.TimeoutError:
        logger.warning("quote %s->%s timed out", dto.token_in, dto.token_out)
        raise HTTPException(504, {"error": "TIMEOUT", "msg": "Quote generation timed out"})
    except QuoteEngineError as exc:
        raise _http_error(exc)
    return _project(result.quote, from_cache=result.from_cache, request_id=result.request_id)


# =========================
# Generation
# =========================

@router.post("")
async def create_quote(
    dto: QuoteRequestDTO,
    gateway=Depends(get_gateway),
    requester: RequesterInfo = Depends(get_requester),
):
    """
    Best-route quote; `mode` selects EXACT_IN (default) or EXACT_OUT.
    """
    return await _generate(gateway, dto, dto.mode, requester)


@router.post("/best")
async def best_quote(
    dto: QuoteRequestDTO,
    gateway=Depends(get_gateway),
    requester: RequesterInfo = Depends(get_requester),
):
    """
    Legacy exact-in endpoint.
    """
    return await _generate(gateway, dto, QuoteMode.EXACT_IN, requester)


@router.post("/exact-out")
async def exact_out_quote(
    dto: QuoteRequestDTO,
    gateway=Depends(get_gateway),
    requester: RequesterInfo = Depends(get_requester),
):
    return await _generate(gateway, dto, QuoteMode.EXACT_OUT, requester)


# =========================
# Monitoring (declared before /{quote_id})
# =========================

@router.get("/stats")
async def quote_stats(
    chain_id: Optional[int] = Query(None),
    time_range: TimeRange = Query("24h"),
    gateway=Depends(get_gateway),
):
    try:
        return await gateway.stats.quotes(chain_id, time_range)
    except QuoteEngineError as exc:
        raise _http_error(exc)


@router.get("/requests/stats")
async def request_stats(
    chain_id: Optional[int] = Query(None),
    time_range: TimeRange = Query("24h"),
    gateway=Depends(get_gateway),
):
    try:
        return await gateway.stats.requests(chain_id, time_range)
    except QuoteEngineError as exc:
        raise _http_error(exc)


@router.get("/cache/stats")
async def cache_stats(
    chain_id: Optional[int] = Query(None),
    time_range: TimeRange = Query("24h"),
    gateway=Depends(get_gateway),
):
    try:
        return await gateway.stats.cache(chain_id, time_range)
    except QuoteEngineError as exc:
        raise _http_error(exc)


# =========================
# Quote lifecycle
# =========================

@router.get("/{quote_id}")
async def get_quote(quote_id: str, gateway=Depends(get_gateway)):
    """
    404 for unknown ids, 410 once the quote is past its expiry.
    """
    try:
        quote = await gateway.get_quote.execute(quote_id)
    except QuoteEngineError as exc:
        raise _http_error(exc)
    return _project(quote)


@router.post("/{quote_id}/use")
async def use_quote(quote_id: str, dto: UseQuoteDTO, gateway=Depends(get_gateway)):
    try:
        quote = await gateway.mark_used.execute(quote_id, dto.swap_id)
    except QuoteEngineError as exc:
        raise _http_error(exc)
    return _project(quote)


@router.post("/{quote_id}/cancel")
async def cancel_quote(quote_id: str, gateway=Depends(get_gateway)):
    try:
        quote = await gateway.cancel.execute(quote_id)
    except QuoteEngineError as exc:
        raise _http_error(exc)
    return _project(quote)


@router.post("/{quote_id}/populate")
async def populate_swap(quote_id: str, dto: PopulateSwapDTO, gateway=Depends(get_gateway)):
    """
    Unsigned SwapRouter transaction {to, data, value} for an active quote.
    Report the broadcast with POST /quote/{quote_id}/use.
    """
    if gateway.populate is None:
        raise HTTPException(503, {"error": "SWAP_ROUTER_NOT_CONFIGURED", "msg": "No SwapRouter configured for this chain"})
    try:
        tx = await gateway.populate.execute(quote_id, dto.recipient, dto.deadline_sec)
    except QuoteEngineError as exc:
        raise _http_error(exc)
    return tx.model_dump(mode="json")
