from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ....core.domain.exceptions import QuoteEngineError, TokenNotAllowed
from .deps import get_token_registry

router = APIRouter(prefix="/tokens", tags=["tokens"])


class TokenAddressDTO(BaseModel):
    address: str = Field(..., examples=["0x1c7d4b196cb0c7b01d743fbc6116a902379c7238"])


def _bad_request(exc: QuoteEngineError) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": exc.code, "msg": exc.msg})


@router.get("/allowed")
async def allowed_tokens(registry=Depends(get_token_registry)):
    tokens = registry.tokens()
    return {"allowed_tokens": tokens, "count": len(tokens), "registry": registry.status()}


@router.get("/registry/status")
async def registry_status(registry=Depends(get_token_registry)):
    return registry.status()


@router.get("/validate/{address}")
async def validate_token(address: str, registry=Depends(get_token_registry)):
    """
    Malformed addresses are a 400; a well-formed but unlisted token is
    reported with is_valid=false.
    """
    try:
        address, allowed = registry.validate(address), True
    except TokenNotAllowed as exc:
        address, allowed = exc.token, False
    except QuoteEngineError as exc:
        raise _bad_request(exc)
    return {
        "address": address,
        "is_valid": allowed,
        "msg": "Token is allowed" if allowed else "Token is not allowed",
    }


@router.post("/add")
async def add_token(dto: TokenAddressDTO, registry=Depends(get_token_registry)):
    try:
        address = registry.add(dto.address)
    except QuoteEngineError as exc:
        raise _bad_request(exc)
    return {"address": address, "msg": "Token added", "registry": registry.status()}


@router.delete("/remove/{address}")
async def remove_token(address: str, registry=Depends(get_token_registry)):
    try:
        removed = registry.remove(address)
    except QuoteEngineError as exc:
        raise _bad_request(exc)
    if not removed:
        raise HTTPException(404, {"error": "TOKEN_NOT_LISTED", "msg": f"Token {address} is not listed"})
    return {"address": address.strip().lower(), "msg": "Token removed", "registry": registry.status()}
