from fastapi import Request

from ....core.domain.entities.quote_entity import RequesterInfo


def get_gateway(request: Request):
    """
    Resolve the wired QuoteGatewaySupervisor from FastAPI app state.
    """
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise RuntimeError("Quote gateway is not initialized in app.state.gateway")
    return gateway


def get_requester(request: Request) -> RequesterInfo:
    """
    Caller metadata for the request log. The first X-Forwarded-For hop wins
    over the socket peer when running behind a proxy.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() if forwarded else None
    if not ip and request.client:
        ip = request.client.host
    return RequesterInfo(
        ip_address=ip,
        user_agent=request.headers.get("user-agent"),
        rate_limit_key=f"IP:{ip}" if ip else None,
    )


def get_token_registry(request: Request):
    """
    Token allow-list of the wired gateway.
    """
    return get_gateway(request).token_validator
