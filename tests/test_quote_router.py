import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from apps.api_quotes.adapters.entry.http.quote_router import router
from apps.api_quotes.adapters.entry.http.token_router import router as token_router
from apps.api_quotes.adapters.external.tokens.token_allowlist import TokenAllowlist
from apps.api_quotes.config import Settings
from apps.api_quotes.core.domain.entities.quote_entity import QuoteEntity
from apps.api_quotes.core.domain.entities.route_entity import RouteHop
from apps.api_quotes.core.domain.enums.quote_enums import QuoteMode
from apps.api_quotes.workers.quote_gateway_supervisor import QuoteGatewaySupervisor


def _settings(tokens, **kw):
    return Settings(
        RPC_URL_DEFAULT="http://localhost:8545",
        CHAIN_ID=tokens.CHAIN_ID,
        UNI_V3_QUOTER="0xEd1f6473345F45b75F8179591dd5bA1888cf2FB3",
        DEFAULT_SWAP_POOL_FEE=3000,
        UNI_V3_SWAP_ROUTER="0xE592427A0AEce92De3Edee1F18E0157C05861564",
        STORAGE_BACKEND="memory",
        **kw,
    )


@pytest.fixture
def gateway(tokens, stub_oracle_cls, stub_metadata_cls, stub_price_feed_cls):
    prices = {
        (tokens.WETH, 3000, tokens.USDC): 3000_000000,
        ("EXACT_OUT", tokens.WETH, 500, tokens.USDC): 10**18,
        ("EXACT_OUT", tokens.WETH, 3000, tokens.USDC): 10**18 + 10**16,
    }
    sup = QuoteGatewaySupervisor(
        _settings(tokens),
        oracle=stub_oracle_cls(prices),
        price_feed=stub_price_feed_cls(),
        token_metadata=stub_metadata_cls(),
        token_validator=TokenAllowlist([tokens.WETH, tokens.USDC, tokens.USDT]),
    )
    sup.use_memory_storage()
    return sup


@pytest.fixture
def client(gateway):
    app = FastAPI()
    app.include_router(router, prefix="/api")
    app.include_router(token_router, prefix="/api")
    app.state.gateway = gateway
    return TestClient(app)


def _body(tokens, **kw):
    body = {"token_in": tokens.WETH, "token_out": tokens.USDC, "amount_in": "1.0", "slippage_pct": 0.5}
    body.update(kw)
    return body


def test_best_quote_then_cached(client, tokens):
    r = client.post("/api/quote/best", json=_body(tokens))
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["amount_out"] == "3000000000"
    assert data["amount_out_formatted"] == "3000"
    assert data["amount_out_minimum"] == "2985000000"
    assert data["amount_out_minimum_formatted"] == "2985"
    assert data["amount_in_formatted"] == "1"
    assert data["mode"] == "EXACT_IN"
    assert data["status"] == "active"
    assert data["from_cache"] is False
    assert data["request_id"].startswith("req_")

    again = client.post("/api/quote/best", json=_body(tokens)).json()
    assert again["from_cache"] is True
    assert again["quote_id"] == data["quote_id"]


def test_numeric_amount_is_accepted(client, tokens):
    r = client.post("/api/quote", json=_body(tokens, amount_in=1))
    assert r.status_code == 200
    assert r.json()["amount_in"] == str(10**18)


def test_exact_out_endpoint(client, tokens):
    r = client.post("/api/quote/exact-out", json=_body(tokens, amount_in=None, amount_out="3000"))
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["mode"] == "EXACT_OUT"
    assert data["amount_in"] == str(10**18)
    assert data["amount_in_maximum"] == "1005000000000000000"
    assert data["amount_in_maximum_formatted"] == "1.005"
    assert data["amount_out_minimum"] is None


def test_mode_in_body_selects_exact_out(client, tokens):
    r = client.post("/api/quote", json=_body(tokens, amount_out="3000", mode="EXACT_OUT"))
    assert r.status_code == 200
    assert r.json()["mode"] == "EXACT_OUT"


@pytest.mark.parametrize(
    "overrides,code",
    [
        ({"slippage_pct": 0.05}, "INVALID_SLIPPAGE"),
        ({"token_out": "0x" + "22" * 20}, "TOKEN_NOT_ALLOWED"),
        ({"token_in": "0xnope"}, "INVALID_INPUT"),
        ({"amount_in": None}, "INVALID_INPUT"),
        ({"token_in": "0xaa8e23fb1079ea71e0a56f48a2aa51851d8433d0", "token_out": "0x1c7d4b196cb0c7b01d743fbc6116a902379c7238"}, "NO_ROUTE"),
    ],
)
def test_errors_map_to_400(client, tokens, overrides, code):
    r = client.post("/api/quote", json=_body(tokens, **overrides))
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == code
    assert r.json()["detail"]["msg"]


def test_quote_lifecycle_over_http(client, tokens):
    quote_id = client.post("/api/quote", json=_body(tokens)).json()["quote_id"]

    got = client.get(f"/api/quote/{quote_id}")
    assert got.status_code == 200
    assert got.json()["quote_id"] == quote_id

    used = client.post(f"/api/quote/{quote_id}/use", json={"swap_id": "swap_42"})
    assert used.status_code == 200
    assert used.json()["status"] == "used"
    assert used.json()["swap_id"] == "swap_42"

    again = client.post(f"/api/quote/{quote_id}/use", json={"swap_id": "swap_43"})
    assert again.json()["swap_id"] == "swap_42"

    cancelled = client.post(f"/api/quote/{quote_id}/cancel")
    assert cancelled.status_code == 400
    assert cancelled.json()["detail"]["error"] == "QUOTE_NOT_ACTIVE"


def test_unknown_quote_is_404(client):
    r = client.get("/api/quote/q_doesnotexist")
    assert r.status_code == 404
    assert r.json()["detail"]["error"] == "QUOTE_NOT_FOUND"


def test_expired_quote_is_410(client, gateway, tokens):
    stale = QuoteEntity(
        quote_id="q_00000000deadbeef",
        chain_id=tokens.CHAIN_ID,
        token_in=tokens.WETH,
        token_out=tokens.USDC,
        amount_in=str(10**18),
        amount_out="3000000000",
        decimals_in=18,
        decimals_out=6,
        mode=QuoteMode.EXACT_IN,
        route=[RouteHop(token_in=tokens.WETH, token_out=tokens.USDC, fee=3000)],
        path="0x",
        slippage_bps=50,
        amount_out_minimum="2985000000",
        created_at=1_000,
        expires_at=2_000,
    )
    asyncio.run(gateway.quote_repo.create(stale))

    r = client.get(f"/api/quote/{stale.quote_id}")
    assert r.status_code == 410
    assert r.json()["detail"]["error"] == "QUOTE_EXPIRED"

    r = client.post(f"/api/quote/{stale.quote_id}/use", json={"swap_id": "late"})
    assert r.status_code == 410


def test_stats_endpoints(client, tokens):
    client.post("/api/quote", json=_body(tokens))
    client.post("/api/quote", json=_body(tokens))
    client.post("/api/quote", json=_body(tokens, slippage_pct=99))

    quotes = client.get("/api/quote/stats").json()
    assert quotes["total_quotes"] == 1

    reqs = client.get("/api/quote/requests/stats", params={"chain_id": tokens.CHAIN_ID, "time_range": "1h"}).json()
    assert reqs["total_requests"] == 3
    assert reqs["successful_requests"] == 2
    assert reqs["failed_requests"] == 1
    assert reqs["cache_hits"] == 1

    cache = client.get("/api/quote/cache/stats").json()
    assert cache["total_entries"] == 1
    assert cache["total_hits"] == 1

    assert client.get("/api/quote/stats", params={"time_range": "2y"}).status_code == 422


def test_request_log_captures_caller(client, gateway, tokens):
    data = client.post(
        "/api/quote",
        json=_body(tokens, user_id="u-1", user_address="0xABCDEF0000000000000000000000000000000001"),
        headers={"x-forwarded-for": "1.2.3.4, 10.0.0.1", "user-agent": "wallet/1.0"},
    ).json()
    log = asyncio.run(gateway.request_repo.get(data["request_id"]))
    assert log.ip_address == "1.2.3.4"
    assert log.rate_limit_key == "IP:1.2.3.4"
    assert log.user_agent == "wallet/1.0"
    assert log.user_id == "u-1"
    assert log.user_address == "0xabcdef0000000000000000000000000000000001"


def test_slow_quote_times_out_with_504(tokens, stub_oracle_cls, stub_metadata_cls, stub_price_feed_cls):
    class HangingOracle(stub_oracle_cls):
        async def quote(self, candidate, amount, mode, sqrt_price_limit_x96=0):
            await asyncio.sleep(0.5)
            return await super().quote(candidate, amount, mode, sqrt_price_limit_x96)

    sup = QuoteGatewaySupervisor(
        _settings(tokens, QUOTE_TIMEOUT_SEC=0.05),
        oracle=HangingOracle(),
        price_feed=stub_price_feed_cls(),
        token_metadata=stub_metadata_cls(),
        token_validator=TokenAllowlist(allow_any=True),
    )
    sup.use_memory_storage()
    app = FastAPI()
    app.include_router(router, prefix="/api")
    app.state.gateway = sup

    r = TestClient(app).post("/api/quote", json=_body(tokens))
    assert r.status_code == 504
    assert r.json()["detail"]["error"] == "TIMEOUT"


def test_healthz():
    from apps.api_quotes.main import app

    assert TestClient(app).get("/healthz").json() == {"status": "ok"}


def test_populate_returns_router_call_for_active_quote(client, tokens):
    quote_id = client.post("/api/quote", json=_body(tokens)).json()["quote_id"]

    r = client.post(f"/api/quote/{quote_id}/populate", json={"recipient": "0x" + "ab" * 20, "deadline_sec": 300})
    assert r.status_code == 200, r.text
    tx = r.json()
    assert tx["to"] == "0xE592427A0AEce92De3Edee1F18E0157C05861564"
    assert tx["method"] == "exactInputSingle"
    assert tx["data"].startswith("0x414bf389")
    assert tx["value"] == "0"
    assert tx["amount_out_minimum"] == "2985000000"

    # populating does not consume the quote
    assert client.get(f"/api/quote/{quote_id}").json()["status"] == "active"

    client.post(f"/api/quote/{quote_id}/use", json={"swap_id": "0xfeed"})
    r = client.post(f"/api/quote/{quote_id}/populate", json={"recipient": "0x" + "ab" * 20})
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "QUOTE_NOT_ACTIVE"


def test_populate_validates_recipient(client, tokens):
    quote_id = client.post("/api/quote", json=_body(tokens)).json()["quote_id"]
    r = client.post(f"/api/quote/{quote_id}/populate", json={"recipient": "0x1234"})
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "INVALID_INPUT"


def test_token_registry_endpoints(client, tokens):
    allowed = client.get("/api/tokens/allowed").json()
    assert allowed["count"] == 3
    assert tokens.WETH in allowed["allowed_tokens"]

    r = client.get(f"/api/tokens/validate/{tokens.DAI}")
    assert r.status_code == 200
    assert r.json()["is_valid"] is False
    assert client.get("/api/tokens/validate/0x1234").status_code == 400

    added = client.post("/api/tokens/add", json={"address": tokens.DAI})
    assert added.status_code == 200
    assert added.json()["registry"]["dynamic_tokens"] == 1
    assert client.get(f"/api/tokens/validate/{tokens.DAI}").json()["is_valid"] is True

    assert client.delete(f"/api/tokens/remove/{tokens.DAI}").status_code == 200
    assert client.delete(f"/api/tokens/remove/{tokens.DAI}").status_code == 404

    r = client.delete(f"/api/tokens/remove/{tokens.WETH}")
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "INVALID_INPUT"


def test_added_token_can_be_quoted(client, gateway, tokens):
    before = client.post("/api/quote", json=_body(tokens, token_out=tokens.DAI))
    assert before.json()["detail"]["error"] == "TOKEN_NOT_ALLOWED"

    client.post("/api/tokens/add", json={"address": tokens.DAI})
    gateway._oracle.prices[(tokens.WETH, 3000, tokens.DAI)] = 2990 * 10**18
    after = client.post("/api/quote", json=_body(tokens, token_out=tokens.DAI))
    assert after.status_code == 200, after.text
    assert after.json()["amount_out_formatted"] == "2990"
