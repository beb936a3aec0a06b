import asyncio

import pytest

from apps.api_quotes.adapters.external.chain.uniswap_v3_swap_router import UniswapV3SwapRouter
from apps.api_quotes.adapters.external.memory.quote_repository_memory import QuoteRepositoryMemory
from apps.api_quotes.core.domain.entities.quote_entity import QuoteEntity
from apps.api_quotes.core.domain.entities.route_entity import RouteHop
from apps.api_quotes.core.domain.enums.quote_enums import QuoteMode, QuoteStatus
from apps.api_quotes.core.domain.exceptions import InvalidInput, QuoteExpired, QuoteNotActive, QuoteNotFound
from apps.api_quotes.core.services.path_encoder import encode_path
from apps.api_quotes.core.usecases.populate_swap_use_case import PopulateSwapUseCase

ROUTER = "0xE592427A0AEce92De3Edee1F18E0157C05861564"
RECIPIENT = "0x" + "ab" * 20


def _word(value) -> str:
    if isinstance(value, str):
        return value.lower().replace("0x", "").rjust(64, "0")
    return format(int(value), "x").rjust(64, "0")


def _quote(tokens, clock, hops, mode=QuoteMode.EXACT_IN, **kw):
    exact_in = mode == QuoteMode.EXACT_IN
    base = dict(
        quote_id="q_00000000000000aa",
        chain_id=tokens.CHAIN_ID,
        token_in=hops[0].token_in,
        token_out=hops[-1].token_out,
        amount_in=str(10**18),
        amount_out="3000000000",
        decimals_in=18,
        decimals_out=6,
        mode=mode,
        route=hops,
        path=encode_path(hops, reverse=not exact_in),
        slippage_bps=50,
        amount_out_minimum="2985000000" if exact_in else None,
        amount_in_maximum=None if exact_in else "1005000000000000000",
        created_at=clock(),
        expires_at=clock() + 600_000,
    )
    base.update(kw)
    return QuoteEntity(**base)


def test_exact_in_single_hop_calldata(tokens, clock):
    hops = [RouteHop(token_in=tokens.WETH, token_out=tokens.USDC, fee=3000)]
    tx = UniswapV3SwapRouter(ROUTER).build(_quote(tokens, clock, hops), RECIPIENT, 1_700_000_600)

    assert tx.method == "exactInputSingle"
    assert tx.to == ROUTER
    assert tx.value == "0"
    assert tx.data == "0x414bf389" + "".join([
        _word(tokens.WETH),
        _word(tokens.USDC),
        _word(3000),
        _word(RECIPIENT),
        _word(1_700_000_600),
        _word(10**18),
        _word(2985_000000),
        _word(0),
    ])


def test_exact_out_single_hop_uses_max_input(tokens, clock):
    hops = [RouteHop(token_in=tokens.WETH, token_out=tokens.USDC, fee=500)]
    quote = _quote(tokens, clock, hops, mode=QuoteMode.EXACT_OUT)
    tx = UniswapV3SwapRouter(ROUTER).build(quote, RECIPIENT, 1_700_000_600)

    assert tx.method == "exactOutputSingle"
    assert tx.amount_in_maximum == "1005000000000000000"
    assert tx.data.startswith("0xdb3e2198")
    assert tx.data.endswith(_word(3000_000000) + _word(1005 * 10**15) + _word(0))


@pytest.mark.parametrize("mode,selector", [(QuoteMode.EXACT_IN, "0xc04b8d59"), (QuoteMode.EXACT_OUT, "0xf28c0498")])
def test_two_hop_calldata_carries_the_stored_path(tokens, clock, mode, selector):
    hops = [
        RouteHop(token_in=tokens.WETH, token_out=tokens.USDT, fee=500),
        RouteHop(token_in=tokens.USDT, token_out=tokens.USDC, fee=500),
    ]
    quote = _quote(tokens, clock, hops, mode=mode)
    tx = UniswapV3SwapRouter(ROUTER).build(quote, RECIPIENT, 1_700_000_600)

    assert tx.method == ("exactInput" if mode == QuoteMode.EXACT_IN else "exactOutput")
    assert tx.data.startswith(selector)
    assert quote.path[2:] in tx.data
    assert _word(RECIPIENT) in tx.data


def _populate(tokens, clock, quote=None):
    repo = QuoteRepositoryMemory()
    if quote is not None:
        asyncio.run(repo.create(quote))
    return repo, PopulateSwapUseCase(repo, UniswapV3SwapRouter(ROUTER), clock=clock)


def test_populate_sets_deadline_and_keeps_quote_active(tokens, clock):
    hops = [RouteHop(token_in=tokens.WETH, token_out=tokens.USDC, fee=3000)]
    repo, uc = _populate(tokens, clock, _quote(tokens, clock, hops))

    tx = asyncio.run(uc.execute("q_00000000000000aa", RECIPIENT, 120))

    assert tx.deadline == clock() // 1000 + 120
    assert tx.recipient.lower() == RECIPIENT
    assert asyncio.run(repo.get("q_00000000000000aa")).status == QuoteStatus.ACTIVE


def test_populate_default_deadline(tokens, clock):
    hops = [RouteHop(token_in=tokens.WETH, token_out=tokens.USDC, fee=3000)]
    _, uc = _populate(tokens, clock, _quote(tokens, clock, hops))
    assert asyncio.run(uc.execute("q_00000000000000aa", RECIPIENT)).deadline == clock() // 1000 + 600


def test_populate_rejects_unusable_quotes(tokens, clock):
    hops = [RouteHop(token_in=tokens.WETH, token_out=tokens.USDC, fee=3000)]

    _, uc = _populate(tokens, clock)
    with pytest.raises(QuoteNotFound):
        asyncio.run(uc.execute("q_missing", RECIPIENT))

    _, uc = _populate(tokens, clock, _quote(tokens, clock, hops, status=QuoteStatus.USED))
    with pytest.raises(QuoteNotActive):
        asyncio.run(uc.execute("q_00000000000000aa", RECIPIENT))

    _, uc = _populate(tokens, clock, _quote(tokens, clock, hops))
    with pytest.raises(InvalidInput):
        asyncio.run(uc.execute("q_00000000000000aa", "not-an-address"))

    clock.advance(601)
    with pytest.raises(QuoteExpired):
        asyncio.run(uc.execute("q_00000000000000aa", RECIPIENT))
