import asyncio

import pytest

from apps.api_quotes.core.domain.entities.quote_entity import QuoteCommand
from apps.api_quotes.core.domain.enums.quote_enums import QuoteStatus
from apps.api_quotes.core.domain.exceptions import QuoteExpired, QuoteNotActive, QuoteNotFound
from apps.api_quotes.core.usecases.cancel_quote_use_case import CancelQuoteUseCase
from apps.api_quotes.core.usecases.cleanup_expired_quotes_use_case import CleanupExpiredQuotesUseCase
from apps.api_quotes.core.usecases.get_quote_use_case import GetQuoteUseCase
from apps.api_quotes.core.usecases.mark_quote_used_use_case import MarkQuoteUsedUseCase
from apps.api_quotes.core.usecases.quote_stats_use_case import QuoteStatsUseCase


@pytest.fixture
def engine(tokens, make_engine):
    return make_engine({(tokens.WETH, 3000, tokens.USDC): 3000_000000})


def _new_quote(engine, tokens, amount="1", ttl_sec=600):
    cmd = QuoteCommand(token_in=tokens.WETH, token_out=tokens.USDC, amount=amount, ttl_sec=ttl_sec)
    return asyncio.run(engine.uc.execute(cmd)).quote


def test_get_unknown_quote(engine, clock):
    with pytest.raises(QuoteNotFound):
        asyncio.run(GetQuoteUseCase(engine.quote_repo, clock=clock).execute("q_missing"))


def test_get_expires_lazily(engine, tokens, clock):
    quote = _new_quote(engine, tokens, ttl_sec=60)
    get_uc = GetQuoteUseCase(engine.quote_repo, clock=clock)

    assert asyncio.run(get_uc.execute(quote.quote_id)).status == QuoteStatus.ACTIVE

    clock.advance(60)
    # now == expires_at is still valid
    assert asyncio.run(get_uc.execute(quote.quote_id)).status == QuoteStatus.ACTIVE

    clock.advance(1)
    with pytest.raises(QuoteExpired):
        asyncio.run(get_uc.execute(quote.quote_id))
    assert asyncio.run(engine.quote_repo.get(quote.quote_id)).status == QuoteStatus.EXPIRED


def test_mark_used_is_idempotent(engine, tokens, clock):
    quote = _new_quote(engine, tokens)
    uc = MarkQuoteUsedUseCase(engine.quote_repo, clock=clock)

    first = asyncio.run(uc.execute(quote.quote_id, "swap_1"))
    clock.advance(5)
    second = asyncio.run(uc.execute(quote.quote_id, "swap_2"))

    assert first.status == QuoteStatus.USED
    assert first.swap_id == "swap_1"
    assert first.used_at == clock() - 5000
    assert second == first


def test_concurrent_consumers_use_a_quote_once(engine, tokens, clock):
    quote = _new_quote(engine, tokens)
    uc = MarkQuoteUsedUseCase(engine.quote_repo, clock=clock)

    async def scenario():
        return await asyncio.gather(*[uc.execute(quote.quote_id, f"swap_{i}") for i in range(5)])

    results = asyncio.run(scenario())
    assert len({r.swap_id for r in results}) == 1


def test_mark_used_on_expired_or_cancelled(engine, tokens, clock):
    expiring = _new_quote(engine, tokens, amount="1", ttl_sec=10)
    cancelled = _new_quote(engine, tokens, amount="2")
    asyncio.run(CancelQuoteUseCase(engine.quote_repo, clock=clock).execute(cancelled.quote_id))
    clock.advance(11)

    uc = MarkQuoteUsedUseCase(engine.quote_repo, clock=clock)
    with pytest.raises(QuoteExpired):
        asyncio.run(uc.execute(expiring.quote_id, "swap"))
    with pytest.raises(QuoteNotActive):
        asyncio.run(uc.execute(cancelled.quote_id, "swap"))


def test_cancel_is_idempotent_but_not_after_use(engine, tokens, clock):
    a = _new_quote(engine, tokens, amount="1")
    b = _new_quote(engine, tokens, amount="2")
    cancel = CancelQuoteUseCase(engine.quote_repo, clock=clock)

    assert asyncio.run(cancel.execute(a.quote_id)).status == QuoteStatus.CANCELLED
    assert asyncio.run(cancel.execute(a.quote_id)).status == QuoteStatus.CANCELLED

    asyncio.run(MarkQuoteUsedUseCase(engine.quote_repo, clock=clock).execute(b.quote_id, "swap"))
    with pytest.raises(QuoteNotActive):
        asyncio.run(cancel.execute(b.quote_id))


def test_cleanup_sweeps_quotes_and_cache(engine, tokens, clock):
    _new_quote(engine, tokens, amount="1", ttl_sec=30)
    _new_quote(engine, tokens, amount="2", ttl_sec=30)
    keep = _new_quote(engine, tokens, amount="3", ttl_sec=3600)

    clock.advance(400)
    uc = CleanupExpiredQuotesUseCase(engine.quote_repo, engine.cache_service, clock=clock)
    out = asyncio.run(uc.execute())

    assert out == {"quotes_expired": 2, "cache_evicted": 3}
    assert asyncio.run(engine.quote_repo.get(keep.quote_id)).status == QuoteStatus.ACTIVE


def test_stats_cover_quotes_requests_and_cache(engine, tokens, clock):
    _new_quote(engine, tokens, amount="1")
    _new_quote(engine, tokens, amount="1")
    _new_quote(engine, tokens, amount="2")

    uc = QuoteStatsUseCase(engine.quote_repo, engine.request_repo, engine.cache_repo, clock=clock)
    out = {
        "quotes": asyncio.run(uc.quotes(tokens.CHAIN_ID, "1h")),
        "requests": asyncio.run(uc.requests(tokens.CHAIN_ID, "1h")),
        "cache": asyncio.run(uc.cache(tokens.CHAIN_ID, "1h")),
    }

    assert out["quotes"]["total_quotes"] == 2
    assert out["quotes"]["by_status"]["active"] == 2
    assert out["requests"]["total_requests"] == 3
    assert out["requests"]["successful_requests"] == 3
    assert out["requests"]["cache_hits"] == 1
    assert out["cache"]["total_entries"] == 2
    assert out["cache"]["total_hits"] == 1

    assert asyncio.run(uc.quotes(1, "24h"))["total_quotes"] == 0

    clock.advance(2 * 60 * 60)
    assert asyncio.run(uc.requests(None, "1h"))["total_requests"] == 0
    assert asyncio.run(uc.requests(None, "7d"))["total_requests"] == 3
