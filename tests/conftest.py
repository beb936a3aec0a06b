"""Shared stubs for the quoting engine tests."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from apps.api_quotes.adapters.external.memory.quote_cache_repository_memory import QuoteCacheRepositoryMemory
from apps.api_quotes.adapters.external.memory.quote_repository_memory import QuoteRepositoryMemory
from apps.api_quotes.adapters.external.memory.quote_request_repository_memory import QuoteRequestRepositoryMemory
from apps.api_quotes.adapters.external.tokens.token_allowlist import TokenAllowlist
from apps.api_quotes.core.domain.entities.route_entity import OracleResult
from apps.api_quotes.core.domain.enums.quote_enums import QuoteMode
from apps.api_quotes.core.services.price_impact_service import PriceFeed, PriceImpactService
from apps.api_quotes.core.services.quote_cache_service import QuoteCacheService
from apps.api_quotes.core.services.route_candidate_service import RouteCandidateService
from apps.api_quotes.core.services.route_evaluation_service import QuotingOracle, RouteEvaluationService
from apps.api_quotes.core.services.token_service import TokenMetadataProvider
from apps.api_quotes.core.usecases.generate_quote_use_case import GenerateQuoteUseCase

# Sepolia deployments, lowercased
WETH = "0x7b79995e5f793a07bc00c21412e50ecae098e7f9"
USDC = "0x1c7d4b196cb0c7b01d743fbc6116a902379c7238"
USDT = "0xaa8e23fb1079ea71e0a56f48a2aa51851d8433d0"
DAI = "0x" + "11" * 20
UNLISTED = "0x" + "22" * 20

CHAIN_ID = 11155111
T0 = 1_700_000_000_000


class FakeClock:
    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class StubOracle(QuotingOracle):
    """
    Prices keyed by candidate.path_tokens(), or by ("EXACT_OUT", *path_tokens)
    for a mode-specific answer. A value can be an int amount, an OracleResult,
    or an exception to raise. Missing keys revert.
    """

    def __init__(self, prices=None):
        self.prices = dict(prices or {})
        self.calls = []

    async def quote(self, candidate, amount, mode, sqrt_price_limit_x96=0):
        self.calls.append((candidate, amount, mode))
        path = tuple(candidate.path_tokens())
        value = self.prices.get((QuoteMode(mode).value, *path), self.prices.get(path))
        if value is None:
            return OracleResult.failure("quoter reverted: no pool")
        if isinstance(value, OracleResult):
            return value
        if isinstance(value, Exception):
            raise value
        return OracleResult.success(value, 120_000)


class StubMetadata(TokenMetadataProvider):
    def __init__(self, decimals=None):
        self.known = {WETH: 18, USDC: 6, USDT: 6, DAI: 18}
        self.known.update(decimals or {})

    async def decimals(self, token):
        return self.known[token.lower()]


class StubPriceFeed(PriceFeed):
    def __init__(self, prices=None):
        self.prices = {WETH: Decimal(3000), USDC: Decimal(1), USDT: Decimal(1)}
        self.prices.update(prices or {})

    async def get_price(self, token, chain_id):
        return self.prices.get(token.lower(), Decimal(0))


@pytest.fixture
def tokens():
    return SimpleNamespace(WETH=WETH, USDC=USDC, USDT=USDT, DAI=DAI, UNLISTED=UNLISTED, CHAIN_ID=CHAIN_ID)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_engine(clock):
    """
    Build a GenerateQuoteUseCase on memory repositories and stub collaborators.
    """

    def _make(prices=None, oracle=None, cache_ttl_sec=300, quote_repo=None, request_repo=None, **kwargs):
        oracle = oracle or StubOracle(prices)
        quote_repo = quote_repo or QuoteRepositoryMemory()
        cache_repo = QuoteCacheRepositoryMemory()
        request_repo = request_repo or QuoteRequestRepositoryMemory()
        cache_service = QuoteCacheService(cache_repo, default_ttl_sec=cache_ttl_sec, clock=clock)
        uc = GenerateQuoteUseCase(
            chain_id=CHAIN_ID,
            token_validator=TokenAllowlist([WETH, USDC, USDT, DAI]),
            token_metadata=StubMetadata(),
            candidate_service=RouteCandidateService((500, 3000, 10000), [WETH, USDC, USDT]),
            evaluation_service=RouteEvaluationService(oracle, call_timeout_sec=1.0),
            price_impact_service=PriceImpactService(StubPriceFeed()),
            cache_service=cache_service,
            quote_repo=quote_repo,
            request_repo=request_repo,
            clock=clock,
            **kwargs,
        )
        return SimpleNamespace(
            uc=uc,
            oracle=oracle,
            quote_repo=quote_repo,
            cache_repo=cache_repo,
            request_repo=request_repo,
            cache_service=cache_service,
            clock=clock,
        )

    return _make


@pytest.fixture
def stub_oracle_cls():
    return StubOracle


@pytest.fixture
def stub_metadata_cls():
    return StubMetadata


@pytest.fixture
def stub_price_feed_cls():
    return StubPriceFeed
