import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient
from web3 import AsyncWeb3

from ..adapters.external.chain.erc20_metadata_reader import Erc20MetadataReader
from ..adapters.external.chain.uniswap_v3_quoter import UniswapV3QuoterOracle
from ..adapters.external.chain.uniswap_v3_swap_router import UniswapV3SwapRouter
from ..adapters.external.database.quote_cache_repository_mongodb import QuoteCacheRepositoryMongoDB
from ..adapters.external.database.quote_repository_mongodb import QuoteRepositoryMongoDB
from ..adapters.external.database.quote_request_repository_mongodb import QuoteRequestRepositoryMongoDB
from ..adapters.external.memory.quote_cache_repository_memory import QuoteCacheRepositoryMemory
from ..adapters.external.memory.quote_repository_memory import QuoteRepositoryMemory
from ..adapters.external.memory.quote_request_repository_memory import QuoteRequestRepositoryMemory
from ..adapters.external.pricing.price_feed_client import PriceFeedClient
from ..adapters.external.tokens.token_allowlist import TokenAllowlist
from ..config import VALID_FEES, Settings, get_settings
from ..core.repositories.quote_cache_repository import QuoteCacheRepository
from ..core.repositories.quote_repository import QuoteRepository
from ..core.repositories.quote_request_repository import QuoteRequestRepository
from ..core.services.price_impact_service import PriceFeed, PriceImpactService
from ..core.services.quote_cache_service import QuoteCacheService
from ..core.services.route_candidate_service import RouteCandidateService
from ..core.services.route_evaluation_service import QuotingOracle, RouteEvaluationService
from ..core.services.swap_calldata_service import SwapCalldataBuilder
from ..core.services.token_service import TokenMetadataProvider, TokenRegistry
from ..core.usecases.cancel_quote_use_case import CancelQuoteUseCase
from ..core.usecases.cleanup_expired_quotes_use_case import CleanupExpiredQuotesUseCase
from ..core.usecases.generate_quote_use_case import GenerateQuoteUseCase
from ..core.usecases.get_quote_use_case import GetQuoteUseCase
from ..core.usecases.mark_quote_used_use_case import MarkQuoteUsedUseCase
from ..core.usecases.populate_swap_use_case import PopulateSwapUseCase
from ..core.usecases.quote_stats_use_case import QuoteStatsUseCase
from .quote_expiry_worker import QuoteExpiryWorker


class QuoteGatewaySupervisor:
    """
    High-level supervisor for the api_quotes process.

    Responsibilities:
    - Connect storage (MongoDB, or in-process for dev/tests), ensure indexes.
    - Build chain/pricing/token collaborators from Settings unless injected.
    - Wire services and use cases consumed by the HTTP router.
    - Run the periodic expiry sweep.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        oracle: Optional[QuotingOracle] = None,
        price_feed: Optional[PriceFeed] = None,
        token_metadata: Optional[TokenMetadataProvider] = None,
        token_validator: Optional[TokenRegistry] = None,
        swap_builder: Optional[SwapCalldataBuilder] = None,
    ):
        self._logger = logging.getLogger(self.__class__.__name__)
        self.settings = settings or get_settings()
        self._oracle = oracle
        self._price_feed = price_feed
        self._token_metadata = token_metadata
        self._token_validator = token_validator
        self._swap_builder = swap_builder

        self._mongo_client: AsyncIOMotorClient | None = None
        self._db = None
        self._w3: AsyncWeb3 | None = None
        self._expiry_worker: QuoteExpiryWorker | None = None

        self.quote_repo: QuoteRepository | None = None
        self.cache_repo: QuoteCacheRepository | None = None
        self.request_repo: QuoteRequestRepository | None = None

        self.generate: GenerateQuoteUseCase | None = None
        self.get_quote: GetQuoteUseCase | None = None
        self.mark_used: MarkQuoteUsedUseCase | None = None
        self.cancel: CancelQuoteUseCase | None = None
        self.populate: PopulateSwapUseCase | None = None
        self.cleanup: CleanupExpiredQuotesUseCase | None = None
        self.stats: QuoteStatsUseCase | None = None

    @property
    def db(self):
        """Expose the AsyncIOMotorDatabase instance after start() (None on the memory backend)."""
        return self._db

    # ---------- collaborators ----------

    def _web3(self) -> AsyncWeb3:
        if self._w3 is None:
            self._w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(self.settings.RPC_URL_DEFAULT))
        return self._w3

    def _build_collaborators(self) -> None:
        s = self.settings
        if self._token_validator is None:
            self._token_validator = TokenAllowlist(
                [*s.anchors(), *s.ALLOWED_TOKENS],
                allow_any=s.ALLOW_ANY_TOKEN,
            )
        if self._token_metadata is None:
            self._token_metadata = Erc20MetadataReader(self._web3(), overrides=s.TOKEN_DECIMALS)
        if self._oracle is None:
            if not s.UNI_V3_QUOTER:
                raise RuntimeError(f"No QuoterV2 address configured for chain {s.CHAIN_ID}")
            self._oracle = UniswapV3QuoterOracle(self._web3(), s.UNI_V3_QUOTER)
        if self._price_feed is None:
            self._price_feed = PriceFeedClient(
                stable_tokens=s.stable_tokens(),
                weth_address=s.WETH_ADDRESS,
                weth_usd_fallback=s.WETH_USD_FALLBACK,
                api_key=s.COINGECKO_API_KEY,
                platform=s.COINGECKO_PLATFORM,
                cache_ttl_sec=s.PRICE_CACHE_TTL_SEC,
            )
        if self._swap_builder is None and s.UNI_V3_SWAP_ROUTER:
            self._swap_builder = UniswapV3SwapRouter(s.UNI_V3_SWAP_ROUTER)

    @property
    def token_validator(self) -> TokenRegistry | None:
        return self._token_validator

    # ---------- wiring ----------

    def wire(
        self,
        quote_repo: QuoteRepository,
        cache_repo: QuoteCacheRepository,
        request_repo: QuoteRequestRepository,
    ) -> None:
        """
        Build services and use cases on top of the given repositories.
        """
        s = self.settings
        self._build_collaborators()
        self.quote_repo, self.cache_repo, self.request_repo = quote_repo, cache_repo, request_repo

        cache_service = QuoteCacheService(cache_repo, default_ttl_sec=s.QUOTE_CACHE_TTL_SEC)
        self.generate = GenerateQuoteUseCase(
            chain_id=s.CHAIN_ID,
            token_validator=self._token_validator,
            token_metadata=self._token_metadata,
            candidate_service=RouteCandidateService(VALID_FEES, s.anchors()),
            evaluation_service=RouteEvaluationService(self._oracle, call_timeout_sec=s.ORACLE_CALL_TIMEOUT_SEC),
            price_impact_service=PriceImpactService(self._price_feed),
            cache_service=cache_service,
            quote_repo=quote_repo,
            request_repo=request_repo,
            valid_fees=VALID_FEES,
            default_fee=s.DEFAULT_SWAP_POOL_FEE,
            default_ttl_sec=s.QUOTE_DEFAULT_TTL_SEC,
            max_ttl_sec=s.QUOTE_MAX_TTL_SEC,
        )
        self.get_quote = GetQuoteUseCase(quote_repo)
        self.mark_used = MarkQuoteUsedUseCase(quote_repo)
        self.cancel = CancelQuoteUseCase(quote_repo)
        if self._swap_builder is not None:
            self.populate = PopulateSwapUseCase(
                quote_repo,
                self._swap_builder,
                default_deadline_sec=s.QUOTE_DEFAULT_TTL_SEC,
                max_deadline_sec=s.QUOTE_MAX_TTL_SEC,
            )
        self.cleanup = CleanupExpiredQuotesUseCase(quote_repo, cache_service)
        self.stats = QuoteStatsUseCase(quote_repo, request_repo, cache_repo)
        self._expiry_worker = QuoteExpiryWorker(self.cleanup, interval_sec=s.QUOTE_SWEEP_INTERVAL_SEC)

    def use_memory_storage(self) -> None:
        self.wire(QuoteRepositoryMemory(), QuoteCacheRepositoryMemory(), QuoteRequestRepositoryMemory())

    async def _use_mongodb_storage(self) -> None:
        s = self.settings
        self._mongo_client = AsyncIOMotorClient(s.MONGODB_URI)
        self._db = self._mongo_client[s.MONGODB_DB_NAME]

        quote_repo = QuoteRepositoryMongoDB(self._db)
        cache_repo = QuoteCacheRepositoryMongoDB(self._db)
        request_repo = QuoteRequestRepositoryMongoDB(self._db)

        await quote_repo.ensure_indexes()
        await cache_repo.ensure_indexes()
        await request_repo.ensure_indexes()

        self.wire(quote_repo, cache_repo, request_repo)

    # ---------- lifecycle ----------

    async def start(self):
        """
        Connect storage, wire use cases and start the expiry sweep.
        """
        backend = (self.settings.STORAGE_BACKEND or "mongodb").lower()
        if backend == "memory":
            self.use_memory_storage()
        elif backend == "mongodb":
            await self._use_mongodb_storage()
        else:
            raise RuntimeError(f"Unknown STORAGE_BACKEND {backend!r} (expected mongodb | memory)")

        self._expiry_worker.start()
        self._logger.info(
            "Quote gateway started: chain=%s backend=%s quoter=%s",
            self.settings.CHAIN_ID, backend, self.settings.UNI_V3_QUOTER,
        )

    async def stop(self):
        """
        Gracefully stop resources.
        """
        if self._expiry_worker:
            await self._expiry_worker.stop()

        if self._mongo_client:
            self._mongo_client.close()
