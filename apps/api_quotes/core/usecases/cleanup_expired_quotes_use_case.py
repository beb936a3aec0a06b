import logging
from typing import Callable, Dict, Optional

from ..repositories.quote_repository import QuoteRepository
from ..services.quote_cache_service import QuoteCacheService
from ..services.time_utils import now_ms


class CleanupExpiredQuotesUseCase:
    """
    Periodic sweep: ACTIVE quotes past expires_at -> EXPIRED, and expired
    cache entries deleted.
    """

    def __init__(
        self,
        quote_repo: QuoteRepository,
        cache_service: QuoteCacheService,
        clock: Callable[[], int] = now_ms,
        logger: Optional[logging.Logger] = None,
    ):
        self._quotes = quote_repo
        self._cache = cache_service
        self._clock = clock
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def execute(self) -> Dict[str, int]:
        expired = await self._quotes.expire_before(self._clock())
        evicted = await self._cache.cleanup_expired()
        if expired or evicted:
            self._logger.info("expiry sweep: %s quotes expired, %s cache entries evicted", expired, evicted)
        return {"quotes_expired": expired, "cache_evicted": evicted}
