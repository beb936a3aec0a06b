from typing import Callable, Dict, Optional

from ..repositories.quote_cache_repository import QuoteCacheRepository
from ..repositories.quote_repository import QuoteRepository
from ..repositories.quote_request_repository import QuoteRequestRepository
from ..services.time_utils import now_ms, since_for_range


class QuoteStatsUseCase:
    """
    Monitoring aggregates over quotes, request log and cache for a time range.
    """

    def __init__(
        self,
        quote_repo: QuoteRepository,
        request_repo: QuoteRequestRepository,
        cache_repo: QuoteCacheRepository,
        clock: Callable[[], int] = now_ms,
    ):
        self._quotes = quote_repo
        self._requests = request_repo
        self._cache = cache_repo
        self._clock = clock

    async def quotes(self, chain_id: Optional[int], time_range: str = "24h") -> Dict:
        now = self._clock()
        return await self._quotes.stats(chain_id, since_for_range(time_range, now))

    async def requests(self, chain_id: Optional[int], time_range: str = "24h") -> Dict:
        now = self._clock()
        return await self._requests.stats(chain_id, since_for_range(time_range, now))

    async def cache(self, chain_id: Optional[int], time_range: str = "24h") -> Dict:
        now = self._clock()
        return await self._cache.stats(chain_id, since_for_range(time_range, now), now)
