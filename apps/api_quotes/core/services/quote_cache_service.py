import logging
from typing import Callable, Optional

from ..domain.entities.quote_entity import QuoteCacheEntry, QuoteEntity
from ..domain.enums.quote_enums import QuoteMode
from ..domain.exceptions import PersistenceError
from ..repositories.quote_cache_repository import QuoteCacheRepository
from .time_utils import now_ms

FINGERPRINT_SEP = "_"


def quote_fingerprint(
    chain_id: int,
    token_in: str,
    token_out: str,
    fee: int,
    amount: int,
    mode: QuoteMode,
) -> str:
    """
    Deterministic cache key: chain_tokenIn_tokenOut_fee_amount_mode.
    """
    parts = [
        str(int(chain_id)),
        token_in.lower(),
        token_out.lower(),
        str(int(fee)),
        str(int(amount)),
        QuoteMode(mode).value,
    ]
    return FINGERPRINT_SEP.join(parts)


class QuoteCacheService:
    """
    TTL cache of computed quotes on top of a QuoteCacheRepository.

    - lookup() only ever returns entries with now < expires_at.
    - evict() drops an entry whose quote can no longer be handed out.
    - store() upserts by fingerprint; an entry never outlives its quote.
    Storage failures are logged and degrade to a cache miss / no-op.
    """

    def __init__(
        self,
        repository: QuoteCacheRepository,
        default_ttl_sec: int = 300,
        clock: Callable[[], int] = now_ms,
        logger: Optional[logging.Logger] = None,
    ):
        self._repo = repository
        self._ttl_sec = int(default_ttl_sec)
        self._clock = clock
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def lookup(self, fingerprint: str, slippage_bps: Optional[int] = None) -> Optional[QuoteEntity]:
        """
        Cached quote for `fingerprint`. With `slippage_bps`, an entry priced
        with another tolerance is a miss and its hit counter is left alone.
        """
        now = self._clock()
        try:
            entry = await self._repo.hit(fingerprint, now, slippage_bps)
        except PersistenceError as exc:
            self._logger.error("cache lookup failed for %s: %s", fingerprint, exc)
            return None
        if entry is None:
            return None
        # hit() already filters on expiry; keep the guard for lagging clocks
        if not now < entry.expires_at:
            return None
        self._logger.debug("cache hit %s (hits=%s)", fingerprint, entry.hit_count)
        return entry.quote

    async def store(
        self,
        fingerprint: str,
        quote: QuoteEntity,
        ttl_sec: Optional[int] = None,
    ) -> Optional[QuoteCacheEntry]:
        now = self._clock()
        ttl_ms = int(ttl_sec if ttl_sec is not None else self._ttl_sec) * 1000
        expires_at = min(now + ttl_ms, quote.expires_at)
        if expires_at <= now:
            return None
        try:
            return await self._repo.upsert(fingerprint, quote.chain_id, quote, expires_at, now)
        except PersistenceError as exc:
            self._logger.error("quote caching failed for %s: %s", fingerprint, exc)
            return None

    async def evict(self, fingerprint: str) -> None:
        try:
            await self._repo.delete(fingerprint)
        except PersistenceError as exc:
            self._logger.error("cache evict failed for %s: %s", fingerprint, exc)

    async def cleanup_expired(self) -> int:
        return await self._repo.delete_expired(self._clock())
