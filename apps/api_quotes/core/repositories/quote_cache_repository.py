from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..domain.entities.quote_entity import QuoteCacheEntry, QuoteEntity


class QuoteCacheRepository(ABC):
    """
    Repository interface for the short-TTL quote cache.
    Both `hit` and `upsert` must be atomic per fingerprint.
    """

    @abstractmethod
    async def ensure_indexes(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def hit(
        self,
        fingerprint: str,
        now_ms: int,
        slippage_bps: Optional[int] = None,
    ) -> Optional[QuoteCacheEntry]:
        """
        If an entry exists with expires_at > now_ms (and, when given, a quote
        priced with `slippage_bps`): increment hit_count, set last_hit_at=now_ms
        and return the updated entry. Otherwise return None and count nothing.
        """
        raise NotImplementedError

    @abstractmethod
    async def upsert(
        self,
        fingerprint: str,
        chain_id: int,
        quote: QuoteEntity,
        expires_at: int,
        now_ms: int,
        source: str = "quoter",
    ) -> QuoteCacheEntry:
        """
        Insert or replace the payload stored under `fingerprint` and extend its
        expiry. The hit counter of an existing entry is preserved.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, fingerprint: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete_expired(self, now_ms: int) -> int:
        raise NotImplementedError

    @abstractmethod
    async def stats(self, chain_id: Optional[int], since_ms: int, now_ms: int) -> Dict:
        """
        total/active/expired entries created since `since_ms` plus hit totals.
        """
        raise NotImplementedError
