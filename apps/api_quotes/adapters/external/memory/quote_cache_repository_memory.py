import asyncio
from typing import Dict, Optional

from ....core.domain.entities.quote_entity import QuoteCacheEntry, QuoteEntity
from ....core.repositories.quote_cache_repository import QuoteCacheRepository


class QuoteCacheRepositoryMemory(QuoteCacheRepository):
    """
    In-process quote cache. Reads and upserts run under one asyncio.Lock so
    parallel identical requests cannot lose updates.
    """

    def __init__(self):
        self._entries: Dict[str, QuoteCacheEntry] = {}
        self._lock = asyncio.Lock()

    async def ensure_indexes(self) -> None:
        return None

    async def hit(
        self,
        fingerprint: str,
        now_ms: int,
        slippage_bps: Optional[int] = None,
    ) -> Optional[QuoteCacheEntry]:
        async with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            if not now_ms < entry.expires_at:
                # lazy eviction
                self._entries.pop(fingerprint, None)
                return None
            if slippage_bps is not None and entry.quote.slippage_bps != int(slippage_bps):
                return None
            entry = entry.model_copy(update={"hit_count": entry.hit_count + 1, "last_hit_at": now_ms})
            self._entries[fingerprint] = entry
            return entry.model_copy(deep=True)

    async def upsert(
        self,
        fingerprint: str,
        chain_id: int,
        quote: QuoteEntity,
        expires_at: int,
        now_ms: int,
        source: str = "quoter",
    ) -> QuoteCacheEntry:
        async with self._lock:
            current = self._entries.get(fingerprint)
            entry = QuoteCacheEntry(
                fingerprint=fingerprint,
                chain_id=int(chain_id),
                quote=quote.model_copy(deep=True),
                hit_count=current.hit_count if current else 0,
                last_hit_at=current.last_hit_at if current else None,
                created_at=current.created_at if current else now_ms,
                updated_at=now_ms,
                expires_at=int(expires_at),
                source=source,
            )
            self._entries[fingerprint] = entry
            return entry.model_copy(deep=True)

    async def delete(self, fingerprint: str) -> None:
        async with self._lock:
            self._entries.pop(fingerprint, None)

    async def delete_expired(self, now_ms: int) -> int:
        async with self._lock:
            stale = [k for k, e in self._entries.items() if e.expires_at <= now_ms]
            for k in stale:
                del self._entries[k]
        return len(stale)

    async def stats(self, chain_id: Optional[int], since_ms: int, now_ms: int) -> Dict:
        entries = [
            e for e in self._entries.values()
            if e.created_at >= since_ms and (chain_id is None or e.chain_id == int(chain_id))
        ]
        total = len(entries)
        active = sum(1 for e in entries if e.expires_at > now_ms)
        hits = sum(e.hit_count for e in entries)
        return {
            "total_entries": total,
            "active_entries": active,
            "expired_entries": total - active,
            "total_hits": hits,
            "avg_hits": (hits / total) if total else 0.0,
        }
