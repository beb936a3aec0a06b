import asyncio
from typing import Dict, Optional

from ....core.domain.entities.quote_entity import QuoteEntity
from ....core.domain.enums.quote_enums import QuoteStatus
from ....core.domain.exceptions import PersistenceError
from ....core.repositories.quote_repository import QuoteRepository


class QuoteRepositoryMemory(QuoteRepository):
    """
    In-process QuoteRepository (STORAGE_BACKEND=memory, tests).
    A single asyncio.Lock makes every transition atomic.
    """

    def __init__(self):
        self._docs: Dict[str, QuoteEntity] = {}
        self._lock = asyncio.Lock()

    async def ensure_indexes(self) -> None:
        return None

    async def create(self, quote: QuoteEntity) -> None:
        async with self._lock:
            if quote.quote_id in self._docs:
                raise PersistenceError("create quote", f"duplicate quote_id {quote.quote_id}")
            self._docs[quote.quote_id] = quote.model_copy(deep=True)

    async def get(self, quote_id: str) -> Optional[QuoteEntity]:
        doc = self._docs.get(quote_id)
        return doc.model_copy(deep=True) if doc else None

    async def transition(
        self,
        quote_id: str,
        from_status: QuoteStatus,
        to_status: QuoteStatus,
        fields: Optional[Dict] = None,
    ) -> Optional[QuoteEntity]:
        async with self._lock:
            doc = self._docs.get(quote_id)
            if doc is None or doc.status != from_status:
                return None
            updated = doc.model_copy(update={**(fields or {}), "status": to_status})
            self._docs[quote_id] = updated
            return updated.model_copy(deep=True)

    async def expire_before(self, now_ms: int) -> int:
        count = 0
        async with self._lock:
            for qid, doc in list(self._docs.items()):
                if doc.status == QuoteStatus.ACTIVE and doc.expires_at < now_ms:
                    self._docs[qid] = doc.model_copy(update={"status": QuoteStatus.EXPIRED})
                    count += 1
        return count

    async def stats(self, chain_id: Optional[int], since_ms: int) -> Dict:
        docs = [
            d for d in self._docs.values()
            if d.created_at >= since_ms and (chain_id is None or d.chain_id == int(chain_id))
        ]
        by_status = {s.value: 0 for s in QuoteStatus}
        for d in docs:
            by_status[d.status.value] += 1
        return {"total_quotes": len(docs), "by_status": by_status}
