from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..domain.entities.quote_entity import QuoteEntity
from ..domain.enums.quote_enums import QuoteStatus


class QuoteRepository(ABC):
    """
    Repository interface for generated quotes.
    Implementations raise PersistenceError on storage failures.
    """

    @abstractmethod
    async def ensure_indexes(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def create(self, quote: QuoteEntity) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get(self, quote_id: str) -> Optional[QuoteEntity]:
        raise NotImplementedError

    @abstractmethod
    async def transition(
        self,
        quote_id: str,
        from_status: QuoteStatus,
        to_status: QuoteStatus,
        fields: Optional[Dict] = None,
    ) -> Optional[QuoteEntity]:
        """
        Atomically move a quote from `from_status` to `to_status`, setting `fields`.

        :return: the updated quote, or None if the quote is missing or was not
                 in `from_status` (nothing is written in that case).
        """
        raise NotImplementedError

    @abstractmethod
    async def expire_before(self, now_ms: int) -> int:
        """
        Bulk-transition every ACTIVE quote with expires_at < now_ms to EXPIRED.

        :return: number of quotes expired.
        """
        raise NotImplementedError

    @abstractmethod
    async def stats(self, chain_id: Optional[int], since_ms: int) -> Dict:
        """
        Aggregate counts of quotes created since `since_ms`, by status.
        """
        raise NotImplementedError
