from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..domain.entities.quote_entity import QuoteRequestLog


class QuoteRequestRepository(ABC):
    """
    Repository interface for the inbound request log (analytics / rate limiting).
    """

    @abstractmethod
    async def ensure_indexes(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def create(self, log: QuoteRequestLog) -> None:
        raise NotImplementedError

    @abstractmethod
    async def complete(self, request_id: str, fields: Dict) -> None:
        """
        Set the terminal fields (success, error_message, response_time_ms,
        cache_hit, quote_id, completed_at) of a logged request.
        """
        raise NotImplementedError

    @abstractmethod
    async def get(self, request_id: str) -> Optional[QuoteRequestLog]:
        raise NotImplementedError

    @abstractmethod
    async def count_by_rate_limit_key(self, rate_limit_key: str, since_ms: int) -> int:
        """
        Number of requests logged under `rate_limit_key` since `since_ms`.
        """
        raise NotImplementedError

    @abstractmethod
    async def stats(self, chain_id: Optional[int], since_ms: int) -> Dict:
        raise NotImplementedError
