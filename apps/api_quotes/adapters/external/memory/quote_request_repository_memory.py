from typing import Dict, Optional

from ....core.domain.entities.quote_entity import QuoteRequestLog
from ....core.domain.exceptions import PersistenceError
from ....core.repositories.quote_request_repository import QuoteRequestRepository

TERMINAL_FIELDS = {"success", "error_message", "response_time_ms", "cache_hit", "quote_id", "completed_at"}


class QuoteRequestRepositoryMemory(QuoteRequestRepository):
    """
    In-process request log.
    """

    def __init__(self):
        self._logs: Dict[str, QuoteRequestLog] = {}

    async def ensure_indexes(self) -> None:
        return None

    async def create(self, log: QuoteRequestLog) -> None:
        if log.request_id in self._logs:
            raise PersistenceError("create request log", f"duplicate request_id {log.request_id}")
        self._logs[log.request_id] = log.model_copy(deep=True)

    async def complete(self, request_id: str, fields: Dict) -> None:
        log = self._logs.get(request_id)
        if log is None:
            raise PersistenceError("complete request log", f"unknown request_id {request_id}")
        update = {k: v for k, v in fields.items() if k in TERMINAL_FIELDS}
        self._logs[request_id] = log.model_copy(update=update)

    async def get(self, request_id: str) -> Optional[QuoteRequestLog]:
        log = self._logs.get(request_id)
        return log.model_copy(deep=True) if log else None

    async def count_by_rate_limit_key(self, rate_limit_key: str, since_ms: int) -> int:
        return sum(
            1 for log in self._logs.values()
            if log.rate_limit_key == rate_limit_key and log.created_at >= since_ms
        )

    async def stats(self, chain_id: Optional[int], since_ms: int) -> Dict:
        logs = [
            log for log in self._logs.values()
            if log.created_at >= since_ms and (chain_id is None or log.chain_id == int(chain_id))
        ]
        times = [log.response_time_ms for log in logs if log.response_time_ms is not None]
        return {
            "total_requests": len(logs),
            "successful_requests": sum(1 for log in logs if log.success),
            "failed_requests": sum(1 for log in logs if not log.success),
            "cache_hits": sum(1 for log in logs if log.cache_hit),
            "avg_response_time_ms": (sum(times) / len(times)) if times else 0.0,
        }
