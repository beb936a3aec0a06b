from typing import Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from ....core.domain.entities.quote_entity import QuoteRequestLog
from ....core.domain.exceptions import PersistenceError
from ....core.repositories.quote_request_repository import QuoteRequestRepository

TERMINAL_FIELDS = {"success", "error_message", "response_time_ms", "cache_hit", "quote_id", "completed_at"}


class QuoteRequestRepositoryMongoDB(QuoteRequestRepository):
    """
    Mongo implementation of the inbound request log.
    """

    COLLECTION = "quote_requests"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[self.COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("request_id", 1)], unique=True, name="ux_request_id")
        await self._col.create_index(
            [("rate_limit_key", 1), ("created_at", -1)],
            name="ix_rate_limit_key_created_at",
        )
        await self._col.create_index(
            [("chain_id", 1), ("created_at", -1)],
            name="ix_chain_created_at",
        )
        await self._col.create_index([("user_address", 1)], name="ix_user_address")

    async def create(self, log: QuoteRequestLog) -> None:
        try:
            await self._col.insert_one(log.model_dump(mode="json"))
        except PyMongoError as exc:
            raise PersistenceError("create request log", exc)

    async def complete(self, request_id: str, fields: Dict) -> None:
        update = {k: v for k, v in fields.items() if k in TERMINAL_FIELDS}
        try:
            await self._col.update_one({"request_id": request_id}, {"$set": update})
        except PyMongoError as exc:
            raise PersistenceError("complete request log", exc)

    async def get(self, request_id: str) -> Optional[QuoteRequestLog]:
        try:
            doc = await self._col.find_one({"request_id": request_id}, projection={"_id": False})
        except PyMongoError as exc:
            raise PersistenceError("get request log", exc)
        return QuoteRequestLog.model_validate(doc) if doc else None

    async def count_by_rate_limit_key(self, rate_limit_key: str, since_ms: int) -> int:
        try:
            return int(await self._col.count_documents(
                {"rate_limit_key": rate_limit_key, "created_at": {"$gte": int(since_ms)}}
            ))
        except PyMongoError as exc:
            raise PersistenceError("count requests", exc)

    async def stats(self, chain_id: Optional[int], since_ms: int) -> Dict:
        match: Dict = {"created_at": {"$gte": int(since_ms)}}
        if chain_id is not None:
            match["chain_id"] = int(chain_id)
        try:
            total = await self._col.count_documents(match)
            ok = await self._col.count_documents({**match, "success": True})
            hits = await self._col.count_documents({**match, "cache_hit": True})
            rows = await self._col.aggregate([
                {"$match": {**match, "response_time_ms": {"$ne": None}}},
                {"$group": {"_id": None, "avg": {"$avg": "$response_time_ms"}}},
            ]).to_list(length=1)
        except PyMongoError as exc:
            raise PersistenceError("request stats", exc)
        return {
            "total_requests": int(total),
            "successful_requests": int(ok),
            "failed_requests": int(total - ok),
            "cache_hits": int(hits),
            "avg_response_time_ms": float(rows[0]["avg"]) if rows and rows[0].get("avg") is not None else 0.0,
        }
