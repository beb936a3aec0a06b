import time
from typing import Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from ....core.domain.entities.quote_entity import QuoteEntity
from ....core.domain.enums.quote_enums import QuoteStatus
from ....core.domain.exceptions import PersistenceError
from ....core.repositories.quote_repository import QuoteRepository


class QuoteRepositoryMongoDB(QuoteRepository):
    """
    Mongo implementation for generated quotes (active -> used/expired/cancelled).
    """

    COLLECTION = "quotes"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[self.COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("quote_id", 1)], unique=True, name="ux_quote_id")
        await self._col.create_index(
            [("status", 1), ("expires_at", 1)],
            name="ix_status_expires_at",
        )
        await self._col.create_index(
            [("chain_id", 1), ("created_at", -1)],
            name="ix_chain_created_at",
        )

    async def create(self, quote: QuoteEntity) -> None:
        doc = quote.model_dump(mode="json")
        doc["updated_at"] = doc["created_at"]
        try:
            await self._col.insert_one(doc)
        except PyMongoError as exc:
            raise PersistenceError("create quote", exc)

    async def get(self, quote_id: str) -> Optional[QuoteEntity]:
        try:
            doc = await self._col.find_one({"quote_id": quote_id}, projection={"_id": False})
        except PyMongoError as exc:
            raise PersistenceError("get quote", exc)
        return QuoteEntity.model_validate(doc) if doc else None

    async def transition(
        self,
        quote_id: str,
        from_status: QuoteStatus,
        to_status: QuoteStatus,
        fields: Optional[Dict] = None,
    ) -> Optional[QuoteEntity]:
        now_ms = int(time.time() * 1000)
        try:
            doc = await self._col.find_one_and_update(
                {"quote_id": quote_id, "status": QuoteStatus(from_status).value},
                {"$set": {**(fields or {}), "status": QuoteStatus(to_status).value, "updated_at": now_ms}},
                projection={"_id": False},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            raise PersistenceError("transition quote", exc)
        return QuoteEntity.model_validate(doc) if doc else None

    async def expire_before(self, now_ms: int) -> int:
        try:
            res = await self._col.update_many(
                {"status": QuoteStatus.ACTIVE.value, "expires_at": {"$lt": int(now_ms)}},
                {"$set": {"status": QuoteStatus.EXPIRED.value, "updated_at": int(now_ms)}},
            )
        except PyMongoError as exc:
            raise PersistenceError("expire quotes", exc)
        return int(res.modified_count)

    async def stats(self, chain_id: Optional[int], since_ms: int) -> Dict:
        match: Dict = {"created_at": {"$gte": int(since_ms)}}
        if chain_id is not None:
            match["chain_id"] = int(chain_id)
        pipeline = [
            {"$match": match},
            {"$group": {"_id": "$status", "n": {"$sum": 1}}},
        ]
        try:
            rows = await self._col.aggregate(pipeline).to_list(length=None)
        except PyMongoError as exc:
            raise PersistenceError("quote stats", exc)
        by_status = {s.value: 0 for s in QuoteStatus}
        for row in rows:
            by_status[str(row["_id"])] = int(row["n"])
        return {"total_quotes": sum(by_status.values()), "by_status": by_status}
