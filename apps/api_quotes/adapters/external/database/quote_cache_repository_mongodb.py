from typing import Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from ....core.domain.entities.quote_entity import QuoteCacheEntry, QuoteEntity
from ....core.domain.exceptions import PersistenceError
from ....core.repositories.quote_cache_repository import QuoteCacheRepository


class QuoteCacheRepositoryMongoDB(QuoteCacheRepository):
    """
    Mongo implementation of the quote cache.

    Atomicity per fingerprint comes from the unique index plus single-document
    operations: find_one_and_update for hits, update_one(upsert=True) for stores.
    """

    COLLECTION = "quote_cache"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[self.COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("fingerprint", 1)], unique=True, name="ux_fingerprint")
        await self._col.create_index([("expires_at", 1)], name="ix_expires_at")
        await self._col.create_index([("chain_id", 1), ("created_at", -1)], name="ix_chain_created_at")

    async def hit(
        self,
        fingerprint: str,
        now_ms: int,
        slippage_bps: Optional[int] = None,
    ) -> Optional[QuoteCacheEntry]:
        query = {"fingerprint": fingerprint, "expires_at": {"$gt": int(now_ms)}}
        if slippage_bps is not None:
            query["quote.slippage_bps"] = int(slippage_bps)
        try:
            doc = await self._col.find_one_and_update(
                query,
                {"$inc": {"hit_count": 1}, "$set": {"last_hit_at": int(now_ms)}},
                projection={"_id": False},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            raise PersistenceError("cache lookup", exc)
        return QuoteCacheEntry.model_validate(doc) if doc else None

    async def upsert(
        self,
        fingerprint: str,
        chain_id: int,
        quote: QuoteEntity,
        expires_at: int,
        now_ms: int,
        source: str = "quoter",
    ) -> QuoteCacheEntry:
        update = {
            "$set": {
                "chain_id": int(chain_id),
                "quote": quote.model_dump(mode="json"),
                "expires_at": int(expires_at),
                "updated_at": int(now_ms),
                "source": source,
            },
            "$setOnInsert": {
                "created_at": int(now_ms),
                "hit_count": 0,
            },
        }
        try:
            try:
                await self._col.update_one({"fingerprint": fingerprint}, update, upsert=True)
            except DuplicateKeyError:
                # two concurrent upserts raced on insert; the retry is a plain update
                await self._col.update_one({"fingerprint": fingerprint}, update, upsert=True)
            doc = await self._col.find_one({"fingerprint": fingerprint}, projection={"_id": False})
        except PyMongoError as exc:
            raise PersistenceError("cache store", exc)
        return QuoteCacheEntry.model_validate(doc)

    async def delete(self, fingerprint: str) -> None:
        try:
            await self._col.delete_one({"fingerprint": fingerprint})
        except PyMongoError as exc:
            raise PersistenceError("cache delete", exc)

    async def delete_expired(self, now_ms: int) -> int:
        try:
            res = await self._col.delete_many({"expires_at": {"$lte": int(now_ms)}})
        except PyMongoError as exc:
            raise PersistenceError("cache cleanup", exc)
        return int(res.deleted_count)

    async def stats(self, chain_id: Optional[int], since_ms: int, now_ms: int) -> Dict:
        match: Dict = {"created_at": {"$gte": int(since_ms)}}
        if chain_id is not None:
            match["chain_id"] = int(chain_id)
        try:
            total = await self._col.count_documents(match)
            active = await self._col.count_documents({**match, "expires_at": {"$gt": int(now_ms)}})
            rows = await self._col.aggregate([
                {"$match": match},
                {"$group": {"_id": None, "total_hits": {"$sum": "$hit_count"}, "avg_hits": {"$avg": "$hit_count"}}},
            ]).to_list(length=1)
        except PyMongoError as exc:
            raise PersistenceError("cache stats", exc)
        agg = rows[0] if rows else {}
        return {
            "total_entries": int(total),
            "active_entries": int(active),
            "expired_entries": int(total - active),
            "total_hits": int(agg.get("total_hits") or 0),
            "avg_hits": float(agg.get("avg_hits") or 0.0),
        }
