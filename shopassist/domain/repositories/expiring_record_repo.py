# shopassist/domain/repositories/expiring_record_repo.py
from __future__ import annotations
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Generic, Optional, Type, TypeVar, Union

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, ValidationError
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError
from redis.exceptions import RedisError

from shopassist.core.errors import StorageError
from shopassist.domain.models.cache_entry import ComparisonCacheEntry, SimilarityCacheEntry
from shopassist.utils.locks import KeyedLocks, LockTimeout

logger = logging.getLogger(__name__)

EntryT = TypeVar("EntryT", bound=BaseModel)
LookupKey = Union[int, str]

# Anything the storage stack can throw at us; surfaced as StorageError.
_STORAGE_FAILURES = (PyMongoError, RedisError, ValidationError, LockTimeout)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpiringRecordRepo(Generic[EntryT]):
    """
    "Fresh or nothing" / "replace" persistence for cache rows.

    Each row carries created_at / expires_at. Reads only return rows whose
    expires_at is in the future; writes delete every row for the key and
    insert a new one, serialized per key so a reader never sees two rows.
    Subclasses pick the collection, the lookup field and the entry model.
    """

    collection_name: str
    key_field: str
    entry_model: Type[EntryT]
    unique_key: bool = False

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        *,
        locks: Optional[KeyedLocks] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.col = db[self.collection_name]
        self.locks = locks or KeyedLocks()
        self.clock = clock

    def _lock_key(self, key: LookupKey) -> str:
        return f"{self.collection_name}:{key}"

    async def ensure_indexes(self, ttl_index: bool = True) -> None:
        """
        Lookup index on the key field, plus an optional TTL index so Mongo
        sweeps expired rows in the background. Reads never rely on the sweeper.
        """
        try:
            await self.col.create_index(
                [(self.key_field, ASCENDING), ("created_at", DESCENDING)],
                name=f"{self.key_field}_created_at",
            )
            if self.unique_key:
                await self.col.create_index(self.key_field, unique=True, name=f"{self.key_field}_unique")
            if ttl_index:
                await self.col.create_index("expires_at", expireAfterSeconds=0, name="expires_at_ttl")
        except PyMongoError as e:
            raise StorageError(f"{self.collection_name}: index creation failed: {e}") from e

    async def get_fresh(self, key: LookupKey) -> Optional[EntryT]:
        """Newest non-expired row for `key`, or None. Never returns a stale row."""
        now = self.clock()
        try:
            doc = await self.col.find_one(
                {self.key_field: key, "expires_at": {"$gt": now}},
                {"_id": 0},
                sort=[("created_at", DESCENDING)],
            )
            if not doc:
                logger.debug("%s miss key=%s", self.collection_name, key)
                return None
            entry = self.entry_model.model_validate(doc)
        except _STORAGE_FAILURES as e:
            raise StorageError(f"{self.collection_name}: read failed for key={key}: {e}") from e
        logger.debug("%s hit key=%s expires_at=%s", self.collection_name, key, doc.get("expires_at"))
        return entry

    async def upsert(self, key: LookupKey, payload: Dict[str, Any], ttl: int) -> None:
        """
        Replace whatever is stored under `key` with a single row built from
        `payload`, valid for `ttl` seconds from now.
        """
        now = self.clock()
        doc = {
            **payload,
            self.key_field: key,
            "created_at": now,
            "expires_at": now + timedelta(seconds=ttl),
        }
        try:
            # validate before touching storage so a bad payload never deletes the old row
            self.entry_model.model_validate(doc)
            async with self.locks.hold(self._lock_key(key)):
                deleted = await self.col.delete_many({self.key_field: key})
                await self.col.insert_one(doc)
        except _STORAGE_FAILURES as e:
            raise StorageError(f"{self.collection_name}: write failed for key={key}: {e}") from e
        logger.info(
            "%s saved key=%s replaced=%s expires_at=%s",
            self.collection_name, key, deleted.deleted_count, doc["expires_at"].isoformat(),
        )

    async def invalidate(self, key: LookupKey) -> int:
        """Drop every row stored under `key`. Returns the number of rows removed."""
        try:
            async with self.locks.hold(self._lock_key(key)):
                res = await self.col.delete_many({self.key_field: key})
        except _STORAGE_FAILURES as e:
            raise StorageError(f"{self.collection_name}: invalidate failed for key={key}: {e}") from e
        logger.info("%s invalidated key=%s removed=%s", self.collection_name, key, res.deleted_count)
        return res.deleted_count

    async def purge_expired(self) -> int:
        """Delete rows whose expires_at has passed. Optional; reads already ignore them."""
        try:
            res = await self.col.delete_many({"expires_at": {"$lte": self.clock()}})
        except PyMongoError as e:
            raise StorageError(f"{self.collection_name}: purge failed: {e}") from e
        logger.info("%s purged expired rows=%s", self.collection_name, res.deleted_count)
        return res.deleted_count


class SimilarityCacheRepo(ExpiringRecordRepo[SimilarityCacheEntry]):
    """Rows keyed by source_product_id (int). At most one live row per source."""
    collection_name = "product_similarity_cache"
    key_field = "source_product_id"
    entry_model = SimilarityCacheEntry


class ComparisonCacheRepo(ExpiringRecordRepo[ComparisonCacheEntry]):
    """Rows keyed by the comparison cache key (str, unique)."""
    collection_name = "product_comparison_cache"
    key_field = "cache_key"
    entry_model = ComparisonCacheEntry
    unique_key = True
