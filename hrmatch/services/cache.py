"""
Content-addressable cache for extraction and pair-scoring results
"""
import asyncio
import hashlib
import json
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple

import motor.motor_asyncio
from pymongo import ASCENDING

from hrmatch.utils.logging_config import get_logger

logger = get_logger(__name__)


def content_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def cache_key(kind: str, content: bytes, label: str = "") -> str:
    """Key derived from the content hash; the label participates so a rename is a miss."""
    digest = content_hash(content)
    if label:
        return f"{kind}_extract_{digest}_{label}"
    return f"{kind}_{digest}"


class CacheStore(Protocol):
    """Key-value store with per-entry TTL. Implementations must not raise."""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...


class InMemoryCacheStore:
    """Process-local store; entries expire lazily against the supplied clock"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        payload, expires = entry
        if expires <= self._clock():
            del self._entries[key]
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        # stored as JSON so callers never share mutable state with the cache
        self._entries[key] = (json.dumps(value, default=str), self._clock() + ttl_seconds)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class MongoCacheStore:
    """Cache entries in a MongoDB collection, expired by a TTL index on expires_at"""

    def __init__(self, collection):
        self.collection = collection

    @classmethod
    def from_uri(cls, uri: str, db_name: str, collection: str) -> "MongoCacheStore":
        client = motor.motor_asyncio.AsyncIOMotorClient(uri)
        logger.info(f"Initializing MongoDB cache store: {db_name}.{collection}")
        return cls(client[db_name][collection])

    async def init_indexes(self) -> None:
        try:
            await self.collection.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)
            logger.debug("Created TTL index on cache.expires_at")
        except Exception as e:
            if "already exists" in str(e).lower():
                logger.debug("TTL index on cache.expires_at already exists")
            else:
                logger.warning(f"Could not create TTL index on cache.expires_at: {e}")

    async def get(self, key: str) -> Optional[Any]:
        try:
            doc = await self.collection.find_one({"_id": key})
        except Exception as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None
        if not doc:
            return None
        expires_at = doc.get("expires_at")
        if expires_at is not None:
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            # the TTL monitor only sweeps periodically
            if expires_at <= datetime.now(timezone.utc):
                return None
        try:
            return json.loads(doc["value"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        try:
            await self.collection.replace_one(
                {"_id": key},
                {"_id": key, "value": json.dumps(value, default=str), "expires_at": expires_at},
                upsert=True,
            )
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")


class ContentAddressableCache:
    """Memoizes expensive calls by content hash.

    Concurrent callers asking for the same key share one pending computation,
    so two simultaneous misses on identical bytes cost a single compute call.
    Any failure of the backing store is treated as a miss.
    """

    def __init__(self, store: CacheStore):
        self.store = store
        self._inflight: Dict[str, "asyncio.Future[Any]"] = {}
        self.hits = 0
        self.misses = 0

    async def get_or_compute(
        self,
        kind: str,
        content: bytes,
        label: str,
        compute: Callable[[], Awaitable[Any]],
        ttl_seconds: int,
    ) -> Any:
        key = cache_key(kind, content, label)

        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug(f"Joining in-flight computation for {key}")
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._load(key, compute, ttl_seconds))
        self._inflight[key] = task
        task.add_done_callback(lambda done, k=key: self._forget(k, done))
        return await asyncio.shield(task)

    def _forget(self, key: str, task: "asyncio.Future[Any]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _load(self, key: str, compute: Callable[[], Awaitable[Any]], ttl_seconds: int) -> Any:
        try:
            cached = await self.store.get(key)
        except Exception as e:
            logger.warning(f"Cache store unavailable on get ({key}): {e}")
            cached = None

        if cached is not None:
            self.hits += 1
            logger.info(f"Cache hit for {key}")
            return cached

        self.misses += 1
        value = await compute()

        try:
            await self.store.set(key, value, ttl_seconds)
            logger.debug(f"Cached {key} for {ttl_seconds}s")
        except Exception as e:
            logger.warning(f"Cache store unavailable on set ({key}): {e}")
        return value
