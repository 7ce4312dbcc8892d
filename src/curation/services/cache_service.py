"""Cache facade used by the slug/uniqueness service.

Two backends share one interface:
- RedisCache: JSON values in Redis, tags stored as Redis sets (tag:{name})
- LocalCache: cachetools TLRUCache with a per-entry TTL, for a single process and tests

Tags group keys that must be dropped together. A slug uniqueness answer is
cached once per exclude_id, so all variants are tagged with the slug and a
single invalidate_tags call clears them.
"""

import json
import logging
import time
from collections.abc import Iterable
from typing import Any

from cachetools import TLRUCache
from redis.asyncio import Redis
from redis.exceptions import RedisError

from curation.core.config import settings
from curation.core.redis import get_redis
from curation.services.catalog_store import StoreUnavailableError

logger = logging.getLogger(__name__)

TAG_PREFIX = "tag:"


class CacheBackend:
    """Interface every cache backend implements."""

    async def get(self, key: str) -> Any | None:
        raise NotImplementedError

    async def set(self, key: str, value: Any, ttl: int, tags: Iterable[str] = ()) -> None:
        raise NotImplementedError

    async def delete(self, *keys: str) -> int:
        raise NotImplementedError

    async def invalidate_tags(self, *tags: str) -> int:
        raise NotImplementedError


class RedisCache(CacheBackend):
    """Redis-backed cache. Connection failures surface as StoreUnavailableError."""

    def __init__(self, redis: Redis):
        """Initialize with an async Redis client.

        Args:
            redis: Client from curation.core.redis.get_redis (decode_responses=True)
        """
        self.redis = redis

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self.redis.get(key)
        except RedisError as e:
            raise StoreUnavailableError(f"Cache read failed for {key}") from e
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int, tags: Iterable[str] = ()) -> None:
        """Store a JSON-encoded value and register it under each tag.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl: Time to live in seconds
            tags: Tag names the key belongs to
        """
        pipe = self.redis.pipeline()
        pipe.set(key, json.dumps(value), ex=ttl)
        for tag in tags:
            tag_key = f"{TAG_PREFIX}{tag}"
            pipe.sadd(tag_key, key)
            # Tag TTL tracks its longest-lived member. GT needs Redis >= 7.0
            pipe.expire(tag_key, ttl, nx=True)
            pipe.expire(tag_key, ttl, gt=True)
        try:
            await pipe.execute()
        except RedisError as e:
            raise StoreUnavailableError(f"Cache write failed for {key}") from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self.redis.delete(*keys)
        except RedisError as e:
            raise StoreUnavailableError("Cache delete failed") from e

    async def invalidate_tags(self, *tags: str) -> int:
        """Delete every key registered under the given tags, then the tag sets.

        Returns:
            Number of Redis keys removed
        """
        removed = 0
        try:
            for tag in tags:
                tag_key = f"{TAG_PREFIX}{tag}"
                members = await self.redis.smembers(tag_key)
                removed += await self.redis.delete(*members, tag_key)
        except RedisError as e:
            raise StoreUnavailableError("Cache tag invalidation failed") from e
        logger.debug(f"Invalidated tags {tags}: {removed} keys removed")
        return removed


def _entry_expiry(key: str, entry: tuple[Any, int], now: float) -> float:
    return now + entry[1]


class _EvictingTLRUCache(TLRUCache):
    """TLRUCache that reports every key it expires or evicts."""

    def __init__(self, *args, on_evict, **kwargs):
        super().__init__(*args, **kwargs)
        self._on_evict = on_evict

    def expire(self, time=None):
        expired = super().expire(time)
        for key, _ in expired:
            self._on_evict(key)
        return expired

    def popitem(self):
        key, value = super().popitem()
        self._on_evict(key)
        return key, value


class LocalCache(CacheBackend):
    """In-process cache. Not shared between workers.

    The tag index only holds keys that are still cached: expired and evicted
    keys are unlinked from their tags.
    """

    def __init__(self, maxsize: int | None = None, timer=time.monotonic):
        self._data = _EvictingTLRUCache(
            maxsize=maxsize or settings.LOCAL_CACHE_MAXSIZE,
            ttu=_entry_expiry,
            timer=timer,
            on_evict=self._unlink,
        )
        self._tags: dict[str, set[str]] = {}
        self._key_tags: dict[str, set[str]] = {}

    def _unlink(self, key: str) -> None:
        for tag in self._key_tags.pop(key, ()):
            members = self._tags.get(tag)
            if members is None:
                continue
            members.discard(key)
            if not members:
                del self._tags[tag]

    def expire(self) -> None:
        """Drop expired entries and their tag links."""
        self._data.expire()

    async def get(self, key: str) -> Any | None:
        self.expire()
        entry = self._data.get(key)
        return None if entry is None else entry[0]

    async def set(self, key: str, value: Any, ttl: int, tags: Iterable[str] = ()) -> None:
        self._data[key] = (value, ttl)
        for tag in tags:
            self._tags.setdefault(tag, set()).add(key)
            self._key_tags.setdefault(key, set()).add(tag)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
            self._unlink(key)
        return removed

    async def invalidate_tags(self, *tags: str) -> int:
        self.expire()
        removed = 0
        for tag in tags:
            removed += await self.delete(*self._tags.pop(tag, set()))
        return removed

    def clear(self) -> None:
        self._data.clear()
        self._tags.clear()
        self._key_tags.clear()


_local_cache: LocalCache | None = None


async def get_cache() -> CacheBackend:
    """Return the configured cache backend."""
    global _local_cache
    if settings.CACHE_BACKEND == "local":
        if _local_cache is None:
            _local_cache = LocalCache()
        return _local_cache
    if settings.CACHE_BACKEND == "redis":
        return RedisCache(await get_redis())
    raise ValueError(f"Unknown cache backend: {settings.CACHE_BACKEND}")
