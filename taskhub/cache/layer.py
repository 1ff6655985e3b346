from __future__ import annotations

import asyncio
import fnmatch
import json
from typing import Any, Awaitable, Callable, Iterable, Optional

import structlog
from cachetools import TTLCache
from redis.asyncio import Redis, RedisError

from taskhub.core.config import Settings, get_settings

logger = structlog.get_logger(__name__)


class CacheLayer:
    """
    Two-tier cache.

    L1: Process-local TTLCache (fast, limited size)
    L2: Redis (shared, larger capacity)

    Features:
    - Stampede protection with per-key locks
    - Graceful degradation when Redis is unavailable (L1 only)
    - Automatic key namespacing
    - Pattern deletion over both tiers
    - Reverse index from a scope (e.g. an owner) to the keys cached for it
    """

    def __init__(self, settings: Settings | None = None):
        self._settings = settings
        self._redis: Redis | None = None
        self.l1: TTLCache | None = None
        # scope -> keys, kept only for the "index" invalidation strategy
        self._index: TTLCache | None = None
        self._initialized = False

        # Lock management for cache stampede protection: all concurrent
        # callers for one key share the lock handed out by setdefault().
        # Bounded, and evicted well after any loader could still be running.
        self._locks: TTLCache = TTLCache(maxsize=10_000, ttl=300)

        # Stats tracking
        self.stats = {
            "l1_hits": 0,
            "l2_hits": 0,
            "misses": 0,
            "errors": 0,
        }

    @property
    def redis_available(self) -> bool:
        return self._redis is not None

    @property
    def indexes_scopes(self) -> bool:
        return self._settings.cache_invalidation == "index"

    async def init_cache(self):
        """Initialize settings, L1 cache, and Redis connection."""
        if self._initialized:
            return

        if self._settings is None:
            self._settings = get_settings()

        settings = self._settings

        # Initialize L1 Cache
        if self.l1 is None:
            self.l1 = TTLCache(maxsize=settings.l1_maxsize, ttl=settings.l1_ttl_seconds)

        if self._index is None:
            self._index = TTLCache(maxsize=settings.cache_index_maxsize, ttl=self._index_ttl)

        if settings.redis_dsn and self._redis is None:
            redis = Redis.from_url(
                settings.redis_dsn,
                encoding="utf-8",
                decode_responses=True,
                max_connections=settings.redis_pool_size,
                socket_connect_timeout=5,
                socket_keepalive=True,
                health_check_interval=30,
            )
            try:
                # Verify connection
                await redis.ping()
                self._redis = redis
                logger.info("Redis connection established")
            except RedisError as e:
                # Allow degraded operation (L1 only)
                logger.warning("Redis unavailable, running L1 only", error=str(e))
                await redis.aclose()

        self._initialized = True
        logger.info("Cache layer initialized", redis=self.redis_available)

    def _l1_key(self, key: str) -> str:
        """Build namespaced L1 cache key."""
        return f"{self._settings.cache_namespace}l1:{key}"

    def _l2_key(self, key: str) -> str:
        """Build namespaced L2 cache key."""
        return f"{self._settings.cache_namespace}l2:{key}"

    def _index_key(self, scope: str) -> str:
        return f"{self._settings.cache_namespace}index:{scope}"

    @property
    def _index_ttl(self) -> int:
        # outlives every value an index can list
        s = self._settings
        return max(s.l2_ttl_seconds, s.task_cache_ttl, s.stats_cache_ttl, s.tag_cache_ttl)

    def _serialize(self, value: Any) -> str:
        return json.dumps(value, default=str)

    def _deserialize(self, raw: str) -> Any:
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # Return raw string if not valid JSON
            return raw

    def _get_lock_for_key(self, key: str) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    async def _lookup(self, key: str) -> tuple[bool, Any]:
        """Check L1 then L2. Returns (hit, value)."""
        l1_key = self._l1_key(key)
        if l1_key in self.l1:
            self.stats["l1_hits"] += 1
            logger.debug("L1 hit", key=key)
            return True, self.l1[l1_key]

        if self._redis:
            try:
                raw = await self._redis.get(self._l2_key(key))
            except RedisError as e:
                logger.warning("Redis GET error", key=key, error=str(e))
                self.stats["errors"] += 1
                return False, None
            if raw is not None:
                self.stats["l2_hits"] += 1
                logger.debug("L2 hit", key=key)
                value = self._deserialize(raw)
                # Populate L1
                self.l1[l1_key] = value
                return True, value

        return False, None

    async def get(
        self,
        key: str,
        loader: Optional[Callable[[], Awaitable[Any]]] = None,
        ttl: Optional[int] = None,
        scopes: Iterable[str] = (),
    ):
        """
        Retrieve value from cache hierarchy: L1 -> L2 -> loader.

        Args:
            key: Cache key (will be namespaced automatically)
            loader: Async function to load value on cache miss
            ttl: TTL for L2 cache in seconds (uses default if None)
            scopes: Reverse-index scopes the loaded value is registered under

        Returns:
            Cached value or loaded value, or None if not found
        """
        await self.init_cache()

        hit, value = await self._lookup(key)
        if hit:
            return value

        if loader is None:
            self.stats["misses"] += 1
            logger.debug("Cache miss, no loader", key=key)
            return None

        # Acquire per-key lock for stampede protection
        async with self._get_lock_for_key(key):
            # Double-check caches after acquiring lock
            hit, value = await self._lookup(key)
            if hit:
                return value

            self.stats["misses"] += 1
            logger.debug("Loading from source", key=key)
            value = await loader()

            if value is None:
                return None

            await self._set_both_layers(key, value, ttl, scopes)
            return value

    async def _set_both_layers(
        self, key: str, value: Any, ttl: int | None, scopes: Iterable[str]
    ):
        # Always set L1 (it's local and fast)
        self.l1[self._l1_key(key)] = value
        ttl = ttl or self._settings.l2_ttl_seconds
        if not self.indexes_scopes:
            scopes = ()

        for scope in scopes:
            keys = self._index.get(scope, set())
            keys.add(key)
            # reassigning restarts the scope's TTL, so it outlives its newest key
            self._index[scope] = keys

        if not self._redis:
            return

        try:
            await self._redis.set(self._l2_key(key), self._serialize(value), ex=ttl)
            for scope in scopes:
                index_key = self._index_key(scope)
                await self._redis.sadd(index_key, key)
                await self._redis.expire(index_key, self._index_ttl)
            logger.debug("Stored in L2", key=key, ttl=ttl)
        except RedisError as e:
            logger.warning("Redis SET error", key=key, error=str(e))
            self.stats["errors"] += 1

    async def set(
        self, key: str, value: Any, ttl: Optional[int] = None, scopes: Iterable[str] = ()
    ):
        """Explicitly set a value in both cache layers."""
        await self.init_cache()
        await self._set_both_layers(key, value, ttl, scopes)

    async def delete(self, key: str):
        """
        Delete a key from both cache layers.

        Deleting from Redis is critical to prevent stale data.
        """
        await self.init_cache()
        await self._delete_many([key])

    async def _delete_many(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        for key in keys:
            self.l1.pop(self._l1_key(key), None)

        if self._redis and keys:
            try:
                await self._redis.delete(*(self._l2_key(k) for k in keys))
            except RedisError as e:
                logger.warning("Redis DELETE error", keys=len(keys), error=str(e))
                self.stats["errors"] += 1
        return len(keys)

    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching a glob pattern from both layers."""
        await self.init_cache()

        l1_pattern = self._l1_key(pattern)
        l1_matches = [k for k in list(self.l1.keys()) if fnmatch.fnmatchcase(k, l1_pattern)]
        for k in l1_matches:
            self.l1.pop(k, None)
        deleted_count = len(l1_matches)

        if self._redis:
            try:
                cursor = 0
                while True:
                    cursor, keys = await self._redis.scan(
                        cursor, match=self._l2_key(pattern), count=100
                    )
                    if keys:
                        await self._redis.delete(*keys)
                        deleted_count += len(keys)
                    if cursor == 0:
                        break
            except RedisError as e:
                logger.warning("Pattern delete error", pattern=pattern, error=str(e))
                self.stats["errors"] += 1

        logger.debug("Pattern delete completed", pattern=pattern, deleted=deleted_count)
        return deleted_count

    async def keys_for_scope(self, scope: str) -> set[str]:
        await self.init_cache()
        keys = set(self._index.get(scope, ()))
        if self._redis:
            try:
                keys |= set(await self._redis.smembers(self._index_key(scope)))
            except RedisError as e:
                logger.warning("Redis SMEMBERS error", scope=scope, error=str(e))
                self.stats["errors"] += 1
        return keys

    async def delete_scope(self, scope: str) -> int:
        """Delete every key registered under a scope, then forget the scope."""
        keys = await self.keys_for_scope(scope)
        deleted = await self._delete_many(keys)
        self._index.pop(scope, None)
        if self._redis:
            try:
                await self._redis.delete(self._index_key(scope))
            except RedisError as e:
                logger.warning("Redis DELETE error", scope=scope, error=str(e))
                self.stats["errors"] += 1
        logger.debug("Scope delete completed", scope=scope, deleted=deleted)
        return deleted

    async def close(self):
        """Graceful shutdown of cache connections."""
        if self._redis:
            try:
                await self._redis.aclose()
                logger.info("Redis connection closed")
            except RedisError as e:
                logger.warning("Error closing Redis", error=str(e))
            self._redis = None
        self._initialized = False

    def get_stats(self) -> dict:
        """Get cache statistics."""
        total = self.stats["l1_hits"] + self.stats["l2_hits"] + self.stats["misses"]

        return {
            **self.stats,
            "l1_size": len(self.l1) if self.l1 is not None else 0,
            "l1_maxsize": self.l1.maxsize if self.l1 is not None else 0,
            "index_size": len(self._index) if self._index is not None else 0,
            "redis": self.redis_available,
            "hit_rate": (
                (self.stats["l1_hits"] + self.stats["l2_hits"]) / total
                if total > 0
                else 0
            ),
        }


# Cache layer instance (singleton per worker)
cache_layer = CacheLayer()


def get_cache() -> CacheLayer:
    return cache_layer
