import logging

import redis.asyncio as redis

from bizcomment.config import settings

logger = logging.getLogger(__name__)

# INCRBY keeps the key's TTL; the EXISTS guard stops a cold key from being
# materialized with a partial count.
_INCR_IF_PRESENT = """
if redis.call("EXISTS", KEYS[1]) == 1 then
    return redis.call("INCRBY", KEYS[1], ARGV[1])
end
return false
"""


class CommentCountCache:
    """
    Cache-aside shadow of the per-object comment count, backed by Redis.

    The cache has no authority: every value can be dropped and recomputed
    from the database.  Unlike a fail-silent cache, Redis errors are raised
    to the caller so the repository can tell a miss from an outage and log
    the downgrade.  When no connection was ever opened the cache is
    disabled: reads report a miss and writes are skipped.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        # Ping to surface mis-configuration early (non-fatal).
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except redis.RedisError as exc:  # pragma: no cover
            logger.warning("Redis ping failed, count cache will fall back to the database: %s", exc)

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @property
    def client(self) -> redis.Redis | None:
        return self._redis

    # ------------------------------------------------------------------
    # Count operations
    # ------------------------------------------------------------------

    @staticmethod
    def count_key(biz: int, biz_id: int) -> str:
        return f"comments:count:{int(biz)}:{biz_id}"

    async def get_count(self, biz: int, biz_id: int) -> int | None:
        """Return the cached count, or None on a miss."""
        if not self._redis:
            self._misses += 1
            return None
        data = await self._redis.get(self.count_key(biz, biz_id))
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return int(data)

    async def set_count(self, biz: int, biz_id: int, count: int, ttl: int | None = None) -> None:
        if not self._redis:
            return
        await self._redis.set(
            self.count_key(biz, biz_id),
            count,
            ex=ttl if ttl is not None else settings.CACHE_TTL_COMMENT_COUNT,
        )

    async def incr_if_present(self, biz: int, biz_id: int) -> bool:
        """Add one to a cached count.  Returns False when the key is cold."""
        return await self._incr_by_if_present(biz, biz_id, 1)

    async def decr_if_present(self, biz: int, biz_id: int) -> bool:
        """Subtract one from a cached count.  Returns False when the key is cold."""
        return await self._incr_by_if_present(biz, biz_id, -1)

    async def _incr_by_if_present(self, biz: int, biz_id: int, delta: int) -> bool:
        if not self._redis:
            return False
        result = await self._redis.eval(_INCR_IF_PRESENT, 1, self.count_key(biz, biz_id), delta)
        return result is not None

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for metrics endpoints."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0


# Module-level singleton shared across all request handlers.
cache = CommentCountCache()
