"""
Redis caching for the participant event browse list.

What we cache:
  - The list of non-draft events with their organizer summary, before the
    per-participant "followed clubs first" ordering is applied
  - Key: "events:browse:v1"

Invalidation:
  - On publish, on any edit of a non-draft event, and on delete
  - TTL as a safety net (REDIS_CACHE_TTL)
  - View counters and sold counts in the cached copy may lag by up to one
    TTL; the single-event read always goes to the database

Every operation fails open: if Redis is disabled or down the caller simply
queries the database.
"""

import json
from typing import Optional

import redis.asyncio as redis
from felicity.core.config import get_settings
from felicity.core.logging import get_logger
from felicity.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

BROWSE_KEY = "events:browse:v1"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


async def get_cached_browse() -> Optional[list[dict]]:
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(BROWSE_KEY)
    except Exception as e:
        logger.error("cache_get_error", key=BROWSE_KEY, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    return json.loads(data) if data else None


async def set_cached_browse(events: list[dict]) -> None:
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(BROWSE_KEY, settings.REDIS_CACHE_TTL, json.dumps(events, default=str))
        logger.debug("cache_set", key=BROWSE_KEY, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=BROWSE_KEY, error=str(e))


async def invalidate_event_cache() -> None:
    client = await get_redis()
    if not client:
        return

    try:
        deleted = await client.delete(BROWSE_KEY)
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
