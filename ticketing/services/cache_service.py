"""
Redis caching service for public event listings.

CACHING STRATEGY
================

What we cache:
  - Public event listing responses (paginated + filtered, JSON-serialized)
  - Cache key pattern:
    "events:list:page={page}&limit={limit}&category={category}&city={city}&date={date}"

Why:
  - The public listing is the most frequent read on the platform
  - The data changes infrequently compared to how often it is read

Invalidation strategy:
  - On event create/update/status change: delete all event list keys
  - On reservation/payment: delete all event list keys (available counts move)
  - TTL-based expiry as safety net (REDIS_CACHE_TTL, 5 minutes)

  All event list keys start with "events:list:" so we can SCAN and delete them.

Why NOT cache individual events:
  - Checkout reads the live ticket type counters; a stale detail page
    would advertise sold-out ticket types as available
"""

import json
from typing import Optional

from ticketing.core.config import get_settings
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_cache_operation
from ticketing.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()

EVENT_LIST_PREFIX = "events:list:"


def _make_event_list_key(
    page: int,
    limit: int,
    category: Optional[str],
    city: Optional[str],
    date: Optional[str],
) -> str:
    return (
        f"{EVENT_LIST_PREFIX}page={page}&limit={limit}"
        f"&category={category or ''}&city={(city or '').lower()}&date={date or ''}"
    )


async def get_cached_events(
    page: int,
    limit: int,
    category: Optional[str] = None,
    city: Optional[str] = None,
    date: Optional[str] = None,
) -> Optional[dict]:
    """Retrieve cached event list response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_event_list_key(page, limit, category, city, date)
    try:
        data = await client.get(key)
        if data:
            record_cache_operation("get", hit=True)
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        record_cache_operation("get", hit=False)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_events(
    page: int,
    limit: int,
    category: Optional[str],
    city: Optional[str],
    date: Optional[str],
    data: dict,
) -> None:
    """Cache event list response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_event_list_key(page, limit, category, city, date)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    """
    Invalidate all cached event listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{EVENT_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
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
