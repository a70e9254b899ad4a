"""
Redis cache of reserved seat ids per schedule.

CACHING STRATEGY
================

What we cache:
  - The sorted list of reserved seat ids for one schedule
  - Key pattern: "schedule:{schedule_id}:reserved_seats"
  - A per-schedule version counter: "schedule:{schedule_id}:seats_version"

Who reads it:
  - The public availability endpoint only. The checkout path never trusts
    the cache; it asks the database and ultimately relies on the unique
    index on booking_seats.

Invalidation:
  - Every write that creates or deletes BookingSeat rows bumps the version
    and deletes the key in one MULTI
  - TTL as a safety net

Refilling without resurrecting stale data:
  A reader misses, queries the database, then writes the result back. A
  checkout can commit and invalidate between the query and the write, and
  the reader would then store a list without the new seats.

  So the reader takes the version BEFORE its query and the write is a
  WATCH/MULTI that only goes through while the version is unchanged.
  A bump in between aborts the write (WatchError or version mismatch) and
  the next reader fills the cache instead.

Failure mode:
  - Fail open. With Redis down or disabled every call is a miss and the
    caller falls back to the database.
"""

import json
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import WatchError
from ticketing.core.config import get_settings
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or down."""
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
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _reserved_seats_key(schedule_id: int) -> str:
    return f"schedule:{schedule_id}:reserved_seats"


def _seats_version_key(schedule_id: int) -> str:
    return f"schedule:{schedule_id}:seats_version"


async def get_cached_reserved_seats(schedule_id: int) -> Optional[list[int]]:
    client = await get_redis()
    if not client:
        return None

    key = _reserved_seats_key(schedule_id)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data is not None:
            return json.loads(data)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def get_seats_version(schedule_id: int) -> Optional[str]:
    """Current invalidation version, "0" before the first write. None when Redis is unusable."""
    client = await get_redis()
    if not client:
        return None

    try:
        version = await client.get(_seats_version_key(schedule_id))
    except Exception as e:
        logger.error("cache_version_error", schedule_id=schedule_id, error=str(e))
        return None
    return version if version is not None else "0"


async def set_cached_reserved_seats(schedule_id: int, seat_ids: list[int], version: Optional[str]) -> bool:
    """
    Store the reserved seat ids, but only if no invalidation happened since
    `version` was read. Returns True when the value was written.
    """
    if version is None:
        return False
    client = await get_redis()
    if not client:
        return False

    key = _reserved_seats_key(schedule_id)
    version_key = _seats_version_key(schedule_id)
    try:
        async with client.pipeline(transaction=True) as pipe:
            await pipe.watch(version_key)
            current = await pipe.get(version_key)
            if (current if current is not None else "0") != version:
                await pipe.unwatch()
                logger.debug("cache_set_skipped", key=key, read_version=version, current_version=current)
                return False
            pipe.multi()
            pipe.setex(key, settings.REDIS_CACHE_TTL, json.dumps(seat_ids))
            await pipe.execute()
        return True
    except WatchError:
        logger.debug("cache_set_skipped", key=key, read_version=version)
        return False
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))
        return False


async def invalidate_schedule_seats(schedule_id: Optional[int]) -> None:
    if schedule_id is None:
        return
    client = await get_redis()
    if not client:
        return

    key = _reserved_seats_key(schedule_id)
    try:
        async with client.pipeline(transaction=True) as pipe:
            pipe.incr(_seats_version_key(schedule_id))
            pipe.delete(key)
            await pipe.execute()
        logger.debug("cache_invalidated", key=key)
    except Exception as e:
        logger.error("cache_invalidation_error", key=key, error=str(e))


async def get_cache_stats() -> dict:
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
