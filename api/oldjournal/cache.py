"""Optional Redis connection shared by the stats cache and the rate limiter.

Everything here degrades to a no-op when REDIS_URL is unset or Redis is
down; callers then recompute or fall back to the database.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis

from . import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "oldjournal"

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis | None:
    """Shared client, or None when Redis is not configured or not reachable."""
    global _redis_client

    if not settings.REDIS_URL:
        return None
    if _redis_client is not None:
        return _redis_client

    try:
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable at startup of this worker: {e}")
        return None

    logger.info("Connected to Redis")
    _redis_client = client
    return _redis_client


def _namespaced(key: str) -> str:
    return f"{KEY_PREFIX}:{key}"


def cache_get(key: str) -> Any | None:
    """JSON value stored under key, or None on a miss or any Redis failure."""
    client = get_redis_client()
    if client is None:
        return None

    try:
        raw = client.get(_namespaced(key))
    except redis.RedisError as e:
        logger.warning(f"Cache read failed for '{key}': {e}")
        return None

    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Discarding undecodable cache value for '{key}'")
        return None


def cache_set(key: str, value: Any, ttl: int) -> bool:
    """Store a JSON-serializable value for ttl seconds. Returns False when nothing was stored."""
    client = get_redis_client()
    if client is None:
        return False

    try:
        client.setex(_namespaced(key), ttl, json.dumps(value, default=str))
    except redis.RedisError as e:
        logger.warning(f"Cache write failed for '{key}': {e}")
        return False
    return True


def cache_delete(key: str) -> bool:
    client = get_redis_client()
    if client is None:
        return False

    try:
        return bool(client.delete(_namespaced(key)))
    except redis.RedisError as e:
        logger.warning(f"Cache delete failed for '{key}': {e}")
        return False
