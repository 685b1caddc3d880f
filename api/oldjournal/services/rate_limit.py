"""Rate limiting for anonymous actions.

Two interchangeable backends keep a fixed-window counter per key:
Redis (MULTI pipeline) and the relational database (conditional UPDATEs).
Callers receive one through get_rate_limiter() instead of touching
module-level state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Protocol

import redis
from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from .. import models
from ..cache import get_redis_client
from ..db import SessionLocal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: float | None = None


class RateLimiter(Protocol):
    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        """Count one action for key and report whether it fits in the window."""
        ...


class DatabaseRateLimiter:
    """
    Fixed-window limiter backed by the rate_limit_buckets table.

    Every step is a single conditional statement, so concurrent callers
    cannot both take the last slot: the row is only incremented while
    count < limit, only reset once reset_at has passed, and the first insert
    for a key is arbitrated by the primary key.
    """

    MAX_ATTEMPTS = 3

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        clock: Callable[[], datetime] = models.utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        session: Session = self.session_factory()
        try:
            for _ in range(self.MAX_ATTEMPTS):
                result = self._try_hit(session, key, limit, window_seconds)
                if result is not None:
                    return result
            # Lost every insert race; the competing writer owns the slot.
            return self._denied(session, key)
        finally:
            session.close()

    def _try_hit(self, session: Session, key: str, limit: int, window_seconds: int) -> RateLimitResult | None:
        now = self.clock()
        bucket = models.RateLimitBucket

        # Compare-and-increment inside the current window
        incremented = session.execute(
            update(bucket)
            .where(bucket.key == key, bucket.reset_at > now, bucket.count < limit)
            .values(count=bucket.count + 1)
            .returning(bucket.count)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()
        if incremented is not None:
            session.commit()
            return RateLimitResult(allowed=True, remaining=max(0, limit - incremented))

        # Window elapsed: start a new one
        reset = session.execute(
            update(bucket)
            .where(bucket.key == key, bucket.reset_at <= now)
            .values(count=1, reset_at=now + timedelta(seconds=window_seconds))
            .execution_options(synchronize_session=False)
        )
        if reset.rowcount == 1:
            session.commit()
            return RateLimitResult(allowed=True, remaining=max(0, limit - 1))

        existing = session.execute(select(bucket.reset_at).where(bucket.key == key)).scalar_one_or_none()
        if existing is not None:
            session.rollback()
            if existing > now:
                return RateLimitResult(
                    allowed=False, remaining=0, retry_after=(existing - now).total_seconds()
                )
            # Expired between statements; go around again
            return None

        try:
            session.execute(
                insert(bucket).values(key=key, count=1, reset_at=now + timedelta(seconds=window_seconds))
            )
            session.commit()
        except IntegrityError:
            session.rollback()
            return None
        return RateLimitResult(allowed=True, remaining=max(0, limit - 1))

    def _denied(self, session: Session, key: str) -> RateLimitResult:
        now = self.clock()
        reset_at = session.execute(
            select(models.RateLimitBucket.reset_at).where(models.RateLimitBucket.key == key)
        ).scalar_one_or_none()
        retry_after = (reset_at - now).total_seconds() if reset_at and reset_at > now else 0.0
        return RateLimitResult(allowed=False, remaining=0, retry_after=retry_after)

    def reset(self, key: str) -> None:
        session: Session = self.session_factory()
        try:
            session.query(models.RateLimitBucket).filter(models.RateLimitBucket.key == key).delete()
            session.commit()
        finally:
            session.close()


class RedisRateLimiter:
    """
    Fixed-window limiter on Redis.

    SET NX EX opens the window, INCR counts the hit and TTL reports when the
    window closes; the three run as one MULTI/EXEC transaction. When Redis
    fails mid-request the hit is counted by the fallback limiter instead.
    """

    def __init__(
        self,
        client: redis.Redis,
        prefix: str = "ratelimit",
        fallback: RateLimiter | None = None,
    ) -> None:
        self.client = client
        self.prefix = prefix
        self.fallback = fallback if fallback is not None else DatabaseRateLimiter()

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        redis_key = f"{self.prefix}:{key}"
        pipe = self.client.pipeline(transaction=True)
        pipe.set(redis_key, 0, ex=window_seconds, nx=True)
        pipe.incr(redis_key)
        pipe.ttl(redis_key)
        try:
            _, count, ttl = pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"Redis rate limit check failed for '{redis_key}', using database: {e}")
            return self.fallback.hit(key, limit, window_seconds)

        count = int(count)
        if count > limit:
            retry_after = float(ttl) if ttl and ttl > 0 else 0.0
            logger.debug(f"Rate limit hit for '{redis_key}', retry after {retry_after}s")
            return RateLimitResult(allowed=False, remaining=0, retry_after=retry_after)

        return RateLimitResult(allowed=True, remaining=max(0, limit - count))


def get_rate_limiter() -> RateLimiter:
    """
    Pick the rate limiter backend.

    Redis when REDIS_URL is configured and reachable, the database otherwise.
    """
    client = get_redis_client()
    if client is not None:
        return RedisRateLimiter(client)
    return DatabaseRateLimiter()
