"""Site-wide activity counters, memoized in Redis when available."""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas, settings
from ..cache import cache_delete, cache_get, cache_set

logger = logging.getLogger(__name__)

STATS_CACHE_KEY = "site-stats"


def _active_users_since(db: Session, since) -> int:
    """Users who posted at least one entry since the given time."""
    return (
        db.query(func.count(func.distinct(models.Entry.owner_id)))
        .filter(models.Entry.created_at >= since)
        .scalar()
        or 0
    )


def compute_site_stats(db: Session) -> schemas.SiteStats:
    now = models.utcnow()
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    one_hour_ago = now - timedelta(hours=1)
    five_minutes_ago = now - timedelta(minutes=5)
    thirty_days_ago = now - timedelta(days=30)

    def count_entries_since(since) -> int:
        return db.query(func.count(models.Entry.id)).filter(models.Entry.created_at >= since).scalar() or 0

    entries_last_five_minutes = count_entries_since(five_minutes_ago)

    return schemas.SiteStats(
        total_users=db.query(func.count(models.User.id)).scalar() or 0,
        active_users=_active_users_since(db, thirty_days_ago),
        active_today=_active_users_since(db, today_start),
        entries_today=count_entries_since(today_start),
        comments_today=db.query(func.count(models.Comment.id))
        .filter(models.Comment.created_at >= today_start)
        .scalar()
        or 0,
        entries_last_hour=count_entries_since(one_hour_ago),
        entries_per_minute=round(entries_last_five_minutes / 5),
    )


def get_site_stats(db: Session) -> schemas.SiteStats:
    """Cached stats, recomputed at most once per STATS_CACHE_TTL_SECONDS."""
    cached = cache_get(STATS_CACHE_KEY)
    if isinstance(cached, dict):
        return schemas.SiteStats.model_validate(cached)

    stats = compute_site_stats(db)
    cache_set(STATS_CACHE_KEY, stats.model_dump(), ttl=settings.STATS_CACHE_TTL_SECONDS)
    logger.debug("Recomputed site stats")
    return stats


def invalidate_site_stats() -> None:
    cache_delete(STATS_CACHE_KEY)
