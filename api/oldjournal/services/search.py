"""Substring search over entries and users."""

from __future__ import annotations

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..errors import ValidationFailed
from .entries import visible_to

MIN_QUERY_LENGTH = 2


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _normalize_query(query: str | None) -> str:
    q = (query or "").strip()
    if len(q) < MIN_QUERY_LENGTH:
        raise ValidationFailed.for_field("q", f"Search query must be at least {MIN_QUERY_LENGTH} characters")
    return q


def search_entries(db: Session, query: str | None, viewer_id: int | None, limit: int = 20) -> list[models.Entry]:
    """
    Entries whose subject or body contains the query, newest first.

    Only entries the viewer may read are considered.
    """
    pattern = _like_pattern(_normalize_query(query))
    return (
        db.query(models.Entry)
        .options(joinedload(models.Entry.owner))
        .filter(
            or_(
                models.Entry.subject.ilike(pattern, escape="\\"),
                models.Entry.body_html.ilike(pattern, escape="\\"),
            ),
            visible_to(viewer_id),
        )
        .order_by(models.Entry.created_at.desc(), models.Entry.id.desc())
        .limit(limit)
        .all()
    )


def search_users(db: Session, query: str | None, limit: int = 10) -> list[tuple[models.User, int]]:
    """Users matching on handle or display name, with their entry counts."""
    pattern = _like_pattern(_normalize_query(query))
    entry_count = (
        db.query(func.count(models.Entry.id))
        .filter(models.Entry.owner_id == models.User.id)
        .correlate(models.User)
        .scalar_subquery()
    )
    return (
        db.query(models.User, entry_count.label("entry_count"))
        .filter(
            or_(
                models.User.handle.ilike(pattern, escape="\\"),
                models.User.display_name.ilike(pattern, escape="\\"),
            )
        )
        .order_by(models.User.handle.asc())
        .limit(limit)
        .all()
    )
