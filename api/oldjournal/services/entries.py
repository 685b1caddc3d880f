"""Journal entries: CRUD, journals, feeds and viewer-dependent comment counts."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..errors import NotFound, PermissionDenied, ValidationFailed, raise_for_decision
from ..pagination import paginate
from ..utils.comment_tree import count_comments
from ..utils.html import sanitize_html
from ..utils.visibility import Visibility, can_view
from .friendships import get_friend_ids, get_user_by_handle

logger = logging.getLogger(__name__)


# ============================================================================
# ACCESS
# ============================================================================


def owner_friend_ids_for(db: Session, entry: models.Entry, viewer_id: int | None) -> set[int]:
    """Load the owner's friends list only when the FRIENDS rule actually needs it."""
    if entry.visibility != Visibility.FRIENDS.value or viewer_id is None or viewer_id == entry.owner_id:
        return set()
    return get_friend_ids(db, entry.owner_id)


def get_entry_or_404(db: Session, entry_id: int) -> models.Entry:
    entry = (
        db.query(models.Entry)
        .options(joinedload(models.Entry.owner))
        .filter(models.Entry.id == entry_id)
        .first()
    )
    if not entry:
        raise NotFound("Entry not found")
    return entry


def get_entry(db: Session, entry_id: int, viewer_id: int | None) -> models.Entry:
    """
    Fetch an entry the viewer may read.

    A hidden entry raises the same NotFound as a missing one.
    """
    entry = get_entry_or_404(db, entry_id)
    raise_for_decision(can_view(entry, viewer_id, owner_friend_ids_for(db, entry, viewer_id)))
    return entry


def get_owned_entry(db: Session, entry_id: int, editor: models.User) -> models.Entry:
    """Fetch an entry for mutation by its owner."""
    entry = get_entry(db, entry_id, editor.id)
    if entry.owner_id != editor.id:
        raise PermissionDenied("Permission denied")
    return entry


def visible_to(viewer_id: int | None):
    """
    SQL condition equivalent to can_view() for a whole query.

    FRIENDS entries match when their owner follows the viewer.
    """
    if viewer_id is None:
        return models.Entry.visibility == Visibility.PUBLIC.value

    owners_following_viewer = select(models.Friendship.follower_id).where(
        models.Friendship.following_id == viewer_id
    )
    return or_(
        models.Entry.visibility == Visibility.PUBLIC.value,
        models.Entry.owner_id == viewer_id,
        (models.Entry.visibility == Visibility.FRIENDS.value)
        & models.Entry.owner_id.in_(owners_following_viewer),
    )


# ============================================================================
# MUTATIONS
# ============================================================================


def _clean_body(body_html: str) -> str:
    cleaned = sanitize_html(body_html)
    if not cleaned:
        raise ValidationFailed.for_field("body_html", "Entry content is required")
    return cleaned


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def create_entry(db: Session, owner: models.User, payload: schemas.EntryCreate) -> models.Entry:
    entry = models.Entry(
        owner_id=owner.id,
        subject=_blank_to_none(payload.subject),
        body_html=_clean_body(payload.body_html),
        visibility=payload.visibility.value,
        mood=_blank_to_none(payload.mood),
        music=_blank_to_none(payload.music),
        location=_blank_to_none(payload.location),
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info(f"User {owner.id} created entry {entry.id} ({entry.visibility})")
    return entry


def update_entry(db: Session, entry_id: int, editor: models.User, payload: schemas.EntryUpdate) -> models.Entry:
    entry = get_owned_entry(db, entry_id, editor)
    changes = payload.model_dump(exclude_unset=True)

    if "body_html" in changes:
        if changes["body_html"] is None:
            raise ValidationFailed.for_field("body_html", "Entry content is required")
        entry.body_html = _clean_body(changes["body_html"])
    if "visibility" in changes:
        if changes["visibility"] is None:
            raise ValidationFailed.for_field("visibility", "Visibility is required")
        entry.visibility = Visibility(changes["visibility"]).value
    for field in ("subject", "mood", "music", "location"):
        if field in changes:
            setattr(entry, field, _blank_to_none(changes[field]))

    db.commit()
    db.refresh(entry)
    logger.info(f"User {editor.id} updated entry {entry.id}")
    return entry


def delete_entry(db: Session, entry_id: int, editor: models.User) -> None:
    """Hard delete; comments go with the entry."""
    entry = get_owned_entry(db, entry_id, editor)
    db.delete(entry)
    db.commit()
    logger.info(f"User {editor.id} deleted entry {entry_id}")


# ============================================================================
# LISTINGS
# ============================================================================


def _entries_query(db: Session):
    return db.query(models.Entry).options(joinedload(models.Entry.owner))


def list_user_entries(
    db: Session, handle: str, viewer_id: int | None, cursor: str | None = None, limit: int = 20
) -> tuple[list[models.Entry], str | None]:
    """A user's journal, newest first, restricted to what the viewer may read."""
    owner = get_user_by_handle(db, handle)
    query = _entries_query(db).filter(models.Entry.owner_id == owner.id, visible_to(viewer_id))
    return paginate(query, models.Entry, cursor, limit)


def friends_feed(
    db: Session, viewer: models.User, cursor: str | None = None, limit: int = 20
) -> tuple[list[models.Entry], str | None]:
    """The viewer's own entries plus readable entries of everyone they follow."""
    followed = select(models.Friendship.following_id).where(models.Friendship.follower_id == viewer.id)
    query = _entries_query(db).filter(
        or_(models.Entry.owner_id == viewer.id, models.Entry.owner_id.in_(followed)),
        visible_to(viewer.id),
    )
    return paginate(query, models.Entry, cursor, limit)


def recent_public_entries(
    db: Session, cursor: str | None = None, limit: int = 20
) -> tuple[list[models.Entry], str | None]:
    query = _entries_query(db).filter(models.Entry.visibility == Visibility.PUBLIC.value)
    return paginate(query, models.Entry, cursor, limit)


def comment_counts(db: Session, entries: Iterable[models.Entry], viewer_id: int | None) -> dict[int, int]:
    """
    Displayed comment count per entry for this viewer.

    Counts come from the same tree builder the comment pages use, so the
    entry owner may see a different number than other visitors.
    """
    entries = list(entries)
    if not entries:
        return {}

    rows = (
        db.query(
            models.Comment.id,
            models.Comment.entry_id,
            models.Comment.parent_id,
            models.Comment.state,
            models.Comment.created_at,
        )
        .filter(models.Comment.entry_id.in_([e.id for e in entries]))
        .all()
    )

    by_entry: dict[int, list] = defaultdict(list)
    for row in rows:
        by_entry[row.entry_id].append(row)

    return {
        entry.id: count_comments(by_entry.get(entry.id, []), viewer_is_owner=entry.owner_id == viewer_id)
        for entry in entries
    }
