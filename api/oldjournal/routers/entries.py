"""Journal entry endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, get_current_user_optional
from ..deps import get_db
from ..services import entries as entry_service

router = APIRouter(prefix="", tags=["Entries"])


def entry_summaries(db: Session, entries: list[models.Entry], viewer_id: int | None) -> list[schemas.Entry]:
    """Serialize entries with the comment count this viewer would see."""
    counts = entry_service.comment_counts(db, entries, viewer_id)
    items = []
    for entry in entries:
        item = schemas.Entry.model_validate(entry)
        item.comment_count = counts.get(entry.id, 0)
        items.append(item)
    return items


@router.post("/entries", response_model=schemas.Entry, status_code=status.HTTP_201_CREATED)
def create_entry(
    payload: schemas.EntryCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Entry:
    """Post a new journal entry."""
    entry = entry_service.create_entry(db, current_user, payload)
    return schemas.Entry.model_validate(entry)


@router.get("/entries/{entry_id}", response_model=schemas.Entry)
def get_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.Entry:
    """
    Get a single entry.

    Entries the caller may not read are reported as 404.
    """
    viewer_id = current_user.id if current_user else None
    entry = entry_service.get_entry(db, entry_id, viewer_id)
    return entry_summaries(db, [entry], viewer_id)[0]


@router.patch("/entries/{entry_id}", response_model=schemas.Entry)
def update_entry(
    entry_id: int,
    payload: schemas.EntryUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Entry:
    entry = entry_service.update_entry(db, entry_id, current_user, payload)
    return entry_summaries(db, [entry], current_user.id)[0]


@router.delete("/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> Response:
    """Delete an entry together with all of its comments."""
    entry_service.delete_entry(db, entry_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/users/{handle}/entries", response_model=schemas.Page[schemas.Entry])
def list_user_entries(
    handle: str,
    cursor: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.Page[schemas.Entry]:
    """A user's journal, newest first, limited to entries the caller may read."""
    viewer_id = current_user.id if current_user else None
    entries, next_cursor = entry_service.list_user_entries(db, handle, viewer_id, cursor, limit)
    return schemas.Page(items=entry_summaries(db, entries, viewer_id), next_cursor=next_cursor)


@router.get("/feed", response_model=schemas.Page[schemas.Entry])
def friends_feed(
    cursor: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Page[schemas.Entry]:
    """Own entries plus readable entries from followed users."""
    entries, next_cursor = entry_service.friends_feed(db, current_user, cursor, limit)
    return schemas.Page(items=entry_summaries(db, entries, current_user.id), next_cursor=next_cursor)


@router.get("/recent", response_model=schemas.Page[schemas.Entry])
def recent_entries(
    cursor: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.Page[schemas.Entry]:
    """Latest PUBLIC entries site-wide."""
    viewer_id = current_user.id if current_user else None
    entries, next_cursor = entry_service.recent_public_entries(db, cursor, limit)
    return schemas.Page(items=entry_summaries(db, entries, viewer_id), next_cursor=next_cursor)
