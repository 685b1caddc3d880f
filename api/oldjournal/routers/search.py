"""Search endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user_optional
from ..deps import get_db
from ..services.search import search_entries, search_users
from .entries import entry_summaries

router = APIRouter(prefix="/search", tags=["Search"])


@router.get("/entries", response_model=schemas.EntrySearchResults)
def search_entries_endpoint(
    q: str = Query(..., description="Text to look for in subjects and bodies"),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.EntrySearchResults:
    """
    Search entries the caller may read.

    Anonymous callers only search PUBLIC entries.
    """
    viewer_id = current_user.id if current_user else None
    entries = search_entries(db, q, viewer_id, limit=limit)
    return schemas.EntrySearchResults(query=q.strip(), items=entry_summaries(db, entries, viewer_id))


@router.get("/users", response_model=schemas.UserSearchResults)
def search_users_endpoint(
    q: str = Query(..., description="Text to look for in handles and display names"),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
) -> schemas.UserSearchResults:
    rows = search_users(db, q, limit=limit)
    items = [
        schemas.UserSearchResult(
            id=user.id,
            handle=user.handle,
            display_name=user.display_name,
            avatar_url=user.avatar_url,
            entry_count=entry_count or 0,
        )
        for user, entry_count in rows
    ]
    return schemas.UserSearchResults(query=q.strip(), items=items)
