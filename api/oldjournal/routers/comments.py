"""Comment endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_client_ip, get_current_user, get_current_user_optional
from ..deps import get_db
from ..services import comments as comment_service
from ..services.rate_limit import RateLimiter, get_rate_limiter

router = APIRouter(prefix="", tags=["Comments"])


@router.get("/entries/{entry_id}/comments", response_model=schemas.CommentThread)
def list_comments(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.CommentThread:
    """
    Comment tree of an entry.

    Deleted comments are gone together with their replies. Screened comments
    are shown in full to the entry owner and as placeholders to everyone else.
    """
    viewer_id = current_user.id if current_user else None
    entry, tree = comment_service.get_comment_tree(db, entry_id, viewer_id)
    return comment_service.render_thread(entry, tree)


@router.post(
    "/entries/{entry_id}/comments",
    response_model=schemas.Comment,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    entry_id: int,
    payload: schemas.CommentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> schemas.Comment:
    """
    Comment on an entry, or reply to a comment.

    Anonymous comments need an author_name, are only possible on PUBLIC
    entries and are rate limited per client address.
    """
    comment = comment_service.create_comment(
        db,
        entry_id,
        payload,
        viewer=current_user,
        client_ip=get_client_ip(request),
        limiter=limiter,
    )
    return comment_service.comment_to_schema(comment)


@router.post("/comments/{comment_id}/screen", response_model=schemas.Comment)
def screen_comment(
    comment_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Comment:
    """Hide a comment from everyone but the entry owner. Entry owner only."""
    comment = comment_service.screen_comment(db, comment_id, current_user)
    return comment_service.comment_to_schema(comment)


@router.delete("/comments/{comment_id}", response_model=schemas.Comment)
def delete_comment(
    comment_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Comment:
    """Delete a comment. Allowed for the entry owner and the comment's registered author."""
    comment = comment_service.delete_comment(db, comment_id, current_user)
    return comment_service.comment_to_schema(comment)
