"""Comment threads: listing, posting and moderation."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from .. import models, schemas, settings
from ..errors import NotFound, RateLimited, ValidationFailed, raise_for_decision, raise_for_moderation
from ..utils.authors import AnonymousAuthor, RegisteredAuthor
from ..utils.comment_tree import SCREENED_PLACEHOLDER, CommentNode, CommentTree, build_comment_tree
from ..utils.html import sanitize_html
from ..utils.moderation import ACTION_TARGETS, CommentState, ModerationAction, can_moderate, transition
from ..utils.visibility import can_comment, can_view
from .entries import get_entry, get_entry_or_404, owner_friend_ids_for
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)


def rate_limit_key(client_ip: str) -> str:
    return f"comment:{client_ip}"


# ============================================================================
# READ
# ============================================================================


def get_comment_tree(db: Session, entry_id: int, viewer_id: int | None) -> tuple[models.Entry, CommentTree]:
    """Load every comment of a readable entry and build the viewer's tree."""
    entry = get_entry(db, entry_id, viewer_id)
    comments = (
        db.query(models.Comment)
        .options(joinedload(models.Comment.author_user))
        .filter(models.Comment.entry_id == entry.id)
        .all()
    )
    return entry, build_comment_tree(comments, viewer_is_owner=viewer_id == entry.owner_id)


def _node_to_schema(node: CommentNode, replies: list[schemas.Comment]) -> schemas.Comment:
    comment: models.Comment = node.comment
    if node.placeholder:
        return schemas.Comment(
            id=comment.id,
            entry_id=comment.entry_id,
            parent_id=comment.parent_id,
            body_html=SCREENED_PLACEHOLDER,
            state=CommentState.SCREENED,
            placeholder=True,
            created_at=comment.created_at,
            replies=replies,
        )

    return schemas.Comment(
        id=comment.id,
        entry_id=comment.entry_id,
        parent_id=comment.parent_id,
        author=schemas.UserSummary.model_validate(comment.author_user) if comment.author_user else None,
        author_name=comment.author_name,
        body_html=comment.body_html,
        state=comment.comment_state,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        replies=replies,
    )


def render_thread(entry: models.Entry, tree: CommentTree) -> schemas.CommentThread:
    return schemas.CommentThread(entry_id=entry.id, count=tree.count, items=tree.render(_node_to_schema))


def comment_to_schema(comment: models.Comment) -> schemas.Comment:
    """Single comment as its author sees it right after posting."""
    return _node_to_schema(CommentNode(comment=comment), [])


# ============================================================================
# CREATE
# ============================================================================


def create_comment(
    db: Session,
    entry_id: int,
    payload: schemas.CommentCreate,
    viewer: models.User | None,
    client_ip: str,
    limiter: RateLimiter,
) -> models.Comment:
    """
    Post a comment or a reply.

    Order of checks: entry access, author name, parent, body, and only then
    the anonymous rate limit, so rejected requests do not use up quota.

    Raises:
        NotFound: entry hidden or missing
        ValidationFailed: missing author name, bad parent, empty body
        RateLimited: anonymous quota for this origin exhausted
    """
    viewer_id = viewer.id if viewer else None
    entry = get_entry_or_404(db, entry_id)

    author_name = (payload.author_name or "").strip()
    decision = can_comment(
        entry,
        viewer_id,
        has_author_name=bool(author_name),
        owner_friend_ids=owner_friend_ids_for(db, entry, viewer_id),
    )
    raise_for_decision(decision)

    if payload.parent_id is not None:
        parent = db.get(models.Comment, payload.parent_id)
        if (
            parent is None
            or parent.entry_id != entry.id
            or parent.state == CommentState.DELETED.value
        ):
            raise ValidationFailed.for_field("parent_id", "Invalid parent comment")

    body_html = sanitize_html(payload.body_html)
    if not body_html:
        raise ValidationFailed.for_field("body_html", "Comment content is required")

    if viewer is None:
        result = limiter.hit(
            rate_limit_key(client_ip),
            settings.ANON_COMMENT_LIMIT,
            settings.ANON_COMMENT_WINDOW_SECONDS,
        )
        if not result.allowed:
            logger.info(f"Anonymous comment from {client_ip} rejected by rate limit")
            raise RateLimited(result.retry_after or 0)

    author = RegisteredAuthor(user_id=viewer.id) if viewer else AnonymousAuthor(display_name=author_name)
    comment = models.Comment.create(
        entry_id=entry.id,
        author=author,
        body_html=body_html,
        parent_id=payload.parent_id,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)

    logger.info(
        f"Comment {comment.id} posted on entry {entry.id} by "
        f"{'user ' + str(viewer.id) if viewer else 'anonymous ' + client_ip}"
    )
    return comment


# ============================================================================
# MODERATION
# ============================================================================


def get_comment_or_404(db: Session, comment_id: UUID) -> models.Comment:
    comment = (
        db.query(models.Comment)
        .options(joinedload(models.Comment.entry))
        .filter(models.Comment.id == comment_id)
        .first()
    )
    if not comment:
        raise NotFound("Comment not found")
    return comment


def moderate_comment(
    db: Session, comment_id: UUID, viewer: models.User, action: ModerationAction
) -> models.Comment:
    """
    Apply a moderation action.

    Repeating an action the comment already reflects changes nothing.
    Comments on entries the viewer cannot read are reported as missing,
    except that registered authors may always delete their own comments.
    """
    comment = get_comment_or_404(db, comment_id)
    entry = comment.entry

    own_delete = action is ModerationAction.DELETE and comment.author_id == viewer.id
    if not own_delete:
        raise_for_decision(
            can_view(entry, viewer.id, owner_friend_ids_for(db, entry, viewer.id)),
            not_found="Comment not found",
        )
    raise_for_moderation(can_moderate(comment, entry.owner_id, viewer.id, action))

    current = comment.comment_state
    target = transition(current, ACTION_TARGETS[action])
    if target is current:
        return comment

    comment.state = target.value
    db.commit()
    db.refresh(comment)
    logger.info(f"User {viewer.id} moved comment {comment.id} from {current.value} to {target.value}")
    return comment


def screen_comment(db: Session, comment_id: UUID, viewer: models.User) -> models.Comment:
    return moderate_comment(db, comment_id, viewer, ModerationAction.SCREEN)


def delete_comment(db: Session, comment_id: UUID, viewer: models.User) -> models.Comment:
    """Soft delete: the row stays, the comment and its replies vanish from every tree."""
    return moderate_comment(db, comment_id, viewer, ModerationAction.DELETE)
