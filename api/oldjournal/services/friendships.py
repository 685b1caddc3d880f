"""Friendship graph: directed "follows" edges between users."""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import Conflict, NotFound
from ..utils.handles import validate_handle

logger = logging.getLogger(__name__)


def get_user_by_handle(db: Session, handle: str) -> models.User:
    """Look a user up by handle, case-insensitively. Malformed handles never match."""
    is_valid, _ = validate_handle(handle)
    if not is_valid:
        raise NotFound("User not found")

    user = db.query(models.User).filter(models.User.handle == handle.lower()).first()
    if not user:
        raise NotFound("User not found")
    return user


def follow_user(db: Session, follower: models.User, followee_id: int) -> models.Friendship:
    """
    Create the edge follower -> followee.

    Duplicates are rejected by the unique constraint on the ordered pair, so
    two concurrent requests cannot both insert.

    Raises:
        Conflict: self-follow, or the edge already exists
        NotFound: the followee does not exist
    """
    if follower.id == followee_id:
        raise Conflict("Cannot follow yourself")

    if db.get(models.User, followee_id) is None:
        raise NotFound("User not found")

    edge = models.Friendship(follower_id=follower.id, following_id=followee_id)
    db.add(edge)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Already following this user")

    db.refresh(edge)
    logger.info(f"User {follower.id} followed user {followee_id}")
    return edge


def unfollow_user(db: Session, follower: models.User, followee_id: int) -> None:
    deleted = (
        db.query(models.Friendship)
        .filter(
            models.Friendship.follower_id == follower.id,
            models.Friendship.following_id == followee_id,
        )
        .delete(synchronize_session=False)
    )
    if not deleted:
        db.rollback()
        raise NotFound("Not following this user")

    db.commit()
    logger.info(f"User {follower.id} unfollowed user {followee_id}")


def toggle_follow(db: Session, follower: models.User, followee_id: int) -> bool:
    """Follow if not following, unfollow otherwise. Returns the new following state."""
    if is_following(db, follower.id, followee_id):
        unfollow_user(db, follower, followee_id)
        return False
    follow_user(db, follower, followee_id)
    return True


def is_following(db: Session, follower_id: int | None, followee_id: int) -> bool:
    if follower_id is None:
        return False
    return (
        db.query(models.Friendship.id)
        .filter(
            models.Friendship.follower_id == follower_id,
            models.Friendship.following_id == followee_id,
        )
        .first()
        is not None
    )


def is_mutual(db: Session, user_a: int, user_b: int) -> bool:
    """Mutual friendship is derived from both directed edges."""
    return is_following(db, user_a, user_b) and is_following(db, user_b, user_a)


def get_friend_ids(db: Session, user_id: int) -> set[int]:
    """Ids of the users that user_id follows (their friends list)."""
    return {
        row.following_id
        for row in db.query(models.Friendship.following_id).filter(models.Friendship.follower_id == user_id)
    }


def get_followers(db: Session, user_id: int) -> list[models.User]:
    """Users following user_id, most recent edge first."""
    return (
        db.query(models.User)
        .join(models.Friendship, models.Friendship.follower_id == models.User.id)
        .filter(models.Friendship.following_id == user_id)
        .order_by(models.Friendship.created_at.desc(), models.Friendship.id.desc())
        .all()
    )


def get_following(db: Session, user_id: int) -> list[models.User]:
    """Users that user_id follows, most recent edge first."""
    return (
        db.query(models.User)
        .join(models.Friendship, models.Friendship.following_id == models.User.id)
        .filter(models.Friendship.follower_id == user_id)
        .order_by(models.Friendship.created_at.desc(), models.Friendship.id.desc())
        .all()
    )
