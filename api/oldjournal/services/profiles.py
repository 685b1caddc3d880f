"""User profiles and avatars."""

from __future__ import annotations

import logging
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas, settings
from ..errors import ValidationFailed
from ..storage import StorageAdapter, try_delete
from ..utils.html import sanitize_html
from ..utils.moderation import CommentState
from . import friendships
from .entries import visible_to

logger = logging.getLogger(__name__)

AVATAR_ALLOWED_MIME_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
}

_EXTENSION_TO_MIME = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
}


# ============================================================================
# PROFILE
# ============================================================================


def build_profile(db: Session, user: models.User, viewer: models.User | None) -> schemas.UserProfile:
    """
    Profile as seen by viewer.

    The entry count only covers entries the viewer may read, and the email
    address is only shown to the profile owner.
    """
    viewer_id = viewer.id if viewer else None
    is_own = viewer_id == user.id

    entry_count = (
        db.query(func.count(models.Entry.id))
        .filter(models.Entry.owner_id == user.id, visible_to(viewer_id))
        .scalar()
    )
    comment_count = (
        db.query(func.count(models.Comment.id))
        .filter(models.Comment.author_id == user.id, models.Comment.state != CommentState.DELETED.value)
        .scalar()
    )
    follower_count = (
        db.query(func.count(models.Friendship.id)).filter(models.Friendship.following_id == user.id).scalar()
    )
    following_count = (
        db.query(func.count(models.Friendship.id)).filter(models.Friendship.follower_id == user.id).scalar()
    )
    is_following = not is_own and friendships.is_following(db, viewer_id, user.id)
    is_mutual = is_following and friendships.is_mutual(db, viewer_id, user.id)

    return schemas.UserProfile(
        id=user.id,
        handle=user.handle,
        display_name=user.display_name,
        avatar_url=user.avatar_url,
        bio=user.bio,
        location=user.location,
        website=user.website,
        email=user.email if is_own else None,
        created_at=user.created_at,
        entry_count=entry_count or 0,
        comment_count=comment_count or 0,
        follower_count=follower_count or 0,
        following_count=following_count or 0,
        is_following=is_following,
        is_mutual=is_mutual,
        is_own_profile=is_own,
    )


def update_profile(db: Session, user: models.User, payload: schemas.UserUpdate) -> models.User:
    changes = payload.model_dump(exclude_unset=True)

    if "display_name" in changes:
        display_name = (changes["display_name"] or "").strip()
        if not display_name:
            raise ValidationFailed.for_field("display_name", "Display name is required")
        user.display_name = display_name

    if "bio" in changes:
        bio = sanitize_html(changes["bio"] or "")
        user.bio = bio or None

    for field in ("location", "website"):
        if field in changes:
            value = (changes[field] or "").strip()
            setattr(user, field, value or None)

    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} updated profile fields: {sorted(changes)}")
    return user


# ============================================================================
# AVATAR
# ============================================================================


def resolve_avatar_mime_type(content_type: str | None, filename: str | None) -> str:
    """
    Work out the image type from the upload headers, falling back to the
    file extension.

    Raises:
        ValidationFailed: not a JPEG, PNG or GIF
    """
    mime_type = (content_type or "").lower()
    if mime_type == "image/jpg":
        mime_type = "image/jpeg"

    if mime_type not in AVATAR_ALLOWED_MIME_TYPES:
        name = filename or ""
        ext = name.lower().rsplit(".", 1)[-1] if "." in name else ""
        mime_type = _EXTENSION_TO_MIME.get(ext, "")

    if mime_type not in AVATAR_ALLOWED_MIME_TYPES:
        raise ValidationFailed.for_field("image", "Invalid image format. Allowed formats: PNG, JPEG, GIF")
    return mime_type


def set_avatar(
    db: Session,
    user: models.User,
    content: bytes,
    content_type: str | None,
    filename: str | None,
    storage: StorageAdapter,
) -> models.User:
    """Store a new avatar and drop the superseded file."""
    if not content:
        raise ValidationFailed.for_field("image", "Empty file")
    if len(content) > settings.AVATAR_MAX_BYTES:
        max_mb = settings.AVATAR_MAX_BYTES / (1024 * 1024)
        raise ValidationFailed.for_field("image", f"Image too large. Maximum size is {max_mb:g} MB")

    mime_type = resolve_avatar_mime_type(content_type, filename)
    key = f"avatar_{user.id}_{uuid4().hex}.{AVATAR_ALLOWED_MIME_TYPES[mime_type]}"
    url = storage.upload(content, key)

    old_avatar_url = user.avatar_url
    user.avatar_url = url
    db.commit()
    db.refresh(user)

    try_delete(storage, old_avatar_url)
    logger.info(f"User {user.id} uploaded avatar {key}")
    return user


def clear_avatar(db: Session, user: models.User, storage: StorageAdapter) -> models.User:
    old_avatar_url = user.avatar_url
    user.avatar_url = None
    db.commit()
    db.refresh(user)

    try_delete(storage, old_avatar_url)
    return user
