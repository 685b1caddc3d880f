"""User profile, avatar and follow endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, get_current_user_optional
from ..deps import get_db
from ..services import friendships, profiles
from ..storage import StorageAdapter, get_storage

router = APIRouter(prefix="/users", tags=["Users"])


# ============================================================================
# OWN PROFILE
# ============================================================================


@router.get("/me", response_model=schemas.UserProfile)
def get_me(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserProfile:
    return profiles.build_profile(db, current_user, current_user)


@router.patch("/me", response_model=schemas.UserProfile)
def update_me(
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserProfile:
    """Update display name, bio, location or website."""
    user = profiles.update_profile(db, current_user, payload)
    return profiles.build_profile(db, user, user)


@router.post("/me/avatar", response_model=schemas.UserProfile, status_code=status.HTTP_201_CREATED)
async def upload_avatar(
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    storage: StorageAdapter = Depends(get_storage),
) -> schemas.UserProfile:
    """
    Upload a user avatar.

    Stores raw bytes as-uploaded (no re-encoding) so animated GIFs stay animated.
    """
    file_content = await image.read()
    user = profiles.set_avatar(
        db,
        current_user,
        file_content,
        content_type=image.content_type,
        filename=image.filename,
        storage=storage,
    )
    return profiles.build_profile(db, user, user)


@router.delete("/me/avatar", response_model=schemas.UserProfile)
def delete_avatar(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    storage: StorageAdapter = Depends(get_storage),
) -> schemas.UserProfile:
    """Clear the avatar; the stored file is removed on a best-effort basis."""
    user = profiles.clear_avatar(db, current_user, storage)
    return profiles.build_profile(db, user, user)


# ============================================================================
# OTHER PROFILES
# ============================================================================


@router.get("/{handle}", response_model=schemas.UserProfile)
def get_profile(
    handle: str,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.UserProfile:
    user = friendships.get_user_by_handle(db, handle)
    return profiles.build_profile(db, user, current_user)


@router.get("/{handle}/followers", response_model=list[schemas.UserSummary])
def list_followers(handle: str, db: Session = Depends(get_db)) -> list[schemas.UserSummary]:
    """Users following this user, most recent first."""
    user = friendships.get_user_by_handle(db, handle)
    return [schemas.UserSummary.model_validate(u) for u in friendships.get_followers(db, user.id)]


@router.get("/{handle}/following", response_model=list[schemas.UserSummary])
def list_following(handle: str, db: Session = Depends(get_db)) -> list[schemas.UserSummary]:
    """Users this user follows (their friends list), most recent first."""
    user = friendships.get_user_by_handle(db, handle)
    return [schemas.UserSummary.model_validate(u) for u in friendships.get_following(db, user.id)]


# ============================================================================
# FOLLOWING
# ============================================================================


@router.post("/{handle}/follow", response_model=schemas.FollowStatus, status_code=status.HTTP_201_CREATED)
def follow(
    handle: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.FollowStatus:
    """Follow a user. Following twice or following yourself is a 409."""
    target = friendships.get_user_by_handle(db, handle)
    friendships.follow_user(db, current_user, target.id)
    return schemas.FollowStatus(following=True)


@router.delete("/{handle}/follow", response_model=schemas.FollowStatus)
def unfollow(
    handle: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.FollowStatus:
    target = friendships.get_user_by_handle(db, handle)
    friendships.unfollow_user(db, current_user, target.id)
    return schemas.FollowStatus(following=False)


@router.post("/{handle}/follow/toggle", response_model=schemas.FollowStatus)
def toggle_follow(
    handle: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.FollowStatus:
    target = friendships.get_user_by_handle(db, handle)
    return schemas.FollowStatus(following=friendships.toggle_follow(db, current_user, target.id))
