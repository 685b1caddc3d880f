from __future__ import annotations

from datetime import datetime
from typing import Generic, Literal, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from . import settings
from .utils.moderation import CommentState
from .utils.visibility import Visibility


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class Problem(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs."""

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str | None = None
    errors: dict[str, list[str]] | None = None


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Generic paginated response."""

    items: list[T]
    next_cursor: str | None = None


# ============================================================================
# HEALTH & CONFIG
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"
    uptime_s: float | None = None


class Config(BaseModel):
    """Public system configuration."""

    max_subject_length: int = settings.SUBJECT_MAX_LENGTH
    max_entry_length: int = settings.ENTRY_BODY_MAX_LENGTH
    max_comment_length: int = settings.COMMENT_BODY_MAX_LENGTH
    anonymous_comment_limit: int = settings.ANON_COMMENT_LIMIT
    anonymous_comment_window_s: int = settings.ANON_COMMENT_WINDOW_SECONDS
    max_avatar_bytes: int = settings.AVATAR_MAX_BYTES
    visibilities: list[Visibility] = list(Visibility)


# ============================================================================
# USER SCHEMAS
# ============================================================================


class UserSummary(BaseModel):
    """Minimal user info shown next to entries and comments."""

    id: int
    handle: str
    display_name: str
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class UserProfile(UserSummary):
    """Profile page: public fields plus activity counts."""

    bio: str | None = None
    location: str | None = None
    website: str | None = None
    email: str | None = None
    created_at: datetime

    entry_count: int = 0
    comment_count: int = 0
    follower_count: int = 0
    following_count: int = 0
    is_following: bool = False
    is_mutual: bool = False
    is_own_profile: bool = False


class UserUpdate(BaseModel):
    """Update own profile request."""

    display_name: str | None = Field(None, min_length=1, max_length=100)
    bio: str | None = Field(None, max_length=1000)
    location: str | None = Field(None, max_length=100)
    website: str | None = Field(None, max_length=500)


class UserSearchResult(UserSummary):
    entry_count: int = 0


class FollowStatus(BaseModel):
    following: bool


# ============================================================================
# ENTRY SCHEMAS
# ============================================================================


class EntryCreate(BaseModel):
    """Create entry request."""

    subject: str | None = Field(None, max_length=settings.SUBJECT_MAX_LENGTH)
    body_html: str = Field(..., min_length=1, max_length=settings.ENTRY_BODY_MAX_LENGTH)
    visibility: Visibility = Visibility.PUBLIC
    mood: str | None = Field(None, max_length=settings.METADATA_MAX_LENGTH)
    music: str | None = Field(None, max_length=settings.METADATA_MAX_LENGTH)
    location: str | None = Field(None, max_length=settings.METADATA_MAX_LENGTH)


class EntryUpdate(BaseModel):
    """Update entry request. Only fields present in the request change."""

    subject: str | None = Field(None, max_length=settings.SUBJECT_MAX_LENGTH)
    body_html: str | None = Field(None, min_length=1, max_length=settings.ENTRY_BODY_MAX_LENGTH)
    visibility: Visibility | None = None
    mood: str | None = Field(None, max_length=settings.METADATA_MAX_LENGTH)
    music: str | None = Field(None, max_length=settings.METADATA_MAX_LENGTH)
    location: str | None = Field(None, max_length=settings.METADATA_MAX_LENGTH)


class Entry(BaseModel):
    """Journal entry."""

    id: int
    owner: UserSummary
    subject: str | None = None
    body_html: str
    visibility: Visibility
    mood: str | None = None
    music: str | None = None
    location: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    comment_count: int = 0

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# COMMENT SCHEMAS
# ============================================================================


class CommentCreate(BaseModel):
    """Create comment request."""

    body_html: str = Field(..., min_length=1, max_length=settings.COMMENT_BODY_MAX_LENGTH)
    parent_id: UUID | None = None
    author_name: str | None = Field(None, min_length=1, max_length=settings.AUTHOR_NAME_MAX_LENGTH)


class Comment(BaseModel):
    """
    Comment as displayed.

    Placeholder nodes stand in for screened comments; they carry no author
    and the placeholder text instead of the body.
    """

    id: UUID
    entry_id: int
    parent_id: UUID | None = None
    author: UserSummary | None = None
    author_name: str | None = None
    body_html: str
    state: CommentState
    placeholder: bool = False
    created_at: datetime
    updated_at: datetime | None = None
    replies: list["Comment"] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class CommentThread(BaseModel):
    """All comments of an entry as a tree."""

    entry_id: int
    count: int
    items: list[Comment]


# ============================================================================
# SEARCH & STATS
# ============================================================================


class EntrySearchResults(BaseModel):
    query: str
    items: list[Entry]


class UserSearchResults(BaseModel):
    query: str
    items: list[UserSearchResult]


class SiteStats(BaseModel):
    """Site-wide activity counters."""

    total_users: int
    active_users: int
    active_today: int
    entries_today: int
    comments_today: int
    entries_last_hour: int
    entries_per_minute: int


Comment.model_rebuild()
