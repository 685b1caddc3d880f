from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from .db import Base
from .utils.authors import CommentAuthor, RegisteredAuthor
from .utils.moderation import CommentState
from .utils.visibility import Visibility


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# CORE ENTITIES
# ============================================================================


class User(Base):
    """Local user record, linked to the identity provider by external_id."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    external_id = Column(String(255), unique=True, nullable=False, index=True)
    handle = Column(String(30), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=False)
    email = Column(String(320), nullable=True)
    bio = Column(Text, nullable=True)
    avatar_url = Column(String(500), nullable=True)
    location = Column(String(100), nullable=True)
    website = Column(String(500), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=True, onupdate=utcnow)

    entries = relationship(
        "Entry", back_populates="owner", cascade="all, delete-orphan"
    )
    comments = relationship("Comment", back_populates="author_user", foreign_keys="Comment.author_id")


class Friendship(Base):
    """Directed "follows" edge. Mutual friendship is derived, never stored."""

    __tablename__ = "friendships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    follower_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    following_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    follower = relationship("User", foreign_keys=[follower_id])
    following = relationship("User", foreign_keys=[following_id])

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_friendship_follower_following"),
        CheckConstraint("follower_id <> following_id", name="ck_friendship_no_self_follow"),
        Index("ix_friendships_following_created", following_id, created_at.desc()),
    )


class Entry(Base):
    """Journal entry."""

    __tablename__ = "entries"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    owner_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    subject = Column(String(200), nullable=True)
    body_html = Column(Text, nullable=False)
    visibility = Column(String(10), nullable=False, default=Visibility.PUBLIC.value, index=True)

    # Optional "current" metadata
    mood = Column(String(100), nullable=True)
    music = Column(String(100), nullable=True)
    location = Column(String(100), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=True, onupdate=utcnow)

    owner = relationship("User", back_populates="entries")
    comments = relationship(
        "Comment", back_populates="entry", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "visibility IN ('PUBLIC', 'FRIENDS', 'PRIVATE')", name="ck_entries_visibility"
        ),
        Index("ix_entries_owner_created", owner_id, created_at.desc()),
    )


class Comment(Base):
    """Comment on an entry; replies reference their parent comment."""

    __tablename__ = "comments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    entry_id = Column(
        Integer, ForeignKey("entries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_id = Column(
        Uuid, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True
    )

    # Exactly one of these is set, see Comment.create
    author_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True
    )
    author_name = Column(String(100), nullable=True)

    body_html = Column(Text, nullable=False)
    state = Column(String(10), nullable=False, default=CommentState.VISIBLE.value, index=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=True, onupdate=utcnow)

    entry = relationship("Entry", back_populates="comments")
    author_user = relationship("User", back_populates="comments", foreign_keys=[author_id])
    parent = relationship("Comment", remote_side=[id], backref="replies")

    __table_args__ = (
        CheckConstraint(
            "(author_id IS NULL) <> (author_name IS NULL)", name="ck_comments_single_author"
        ),
        CheckConstraint(
            "state IN ('VISIBLE', 'SCREENED', 'DELETED')", name="ck_comments_state"
        ),
        Index("ix_comments_entry_created", entry_id, created_at),
    )

    @classmethod
    def create(cls, *, entry_id: int, author: CommentAuthor, body_html: str, parent_id=None) -> "Comment":
        """Build a comment from an author variant so only one author column is ever set."""
        if isinstance(author, RegisteredAuthor):
            return cls(entry_id=entry_id, parent_id=parent_id, author_id=author.user_id, body_html=body_html)
        return cls(entry_id=entry_id, parent_id=parent_id, author_name=author.display_name, body_html=body_html)

    @property
    def comment_state(self) -> CommentState:
        return CommentState(self.state)


# ============================================================================
# RATE LIMITING
# ============================================================================


class RateLimitBucket(Base):
    """Fixed-window counter for one origin key."""

    __tablename__ = "rate_limit_buckets"

    key = Column(String(255), primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    reset_at = Column(DateTime, nullable=False, index=True)
