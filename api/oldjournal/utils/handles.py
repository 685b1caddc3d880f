"""Handle generation and validation utilities."""

from __future__ import annotations

import re

from sqlalchemy.orm import Session

from ..models import User

HANDLE_MIN_LENGTH = 3
HANDLE_MAX_LENGTH = 30
_HANDLE_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
_INVALID_CHARS = re.compile(r"[^a-zA-Z0-9_]+")


def validate_handle(handle: str) -> tuple[bool, str | None]:
    """
    Validate a handle format and return (is_valid, error_message).

    Returns:
        (True, None) if valid
        (False, error_message) if invalid
    """
    if not handle:
        return False, "Handle cannot be empty"

    if len(handle) < HANDLE_MIN_LENGTH:
        return False, f"Handle must be at least {HANDLE_MIN_LENGTH} characters"

    if len(handle) > HANDLE_MAX_LENGTH:
        return False, f"Handle must be at most {HANDLE_MAX_LENGTH} characters"

    if not _HANDLE_PATTERN.match(handle):
        return False, "Handle can only contain letters, numbers, and underscores"

    return True, None


def is_handle_taken(db: Session, handle: str, exclude_user_id: int | None = None) -> bool:
    """
    Check if a handle is already taken.

    Args:
        db: Database session
        handle: Handle to check
        exclude_user_id: Optional user ID to exclude from check (for updates)
    """
    query = db.query(User).filter(User.handle == handle.lower())

    if exclude_user_id:
        query = query.filter(User.id != exclude_user_id)

    return query.first() is not None


def make_unique_handle(db: Session, preferred: str) -> str:
    """
    Turn an identity provider username into a free, valid local handle.

    Invalid characters become underscores, short names are padded, and a
    numeric suffix is appended until the handle is unused.
    """
    base = _INVALID_CHARS.sub("_", preferred or "").strip("_").lower()
    if len(base) < HANDLE_MIN_LENGTH:
        base = f"{base}_user".strip("_")
    base = base[:HANDLE_MAX_LENGTH]

    candidate = base
    suffix = 1
    while is_handle_taken(db, candidate):
        suffix += 1
        tail = f"_{suffix}"
        candidate = f"{base[: HANDLE_MAX_LENGTH - len(tail)]}{tail}"
    return candidate
