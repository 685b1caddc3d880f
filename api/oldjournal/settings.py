"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./oldjournal.sqlite3")

# Optional. When unset, rate limiting falls back to the database and stats are not memoized.
REDIS_URL: str | None = os.getenv("REDIS_URL") or None

# Local blob storage for avatars
STORAGE_ROOT: str = os.getenv("STORAGE_ROOT", "./storage")
STORAGE_URL_PREFIX: str = os.getenv("STORAGE_URL_PREFIX", "/files")
AVATAR_MAX_BYTES: int = _int_env("AVATAR_MAX_BYTES", 2 * 1024 * 1024)

# Anonymous comments: N per window per origin
ANON_COMMENT_LIMIT: int = _int_env("ANON_COMMENT_LIMIT", 5)
ANON_COMMENT_WINDOW_SECONDS: int = _int_env("ANON_COMMENT_WINDOW_SECONDS", 15 * 60)

STATS_CACHE_TTL_SECONDS: int = _int_env("STATS_CACHE_TTL_SECONDS", 60)

RUN_MIGRATIONS_ON_STARTUP: bool = _bool_env("RUN_MIGRATIONS_ON_STARTUP", True)

# Content limits
SUBJECT_MAX_LENGTH = 200
ENTRY_BODY_MAX_LENGTH = 50_000
COMMENT_BODY_MAX_LENGTH = 5_000
AUTHOR_NAME_MAX_LENGTH = 100
METADATA_MAX_LENGTH = 100
