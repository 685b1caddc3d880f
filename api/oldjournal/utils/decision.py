"""Tagged allow/deny results returned by the access policies."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DenyReason(str, Enum):
    PERMISSION_DENIED = "permission denied"
    AUTHENTICATION_REQUIRED = "authentication required"
    AUTHOR_NAME_REQUIRED = "author name required"
    INVALID_TRANSITION = "invalid state transition"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DenyReason | None = None

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason) -> "Decision":
        return cls(allowed=False, reason=reason)


ALLOW = Decision.allow()
