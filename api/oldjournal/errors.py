"""Error taxonomy raised by the service layer and rendered as problem details."""

from __future__ import annotations

import math

from .utils.decision import Decision, DenyReason


class JournalError(Exception):
    status_code = 500
    title = "Internal Server Error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.title)
        self.detail = detail or self.title


class NotAuthenticated(JournalError):
    status_code = 401
    title = "Not Authenticated"


class PermissionDenied(JournalError):
    status_code = 403
    title = "Permission Denied"


class NotFound(JournalError):
    status_code = 404
    title = "Not Found"


class Conflict(JournalError):
    status_code = 409
    title = "Conflict"


class ValidationFailed(JournalError):
    status_code = 422
    title = "Validation Failed"

    def __init__(self, detail: str | None = None, errors: dict[str, list[str]] | None = None) -> None:
        super().__init__(detail)
        self.errors = errors or {}

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(message, errors={field: [message]})


class RateLimited(JournalError):
    status_code = 429
    title = "Too Many Requests"

    def __init__(self, retry_after: float) -> None:
        self.retry_after = max(0, math.ceil(retry_after))
        minutes = max(1, math.ceil(self.retry_after / 60))
        super().__init__(f"Rate limit exceeded. Try again in {minutes} minutes.")


def raise_for_decision(decision: Decision, *, not_found: str = "Entry not found") -> None:
    """
    Translate a policy denial into a service error.

    Read denials surface as NotFound so that a hidden entry is
    indistinguishable from one that does not exist.
    """
    if decision.allowed:
        return

    if decision.reason is DenyReason.PERMISSION_DENIED:
        raise NotFound(not_found)
    if decision.reason is DenyReason.AUTHENTICATION_REQUIRED:
        raise NotAuthenticated("Authentication required")
    if decision.reason is DenyReason.AUTHOR_NAME_REQUIRED:
        raise ValidationFailed.for_field("author_name", "Author name is required for anonymous comments")
    if decision.reason is DenyReason.INVALID_TRANSITION:
        raise Conflict("Comment cannot move to that state")
    raise PermissionDenied("Permission denied")


def raise_for_moderation(decision: Decision) -> None:
    """Moderation denials on a visible comment are plain permission errors."""
    if decision.allowed:
        return
    if decision.reason is DenyReason.PERMISSION_DENIED:
        raise PermissionDenied("Permission denied")
    raise_for_decision(decision)
