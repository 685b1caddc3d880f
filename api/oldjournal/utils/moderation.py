"""Comment state machine and moderation rules."""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from .decision import ALLOW, Decision, DenyReason


class CommentState(str, Enum):
    VISIBLE = "VISIBLE"
    SCREENED = "SCREENED"
    DELETED = "DELETED"


class ModerationAction(str, Enum):
    SCREEN = "screen"
    DELETE = "delete"


# Whitelist of (from, to) pairs. Nothing ever leaves DELETED or returns to VISIBLE.
ALLOWED_TRANSITIONS: frozenset[tuple[CommentState, CommentState]] = frozenset(
    {
        (CommentState.VISIBLE, CommentState.SCREENED),
        (CommentState.VISIBLE, CommentState.DELETED),
        (CommentState.SCREENED, CommentState.DELETED),
    }
)

ACTION_TARGETS: dict[ModerationAction, CommentState] = {
    ModerationAction.SCREEN: CommentState.SCREENED,
    ModerationAction.DELETE: CommentState.DELETED,
}


class InvalidTransition(ValueError):
    def __init__(self, current: CommentState, target: CommentState) -> None:
        super().__init__(f"Cannot move a comment from {current.value} to {target.value}")
        self.current = current
        self.target = target


def can_transition(current: CommentState, target: CommentState) -> bool:
    """Staying in the same state counts as allowed so repeated requests are no-ops."""
    return current is target or (current, target) in ALLOWED_TRANSITIONS


def transition(current: CommentState, target: CommentState) -> CommentState:
    if not can_transition(current, target):
        raise InvalidTransition(current, target)
    return target


class CommentLike(Protocol):
    state: str
    author_id: int | None


def can_moderate(
    comment: CommentLike,
    entry_owner_id: int,
    viewer_id: int | None,
    action: ModerationAction,
) -> Decision:
    """
    Check if a viewer may apply a moderation action to a comment.

    - screen: entry owner only, from VISIBLE (already screened is a no-op allow)
    - delete: entry owner, or the registered author of the comment.
      Anonymous comments can only be deleted by the entry owner.
    """
    if viewer_id is None:
        return Decision.deny(DenyReason.PERMISSION_DENIED)

    is_entry_owner = viewer_id == entry_owner_id

    if action is ModerationAction.SCREEN:
        permitted = is_entry_owner
    else:
        is_author = comment.author_id is not None and comment.author_id == viewer_id
        permitted = is_entry_owner or is_author

    if not permitted:
        return Decision.deny(DenyReason.PERMISSION_DENIED)

    if not can_transition(CommentState(comment.state), ACTION_TARGETS[action]):
        return Decision.deny(DenyReason.INVALID_TRANSITION)

    return ALLOW
