"""Visibility and access control rules for journal entries."""

from __future__ import annotations

from enum import Enum
from typing import Collection, Protocol

from .decision import ALLOW, Decision, DenyReason


class Visibility(str, Enum):
    PUBLIC = "PUBLIC"
    FRIENDS = "FRIENDS"
    PRIVATE = "PRIVATE"


class EntryLike(Protocol):
    owner_id: int
    visibility: str


def can_view(entry: EntryLike, viewer_id: int | None, owner_friend_ids: Collection[int] = ()) -> Decision:
    """
    Check if a viewer may read an entry.

    Rules:
    - PUBLIC entries are readable by everyone, anonymous viewers included.
    - PRIVATE entries are readable by their owner only.
    - FRIENDS entries are readable by their owner and by users the owner
      follows. Following is one-directional: the owner has to follow the
      viewer, the viewer following the owner is not enough.

    Args:
        entry: The entry (anything with owner_id and visibility)
        viewer_id: The current user's id, None for anonymous viewers
        owner_friend_ids: Ids of the users the entry owner follows

    Returns:
        Decision.allow() or a denial with PERMISSION_DENIED
    """
    visibility = Visibility(entry.visibility)

    if visibility is Visibility.PUBLIC:
        return ALLOW

    if viewer_id is None:
        return Decision.deny(DenyReason.PERMISSION_DENIED)

    if viewer_id == entry.owner_id:
        return ALLOW

    if visibility is Visibility.FRIENDS and viewer_id in owner_friend_ids:
        return ALLOW

    return Decision.deny(DenyReason.PERMISSION_DENIED)


def can_comment(
    entry: EntryLike,
    viewer_id: int | None,
    has_author_name: bool,
    owner_friend_ids: Collection[int] = (),
) -> Decision:
    """
    Check if a viewer may comment on an entry.

    Commenting requires read access first. On top of that, anonymous viewers
    may only comment on PUBLIC entries and must give a display name. The
    anonymous rate limit is applied separately by the comment service.
    """
    decision = can_view(entry, viewer_id, owner_friend_ids)
    if not decision:
        return decision

    if viewer_id is None:
        # can_view already rejected anonymous viewers for FRIENDS and PRIVATE
        if not has_author_name:
            return Decision.deny(DenyReason.AUTHOR_NAME_REQUIRED)

    return ALLOW
