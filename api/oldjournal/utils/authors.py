"""Comment author variants: a registered user or a free-text anonymous name."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class RegisteredAuthor:
    user_id: int


@dataclass(frozen=True)
class AnonymousAuthor:
    display_name: str

    def __post_init__(self) -> None:
        if not self.display_name or not self.display_name.strip():
            raise ValueError("Anonymous authors need a display name")


CommentAuthor = Union[RegisteredAuthor, AnonymousAuthor]
