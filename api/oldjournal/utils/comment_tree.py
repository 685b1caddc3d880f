"""Assemble flat comment rows into a display tree.

The tree is an arena: every displayed comment is one CommentNode in a flat
list, and parents point at their replies by index. Nothing holds a
reference back to its parent.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Hashable, Iterable, Iterator, Protocol, TypeVar

from .moderation import CommentState

SCREENED_PLACEHOLDER = "screened by entry owner"

T = TypeVar("T")


class CommentRow(Protocol):
    id: Hashable
    parent_id: Hashable | None
    state: str
    created_at: datetime


@dataclass
class CommentNode:
    comment: Any
    placeholder: bool = False
    children: list[int] = field(default_factory=list)

    @property
    def id(self) -> Hashable:
        return self.comment.id


@dataclass
class CommentTree:
    nodes: list[CommentNode] = field(default_factory=list)
    roots: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def count(self) -> int:
        """Number of comments as displayed, placeholders included."""
        return len(self.nodes)

    def walk(self) -> Iterator[tuple[int, CommentNode]]:
        """Pre-order traversal yielding (depth, node)."""
        stack = [(0, idx) for idx in reversed(self.roots)]
        while stack:
            depth, idx = stack.pop()
            node = self.nodes[idx]
            yield depth, node
            stack.extend((depth + 1, child) for child in reversed(node.children))

    def flatten(self) -> list[Hashable]:
        return [node.id for _, node in self.walk()]

    def render(self, fn: Callable[[CommentNode, list[T]], T]) -> list[T]:
        """
        Build nested output bottom-up.

        fn receives a node and its already rendered replies. Nodes are stored
        in pre-order, so every child sits at a higher index than its parent
        and a reverse sweep sees children first.
        """
        rendered: list[T | None] = [None] * len(self.nodes)
        for idx in range(len(self.nodes) - 1, -1, -1):
            node = self.nodes[idx]
            rendered[idx] = fn(node, [rendered[child] for child in node.children])
        return [rendered[idx] for idx in self.roots]


def _sort_key(comment: CommentRow) -> tuple:
    return (comment.created_at, str(comment.id))


def build_comment_tree(comments: Iterable[CommentRow], *, viewer_is_owner: bool) -> CommentTree:
    """
    Build the display tree for one entry's comments.

    - Roots are comments without a parent; replies are ordered oldest first.
    - DELETED comments are dropped for every viewer, together with their replies.
    - SCREENED comments keep their content for the entry owner; everybody
      else gets a placeholder node in their place.
    - Replies whose parent is not in the input are dropped.
    """
    by_parent: dict[Hashable | None, list[CommentRow]] = defaultdict(list)
    for comment in sorted(comments, key=_sort_key):
        by_parent[comment.parent_id].append(comment)

    tree = CommentTree()
    stack: list[tuple[int | None, CommentRow]] = [(None, c) for c in reversed(by_parent.get(None, []))]

    while stack:
        parent_idx, comment = stack.pop()
        state = CommentState(comment.state)

        if state is CommentState.DELETED:
            continue

        placeholder = state is CommentState.SCREENED and not viewer_is_owner
        idx = len(tree.nodes)
        tree.nodes.append(CommentNode(comment=comment, placeholder=placeholder))

        if parent_idx is None:
            tree.roots.append(idx)
        else:
            tree.nodes[parent_idx].children.append(idx)

        stack.extend((idx, reply) for reply in reversed(by_parent.get(comment.id, [])))

    return tree


def count_comments(comments: Iterable[CommentRow], *, viewer_is_owner: bool) -> int:
    return build_comment_tree(comments, viewer_is_owner=viewer_is_owner).count
