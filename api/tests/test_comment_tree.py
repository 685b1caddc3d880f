"""Test comment tree assembly."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from oldjournal.utils.comment_tree import build_comment_tree, count_comments
from oldjournal.utils.moderation import CommentState

BASE_TIME = datetime(2003, 3, 14, 12, 0, 0)


@dataclass
class Row:
    id: str
    parent_id: str | None
    state: str
    created_at: datetime


def row(id, parent_id=None, state=CommentState.VISIBLE, minute=0):
    return Row(id=id, parent_id=parent_id, state=state.value, created_at=BASE_TIME + timedelta(minutes=minute))


def thread():
    """
    c1
      c2
        c3
      c4 (screened)
        c5
    c6 (deleted)
      c7
    """
    return [
        row("c1", minute=0),
        row("c2", "c1", minute=1),
        row("c3", "c2", minute=2),
        row("c4", "c1", CommentState.SCREENED, minute=3),
        row("c5", "c4", minute=4),
        row("c6", minute=5, state=CommentState.DELETED),
        row("c7", "c6", minute=6),
    ]


def test_empty_input_gives_empty_tree():
    tree = build_comment_tree([], viewer_is_owner=False)
    assert tree.roots == []
    assert tree.count == 0


def test_flatten_is_pre_order_by_creation_time():
    rows = [row("b", minute=1), row("a", minute=0), row("a1", "a", minute=3), row("a0", "a", minute=2)]
    tree = build_comment_tree(rows, viewer_is_owner=False)
    assert tree.flatten() == ["a", "a0", "a1", "b"]


def branching_thread():
    """Three roots with siblings and replies up to four levels deep, listed out of order."""
    return [
        row("r3", minute=20),
        row("r1", minute=0),
        row("r1a", "r1", minute=1),
        row("r1b", "r1", minute=2),
        row("r1c", "r1", minute=9),
        row("r1a1", "r1a", minute=3),
        row("r1a2", "r1a", minute=4),
        row("r1a1x", "r1a1", minute=5),
        row("r1a1xy", "r1a1x", minute=6),
        row("r2", minute=10),
        row("r2a", "r2", minute=11),
        row("r2b", "r2", minute=12),
        row("r2b1", "r2b", minute=13),
        row("r3a", "r3", CommentState.SCREENED, minute=21),
        row("r3a1", "r3a", minute=22),
    ]


def test_flatten_contains_every_visible_comment_once():
    chain = [row(f"c{i}", None if i == 0 else f"c{i - 1}", minute=i) for i in range(20)]
    for rows in (chain, branching_thread()):
        for viewer_is_owner in (True, False):
            flat = build_comment_tree(rows, viewer_is_owner=viewer_is_owner).flatten()
            assert len(flat) == len(set(flat))
            assert sorted(flat) == sorted(r.id for r in rows)


def test_flatten_branching_thread_order():
    tree = build_comment_tree(branching_thread(), viewer_is_owner=False)
    assert tree.flatten() == [
        "r1", "r1a", "r1a1", "r1a1x", "r1a1xy", "r1a2", "r1b", "r1c",
        "r2", "r2a", "r2b", "r2b1",
        "r3", "r3a", "r3a1",
    ]
    assert tree.count == 15


def test_deleted_comment_removes_subtree_for_everyone():
    for viewer_is_owner in (True, False):
        ids = build_comment_tree(thread(), viewer_is_owner=viewer_is_owner).flatten()
        assert "c6" not in ids
        assert "c7" not in ids


def test_screened_comment_is_placeholder_for_non_owner():
    tree = build_comment_tree(thread(), viewer_is_owner=False)
    nodes = {node.id: node for _, node in tree.walk()}
    assert nodes["c4"].placeholder is True
    assert nodes["c2"].placeholder is False
    # replies under a screened comment stay visible
    assert "c5" in nodes


def test_screened_comment_shows_real_content_to_owner():
    tree = build_comment_tree(thread(), viewer_is_owner=True)
    nodes = {node.id: node for _, node in tree.walk()}
    assert nodes["c4"].placeholder is False


def test_orphans_are_dropped():
    rows = [row("c1"), row("lost", "missing-parent", minute=1)]
    assert build_comment_tree(rows, viewer_is_owner=True).flatten() == ["c1"]


def test_walk_reports_depth():
    depths = {node.id: depth for depth, node in build_comment_tree(thread(), viewer_is_owner=True).walk()}
    assert depths == {"c1": 0, "c2": 1, "c3": 2, "c4": 1, "c5": 2}


def test_count_includes_placeholders():
    assert count_comments(thread(), viewer_is_owner=False) == 5
    assert count_comments(thread(), viewer_is_owner=True) == 5


def test_render_nests_replies():
    tree = build_comment_tree(thread(), viewer_is_owner=True)
    rendered = tree.render(lambda node, replies: {"id": node.id, "replies": replies})
    assert rendered == [
        {
            "id": "c1",
            "replies": [
                {"id": "c2", "replies": [{"id": "c3", "replies": []}]},
                {"id": "c4", "replies": [{"id": "c5", "replies": []}]},
            ],
        }
    ]


def test_deep_thread_does_not_recurse():
    rows = [row(f"c{i}", None if i == 0 else f"c{i - 1}", minute=i) for i in range(5000)]
    tree = build_comment_tree(rows, viewer_is_owner=False)
    assert tree.count == 5000
    assert len(tree.render(lambda node, replies: len(replies))) == 1
