"""Test comment posting, trees and moderation."""

import pytest
from conftest import auth_headers, follow, make_entry

from oldjournal import models
from oldjournal.utils.comment_tree import SCREENED_PLACEHOLDER
from oldjournal.utils.visibility import Visibility


def post_comment(client, entry_id, body="nice entry", headers=None, **extra):
    return client.post(
        f"/entries/{entry_id}/comments",
        headers=headers or {},
        json={"body_html": body, **extra},
    )


@pytest.fixture
def public_entry(db, alice) -> models.Entry:
    return make_entry(db, alice, Visibility.PUBLIC)


# ============================================================================
# POSTING
# ============================================================================


def test_registered_comment(client, public_entry, bob):
    response = post_comment(client, public_entry.id, "<p>hi <img src=x>there</p>", auth_headers(bob))
    assert response.status_code == 201
    data = response.json()
    assert data["author"]["handle"] == "bob"
    assert data["author_name"] is None
    assert data["body_html"] == "<p>hi there</p>"
    assert data["state"] == "VISIBLE"


def test_registered_comment_ignores_author_name(client, public_entry, bob):
    response = post_comment(client, public_entry.id, headers=auth_headers(bob), author_name="Someone Else")
    assert response.status_code == 201
    assert response.json()["author_name"] is None


def test_anonymous_comment_needs_name(client, public_entry):
    response = post_comment(client, public_entry.id)
    assert response.status_code == 422
    assert "author_name" in response.json()["errors"]


def test_anonymous_comment(client, public_entry):
    response = post_comment(client, public_entry.id, author_name="a lurker")
    assert response.status_code == 201
    data = response.json()
    assert data["author"] is None
    assert data["author_name"] == "a lurker"


def test_anonymous_cannot_comment_on_friends_entry(client, db, alice):
    entry = make_entry(db, alice, Visibility.FRIENDS)
    response = post_comment(client, entry.id, author_name="a lurker")
    assert response.status_code == 404


def test_non_friend_cannot_comment_on_friends_entry(client, db, alice, bob, carol):
    follow(db, alice, bob)
    entry = make_entry(db, alice, Visibility.FRIENDS)
    assert post_comment(client, entry.id, headers=auth_headers(carol)).status_code == 404
    assert post_comment(client, entry.id, headers=auth_headers(bob)).status_code == 201


def test_reply(client, public_entry, alice, bob):
    parent = post_comment(client, public_entry.id, headers=auth_headers(bob)).json()
    response = post_comment(client, public_entry.id, "thanks", auth_headers(alice), parent_id=parent["id"])
    assert response.status_code == 201
    assert response.json()["parent_id"] == parent["id"]


def test_reply_to_comment_on_other_entry(client, db, alice, bob, public_entry):
    other = make_entry(db, alice, Visibility.PUBLIC)
    parent = post_comment(client, other.id, headers=auth_headers(bob)).json()
    response = post_comment(client, public_entry.id, headers=auth_headers(bob), parent_id=parent["id"])
    assert response.status_code == 422
    assert "parent_id" in response.json()["errors"]


def test_reply_to_deleted_comment(client, public_entry, alice, bob):
    parent = post_comment(client, public_entry.id, headers=auth_headers(bob)).json()
    client.delete(f"/comments/{parent['id']}", headers=auth_headers(bob))
    response = post_comment(client, public_entry.id, headers=auth_headers(alice), parent_id=parent["id"])
    assert response.status_code == 422


# ============================================================================
# RATE LIMIT
# ============================================================================


def test_anonymous_rate_limit(client, clock, public_entry):
    headers = {"X-Forwarded-For": "203.0.113.7"}
    for i in range(5):
        response = post_comment(client, public_entry.id, f"comment {i}", headers, author_name="drive-by")
        assert response.status_code == 201

    clock.advance(60)
    response = post_comment(client, public_entry.id, "one too many", headers, author_name="drive-by")
    assert response.status_code == 429
    assert response.headers["retry-after"] == "840"
    assert response.json()["detail"] == "Rate limit exceeded. Try again in 14 minutes."

    # Other origins are unaffected
    other = post_comment(client, public_entry.id, headers={"X-Forwarded-For": "198.51.100.1"}, author_name="x")
    assert other.status_code == 201

    clock.advance(15 * 60)
    response = post_comment(client, public_entry.id, "back again", headers, author_name="drive-by")
    assert response.status_code == 201


def test_registered_users_are_not_rate_limited(client, public_entry, bob):
    for _ in range(7):
        assert post_comment(client, public_entry.id, headers=auth_headers(bob)).status_code == 201


def test_rejected_requests_do_not_use_quota(client, public_entry):
    headers = {"X-Forwarded-For": "203.0.113.8"}
    for _ in range(6):
        assert post_comment(client, public_entry.id, headers=headers).status_code == 422
    for _ in range(5):
        assert post_comment(client, public_entry.id, headers=headers, author_name="x").status_code == 201


# ============================================================================
# TREE
# ============================================================================


def test_comment_tree_nesting(client, public_entry, alice, bob):
    root = post_comment(client, public_entry.id, "root", auth_headers(bob)).json()
    post_comment(client, public_entry.id, "reply", auth_headers(alice), parent_id=root["id"])

    response = client.get(f"/entries/{public_entry.id}/comments")
    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert len(data["items"]) == 1
    assert data["items"][0]["body_html"] == "root"
    assert data["items"][0]["replies"][0]["body_html"] == "reply"


def test_comments_of_hidden_entry(client, db, alice):
    entry = make_entry(db, alice, Visibility.PRIVATE)
    assert client.get(f"/entries/{entry.id}/comments").status_code == 404


def test_screened_comment_visibility(client, public_entry, alice, bob, carol):
    comment = post_comment(client, public_entry.id, "spam spam", auth_headers(bob)).json()
    post_comment(client, public_entry.id, "reply to spam", auth_headers(carol), parent_id=comment["id"])

    response = client.post(f"/comments/{comment['id']}/screen", headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["state"] == "SCREENED"

    as_owner = client.get(f"/entries/{public_entry.id}/comments", headers=auth_headers(alice)).json()
    assert as_owner["items"][0]["body_html"] == "spam spam"
    assert as_owner["items"][0]["placeholder"] is False

    for headers in ({}, auth_headers(bob), auth_headers(carol)):
        thread = client.get(f"/entries/{public_entry.id}/comments", headers=headers).json()
        node = thread["items"][0]
        assert node["placeholder"] is True
        assert node["body_html"] == SCREENED_PLACEHOLDER
        assert node["author"] is None
        assert node["replies"][0]["body_html"] == "reply to spam"
        assert thread["count"] == 2


def test_deleted_comment_hides_subtree(client, public_entry, alice, bob, carol):
    comment = post_comment(client, public_entry.id, "oops", auth_headers(bob)).json()
    post_comment(client, public_entry.id, "reply", auth_headers(carol), parent_id=comment["id"])
    post_comment(client, public_entry.id, "unrelated", auth_headers(carol))

    response = client.delete(f"/comments/{comment['id']}", headers=auth_headers(bob))
    assert response.status_code == 200
    assert response.json()["state"] == "DELETED"

    for headers in ({}, auth_headers(alice)):
        thread = client.get(f"/entries/{public_entry.id}/comments", headers=headers).json()
        assert [c["body_html"] for c in thread["items"]] == ["unrelated"]
        assert thread["count"] == 1

    entry = client.get(f"/entries/{public_entry.id}").json()
    assert entry["comment_count"] == 1


# ============================================================================
# MODERATION
# ============================================================================


def test_only_entry_owner_can_screen(client, public_entry, bob, carol):
    comment = post_comment(client, public_entry.id, headers=auth_headers(bob)).json()
    assert client.post(f"/comments/{comment['id']}/screen", headers=auth_headers(bob)).status_code == 403
    assert client.post(f"/comments/{comment['id']}/screen", headers=auth_headers(carol)).status_code == 403


def test_screen_requires_auth(client, public_entry, bob):
    comment = post_comment(client, public_entry.id, headers=auth_headers(bob)).json()
    assert client.post(f"/comments/{comment['id']}/screen").status_code == 401


def test_screen_is_idempotent(client, db, public_entry, alice, bob):
    comment = post_comment(client, public_entry.id, headers=auth_headers(bob)).json()
    first = client.post(f"/comments/{comment['id']}/screen", headers=auth_headers(alice))
    second = client.post(f"/comments/{comment['id']}/screen", headers=auth_headers(alice))
    assert first.status_code == second.status_code == 200
    assert second.json()["state"] == "SCREENED"


def test_screening_deleted_comment_conflicts(client, public_entry, alice, bob):
    comment = post_comment(client, public_entry.id, headers=auth_headers(bob)).json()
    client.delete(f"/comments/{comment['id']}", headers=auth_headers(alice))
    response = client.post(f"/comments/{comment['id']}/screen", headers=auth_headers(alice))
    assert response.status_code == 409


def test_delete_is_idempotent(client, public_entry, alice, bob):
    comment = post_comment(client, public_entry.id, headers=auth_headers(bob)).json()
    assert client.delete(f"/comments/{comment['id']}", headers=auth_headers(bob)).status_code == 200
    assert client.delete(f"/comments/{comment['id']}", headers=auth_headers(alice)).status_code == 200


def test_third_party_cannot_delete(client, public_entry, bob, carol):
    comment = post_comment(client, public_entry.id, headers=auth_headers(bob)).json()
    response = client.delete(f"/comments/{comment['id']}", headers=auth_headers(carol))
    assert response.status_code == 403


def test_entry_owner_deletes_anonymous_comment(client, public_entry, alice):
    comment = post_comment(client, public_entry.id, author_name="troll").json()
    response = client.delete(f"/comments/{comment['id']}", headers=auth_headers(alice))
    assert response.status_code == 200


def test_moderating_comment_on_hidden_entry_is_not_found(client, db, alice, bob, carol):
    follow(db, alice, bob)
    entry = make_entry(db, alice, Visibility.FRIENDS)
    comment = post_comment(client, entry.id, headers=auth_headers(bob)).json()

    response = client.delete(f"/comments/{comment['id']}", headers=auth_headers(carol))
    assert response.status_code == 404


def test_author_deletes_own_comment_after_entry_turns_private(client, public_entry, alice, bob):
    comment = post_comment(client, public_entry.id, headers=auth_headers(bob)).json()
    response = client.patch(
        f"/entries/{public_entry.id}", headers=auth_headers(alice), json={"visibility": "PRIVATE"}
    )
    assert response.status_code == 200

    response = client.delete(f"/comments/{comment['id']}", headers=auth_headers(bob))
    assert response.status_code == 200
    assert response.json()["state"] == "DELETED"


def test_author_deletes_own_comment_after_unfollow(client, db, alice, bob):
    follow(db, alice, bob)
    entry = make_entry(db, alice, Visibility.FRIENDS)
    comment = post_comment(client, entry.id, headers=auth_headers(bob)).json()
    assert client.delete("/users/bob/follow", headers=auth_headers(alice)).status_code == 200

    assert client.delete(f"/comments/{comment['id']}", headers=auth_headers(bob)).status_code == 200


def test_author_cannot_screen_after_losing_access(client, public_entry, alice, bob):
    comment = post_comment(client, public_entry.id, headers=auth_headers(bob)).json()
    client.patch(f"/entries/{public_entry.id}", headers=auth_headers(alice), json={"visibility": "PRIVATE"})

    response = client.post(f"/comments/{comment['id']}/screen", headers=auth_headers(bob))
    assert response.status_code == 404


def test_unknown_comment(client, alice):
    response = client.delete("/comments/00000000-0000-0000-0000-000000000000", headers=auth_headers(alice))
    assert response.status_code == 404
