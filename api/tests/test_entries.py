"""Test journal entry endpoints."""

from conftest import auth_headers, follow, make_entry

from oldjournal.utils.visibility import Visibility


def test_create_entry_requires_auth(client):
    response = client.post("/entries", json={"body_html": "hello"})
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
    assert response.json()["status"] == 401


def test_create_entry(client, alice):
    response = client.post(
        "/entries",
        headers=auth_headers(alice),
        json={
            "subject": "First post",
            "body_html": "<p>Hello <script>x()</script><b>world</b></p>",
            "visibility": "FRIENDS",
            "mood": "chipper",
            "music": "Dashboard Confessional",
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["subject"] == "First post"
    assert data["body_html"] == "<p>Hello <b>world</b></p>"
    assert data["visibility"] == "FRIENDS"
    assert data["owner"]["handle"] == "alice"
    assert data["comment_count"] == 0


def test_create_entry_rejects_body_that_sanitizes_to_nothing(client, alice):
    response = client.post("/entries", headers=auth_headers(alice), json={"body_html": "<script>x</script>"})
    assert response.status_code == 422
    assert "body_html" in response.json()["errors"]


def test_create_entry_validates_lengths(client, alice):
    response = client.post(
        "/entries", headers=auth_headers(alice), json={"body_html": "x", "subject": "s" * 201}
    )
    assert response.status_code == 422


def test_public_entry_readable_anonymously(client, db, alice):
    entry = make_entry(db, alice, Visibility.PUBLIC)
    response = client.get(f"/entries/{entry.id}")
    assert response.status_code == 200
    assert response.json()["id"] == entry.id


def test_private_entry_is_not_found_for_others(client, db, alice, bob):
    entry = make_entry(db, alice, Visibility.PRIVATE)
    assert client.get(f"/entries/{entry.id}").status_code == 404
    assert client.get(f"/entries/{entry.id}", headers=auth_headers(bob)).status_code == 404
    assert client.get(f"/entries/{entry.id}", headers=auth_headers(alice)).status_code == 200


def test_missing_entry(client):
    response = client.get("/entries/9999")
    assert response.status_code == 404
    assert response.json()["detail"] == "Entry not found"


def test_friends_entry_follows_owner_friends_list(client, db, alice, bob, carol):
    """Alice follows Bob; Carol follows Alice. Only Bob may read Alice's FRIENDS entry."""
    follow(db, alice, bob)
    follow(db, carol, alice)
    entry = make_entry(db, alice, Visibility.FRIENDS)

    assert client.get(f"/entries/{entry.id}", headers=auth_headers(bob)).status_code == 200
    assert client.get(f"/entries/{entry.id}", headers=auth_headers(carol)).status_code == 404
    assert client.get(f"/entries/{entry.id}").status_code == 404


def test_update_entry(client, db, alice):
    entry = make_entry(db, alice)
    response = client.patch(
        f"/entries/{entry.id}",
        headers=auth_headers(alice),
        json={"subject": "Edited", "visibility": "PRIVATE"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["subject"] == "Edited"
    assert data["visibility"] == "PRIVATE"
    assert data["body_html"] == entry.body_html


def test_update_entry_by_non_owner(client, db, alice, bob):
    public_entry = make_entry(db, alice, Visibility.PUBLIC)
    private_entry = make_entry(db, alice, Visibility.PRIVATE)

    response = client.patch(f"/entries/{public_entry.id}", headers=auth_headers(bob), json={"subject": "x"})
    assert response.status_code == 403
    response = client.patch(f"/entries/{private_entry.id}", headers=auth_headers(bob), json={"subject": "x"})
    assert response.status_code == 404


def test_delete_entry_cascades_comments(client, db, alice):
    entry = make_entry(db, alice)
    client.post(f"/entries/{entry.id}/comments", headers=auth_headers(alice), json={"body_html": "first!"})

    response = client.delete(f"/entries/{entry.id}", headers=auth_headers(alice))
    assert response.status_code == 204
    assert client.get(f"/entries/{entry.id}").status_code == 404

    from oldjournal import models

    db.expire_all()
    assert db.query(models.Comment).count() == 0


def test_user_journal_filters_by_viewer(client, db, alice, bob):
    make_entry(db, alice, Visibility.PUBLIC, subject="public")
    make_entry(db, alice, Visibility.FRIENDS, subject="friends")
    make_entry(db, alice, Visibility.PRIVATE, subject="private")

    def subjects(headers=None):
        response = client.get("/users/alice/entries", headers=headers or {})
        assert response.status_code == 200
        return {item["subject"] for item in response.json()["items"]}

    assert subjects() == {"public"}
    assert subjects(auth_headers(bob)) == {"public"}
    follow(db, alice, bob)
    assert subjects(auth_headers(bob)) == {"public", "friends"}
    assert subjects(auth_headers(alice)) == {"public", "friends", "private"}


def test_user_journal_pagination(client, db, alice):
    created = [make_entry(db, alice, subject=f"day {i}") for i in range(5)]

    first = client.get("/users/alice/entries", params={"limit": 2}).json()
    assert [e["id"] for e in first["items"]] == [created[4].id, created[3].id]
    assert first["next_cursor"]

    second = client.get("/users/alice/entries", params={"limit": 2, "cursor": first["next_cursor"]}).json()
    assert [e["id"] for e in second["items"]] == [created[2].id, created[1].id]

    third = client.get("/users/alice/entries", params={"limit": 2, "cursor": second["next_cursor"]}).json()
    assert [e["id"] for e in third["items"]] == [created[0].id]
    assert third["next_cursor"] is None


def test_unknown_user_journal(client):
    assert client.get("/users/nobody/entries").status_code == 404


def test_friends_feed(client, db, alice, bob, carol):
    follow(db, bob, alice)
    follow(db, bob, carol)
    follow(db, alice, bob)  # alice lets bob read her FRIENDS entries

    own = make_entry(db, bob, Visibility.PRIVATE, subject="bob private")
    alice_friends = make_entry(db, alice, Visibility.FRIENDS, subject="alice friends")
    make_entry(db, carol, Visibility.FRIENDS, subject="carol friends")
    carol_public = make_entry(db, carol, Visibility.PUBLIC, subject="carol public")

    response = client.get("/feed", headers=auth_headers(bob))
    assert response.status_code == 200
    ids = {item["id"] for item in response.json()["items"]}
    assert ids == {own.id, alice_friends.id, carol_public.id}


def test_feed_requires_auth(client):
    assert client.get("/feed").status_code == 401


def test_recent_only_public(client, db, alice):
    public = make_entry(db, alice, Visibility.PUBLIC)
    make_entry(db, alice, Visibility.FRIENDS)
    make_entry(db, alice, Visibility.PRIVATE)

    items = client.get("/recent", headers=auth_headers(alice)).json()["items"]
    assert [item["id"] for item in items] == [public.id]
