"""Integration tests for api/routes/posts.py and the ownership gate.

Covers:
- public reads: list and single post, 404 on unknown id
- creation requires sign-in and records the caller as owner
- PUT/DELETE: 404 before 401 before 403, owner succeeds
- a session naming a deleted user cannot create posts
"""

from __future__ import annotations

import pytest

from conftest import signup

POST = {"title": "Hello", "text": "First post."}


@pytest.fixture
def alice(make_client):
    c = make_client()
    c.user = signup(c, "alice@example.com")
    return c


@pytest.fixture
def bob(make_client):
    c = make_client()
    c.user = signup(c, "bob@example.com")
    return c


@pytest.fixture
def alice_post(alice) -> dict:
    resp = alice.post("/posts", json=POST)
    assert resp.status_code == 201
    return resp.json()


class TestReadPosts:
    def test_empty_list(self, client) -> None:
        resp = client.get("/posts")
        assert resp.status_code == 200
        assert resp.json() == []

    def test_list_is_public_and_ordered(self, alice, bob, client) -> None:
        alice.post("/posts", json={"title": "one", "text": "a"})
        bob.post("/posts", json={"title": "two", "text": "b"})
        titles = [p["title"] for p in client.get("/posts").json()]
        assert titles == ["one", "two"]

    def test_get_single_post(self, alice_post, client) -> None:
        resp = client.get(f"/posts/{alice_post['id']}")
        assert resp.status_code == 200
        assert resp.json() == alice_post

    def test_get_unknown_post(self, client) -> None:
        resp = client.get("/posts/9999")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"

    def test_non_integer_id_is_400(self, client) -> None:
        assert client.get("/posts/abc").status_code == 400


class TestCreatePost:
    def test_create_records_owner(self, alice) -> None:
        resp = alice.post("/posts", json=POST)
        assert resp.status_code == 201
        body = resp.json()
        assert body["title"] == POST["title"]
        assert body["text"] == POST["text"]
        assert body["user_id"] == alice.user["id"]
        assert body["created_at"]

    def test_anonymous_create_is_401(self, client) -> None:
        resp = client.post("/posts", json=POST)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    @pytest.mark.parametrize("payload", [{"title": "", "text": "x"}, {"title": "t"}, {}])
    def test_invalid_body_is_400(self, alice, payload) -> None:
        assert alice.post("/posts", json=payload).status_code == 400

    def test_deleted_user_cannot_create(self, alice, stores) -> None:
        user_store, _, _ = stores
        user_store.delete_user(user_store.get_by_email("alice@example.com").id)
        resp = alice.post("/posts", json=POST)
        assert resp.status_code == 404


class TestOwnershipGate:
    @pytest.mark.parametrize("method", ["put", "delete"])
    def test_missing_post_is_404_for_anonymous(self, client, method) -> None:
        resp = client.request(method.upper(), "/posts/9999", json=POST if method == "put" else None)
        assert resp.status_code == 404

    @pytest.mark.parametrize("method", ["put", "delete"])
    def test_missing_post_is_404_for_signed_in(self, alice, method) -> None:
        resp = alice.request(method.upper(), "/posts/9999", json=POST if method == "put" else None)
        assert resp.status_code == 404

    @pytest.mark.parametrize("method", ["put", "delete"])
    def test_anonymous_mutation_is_401(self, alice_post, client, method) -> None:
        resp = client.request(method.upper(), f"/posts/{alice_post['id']}", json=POST if method == "put" else None)
        assert resp.status_code == 401

    @pytest.mark.parametrize("method", ["put", "delete"])
    def test_non_owner_mutation_is_403(self, alice_post, bob, method) -> None:
        resp = bob.request(method.upper(), f"/posts/{alice_post['id']}", json=POST if method == "put" else None)
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_non_owner_leaves_post_untouched(self, alice_post, bob, client) -> None:
        bob.put(f"/posts/{alice_post['id']}", json={"title": "pwned", "text": "pwned"})
        bob.delete(f"/posts/{alice_post['id']}")
        assert client.get(f"/posts/{alice_post['id']}").json() == alice_post

    def test_owner_updates(self, alice, alice_post, client) -> None:
        resp = alice.put(f"/posts/{alice_post['id']}", json={"title": "Edited", "text": "New text."})
        assert resp.status_code == 204
        body = client.get(f"/posts/{alice_post['id']}").json()
        assert body["title"] == "Edited"
        assert body["text"] == "New text."
        assert body["user_id"] == alice.user["id"]

    def test_owner_deletes(self, alice, alice_post, client) -> None:
        assert alice.delete(f"/posts/{alice_post['id']}").status_code == 204
        assert client.get(f"/posts/{alice_post['id']}").status_code == 404
        assert alice.delete(f"/posts/{alice_post['id']}").status_code == 404

    def test_signed_out_owner_is_401(self, alice, alice_post) -> None:
        alice.post("/signout")
        assert alice.delete(f"/posts/{alice_post['id']}").status_code == 401
