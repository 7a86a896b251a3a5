"""Repository tests for auth/store.py (UserStore) and posts/store.py (PostStore)."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore
from conftest import memory_db_url
from posts.models import Post
from posts.store import PostStore


@pytest.fixture
def user_store():
    store = UserStore(memory_db_url("users"))
    yield store
    store.close()


@pytest.fixture
def post_store():
    store = PostStore(memory_db_url("posts"))
    yield store
    store.close()


def _user(email: str = "alice@example.com") -> User:
    return User(email=email, password_hash="$argon2id$v=19$m=19456,t=2,p=1$c2FsdA$aGFzaA")


class TestUserStore:
    def test_create_and_fetch(self, user_store: UserStore) -> None:
        created = user_store.create_user(_user())
        assert created.created_at
        by_id = user_store.get_by_id(created.id)
        by_email = user_store.get_by_email("alice@example.com")
        assert by_id == by_email == created

    def test_email_normalised(self, user_store: UserStore) -> None:
        user_store.create_user(_user(" Alice@Example.com "))
        assert user_store.get_by_email("ALICE@EXAMPLE.COM").email == "alice@example.com"

    def test_duplicate_email_raises_integrity_error(self, user_store: UserStore) -> None:
        user_store.create_user(_user())
        with pytest.raises(IntegrityError):
            user_store.create_user(_user("ALICE@example.com"))

    def test_missing_returns_none(self, user_store: UserStore) -> None:
        assert user_store.get_by_id(uuid.uuid4()) is None
        assert user_store.get_by_email("nobody@example.com") is None

    def test_update(self, user_store: UserStore) -> None:
        user = user_store.create_user(_user())
        assert user_store.update_user(user.id, email="New@Example.com", password_hash="$argon2id$other") is True
        updated = user_store.get_by_id(user.id)
        assert updated.email == "new@example.com"
        assert updated.password_hash == "$argon2id$other"

    def test_update_missing_user(self, user_store: UserStore) -> None:
        assert user_store.update_user(uuid.uuid4(), email="x@example.com") is False

    def test_update_rejects_unknown_fields(self, user_store: UserStore) -> None:
        user = user_store.create_user(_user())
        with pytest.raises(ValueError):
            user_store.update_user(user.id, id=str(uuid.uuid4()))

    def test_delete(self, user_store: UserStore) -> None:
        user = user_store.create_user(_user())
        assert user_store.delete_user(user.id) is True
        assert user_store.get_by_id(user.id) is None
        assert user_store.delete_user(user.id) is False

    def test_ping(self, user_store: UserStore) -> None:
        assert user_store.ping() is True


class TestPostStore:
    def test_create_assigns_id(self, post_store: PostStore) -> None:
        owner = uuid.uuid4()
        post = post_store.create_post(Post(title="t", text="x", user_id=owner))
        assert post.id is not None
        assert post_store.get_by_id(post.id) == post

    def test_list_oldest_first(self, post_store: PostStore) -> None:
        owner = uuid.uuid4()
        for title in ("a", "b", "c"):
            post_store.create_post(Post(title=title, text="", user_id=owner))
        assert [p.title for p in post_store.list_posts()] == ["a", "b", "c"]

    def test_update_title_and_text_only(self, post_store: PostStore) -> None:
        post = post_store.create_post(Post(title="t", text="x", user_id=uuid.uuid4()))
        assert post_store.update_post(post.id, title="T2") is True
        assert post_store.get_by_id(post.id).title == "T2"
        with pytest.raises(ValueError):
            post_store.update_post(post.id, user_id=str(uuid.uuid4()))

    def test_update_missing_post(self, post_store: PostStore) -> None:
        assert post_store.update_post(9999, title="t") is False

    def test_delete(self, post_store: PostStore) -> None:
        post = post_store.create_post(Post(title="t", text="x", user_id=uuid.uuid4()))
        assert post_store.delete_post(post.id) is True
        assert post_store.get_by_id(post.id) is None
        assert post_store.delete_post(post.id) is False

    def test_delete_by_owner(self, post_store: PostStore) -> None:
        alice, bob = uuid.uuid4(), uuid.uuid4()
        for _ in range(3):
            post_store.create_post(Post(title="a", text="", user_id=alice))
        kept = post_store.create_post(Post(title="b", text="", user_id=bob))
        assert post_store.delete_by_owner(alice) == 3
        assert post_store.list_posts() == [kept]
