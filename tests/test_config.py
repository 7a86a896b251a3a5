"""Tests for core/config.py -- SECRET_KEY policy and session settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD_KEY = "k" * 32


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DEBUG", "SECRET_KEY", "SESSION_BACKEND", "SESSION_STORE_URL", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)


def _settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


class TestSecretKey:
    def test_production_requires_key(self) -> None:
        with pytest.raises(ValidationError, match="SECRET_KEY is required"):
            _settings(debug=False)

    def test_short_key_rejected(self) -> None:
        with pytest.raises(ValidationError, match="at least 32"):
            _settings(secret_key="short")

    def test_debug_generates_key(self) -> None:
        first, second = _settings(debug=True), _settings(debug=True)
        assert len(first.secret_key) >= 32
        assert first.secret_key != second.secret_key

    def test_explicit_key_kept(self) -> None:
        assert _settings(secret_key=GOOD_KEY).secret_key == GOOD_KEY

    def test_key_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SECRET_KEY", GOOD_KEY)
        assert _settings().secret_key == GOOD_KEY


class TestSessionSettings:
    def test_defaults(self) -> None:
        s = _settings(secret_key=GOOD_KEY)
        assert s.session_backend == "memory"
        assert s.session_ttl_seconds == 86400
        assert s.secure_cookies is False

    def test_store_url_falls_back_to_database_url(self) -> None:
        s = _settings(secret_key=GOOD_KEY, database_url="sqlite:///app.db")
        assert s.resolved_session_store_url == "sqlite:///app.db"

    def test_explicit_store_url_wins(self) -> None:
        s = _settings(secret_key=GOOD_KEY, database_url="sqlite:///app.db", session_store_url="sqlite:///s.db")
        assert s.resolved_session_store_url == "sqlite:///s.db"

    def test_unknown_backend_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _settings(secret_key=GOOD_KEY, session_backend="redis")

    def test_backend_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SESSION_BACKEND", "shared")
        assert _settings(secret_key=GOOD_KEY).session_backend == "shared"

    @pytest.mark.parametrize("field", ["session_ttl_seconds", "session_purge_interval_seconds"])
    def test_non_positive_intervals_rejected(self, field: str) -> None:
        with pytest.raises(ValidationError):
            _settings(secret_key=GOOD_KEY, **{field: 0})
