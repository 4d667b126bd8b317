"""
Session store and OAuth token handling tests.

Covers:
  - Signed session cookies (round trip, tampering)
  - Expiry on lookup, on save and bulk cleanup
  - Token expiry window
  - Refresh-once semantics and refresh-token retention
"""
import asyncio
import os
from datetime import datetime, timedelta, timezone

import google.auth.exceptions
import pytest
from google.oauth2.credentials import Credentials

from analytics_hub.services import oauth_service
from analytics_hub.services.oauth_service import (
    TokenRefreshError,
    authorization_url,
    build_flow,
    configure_oauthlib,
    ensure_fresh_tokens,
    is_token_expiring,
    refresh_tokens,
)
from analytics_hub.services.session_store import SessionStore


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


def _ms(moment):
    return int(moment.timestamp() * 1000)


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


# ────────────────────────────────────────────
# SESSION STORE
# ────────────────────────────────────────────


class TestSessionStore:

    def test_signed_cookie_round_trip(self):
        store = SessionStore("secret")
        session = store.create()

        loaded = store.load(store.sign(session.session_id))

        assert loaded is session

    def test_tampered_cookie_gives_fresh_unregistered_session(self):
        store = SessionStore("secret")
        session = store.create()
        forged = SessionStore("other-secret").sign(session.session_id)

        loaded = store.load(forged)

        assert loaded is not session
        assert loaded.is_new
        assert loaded.is_blank
        assert len(store) == 1

    def test_missing_cookie_does_not_register(self):
        store = SessionStore("secret")
        store.load(None)
        assert len(store) == 0

    def test_expired_session_dropped_on_lookup(self):
        store = SessionStore("secret")
        session = store.create()
        session.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)

        assert store.get(session.session_id) is None
        assert len(store) == 0

    def test_cleanup_expired(self):
        store = SessionStore("secret")
        stale = store.create()
        store.create()
        stale.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)

        assert store.cleanup_expired() == 1
        assert len(store) == 1

    def test_saving_purges_expired_sessions(self):
        """Abandoned sessions must not pile up between lookups."""
        store = SessionStore("secret")
        sessions = [store.create() for _ in range(10)]
        for stale in sessions[:5]:
            stale.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)

        store.create()

        assert len(store) == 6
        assert all(store.get(s.session_id) is None for s in sessions[:5])

    def test_destroy_clears_tokens_and_snapshot(self):
        store = SessionStore("secret")
        session = store.create()
        session.tokens = {"access_token": "abc"}
        session.account_data = {"user": {}}

        store.destroy(session)

        assert session.destroyed
        assert not session.is_authenticated
        assert session.account_data is None
        assert store.get(session.session_id) is None

    def test_session_with_selection_is_not_blank(self):
        session = SessionStore("secret").create(register=False)
        assert session.is_blank
        session.selected_property_id = "123"
        assert not session.is_blank


# ────────────────────────────────────────────
# TOKEN EXPIRY
# ────────────────────────────────────────────


class TestTokenExpiry:

    def test_within_refresh_window(self):
        tokens = {"access_token": "a", "expiry_date": _ms(NOW + timedelta(minutes=4))}
        assert is_token_expiring(tokens, now=NOW)

    def test_outside_refresh_window(self):
        tokens = {"access_token": "a", "expiry_date": _ms(NOW + timedelta(minutes=10))}
        assert not is_token_expiring(tokens, now=NOW)

    def test_already_expired(self):
        tokens = {"access_token": "a", "expiry_date": _ms(NOW - timedelta(hours=1))}
        assert is_token_expiring(tokens, now=NOW)

    def test_no_expiry_never_expires(self):
        assert not is_token_expiring({"access_token": "a"}, now=NOW)


# ────────────────────────────────────────────
# REFRESH
# ────────────────────────────────────────────


def test_fresh_tokens_returned_untouched():
    session = SessionStore("secret").create()
    session.tokens = {"access_token": "a"}

    assert _run(ensure_fresh_tokens(session)) is session.tokens


def test_missing_tokens_raise():
    session = SessionStore("secret").create()
    with pytest.raises(TokenRefreshError):
        _run(ensure_fresh_tokens(session))


def test_expiring_tokens_refreshed_once(monkeypatch):
    calls = []

    async def fake_refresh(tokens):
        calls.append(tokens)
        return {"access_token": "new", "refresh_token": tokens["refresh_token"], "expiry_date": None}

    monkeypatch.setattr(oauth_service, "refresh_tokens", fake_refresh)
    session = SessionStore("secret").create()
    session.tokens = {"access_token": "old", "refresh_token": "r", "expiry_date": 1}

    tokens = _run(ensure_fresh_tokens(session))

    assert len(calls) == 1
    assert tokens["access_token"] == "new"
    assert session.tokens["access_token"] == "new"


def test_refresh_without_refresh_token_fails():
    with pytest.raises(TokenRefreshError):
        _run(refresh_tokens({"access_token": "old", "expiry_date": 1}))


def test_refresh_keeps_old_refresh_token(monkeypatch):
    def fake_refresh(self, request):
        self.token = "new-token"
        self.expiry = datetime(2030, 1, 1)
        self._refresh_token = None

    monkeypatch.setattr(Credentials, "refresh", fake_refresh)

    tokens = _run(refresh_tokens({"access_token": "old", "refresh_token": "keep-me", "expiry_date": 1}))

    assert tokens["access_token"] == "new-token"
    assert tokens["refresh_token"] == "keep-me"
    assert tokens["expiry_date"] == _ms(datetime(2030, 1, 1, tzinfo=timezone.utc))


def test_refresh_error_maps_to_token_refresh_error(monkeypatch):
    def fake_refresh(self, request):
        raise google.auth.exceptions.RefreshError("invalid_grant")

    monkeypatch.setattr(Credentials, "refresh", fake_refresh)

    with pytest.raises(TokenRefreshError):
        _run(refresh_tokens({"access_token": "old", "refresh_token": "r", "expiry_date": 1}))


# ────────────────────────────────────────────
# CONSENT URL
# ────────────────────────────────────────────


def test_oauthlib_switches_only_set_by_startup(monkeypatch):
    monkeypatch.delenv("OAUTHLIB_RELAX_TOKEN_SCOPE", raising=False)
    monkeypatch.delenv("OAUTHLIB_INSECURE_TRANSPORT", raising=False)

    build_flow()
    assert "OAUTHLIB_RELAX_TOKEN_SCOPE" not in os.environ
    assert "OAUTHLIB_INSECURE_TRANSPORT" not in os.environ

    configure_oauthlib()
    assert os.environ["OAUTHLIB_RELAX_TOKEN_SCOPE"] == "1"
    assert os.environ["OAUTHLIB_INSECURE_TRANSPORT"] == "1"


def test_authorization_url_requests_offline_consent():
    url, state, _ = authorization_url()

    assert url.startswith(oauth_service.AUTH_URI)
    assert "access_type=offline" in url
    assert "prompt=consent" in url
    assert "analytics.readonly" in url
    assert "test-client-id" in url
    assert state
