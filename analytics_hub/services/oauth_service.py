"""OAuth service: Google consent URL, code exchange, token refresh."""
import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import google.auth.exceptions
import google.auth.transport.requests
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from analytics_hub.config import get_settings
from analytics_hub.services.session_store import SessionData
from analytics_hub.utils.logger import log

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

SCOPES = [
    "https://www.googleapis.com/auth/analytics.readonly",
    "https://www.googleapis.com/auth/analytics.manage.users.readonly",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/content",
]

# Tokens this close to expiry are refreshed before use
REFRESH_WINDOW = timedelta(minutes=5)


class OAuthConfigError(Exception):
    """OAuth client credentials are not configured"""


class TokenRefreshError(Exception):
    """The access token could not be refreshed; the user has to sign in again"""


def configure_oauthlib() -> None:
    """
    oauthlib reads its switches from the process environment; set them once
    at application startup. Google may hand back the granted scopes in another
    order (or add openid), and local development runs the callback over http.
    """
    os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")
    if not get_settings().is_production:
        os.environ.setdefault("OAUTHLIB_INSECURE_TRANSPORT", "1")


def _client_config() -> Dict[str, Any]:
    settings = get_settings()
    if not settings.oauth_client_id or not settings.oauth_redirect_uri:
        raise OAuthConfigError("OAuth client id and redirect URI must be configured")
    return {
        "web": {
            "client_id": settings.oauth_client_id,
            "client_secret": settings.oauth_client_secret,
            "auth_uri": AUTH_URI,
            "token_uri": TOKEN_URI,
            "redirect_uris": [settings.oauth_redirect_uri],
        }
    }


def build_flow(state: Optional[str] = None, code_verifier: Optional[str] = None) -> Flow:
    settings = get_settings()
    return Flow.from_client_config(
        _client_config(),
        scopes=SCOPES,
        redirect_uri=settings.oauth_redirect_uri,
        state=state,
        code_verifier=code_verifier,
    )


def authorization_url() -> Tuple[str, str, Optional[str]]:
    """Consent URL asking for offline access. Returns (url, state, code_verifier)."""
    flow = build_flow()
    url, state = flow.authorization_url(access_type="offline", prompt="consent")
    return url, state, flow.code_verifier


def credentials_to_tokens(credentials: Credentials) -> Dict[str, Any]:
    """Plain token dict kept in the session (expiry as epoch milliseconds)"""
    expiry_date = None
    if credentials.expiry is not None:
        # google-auth keeps expiry as naive UTC
        expiry = credentials.expiry.replace(tzinfo=timezone.utc)
        expiry_date = int(expiry.timestamp() * 1000)
    return {
        "access_token": credentials.token,
        "refresh_token": credentials.refresh_token,
        "expiry_date": expiry_date,
        "scope": " ".join(credentials.scopes or []),
        "token_type": "Bearer",
    }


def tokens_to_credentials(tokens: Dict[str, Any]) -> Credentials:
    settings = get_settings()
    expiry = None
    if tokens.get("expiry_date"):
        expiry = datetime.fromtimestamp(tokens["expiry_date"] / 1000, tz=timezone.utc).replace(tzinfo=None)
    return Credentials(
        token=tokens.get("access_token"),
        refresh_token=tokens.get("refresh_token"),
        token_uri=TOKEN_URI,
        client_id=settings.oauth_client_id,
        client_secret=settings.oauth_client_secret,
        scopes=(tokens.get("scope") or "").split() or None,
        expiry=expiry,
    )


async def exchange_code(code: str, state: Optional[str] = None, code_verifier: Optional[str] = None) -> Dict[str, Any]:
    """Trade an authorization code for tokens"""
    flow = build_flow(state=state, code_verifier=code_verifier)
    await asyncio.to_thread(flow.fetch_token, code=code)
    log.info("Exchanged authorization code for tokens")
    return credentials_to_tokens(flow.credentials)


def is_token_expiring(tokens: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """True when the access token expires within the refresh window. No expiry means it never does."""
    expiry_date = tokens.get("expiry_date")
    if not expiry_date:
        return False
    now = now or datetime.now(timezone.utc)
    now_ms = now.timestamp() * 1000
    return expiry_date <= now_ms + REFRESH_WINDOW.total_seconds() * 1000


async def refresh_tokens(tokens: Dict[str, Any]) -> Dict[str, Any]:
    """Refresh the access token. The provider may omit the refresh token; the old one is kept."""
    if not tokens.get("refresh_token"):
        raise TokenRefreshError("No refresh token available")

    credentials = tokens_to_credentials(tokens)
    try:
        await asyncio.to_thread(credentials.refresh, google.auth.transport.requests.Request())
    except google.auth.exceptions.GoogleAuthError as e:
        log.error(f"Token refresh failed: {str(e)}")
        raise TokenRefreshError(str(e)) from e

    refreshed = credentials_to_tokens(credentials)
    if not refreshed.get("refresh_token"):
        refreshed["refresh_token"] = tokens["refresh_token"]
    log.info("Access token refreshed")
    return refreshed


async def ensure_fresh_tokens(session: SessionData) -> Dict[str, Any]:
    """
    Return usable tokens for the session, refreshing once if they are about to
    expire. Raises TokenRefreshError when there are no tokens or the refresh fails.
    """
    if not session.tokens:
        raise TokenRefreshError("Not authenticated")
    if not is_token_expiring(session.tokens):
        return session.tokens

    log.info("Token is expiring, attempting to refresh")
    session.tokens = await refresh_tokens(session.tokens)
    return session.tokens
