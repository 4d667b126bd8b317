"""Session store: server-side browser sessions keyed by a signed cookie."""
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from itsdangerous import BadSignature, Signer

from analytics_hub.config import get_settings
from analytics_hub.utils.logger import log

SESSION_COOKIE = "session_id"


@dataclass
class SessionData:
    """Everything one browser session knows: OAuth tokens, selections, cached snapshot."""

    session_id: str
    expires_at: datetime
    tokens: Optional[Dict[str, Any]] = None
    selected_account_id: Optional[str] = None
    selected_property_id: Optional[str] = None
    selected_merchant_id: Optional[str] = None
    account_data: Optional[Dict[str, Any]] = None
    account_data_file: Optional[str] = None
    oauth_state: Optional[str] = None
    oauth_code_verifier: Optional[str] = None
    is_new: bool = field(default=False, repr=False)
    destroyed: bool = field(default=False, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.tokens and self.tokens.get("access_token"))

    @property
    def access_token(self) -> Optional[str]:
        return self.tokens.get("access_token") if self.tokens else None

    @property
    def is_blank(self) -> bool:
        """Nothing worth keeping has been stored yet"""
        return not any((
            self.tokens,
            self.selected_account_id,
            self.selected_property_id,
            self.selected_merchant_id,
            self.account_data,
            self.oauth_state,
        ))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at


class SessionStore:
    """In-process session registry. Lookups and saves drop sessions past their expiry."""

    def __init__(self, secret: str, duration_hours: int = 24):
        self.duration = timedelta(hours=duration_hours)
        self._signer = Signer(secret, salt="analytics-hub-session")
        self._sessions: Dict[str, SessionData] = {}
        self._lock = threading.Lock()

    def sign(self, session_id: str) -> str:
        return self._signer.sign(session_id).decode("utf-8")

    def unsign(self, cookie_value: str) -> Optional[str]:
        try:
            return self._signer.unsign(cookie_value).decode("utf-8")
        except BadSignature:
            log.warning("Rejected session cookie with a bad signature")
            return None

    def create(self, register: bool = True) -> SessionData:
        session = SessionData(
            session_id=secrets.token_hex(32),
            expires_at=datetime.now(timezone.utc) + self.duration,
            is_new=True,
        )
        if register:
            self.save(session)
        return session

    def save(self, session: SessionData) -> None:
        """Register a session; expired entries are purged on every save so the store stays bounded"""
        with self._lock:
            self._purge_expired(datetime.now(timezone.utc))
            self._sessions[session.session_id] = session

    def _purge_expired(self, now: datetime) -> int:
        # caller holds the lock
        expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)

    def get(self, session_id: str) -> Optional[SessionData]:
        """Return a live session, or None when unknown or expired."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.is_expired():
                del self._sessions[session_id]
                log.info("Dropped expired session")
                return None
            return session

    def load(self, cookie_value: Optional[str]) -> SessionData:
        """
        Session for a cookie value, or a fresh unregistered one when the cookie
        is missing, forged or stale. Fresh sessions are saved once they hold data.
        """
        if cookie_value:
            session_id = self.unsign(cookie_value)
            if session_id:
                session = self.get(session_id)
                if session is not None:
                    return session
        return self.create(register=False)

    def destroy(self, session: SessionData) -> None:
        with self._lock:
            self._sessions.pop(session.session_id, None)
        session.destroyed = True
        session.tokens = None
        session.account_data = None

    def cleanup_expired(self) -> int:
        """Delete expired sessions. Returns count removed."""
        with self._lock:
            return self._purge_expired(datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self._sessions)


@lru_cache()
def get_session_store() -> SessionStore:
    """Process-wide session store"""
    settings = get_settings()
    return SessionStore(settings.session_secret, settings.session_duration_hours)
