"""Shared route dependencies: session access, token freshness, HTML rendering."""
import os
from typing import Any, Dict

from fastapi import Depends, HTTPException, Request
from fastapi.templating import Jinja2Templates

from analytics_hub.services import oauth_service
from analytics_hub.services.oauth_service import TokenRefreshError
from analytics_hub.services.session_store import SessionData, get_session_store
from analytics_hub.utils.logger import log

package_dir = os.path.dirname(os.path.dirname(__file__))
static_dir = os.path.join(package_dir, "static")
templates = Jinja2Templates(directory=os.path.join(package_dir, "templates"))


class LoginRequired(Exception):
    """Raised by page routes when the user has to go through the OAuth flow again"""


def get_session(request: Request) -> SessionData:
    """Dependency: the session attached by AuthMiddleware."""
    return request.state.session


def require_login(session: SessionData = Depends(get_session)) -> SessionData:
    """Dependency for page routes: redirect to login when there are no tokens."""
    if not session.is_authenticated:
        raise LoginRequired()
    return session


async def fresh_tokens(session: SessionData = Depends(get_session)) -> Dict[str, Any]:
    """Dependency for JSON routes: tokens refreshed if near expiry, else 401."""
    try:
        return await oauth_service.ensure_fresh_tokens(session)
    except TokenRefreshError as e:
        log.error(f"Token refresh failed, ending session: {str(e)}")
        get_session_store().destroy(session)
        raise HTTPException(status_code=401, detail="Session expired. Please login again.")


async def fresh_tokens_page(session: SessionData = Depends(get_session)) -> Dict[str, Any]:
    """Dependency for page routes: tokens refreshed if near expiry, else back to login."""
    try:
        return await oauth_service.ensure_fresh_tokens(session)
    except TokenRefreshError as e:
        log.error(f"Token refresh failed, redirecting to login: {str(e)}")
        get_session_store().destroy(session)
        raise LoginRequired()


def render_error(
    request: Request,
    title: str,
    message: str,
    status_code: int = 500,
    link_url: str = "/",
    link_text: str = "Try again",
    detail: str = "",
):
    """Small HTML error page"""
    return templates.TemplateResponse(
        request,
        "error.html",
        {
            "title": title,
            "message": message,
            "detail": detail,
            "link_url": link_url,
            "link_text": link_text,
        },
        status_code=status_code,
    )
