"""Authentication middleware: loads the browser session and protects all routes except public paths."""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse

from analytics_hub.config import get_settings
from analytics_hub.services.session_store import SESSION_COOKIE, get_session_store

LOGIN_PATH = "/auth/google"

# Exact paths that never require authentication
PUBLIC_PATHS = {
    "/",
    "/auth/google",
    "/auth/google/callback",
    "/auth/logout",
    "/health",
    "/status",
    "/robots.txt",
}

# Prefixes that never require authentication
PUBLIC_PREFIXES = (
    "/static/",
    "/docs",
    "/openapi.json",
    "/redoc",
)


def is_public(path: str) -> bool:
    return path in PUBLIC_PATHS or any(path.startswith(p) for p in PUBLIC_PREFIXES)


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        store = get_session_store()
        session = store.load(request.cookies.get(SESSION_COOKIE))
        request.state.session = session

        path = request.url.path
        if is_public(path) or session.is_authenticated:
            response = await call_next(request)
        elif path.startswith("/api/"):
            response = JSONResponse(
                status_code=401,
                content={"detail": "Not authenticated. Please login.", "redirect_to": LOGIN_PATH},
            )
        else:
            response = RedirectResponse(url=LOGIN_PATH, status_code=302)

        if session.destroyed:
            response.delete_cookie(SESSION_COOKIE, path="/")
        elif session.is_new and not session.is_blank:
            store.save(session)
            settings = get_settings()
            response.set_cookie(
                key=SESSION_COOKIE,
                value=store.sign(session.session_id),
                httponly=True,
                secure=settings.is_production,
                samesite="lax",
                max_age=settings.session_duration_hours * 60 * 60,
                path="/",
            )
            session.is_new = False
        return response
