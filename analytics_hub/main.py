"""
Analytics Hub
Main FastAPI application
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse, PlainTextResponse, RedirectResponse
from contextlib import asynccontextmanager
from loguru import logger
from pydantic import ValidationError
import os

from analytics_hub.config import get_settings

try:
    settings = get_settings()
except ValidationError as e:
    missing = ", ".join(".".join(str(part) for part in err["loc"]).upper() for err in e.errors())
    logger.error(f"Missing required environment variables: {missing}. Please check your .env file")
    raise SystemExit(1)

from analytics_hub.utils.logger import log
from analytics_hub import __version__

# Import routers
from analytics_hub.api import account_data, analytics, auth, health, merchant
from analytics_hub.api.deps import LoginRequired, get_session, render_error, static_dir
from analytics_hub.middleware.auth_middleware import LOGIN_PATH, AuthMiddleware
from analytics_hub.services.oauth_service import configure_oauthlib
from analytics_hub.services.session_store import get_session_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    configure_oauthlib()
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")
    log.info(f"Account snapshots stored in {os.path.abspath(settings.account_data_dir)}")

    yield

    removed = get_session_store().cleanup_expired()
    log.info(f"Shutting down application ({removed} expired sessions dropped)")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Google Analytics and Merchant Center reporting backend

    - Sign in with Google (OAuth2)
    - Pick an Analytics account and GA4 property
    - 30-day dashboard data for the selected property
    - Aggregate snapshot of every account and property, with consolidated totals
    - Merchant Center accounts and product catalog
    """,
    lifespan=lifespan
)

# Session loading and login gate
app.add_middleware(AuthMiddleware)

# Gzip compression
from starlette.middleware.gzip import GZipMiddleware
app.add_middleware(GZipMiddleware, minimum_size=500)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(health.router, tags=["health"])
app.include_router(analytics.router)
app.include_router(account_data.router)
app.include_router(merchant.router)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse(url=LOGIN_PATH, status_code=302)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception(f"Unhandled error on {request.url.path}: {str(exc)}")
    return render_error(
        request,
        "Application error",
        "An unexpected error occurred:",
        status_code=500,
        link_text="Back to home",
        detail=str(exc),
    )


@app.get("/robots.txt", response_class=PlainTextResponse)
async def robots_txt():
    """Block all crawlers"""
    return "User-agent: *\nDisallow: /\n"


# Mount static files
if os.path.exists(static_dir):
    app.mount("/static", StaticFiles(directory=static_dir), name="static")


@app.get("/")
async def root(request: Request):
    """Login page, or straight to the dashboard when already signed in"""
    if not get_session(request).is_authenticated:
        return FileResponse(os.path.join(static_dir, "index.html"))
    return RedirectResponse(url="/dashboard", status_code=302)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "analytics_hub.main:app",
        host=settings.api_host,
        port=settings.port,
        reload=settings.debug,
    )
