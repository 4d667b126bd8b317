"""
Health check and status endpoints
"""
from fastapi import APIRouter
from datetime import datetime, timezone
from analytics_hub.config import get_settings
from analytics_hub.services.session_store import get_session_store
from analytics_hub import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status():
    """Get system status"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "active_sessions": len(get_session_store()),
        "oauth": {
            "client_configured": bool(settings.oauth_client_id and settings.oauth_client_secret),
            "redirect_uri": settings.oauth_redirect_uri,
        },
        "frontend_url": settings.frontend_url,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
