"""
Account data API

View, refresh, download and export the aggregate account snapshot.
"""
import json

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse, Response

from analytics_hub.api.deps import (
    fresh_tokens_page,
    get_session,
    render_error,
    require_login,
    templates,
)
from analytics_hub.services import account_data_service
from analytics_hub.services.session_store import SessionData
from analytics_hub.utils.logger import log

router = APIRouter(tags=["account-data"])


@router.get("/account-data")
async def account_data_page(request: Request, session: SessionData = Depends(require_login)):
    """Snapshot summary plus the full JSON."""
    snapshot = session.account_data
    if not snapshot:
        return templates.TemplateResponse(request, "account_data_missing.html", {}, status_code=404)

    return templates.TemplateResponse(
        request,
        "account_data.html",
        {
            "snapshot": snapshot,
            "overview": snapshot.get("overview") or {},
            "user": snapshot.get("user") or {},
            "snapshot_json": json.dumps(snapshot, indent=2, ensure_ascii=False),
        },
    )


@router.get("/account-data/refresh")
async def refresh_account_data(request: Request, session: SessionData = Depends(get_session)):
    """Collect a new snapshot, then show it."""
    await fresh_tokens_page(session)
    try:
        log.info("Refreshing account data")
        await account_data_service.refresh_session_snapshot(session)
    except Exception as e:
        log.error(f"Error refreshing account data: {str(e)}")
        return render_error(
            request,
            "Error updating data",
            "An error occurred while updating the account data:",
            status_code=500,
            link_url="/account-data",
            link_text="Back",
            detail=str(e),
        )
    return RedirectResponse(url="/account-data", status_code=302)


@router.get("/download-account-data")
async def download_account_data(session: SessionData = Depends(require_login)):
    """Snapshot as a JSON file attachment."""
    if not session.account_data:
        raise HTTPException(status_code=404, detail="Account data not found")

    filename = account_data_service.download_filename(session.account_data)
    return Response(
        content=json.dumps(session.account_data, indent=2, ensure_ascii=False),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/api/account-data")
async def account_data_json(session: SessionData = Depends(get_session)):
    """Snapshot as plain JSON."""
    if not session.account_data:
        raise HTTPException(status_code=404, detail="Account data not found")
    return session.account_data
