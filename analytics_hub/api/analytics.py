"""
Analytics API

Account and property selection pages, the dashboard page and its data endpoint.
"""
import os

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse, RedirectResponse

from analytics_hub.api.deps import (
    fresh_tokens,
    get_session,
    render_error,
    require_login,
    static_dir,
    templates,
)
from analytics_hub.connectors.analytics_admin_connector import AnalyticsAdminConnector
from analytics_hub.connectors.analytics_data_connector import AnalyticsDataConnector
from analytics_hub.connectors.base_connector import UpstreamAPIError
from analytics_hub.services import report_shaping
from analytics_hub.services.session_store import SessionData
from analytics_hub.utils.helpers import resource_id
from analytics_hub.utils.logger import log

router = APIRouter(tags=["analytics"])


@router.get("/select-account")
async def select_account_page(request: Request, session: SessionData = Depends(require_login)):
    """List the user's Analytics accounts."""
    try:
        accounts = await AnalyticsAdminConnector(session.access_token).list_accounts()
    except Exception as e:
        log.error(f"Error loading accounts: {str(e)}")
        return render_error(request, "Error", "Could not load accounts.", detail=str(e))

    return templates.TemplateResponse(
        request,
        "select_account.html",
        {
            "accounts": [
                {"id": resource_id(a.get("name", "")), "display_name": a.get("displayName")}
                for a in accounts
            ],
        },
    )


@router.get("/select-account/{account_id}")
async def select_account(account_id: str, session: SessionData = Depends(require_login)):
    session.selected_account_id = account_id
    return RedirectResponse(url="/select-property", status_code=302)


@router.get("/select-property")
async def select_property_page(request: Request, session: SessionData = Depends(require_login)):
    """List the GA4 properties of the selected account."""
    if not session.selected_account_id:
        return RedirectResponse(url="/select-account", status_code=302)

    try:
        properties = await AnalyticsAdminConnector(session.access_token).list_properties(
            session.selected_account_id
        )
    except Exception as e:
        log.error(f"Error loading properties for account {session.selected_account_id}: {str(e)}")
        return render_error(request, "Error", "Could not load properties.", detail=str(e))

    if not properties:
        return templates.TemplateResponse(request, "no_properties.html", {})

    return templates.TemplateResponse(
        request,
        "select_property.html",
        {
            "properties": [
                {
                    "id": resource_id(p.get("name", "")),
                    "display_name": p.get("displayName"),
                    "time_zone": p.get("timeZone") or "N/A",
                    "currency_code": p.get("currencyCode") or "N/A",
                }
                for p in properties
            ],
        },
    )


@router.get("/select-property/{property_id}")
async def select_property(property_id: str, session: SessionData = Depends(require_login)):
    session.selected_property_id = property_id
    return RedirectResponse(url="/dashboard", status_code=302)


@router.get("/dashboard")
async def dashboard(session: SessionData = Depends(require_login)):
    """Serve the dashboard"""
    if not session.selected_property_id:
        return RedirectResponse(url="/select-property", status_code=302)
    return FileResponse(os.path.join(static_dir, "dashboard.html"))


@router.get("/api/dashboard-data")
async def dashboard_data(session: SessionData = Depends(get_session)):
    """Flat 30-day report rows for the selected property."""
    if not session.selected_property_id:
        raise HTTPException(status_code=400, detail="No property selected")

    tokens = await fresh_tokens(session)
    property_id = session.selected_property_id

    try:
        rows = await AnalyticsDataConnector(tokens["access_token"]).fetch_dashboard_rows(property_id)
    except UpstreamAPIError as e:
        if e.is_auth_error:
            raise HTTPException(status_code=401, detail="Session expired")
        raise HTTPException(status_code=500, detail=f"Error loading dashboard data: {e.message}")
    except Exception as e:
        log.error(f"Error loading dashboard data for property {property_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error loading dashboard data: {str(e)}")

    if not rows:
        raise HTTPException(status_code=404, detail="No data available for the selected period")

    return {"main_report": report_shaping.format_dashboard_rows(rows)}
