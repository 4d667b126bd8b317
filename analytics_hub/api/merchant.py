"""
Merchant Center API

Account listing and selection, product catalog, and the merchant dashboard page.
"""
import os
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse
from pydantic import BaseModel, field_validator

from analytics_hub.api.deps import fresh_tokens, get_session, render_error, require_login, static_dir
from analytics_hub.connectors.merchant_center_connector import MerchantCenterConnector
from analytics_hub.services.session_store import SessionData
from analytics_hub.utils.logger import log

router = APIRouter(tags=["merchant-center"])


class SelectMerchantRequest(BaseModel):
    merchant_id: str | int | None = None

    @field_validator("merchant_id")
    @classmethod
    def _as_string(cls, value):
        # blank and zero ids count as missing
        return str(value) if value else None


@router.get("/merchant-dashboard")
async def merchant_dashboard(request: Request, session: SessionData = Depends(require_login)):
    """Serve the merchant dashboard"""
    if not session.selected_merchant_id:
        log.info("Merchant dashboard requested without a selected merchant account")
        return render_error(
            request,
            "Merchant account not selected",
            "A Merchant Center account must be selected to view this dashboard. "
            "Please log in again or select an account.",
            status_code=400,
            link_url="/auth/google",
            link_text="Re-authenticate",
        )
    return FileResponse(os.path.join(static_dir, "merchant_dashboard.html"))


@router.get("/api/merchant-center/accounts")
async def merchant_accounts(session: SessionData = Depends(get_session)):
    """Merchant Center accounts the user can access, and the current selection."""
    tokens = await fresh_tokens(session)
    try:
        accounts = await MerchantCenterConnector(tokens["access_token"]).list_accounts()
    except Exception as e:
        log.error(f"Error fetching Merchant Center accounts: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to retrieve Merchant Center accounts: {str(e)}")

    return {
        "accounts": accounts,
        "selected_merchant_id": session.selected_merchant_id,
    }


@router.post("/api/merchant-center/select-account")
async def select_merchant_account(
    body: Optional[SelectMerchantRequest] = None,
    session: SessionData = Depends(get_session),
):
    """Store the chosen merchant id on the session."""
    await fresh_tokens(session)
    if body is None or not body.merchant_id:
        raise HTTPException(status_code=400, detail="merchant_id is required in the request body")

    session.selected_merchant_id = body.merchant_id
    log.info(f"Merchant ID {body.merchant_id} selected")
    return {"success": True, "selected_merchant_id": session.selected_merchant_id}


@router.get("/api/merchant-center/products")
async def merchant_products(session: SessionData = Depends(get_session)):
    """Every product of the selected merchant account (all pages)."""
    tokens = await fresh_tokens(session)
    merchant_id = session.selected_merchant_id
    if not merchant_id:
        raise HTTPException(status_code=400, detail="No Merchant ID selected. Please select a Merchant Account first.")

    connector = MerchantCenterConnector(tokens["access_token"])
    try:
        account_name = await connector.get_account_name(merchant_id)
        products = await connector.list_products(merchant_id)
    except Exception as e:
        log.error(f"Error fetching products for merchant {merchant_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to retrieve products from Merchant Center: {str(e)}")

    return {
        "merchant_id": merchant_id,
        "account_name": account_name,
        "products": products,
        "total_products": len(products),
    }
