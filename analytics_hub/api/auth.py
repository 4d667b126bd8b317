"""Authentication routes: Google OAuth2 login, callback, logout."""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from analytics_hub.api.deps import get_session, render_error
from analytics_hub.connectors.analytics_admin_connector import AnalyticsAdminConnector
from analytics_hub.services import account_data_service, oauth_service
from analytics_hub.services.oauth_service import OAuthConfigError
from analytics_hub.services.session_store import SessionData, get_session_store
from analytics_hub.utils.helpers import resource_id
from analytics_hub.utils.logger import log

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/google")
async def login(request: Request, session: SessionData = Depends(get_session)):
    """Redirect to the Google consent screen."""
    try:
        url, state, code_verifier = oauth_service.authorization_url()
    except OAuthConfigError as e:
        log.error(f"OAuth is not configured: {str(e)}")
        return render_error(
            request,
            "Configuration error",
            "OAuth credentials are not configured correctly. Check your .env file.",
            status_code=500,
        )

    session.oauth_state = state
    session.oauth_code_verifier = code_verifier
    return RedirectResponse(url=url, status_code=302)


@router.get("/google/callback")
async def callback(
    request: Request,
    code: str = "",
    state: str = "",
    session: SessionData = Depends(get_session),
):
    """Exchange the code for tokens, collect the account snapshot, then route to account selection."""
    try:
        if not code:
            raise ValueError("Authorization code not received")
        if session.oauth_state and state and state != session.oauth_state:
            raise ValueError("OAuth state mismatch")

        session.tokens = await oauth_service.exchange_code(
            code,
            state=session.oauth_state,
            code_verifier=session.oauth_code_verifier,
        )
        session.oauth_state = None
        session.oauth_code_verifier = None

        # The snapshot is a bonus; login carries on without it
        try:
            await account_data_service.refresh_session_snapshot(session)
        except Exception as e:
            log.error(f"Error creating account data snapshot: {str(e)}")

        accounts = await AnalyticsAdminConnector(session.access_token).list_accounts()
        if not accounts:
            raise ValueError("No Analytics accounts found")

        if len(accounts) == 1:
            session.selected_account_id = resource_id(accounts[0]["name"])
            return RedirectResponse(url="/select-property", status_code=302)

        return RedirectResponse(url="/select-account", status_code=302)

    except Exception as e:
        log.error(f"Login failed: {str(e)}")
        return render_error(
            request,
            "Authentication error",
            "An error occurred during the login process:",
            status_code=500,
            detail=str(e),
        )


@router.get("/logout")
async def logout(session: SessionData = Depends(get_session)):
    """End the session and go back to the home page."""
    get_session_store().destroy(session)
    return RedirectResponse(url="/", status_code=302)
