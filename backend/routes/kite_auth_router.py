from fastapi import Request, APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, RedirectResponse
from exceptions.exceptions import ConfigurationException, InvalidLoginStateException
from routes.dependencies import get_auth_service
from services.kite_auth import KiteAuthService
from typing import Optional
import logging

# Configure logger once (e.g. in your main app)
logger = logging.getLogger("kite_auth")
logger.setLevel(logging.INFO)

STATE_COOKIE_NAME = "kite_oauth_state"
STATE_COOKIE_MAX_AGE = 300

kite_router = APIRouter()


def _clear_state_cookie(response, secure: bool):
    response.delete_cookie(STATE_COOKIE_NAME, path="/", httponly=True, samesite="lax", secure=secure)
    return response


def _is_secure(request: Request) -> bool:
    return request.url.scheme == "https"


@kite_router.get("/kite/login")
def kite_login(
    request: Request,
    account: Optional[str] = Query(None),
    auth: KiteAuthService = Depends(get_auth_service),
):
    try:
        url, state = auth.build_login_url(account)
    except ConfigurationException as e:
        logger.warning("Kite login requested for unknown account %r", account)
        raise HTTPException(status_code=400, detail=str(e))

    response = RedirectResponse(url)
    response.set_cookie(
        STATE_COOKIE_NAME,
        state,
        max_age=STATE_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=_is_secure(request),
        path="/",
    )
    return response


@kite_router.get("/kite/callback")
def kite_callback_handler(
    request: Request,
    request_token: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    auth: KiteAuthService = Depends(get_auth_service),
):
    secure = _is_secure(request)
    if not request_token:
        logger.warning("Kite callback without request_token")
        return _clear_state_cookie(JSONResponse({"error": "Missing request_token from Kite."}, status_code=400), secure)

    # 1) Exchange code for session, 2) persist the token, 3) take a first snapshot
    try:
        auth.complete_login(request_token, request.cookies.get(STATE_COOKIE_NAME), state)
    except InvalidLoginStateException as e:
        logger.warning("Rejected Kite callback: %s", e)
        return _clear_state_cookie(JSONResponse({"error": str(e)}, status_code=400), secure)
    except Exception as e:
        logger.exception("Failed to store Kite access token")
        return _clear_state_cookie(JSONResponse({"error": str(e) or "Failed to exchange Kite request token."}, status_code=500), secure)

    logger.info("Kite login succeeded; access token stored")
    return _clear_state_cookie(RedirectResponse(f"{auth.app_url}/", status_code=302), secure)


@kite_router.get("/kite/session-status")
def check_kite_session(
    account: str = Query(...),
    auth: KiteAuthService = Depends(get_auth_service),
):
    try:
        return auth.session_status(account)
    except ConfigurationException as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        logger.exception("Unexpected error checking Kite session")
        raise HTTPException(status_code=500, detail="Internal error checking session")
