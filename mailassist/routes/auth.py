"""
Authentication routes for Google OAuth.

OAuth Flow:
1. Frontend calls GET /api/auth/login → gets OAuth URL
2. User grants Gmail permissions on Google
3. Google redirects to GET /api/auth/callback with a code
4. Backend exchanges the code, creates a session, sets the cookie
5. Backend redirects to the frontend /dashboard

The session cookie is HTTP-only; Google tokens never leave the server.
"""
from fastapi import APIRouter, Response, Request, HTTPException
from fastapi.responses import RedirectResponse

from mailassist.config import get_settings
from mailassist.services.auth_service import AuthService
from mailassist.services.session_service import delete_session, get_session
from mailassist.utils.errors import AppError
from mailassist.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)
auth_service = AuthService()

SESSION_COOKIE = "session"


def _set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    # Localhost over HTTP can't use secure cookies
    is_secure = settings.frontend_url.startswith("https") and "localhost" not in settings.frontend_url
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=is_secure,
        samesite="lax",
        max_age=settings.session_expire_hours * 3600,
        path="/",
    )


@router.get("/login")
async def login():
    """
    Get the Google OAuth login URL.

    Returns:
        { auth_url: "https://accounts.google.com/..." }
    """
    return {"auth_url": auth_service.get_oauth_url()}


@router.get("/callback")
async def oauth_callback(code: str = None, error: str = None):
    """
    Handle the Google OAuth callback.

    Success → session cookie + redirect to /dashboard.
    Denial or failure → redirect to /login with an error code.
    """
    frontend_url = get_settings().frontend_url

    if error:
        logger.warning(f"OAuth error: {error}")
        return RedirectResponse(url=f"{frontend_url}/login?error=oauth_denied")

    if not code:
        logger.warning("OAuth callback missing code")
        return RedirectResponse(url=f"{frontend_url}/login?error=missing_code")

    try:
        session_token = await auth_service.handle_oauth_callback(code)
    except AppError as e:
        logger.error(f"OAuth callback failed: {e.message}")
        return RedirectResponse(url=f"{frontend_url}/login?error=auth_failed")

    response = RedirectResponse(url=f"{frontend_url}/dashboard", status_code=302)
    _set_session_cookie(response, session_token)
    logger.info("OAuth callback successful, session created")
    return response


@router.post("/logout")
async def logout(request: Request, response: Response):
    """Delete the server-side session (and its conversation) and clear the cookie."""
    session_cookie = request.cookies.get(SESSION_COOKIE)
    if session_cookie:
        delete_session(session_cookie)

    response.delete_cookie(key=SESSION_COOKIE, path="/")
    return {"success": True, "message": "Logged out successfully"}


@router.get("/session")
async def get_session_info(request: Request):
    """
    Check current session status.

    Returns:
        { authenticated: true/false, email?, name? }
    """
    session_cookie = request.cookies.get(SESSION_COOKIE)
    session = get_session(session_cookie) if session_cookie else None

    if not session:
        return {"authenticated": False}

    return {
        "authenticated": True,
        "email": session["email"],
        "name": session["name"],
    }


@router.get("/refresh")
async def refresh_session(request: Request):
    """
    Refresh the Google access token ahead of expiry.

    Returns:
        { refreshed: true/false, valid: true }
    """
    session_cookie = request.cookies.get(SESSION_COOKIE)
    if not session_cookie:
        raise HTTPException(status_code=401, detail="No session found")

    try:
        refreshed = await auth_service.refresh_session(session_cookie)
    except AppError as e:
        logger.error(f"Session refresh failed: {e.message}")
        raise HTTPException(status_code=401, detail="Session invalid or expired")

    return {"refreshed": refreshed, "valid": True}
