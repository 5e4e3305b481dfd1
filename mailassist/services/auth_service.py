"""
Authentication service.

Orchestrates the OAuth flow:
1. Consent URL → google_auth
2. Callback → exchange code → fetch profile → create session
3. Proactive token refresh for an existing session
"""
from mailassist.integrations.google_auth import (
    get_oauth_url,
    exchange_code_for_tokens,
    get_user_info,
    refresh_access_token,
)
from mailassist.services.session_service import (
    create_session,
    get_session,
    update_tokens,
    is_token_expired,
)
from mailassist.utils.errors import SessionExpiredError
from mailassist.utils.logger import get_logger

logger = get_logger(__name__)


class AuthService:
    """
    Authentication service handling the OAuth flow.

    Usage:
        auth_service = AuthService()
        url = auth_service.get_oauth_url()
        token = await auth_service.handle_oauth_callback(code)
    """

    def get_oauth_url(self) -> str:
        return get_oauth_url()

    async def handle_oauth_callback(self, code: str) -> str:
        """
        Exchange the code, load the profile and open a session.

        Returns:
            Session JWT to store in the cookie

        Raises:
            AuthError: If any step fails
        """
        tokens = await exchange_code_for_tokens(code)
        user_info = await get_user_info(tokens["access_token"])

        return create_session(
            user_id=user_info["id"],
            email=user_info["email"],
            name=user_info["name"],
            picture=user_info.get("picture"),
            access_token=tokens["access_token"],
            refresh_token=tokens["refresh_token"],
            expires_in=tokens["expires_in"],
        )

    async def refresh_session(self, session_token: str) -> bool:
        """
        Refresh the Google access token if it is about to expire.

        Returns:
            True if a refresh happened, False if the token was still valid

        Raises:
            SessionExpiredError: Unknown or expired session
            AuthError: Refresh failed
        """
        session = get_session(session_token)
        if not session:
            raise SessionExpiredError()

        if not is_token_expired(session):
            return False

        access_token, expires_in = await refresh_access_token(session["refresh_token"])
        update_tokens(session, access_token, expires_in)
        logger.info(f"Refreshed session for: {session['email']}")
        return True
