"""
Google OAuth client integration.

This module handles:
1. Building the consent URL (offline access, Gmail scopes)
2. Exchanging the authorization code for tokens
3. Refreshing expired access tokens
4. Fetching the user's profile
"""
from typing import Tuple
from urllib.parse import urlencode

import httpx

from mailassist.config import get_settings
from mailassist.utils.logger import get_logger
from mailassist.utils.errors import AuthError, PermissionRevokedError

logger = get_logger(__name__)

# Google OAuth endpoints
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

DEFAULT_EXPIRES_IN = 3600


def get_oauth_url() -> str:
    """
    Build the Google consent URL.

    prompt=consent + access_type=offline make Google return a refresh token.
    """
    settings = get_settings()
    params = {
        "client_id": settings.google_client_id,
        "redirect_uri": settings.google_redirect_uri,
        "response_type": "code",
        "scope": " ".join(settings.google_scopes),
        "access_type": "offline",
        "prompt": "consent",
        "include_granted_scopes": "true",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def _post_token(data: dict) -> httpx.Response:
    settings = get_settings()
    data = {
        "client_id": settings.google_client_id,
        "client_secret": settings.google_client_secret,
        **data,
    }
    async with httpx.AsyncClient() as client:
        try:
            return await client.post(GOOGLE_TOKEN_URL, data=data, timeout=30.0)
        except httpx.RequestError as e:
            logger.error(f"Token request failed: {e}")
            raise AuthError("Failed to connect to Google for authentication")


async def exchange_code_for_tokens(code: str) -> dict:
    """
    Exchange an authorization code for tokens.

    Returns:
        Dict with access_token, refresh_token (may be None on re-auth), expires_in

    Raises:
        AuthError: If the exchange fails
    """
    response = await _post_token({
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": get_settings().google_redirect_uri,
    })

    if response.status_code != 200:
        error_data = response.json() if response.content else {}
        logger.error(f"Token exchange failed: {error_data}")
        raise AuthError(
            f"Failed to exchange code: {error_data.get('error_description', 'Unknown error')}"
        )

    tokens = response.json()
    logger.info("Exchanged authorization code for tokens")
    return {
        "access_token": tokens["access_token"],
        "refresh_token": tokens.get("refresh_token"),
        "expires_in": tokens.get("expires_in", DEFAULT_EXPIRES_IN),
    }


async def refresh_access_token(refresh_token: str) -> Tuple[str, int]:
    """
    Get a new access token from a refresh token.

    Returns:
        (access_token, expires_in_seconds)

    Raises:
        PermissionRevokedError: Refresh token revoked (invalid_grant)
        AuthError: Any other failure
    """
    if not refresh_token:
        raise AuthError("No refresh token available")

    response = await _post_token({
        "refresh_token": refresh_token,
        "grant_type": "refresh_token",
    })

    if response.status_code != 200:
        error_data = response.json() if response.content else {}
        if error_data.get("error") == "invalid_grant":
            logger.warning("Refresh token revoked or expired")
            raise PermissionRevokedError()
        logger.error(f"Token refresh failed: {error_data}")
        raise AuthError("Failed to refresh access token")

    tokens = response.json()
    logger.info("Refreshed access token")
    return tokens["access_token"], tokens.get("expires_in", DEFAULT_EXPIRES_IN)


async def get_user_info(access_token: str) -> dict:
    """
    Fetch the signed-in user's profile.

    Returns:
        Dict with id, email, name, picture

    Raises:
        AuthError: Invalid token or request failure
    """
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=30.0,
            )
        except httpx.RequestError as e:
            logger.error(f"User info request failed: {e}")
            raise AuthError("Failed to connect to Google for user information")

    if response.status_code != 200:
        logger.error(f"Failed to get user info: {response.status_code}")
        raise AuthError("Failed to fetch user information")

    user_data = response.json()
    return {
        "id": user_data["id"],
        "email": user_data["email"],
        "name": user_data.get("name", user_data["email"]),
        "picture": user_data.get("picture"),
    }
