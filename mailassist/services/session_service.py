"""
Session management service.

This module handles:
1. Creating server-side sessions (Google tokens + conversation state)
2. Issuing and validating the JWT session cookie
3. Refreshing the Google access token when it is about to expire
4. The FastAPI dependency for authenticated routes

Sessions live in process memory. The conversation state they carry is
dropped on logout or expiry and never persisted.
"""
from datetime import datetime, timedelta
from typing import Optional

import jwt
from fastapi import Request, HTTPException

from mailassist.config import get_settings
from mailassist.models.conversation import ConversationState
from mailassist.utils.logger import get_logger
from mailassist.utils.errors import PermissionRevokedError

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
TOKEN_REFRESH_BUFFER = timedelta(minutes=5)

# Key: session_id (from JWT), Value: session data dict
_sessions: dict[str, dict] = {}


def _decode(session_token: str, verify_exp: bool = True) -> Optional[str]:
    """Return the session id carried by a JWT, or None if the token is invalid."""
    try:
        payload = jwt.decode(
            session_token,
            get_settings().session_secret,
            algorithms=[JWT_ALGORITHM],
            options={"verify_exp": verify_exp},
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Session JWT expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid session JWT: {e}")
        return None
    return payload.get("session_id")


def create_session(
    user_id: str,
    email: str,
    name: str,
    picture: Optional[str],
    access_token: str,
    refresh_token: Optional[str],
    expires_in: int,
) -> str:
    """
    Create a session and return its JWT.

    The JWT holds only the session id; tokens and conversation stay
    server-side.
    """
    settings = get_settings()
    now = datetime.utcnow()
    session_id = f"{user_id}_{now.timestamp()}"
    session_expiry = now + timedelta(hours=settings.session_expire_hours)

    _sessions[session_id] = {
        "session_id": session_id,
        "user_id": user_id,
        "email": email,
        "name": name,
        "picture": picture,
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_expiry": now + timedelta(seconds=expires_in),
        "session_expiry": session_expiry,
        "conversation": ConversationState.start(name or email),
    }

    token = jwt.encode(
        {"session_id": session_id, "exp": session_expiry, "iat": now},
        settings.session_secret,
        algorithm=JWT_ALGORITHM,
    )
    logger.info(f"Created session for user: {email}")
    return token


def get_session(session_token: str) -> Optional[dict]:
    """Session data for a valid, unexpired JWT; None otherwise."""
    session_id = _decode(session_token)
    if not session_id or session_id not in _sessions:
        return None

    session = _sessions[session_id]
    if datetime.utcnow() > session["session_expiry"]:
        logger.info(f"Session expired for: {session['email']}")
        _sessions.pop(session_id, None)
        return None

    return session


def delete_session(session_token: str) -> bool:
    """Drop a session (logout). Expired tokens are accepted."""
    session_id = _decode(session_token, verify_exp=False)
    session = _sessions.pop(session_id, None) if session_id else None
    if session:
        logger.info(f"Deleted session for: {session.get('email', 'unknown')}")
    return session is not None


def is_token_expired(session: dict) -> bool:
    """True if the Google access token expires within the refresh buffer."""
    return datetime.utcnow() + TOKEN_REFRESH_BUFFER > session["token_expiry"]


def update_tokens(session: dict, access_token: str, expires_in: int) -> None:
    session["access_token"] = access_token
    session["token_expiry"] = datetime.utcnow() + timedelta(seconds=expires_in)


def get_conversation(session: dict) -> ConversationState:
    """The session's conversation, created on first use."""
    conversation = session.get("conversation")
    if conversation is None:
        conversation = ConversationState.start(session.get("name") or session.get("email", "there"))
        session["conversation"] = conversation
    return conversation


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"error": True, "code": code, "message": message},
    )


async def get_current_session(request: Request) -> dict:
    """
    FastAPI dependency returning the authenticated session.

    Refreshes the Google access token when it is about to expire.

    Raises:
        HTTPException 401: Missing/expired session or failed token refresh
    """
    session_cookie = request.cookies.get("session")
    if not session_cookie:
        raise _unauthorized("AUTH_REQUIRED", "Authentication required")

    session = get_session(session_cookie)
    if not session:
        raise _unauthorized("SESSION_EXPIRED", "Session expired. Please sign in again.")

    if is_token_expired(session):
        # Import here to avoid circular dependency
        from mailassist.integrations.google_auth import refresh_access_token

        try:
            new_token, expires_in = await refresh_access_token(session["refresh_token"])
        except PermissionRevokedError:
            delete_session(session_cookie)
            raise _unauthorized("PERMISSION_REVOKED", "Gmail access was revoked. Please sign in again.")
        except Exception as e:
            logger.error(f"Token refresh failed: {e}")
            raise _unauthorized("TOKEN_REFRESH_FAILED", "Failed to refresh session. Please sign in again.")

        update_tokens(session, new_token, expires_in)
        logger.info(f"Refreshed token for: {session['email']}")

    return session
