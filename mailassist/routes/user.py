"""
User profile endpoint.
"""
from fastapi import APIRouter, Depends

from mailassist.services.session_service import get_current_session
from mailassist.models.user import UserResponse

router = APIRouter()


@router.get("/user", response_model=UserResponse)
async def get_user(session: dict = Depends(get_current_session)):
    """Profile of the signed-in user, used for the dashboard greeting."""
    return UserResponse(
        email=session["email"],
        name=session["name"],
        picture=session.get("picture"),
    )
