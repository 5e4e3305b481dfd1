"""
Mailbox endpoints.

- GET  /api/emails/latest  → { emails: [...], diagnostics: [...] }
- POST /api/emails/delete  → { success, deleted?: {id, from, subject}, reason? }
- POST /api/emails/reply   → { success, sentMessageId?, threadId? }
- POST /api/emails/refine  → { refinedReply }

All but /refine require a signed-in session.
"""
from fastapi import APIRouter, Depends, HTTPException

from mailassist.models.email import DeleteRequest, RefineRequest, RefineResponse, SendReplyRequest
from mailassist.services.ai_service import refine_reply
from mailassist.services.email_service import EmailService
from mailassist.services.session_service import get_current_session
from mailassist.utils.errors import AppError
from mailassist.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _raise_http(e: AppError):
    logger.error(f"Email route error [{e.code}]: {e.message}")
    raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/emails/latest")
async def latest_emails(session: dict = Depends(get_current_session)):
    """Newest inbox emails with AI summaries and suggested replies."""
    try:
        latest = await EmailService(session).list_latest()
    except AppError as e:
        _raise_http(e)
    return latest.to_wire()


@router.post("/emails/delete")
async def delete_email(request: DeleteRequest, session: dict = Depends(get_current_session)):
    """Trash one email by id or by keyword on subject/sender."""
    try:
        result = await EmailService(session).delete(request)
    except AppError as e:
        _raise_http(e)
    return result.to_wire()


@router.post("/emails/reply")
async def send_reply(request: SendReplyRequest, session: dict = Depends(get_current_session)):
    """Send a plain text reply in the original thread."""
    try:
        result = await EmailService(session).send_reply(request)
    except AppError as e:
        _raise_http(e)
    return result.to_wire()


@router.post("/emails/refine")
async def refine(request: RefineRequest):
    """Refine a draft reply; echoes it back when no refinement is available."""
    current_reply = (request.current_reply or "").strip()
    if not current_reply:
        raise HTTPException(
            status_code=400,
            detail={"error": True, "code": "INVALID_REQUEST", "message": "Missing 'currentReply' in request body"},
        )

    refined = await refine_reply(current_reply, request.instructions, request.email_context)
    return RefineResponse(refined_reply=refined).to_wire()
