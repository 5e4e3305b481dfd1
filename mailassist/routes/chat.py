"""
Chat API endpoints for the assistant conversation.

Messages are processed through:
1. Interpreter → which action the user wants
2. Dispatcher  → Gmail / AI operations
3. Conversation state → messages, activity log, held emails

Endpoints:
- POST /api/chat          { "message": "..." }            → ChatResponse
- GET  /api/chat/state                                     → snapshot
- POST /api/chat/select   { "emailId": "..." }            → snapshot
- POST /api/chat/reply    { "emailId": "...", "replyText"? } → ChatResponse
- POST /api/chat/refine   { "emailId": "...", "instructions"? } → ChatResponse

Sample:
   Request: {"message": "read my latest emails"}
   Response: {
     "message": "I've loaded your latest emails. ...",
     "state": {
       "messages": [..., {"id": 4, "role": "user", "text": "read my latest emails"},
                         {"id": 5, "role": "assistant", "text": "I've loaded your latest emails. ..."}],
       "activity": ["Fetched 5 emails from your inbox.", ...],
       "emails": [{"id": "abc", "threadId": "t1", "from": "Jane <jane@example.com>",
                   "subject": "Invoice", "snippet": "Jane asks ...", "aiReply": "Hi Jane, ..."}],
       "selectedEmailId": "abc",
       "busy": {"loadingEmails": false, "deleting": false, ...}
     }
   }

A second message sent while one is still resolving gets 409.
"""
from fastapi import APIRouter, Depends, HTTPException

from mailassist.models.chat import ChatRequest, ChatResponse, EmailActionRequest
from mailassist.services.dispatcher import ActionDispatcher, ConversationController
from mailassist.services.email_service import EmailService
from mailassist.services.session_service import get_conversation, get_current_session
from mailassist.utils.errors import AppError
from mailassist.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def get_controller(session: dict = Depends(get_current_session)) -> ConversationController:
    """Controller bound to the session's conversation and mailbox."""
    return ConversationController(
        get_conversation(session),
        ActionDispatcher(EmailService(session)),
    )


def _raise_http(e: AppError):
    logger.warning(f"Chat error [{e.code}]: {e.message}")
    raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, controller: ConversationController = Depends(get_controller)):
    """
    Process a chat message and return the assistant's outcome.

    - "read my latest emails" → loads emails with summaries and suggested replies
    - "delete emails from LinkedIn" → trashes the first matching email
    - "help" → lists example commands
    """
    logger.info(f"Chat request: {request.message[:50]}...")
    try:
        reply = await controller.submit(request.message)
    except AppError as e:
        _raise_http(e)

    return ChatResponse(message=reply.text, state=controller.state.snapshot())


@router.get("/chat/state")
async def chat_state(controller: ConversationController = Depends(get_controller)):
    """Current conversation, e.g. to restore the dashboard after a page load."""
    return controller.state.snapshot()


@router.post("/chat/select")
async def select_email(request: EmailActionRequest, controller: ConversationController = Depends(get_controller)):
    try:
        controller.select_email(request.email_id)
    except AppError as e:
        _raise_http(e)
    return controller.state.snapshot()


@router.post("/chat/reply", response_model=ChatResponse)
async def send_reply(request: EmailActionRequest, controller: ConversationController = Depends(get_controller)):
    """Send the suggested (or edited) reply for a held email."""
    try:
        message = await controller.send_reply(request.email_id, request.reply_text)
    except AppError as e:
        _raise_http(e)
    return ChatResponse(message=message, state=controller.state.snapshot())


@router.post("/chat/refine", response_model=ChatResponse)
async def refine_reply(request: EmailActionRequest, controller: ConversationController = Depends(get_controller)):
    """Rewrite a held email's suggested reply following the user's instructions."""
    try:
        message = await controller.refine_reply(request.email_id, request.instructions)
    except AppError as e:
        _raise_http(e)
    return ChatResponse(message=message, state=controller.state.snapshot())
