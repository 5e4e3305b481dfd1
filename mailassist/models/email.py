"""
Email-related Pydantic models.

Wire names follow the camelCase used by the frontend (threadId, aiReply,
messageId...). Python code uses the snake_case attribute names.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List

from mailassist.models.assistant import CriterionField


class CamelModel(BaseModel):
    """Base model accepting both field names and camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Email(BaseModel):
    """Full email data parsed from a Gmail message."""
    id: str
    thread_id: Optional[str] = None
    sender: str
    subject: str
    body: str
    snippet: str
    labels: List[str] = []


class EmailSummary(CamelModel):
    """Email as held in the conversation state and shown in the inbox panel."""
    id: str
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    sender: str = Field(alias="from")
    subject: str
    snippet: str
    ai_reply: Optional[str] = Field(default=None, alias="aiReply")


class LatestEmails(CamelModel):
    """Result of the list-latest collaborator."""
    emails: List[EmailSummary] = []
    diagnostics: List[str] = []


class DeleteRequest(CamelModel):
    """Input of the delete collaborator."""
    keyword: Optional[str] = None
    field: CriterionField = CriterionField.SUBJECT
    message_id: Optional[str] = Field(default=None, alias="messageId")
    selected_subject: Optional[str] = Field(default=None, alias="selectedSubject")
    selected_from: Optional[str] = Field(default=None, alias="selectedFrom")


class DeletedEmail(CamelModel):
    """Email that was moved to trash."""
    id: str
    sender: str = Field(alias="from")
    subject: str


class DeleteResult(CamelModel):
    """Outcome of the delete collaborator."""
    success: bool
    deleted: Optional[DeletedEmail] = None
    reason: Optional[str] = None


class SendReplyRequest(CamelModel):
    """Input of the send-reply collaborator."""
    message_id: Optional[str] = Field(default=None, alias="messageId")
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    to: Optional[str] = None
    subject: Optional[str] = None
    reply_text: Optional[str] = Field(default=None, alias="replyText")


class SendReplyResult(CamelModel):
    """Outcome of the send-reply collaborator."""
    success: bool
    sent_message_id: Optional[str] = Field(default=None, alias="sentMessageId")
    thread_id: Optional[str] = Field(default=None, alias="threadId")


class EmailContext(BaseModel):
    """Original email details handed to the reply refiner."""
    sender: Optional[str] = Field(default=None, alias="from")
    subject: Optional[str] = None
    snippet: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class RefineRequest(CamelModel):
    """Input of the refine-reply collaborator."""
    current_reply: Optional[str] = Field(default=None, alias="currentReply")
    instructions: Optional[str] = None
    email_context: Optional[EmailContext] = Field(default=None, alias="emailContext")


class RefineResponse(CamelModel):
    """Refined reply text (the current reply echoed when nothing better is available)."""
    refined_reply: str = Field(alias="refinedReply")
