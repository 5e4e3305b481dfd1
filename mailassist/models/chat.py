"""
Chat-related Pydantic models.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class ChatRequest(BaseModel):
    """Chat message from the frontend."""
    message: str


class EmailActionRequest(BaseModel):
    """Select / send / refine on one held email."""
    model_config = ConfigDict(populate_by_name=True)

    email_id: str = Field(alias="emailId")
    reply_text: Optional[str] = Field(default=None, alias="replyText")
    instructions: Optional[str] = None


class ChatResponse(BaseModel):
    """Outcome text plus the updated conversation snapshot."""
    message: str
    state: dict
