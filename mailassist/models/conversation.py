"""
Conversation state held per signed-in session.

The state is a plain object mutated only by the dispatcher/controller, so it
can be driven in tests without any UI. It lives in memory for the lifetime
of the session and is never persisted.
"""
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel

from mailassist.models.assistant import CriterionField
from mailassist.models.email import EmailSummary


COMMAND_HELP = (
    "Try commands like: \n"
    "- \"read my latest emails\" \n"
    "- \"draft a reply to a client\" \n"
    "- \"delete spam emails\""
)

CAPABILITIES = (
    "You can ask me to: \n"
    "• Read recent emails \n"
    "• Draft replies \n"
    "• Delete messages by subject or sender \n\n"
    "I'll show what I'm doing in the activity panel."
)

INITIAL_ACTIVITY = "Dashboard initialized. Waiting for your first command…"


class Role(str, Enum):
    ASSISTANT = "assistant"
    USER = "user"


class Message(BaseModel):
    """One chat bubble."""
    id: int
    role: Role
    text: str


class ConversationState(BaseModel):
    """Messages, activity log and held emails for one session."""
    messages: List[Message] = []
    activity: List[str] = []
    emails: List[EmailSummary] = []
    selected_email_id: Optional[str] = None

    # Busy flags, one per operation class
    loading_emails: bool = False
    deleting: bool = False
    sending_reply: bool = False
    refining_reply: bool = False

    # Set while a chat submission is resolving
    in_flight: bool = False
    next_message_id: int = 1

    @classmethod
    def start(cls, user_label: str) -> "ConversationState":
        """Create the state shown right after sign-in."""
        state = cls()
        state.append_message(Role.ASSISTANT, f"Hi {user_label}, I'm your AI email assistant. 👋")
        state.append_message(Role.ASSISTANT, CAPABILITIES)
        state.append_message(Role.ASSISTANT, COMMAND_HELP)
        state.log_activity(INITIAL_ACTIVITY)
        return state

    # =========================================================================
    # MESSAGES
    # =========================================================================

    def append_message(self, role: Role, text: str) -> Message:
        message = Message(id=self.next_message_id, role=role, text=text)
        self.next_message_id += 1
        self.messages.append(message)
        return message

    def begin_exchange(self, user_text: str, placeholder_text: str) -> Tuple[Message, Message]:
        """Append the user message and its assistant placeholder as a pair."""
        user_message = self.append_message(Role.USER, user_text)
        placeholder = self.append_message(Role.ASSISTANT, placeholder_text)
        return user_message, placeholder

    def resolve_placeholder(self, message_id: int, text: str) -> Optional[Message]:
        """Replace the text of a placeholder once its action has resolved."""
        for message in self.messages:
            if message.id == message_id:
                message.text = text
                return message
        return None

    # =========================================================================
    # ACTIVITY
    # =========================================================================

    def log_activity(self, entry: str) -> None:
        """Prepend an entry (newest first)."""
        self.activity.insert(0, entry)

    # =========================================================================
    # EMAILS
    # =========================================================================

    def replace_emails(self, emails: List[EmailSummary]) -> None:
        """Swap in a freshly fetched list and select its first item."""
        self.emails = list(emails)
        self.selected_email_id = self.emails[0].id if self.emails else None

    def remove_email(self, email_id: str) -> None:
        self.emails = [e for e in self.emails if e.id != email_id]
        if self.selected_email_id == email_id:
            self.selected_email_id = None

    def find_email(self, email_id: str) -> Optional[EmailSummary]:
        for email in self.emails:
            if email.id == email_id:
                return email
        return None

    def find_local_match(self, keyword: str, field: CriterionField) -> Optional[EmailSummary]:
        """First held email whose field contains the keyword (case-insensitive)."""
        lowered = keyword.lower()
        for email in self.emails:
            haystack = email.sender if field == CriterionField.FROM else email.subject
            if lowered in haystack.lower():
                return email
        return None

    @property
    def selected_email(self) -> Optional[EmailSummary]:
        if self.selected_email_id is None:
            return None
        return self.find_email(self.selected_email_id)

    @property
    def busy(self) -> bool:
        return self.loading_emails or self.deleting or self.sending_reply or self.refining_reply

    def snapshot(self) -> dict:
        """JSON-ready view for the frontend."""
        return {
            "messages": [m.model_dump(mode="json") for m in self.messages],
            "activity": list(self.activity),
            "emails": [e.to_wire() for e in self.emails],
            "selectedEmailId": self.selected_email_id,
            "busy": {
                "loadingEmails": self.loading_emails,
                "deleting": self.deleting,
                "sendingReply": self.sending_reply,
                "refiningReply": self.refining_reply,
                "submitting": self.in_flight,
            },
        }
