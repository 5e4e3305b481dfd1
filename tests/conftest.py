"""
Pytest fixtures for mail assistant tests.
"""
import pytest
from unittest.mock import AsyncMock

from mailassist.config import get_settings
from mailassist.models.conversation import ConversationState
from mailassist.models.email import (
    DeleteResult,
    DeletedEmail,
    EmailSummary,
    LatestEmails,
    SendReplyResult,
)


@pytest.fixture(autouse=True)
def no_model_key(monkeypatch):
    """Run every test without a Gemini key unless it opts in with model_key."""
    monkeypatch.setenv("GEMINI_API_KEY", "")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def model_key(monkeypatch):
    """Configure a (fake) Gemini key."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-key")
    get_settings.cache_clear()
    yield "test-gemini-key"


@pytest.fixture
def mock_session():
    """Create a mock user session."""
    return {
        "session_id": "test-session-123",
        "email": "test@example.com",
        "name": "Test User",
        "picture": "https://example.com/avatar.jpg",
        "access_token": "mock-access-token",
        "refresh_token": "mock-refresh-token",
    }


@pytest.fixture
def email_summaries():
    """Emails as held in the conversation after a fetch."""
    return [
        EmailSummary(
            id="1",
            thread_id="t-1",
            sender="Deals Team <deals@shop.example>",
            subject="Spam offer",
            snippet="Huge discounts this week only.",
            ai_reply="Hi, thanks but no thanks.",
        ),
        EmailSummary(
            id="2",
            thread_id="t-2",
            sender="Jane Roe <jane@example.com>",
            subject="Invoice for March",
            snippet="Jane sends the March invoice and asks for payment by Friday.",
            ai_reply="Hi Jane,\n\nThanks, I'll pay it by Friday.\n\nBest",
        ),
        EmailSummary(
            id="3",
            thread_id=None,
            sender="news@weekly.example",
            subject="Weekly digest",
            snippet="Top stories of the week.",
        ),
    ]


@pytest.fixture
def conversation():
    """Fresh conversation, as created at sign-in."""
    return ConversationState.start("Test User")


@pytest.fixture
def mailbox(email_summaries):
    """Mailbox collaborator with canned async results."""
    box = AsyncMock()
    box.list_latest.return_value = LatestEmails(emails=email_summaries, diagnostics=[])
    box.delete.return_value = DeleteResult(
        success=True,
        deleted=DeletedEmail(id="2", sender="Jane Roe <jane@example.com>", subject="Invoice for March"),
    )
    box.send_reply.return_value = SendReplyResult(success=True, sent_message_id="sent-1", thread_id="t-2")
    return box


@pytest.fixture
def mock_gmail_message():
    """Create a mock Gmail API message response."""
    return {
        "id": "msg-abc123",
        "threadId": "thread-xyz789",
        "labelIds": ["INBOX", "UNREAD"],
        "snippet": "This is the email snippet...",
        "payload": {
            "headers": [
                {"name": "From", "value": "John Doe <john@example.com>"},
                {"name": "To", "value": "me@example.com"},
                {"name": "Subject", "value": "Test Subject"},
                {"name": "Date", "value": "Wed, 5 Feb 2025 10:30:00 +0000"},
            ],
            "mimeType": "text/plain",
            "body": {
                "data": "VGhpcyBpcyB0aGUgZW1haWwgYm9keQ=="  # "This is the email body"
            },
        },
    }


@pytest.fixture
def mock_gmail_multipart_message():
    """Create a mock Gmail API multipart message."""
    return {
        "id": "msg-multi123",
        "threadId": "thread-multi789",
        "labelIds": ["INBOX"],
        "snippet": "Multipart email snippet...",
        "payload": {
            "headers": [
                {"name": "From", "value": "Jane Smith <jane@example.com>"},
                {"name": "Subject", "value": "Multipart Email"},
            ],
            "mimeType": "multipart/mixed",
            "parts": [
                {
                    "mimeType": "multipart/alternative",
                    "parts": [
                        {
                            "mimeType": "text/html",
                            "body": {"data": "PHA-SFRNTCBib2R5PC9wPg"},  # "<p>HTML body</p>"
                        },
                        {
                            "mimeType": "text/plain",
                            "body": {"data": "UGxhaW4gdGV4dCBib2R5"},  # "Plain text body"
                        },
                    ],
                },
            ],
        },
    }
