"""
Email service - mailbox operations used by the dispatcher and the routes.

This module provides:
1. list_latest: newest inbox emails with AI summaries and suggested replies
2. delete: trash one email by id, or by keyword search on subject/sender
3. send_reply: send a plain text reply in the original thread

The service sits between the dispatcher/routes and gmail_client.
"""
import asyncio
from typing import List, Optional

from mailassist.config import get_settings
from mailassist.integrations.gmail_client import GmailClient
from mailassist.models.assistant import CriterionField
from mailassist.models.email import (
    DeleteRequest,
    DeleteResult,
    DeletedEmail,
    Email,
    EmailSummary,
    LatestEmails,
    SendReplyRequest,
    SendReplyResult,
)
from mailassist.services.ai_service import summarize_email, suggest_reply
from mailassist.utils.logger import get_logger
from mailassist.utils.errors import InvalidRequestError

logger = get_logger(__name__)

NO_EMAILS_FOR_KEYWORD = "No emails found to delete with that keyword."
NO_EMAIL_MATCHED = "No email matched the provided keyword."
UNABLE_TO_DELETE = "Unable to delete message"


def matches_criterion(email: Email, keyword: str, field: CriterionField) -> bool:
    """Case-insensitive substring match on the sender or subject."""
    target = email.sender if field == CriterionField.FROM else email.subject
    return keyword.lower() in target.lower()


def reply_subject(subject: str) -> str:
    return subject if subject.startswith("Re:") else f"Re: {subject}"


class EmailService:
    """
    Mailbox operations for one signed-in user.

    Usage:
        service = EmailService(session)
        latest = await service.list_latest()
        result = await service.delete(DeleteRequest(keyword="invoice"))
    """

    def __init__(self, session: dict, gmail: Optional[GmailClient] = None):
        """
        Args:
            session: User session dict holding the Google access token
            gmail: Optional client override (tests)
        """
        self.session = session
        self.gmail = gmail or GmailClient(session["access_token"])
        self.settings = get_settings()

    async def list_latest(self) -> LatestEmails:
        """
        Fetch the newest inbox emails and enrich them with AI output.

        The summary replaces the snippet when available; the suggested reply
        goes into ai_reply. AI problems only add diagnostic notes.

        Raises:
            GmailError / AuthError: Listing failed
        """
        emails = await self.gmail.fetch_emails(count=self.settings.inbox_fetch_count)

        # One notes list per email keeps the diagnostics in inbox order
        notes: List[List[str]] = [[] for _ in emails]
        summaries = await asyncio.gather(
            *(self._summarize(email, email_notes) for email, email_notes in zip(emails, notes))
        )

        diagnostics = [note for email_notes in notes for note in email_notes]
        logger.info(f"Prepared {len(summaries)} email summaries")
        # Same note repeats for every email when the key is missing
        return LatestEmails(emails=list(summaries), diagnostics=list(dict.fromkeys(diagnostics)))

    async def _summarize(self, email: Email, diagnostics: List[str]) -> EmailSummary:
        """Summary and suggested reply for one email, requested concurrently."""
        body = email.body or email.snippet
        summary_notes: List[str] = []
        reply_notes: List[str] = []
        summary, ai_reply = await asyncio.gather(
            summarize_email(email.sender, email.subject, body, summary_notes),
            suggest_reply(email.sender, email.subject, body, reply_notes),
        )
        diagnostics.extend(summary_notes + reply_notes)

        return EmailSummary(
            id=email.id,
            thread_id=email.thread_id,
            sender=email.sender,
            subject=email.subject,
            snippet=summary or email.snippet,
            ai_reply=ai_reply,
        )

    async def delete(self, request: DeleteRequest) -> DeleteResult:
        """
        Trash one email.

        With a message_id the email is trashed directly and the selected
        subject/sender hints are echoed back. Otherwise Gmail is searched for
        the keyword (falling back to the most recent inbox emails) and the
        first email whose field contains it is trashed.

        Raises:
            InvalidRequestError: Neither keyword nor message_id given
        """
        keyword = (request.keyword or "").strip()
        message_id = (request.message_id or "").strip()

        if not keyword and not message_id:
            raise InvalidRequestError("Provide a keyword or message ID to delete an email.")

        if message_id:
            if not await self.gmail.trash_message(message_id):
                return DeleteResult(success=False, reason=UNABLE_TO_DELETE)
            return DeleteResult(
                success=True,
                deleted=DeletedEmail(
                    id=message_id,
                    sender=request.selected_from or "Unknown",
                    subject=request.selected_subject or "(no subject)",
                ),
            )

        prefix = "from" if request.field == CriterionField.FROM else "subject"
        ids = await self.gmail.list_message_ids(
            self.settings.delete_search_limit,
            query=f"{prefix}:{keyword}",
        )
        if not ids:
            logger.info(f"No search hits for {prefix}:{keyword}, scanning recent inbox")
            ids = await self.gmail.list_message_ids(self.settings.delete_fallback_limit)

        if not ids:
            return DeleteResult(success=False, reason=NO_EMAILS_FOR_KEYWORD)

        for candidate_id in ids:
            email = await self.gmail.get_message(candidate_id)
            if not email or not matches_criterion(email, keyword, request.field):
                continue

            if not await self.gmail.trash_message(email.id):
                return DeleteResult(success=False, reason=UNABLE_TO_DELETE)

            logger.info(f"Trashed email {email.id} matching '{keyword}' ({prefix})")
            return DeleteResult(
                success=True,
                deleted=DeletedEmail(id=email.id, sender=email.sender, subject=email.subject),
            )

        return DeleteResult(success=False, reason=NO_EMAIL_MATCHED)

    async def send_reply(self, request: SendReplyRequest) -> SendReplyResult:
        """
        Send a reply, prefixing the subject with "Re:" when needed.

        Raises:
            InvalidRequestError: to, subject or reply_text missing
            GmailError: Send failed
        """
        to = (request.to or "").strip()
        subject = (request.subject or "").strip()
        reply_text = (request.reply_text or "").strip()
        thread_id = (request.thread_id or "").strip() or None

        if not to or not subject or not reply_text:
            raise InvalidRequestError("Missing required fields: 'to', 'subject', or 'replyText'")

        response = await self.gmail.send_message(
            to=to,
            subject=reply_subject(subject),
            body=reply_text,
            thread_id=thread_id,
        )

        return SendReplyResult(
            success=True,
            sent_message_id=response.get("id"),
            thread_id=response.get("threadId"),
        )
