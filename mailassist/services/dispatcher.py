"""
Action dispatcher and chat submission controller.

This module ties together:
1. The interpreter (command → action)
2. The mailbox collaborator (list / delete / send)
3. The reply refiner
4. The per-session ConversationState

A submission goes through three steps:
    Pending   - user message + assistant placeholder appended together
    Resolving - interpret, then run the action's handler
    Resolved  - placeholder text replaced with the handler's outcome

Handlers never raise: failures become an activity entry plus a user-safe
sentence.
"""
from typing import Awaitable, Callable, Optional, Protocol

from mailassist.config import get_settings
from mailassist.models.assistant import Action, DeleteCriterion, InterpretationResult, ResultSource
from mailassist.models.conversation import COMMAND_HELP, ConversationState, Message
from mailassist.models.email import (
    DeleteRequest,
    DeleteResult,
    EmailContext,
    LatestEmails,
    SendReplyRequest,
    SendReplyResult,
)
from mailassist.services.ai_service import refine_reply
from mailassist.services.heuristics import classify, extract_deletion_params
from mailassist.services.interpreter import interpret
from mailassist.utils.errors import (
    AppError,
    EmailNotFoundError,
    InvalidRequestError,
    SubmissionInProgressError,
)
from mailassist.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# USER-FACING TEXT
# =============================================================================

PLACEHOLDER_FETCH = "Let me pull your latest emails…"
PLACEHOLDER_DEFAULT = "Let me think about that…"

FETCH_LOADED = (
    "I've loaded your latest emails. Use the cards on the right to review each email "
    "and its suggested reply."
)
FETCH_EMPTY = "I checked your inbox but didn't find any recent emails."
FETCH_FAILED = "I couldn't fetch your emails due to an error. Please try again later."
FETCH_PROBLEM = "I ran into a problem while trying to fetch your emails."

DELETE_CLARIFY = "Please tell me which email to delete (mention the subject or sender)."
DELETE_PROBLEM = "I ran into a problem while trying to delete that email. Please try again."

DRAFT_REPLY_ACK = (
    "I can help you draft smart replies. Load your latest emails and I'll suggest a reply "
    "for each one, which you can refine and send."
)
FREE_FORM_ACK = (
    "I've received your request. I can read your latest emails, draft replies, "
    "or delete an email by subject or sender."
)

SEND_PROBLEM = "I couldn't send that reply. Please try again."
REFINE_PROBLEM = "I couldn't refine that reply. The current draft is unchanged."


class Mailbox(Protocol):
    """Mailbox collaborator (implemented by EmailService)."""

    async def list_latest(self) -> LatestEmails: ...

    async def delete(self, request: DeleteRequest) -> DeleteResult: ...

    async def send_reply(self, request: SendReplyRequest) -> SendReplyResult: ...


Refiner = Callable[[str, Optional[str], Optional[EmailContext]], Awaitable[str]]
Interpreter = Callable[[str], Awaitable[InterpretationResult]]


def placeholder_for(command: str) -> str:
    """Placeholder shown before the command has been interpreted."""
    if classify(command).action == Action.FETCH_LATEST:
        return PLACEHOLDER_FETCH
    return PLACEHOLDER_DEFAULT


class ActionDispatcher:
    """
    Runs one resolved action against the mailbox and the conversation state.

    Usage:
        dispatcher = ActionDispatcher(EmailService(session))
        text = await dispatcher.dispatch(Action.HELP, None, state)
    """

    def __init__(self, mailbox: Mailbox):
        self.mailbox = mailbox
        self.fetch_count = get_settings().inbox_fetch_count
        self.handlers = {
            Action.FETCH_LATEST: self._handle_fetch_latest,
            Action.DELETE_EMAIL: self._handle_delete,
            Action.HELP: self._handle_help,
            Action.DRAFT_REPLY: self._handle_draft_reply,
            Action.UNKNOWN: self._handle_unknown,
        }

    async def dispatch(
        self,
        action: Action,
        params: Optional[DeleteCriterion],
        state: ConversationState,
        command: str = "",
    ) -> str:
        """
        Execute an action and return the outcome text.

        Args:
            action: Resolved action
            params: Delete criterion to use as-is; None means extract it from command
            state: Conversation state to update
            command: Raw user text (for extraction and re-routing)

        Returns:
            User-facing outcome text (never raises)
        """
        handler = self.handlers.get(action, self._handle_unknown)
        try:
            return await handler(state, params, command)
        except Exception as e:
            logger.exception(f"Unhandled error in {action.value} handler: {e}")
            state.log_activity(f"Unexpected error while handling '{action.value}': {e}")
            return "Something went wrong. Please try again."

    # =========================================================================
    # ACTION HANDLERS
    # =========================================================================

    async def _handle_fetch_latest(self, state, params, command) -> str:
        """Load the newest emails into the state and select the first."""
        state.log_activity("Requested: Read latest emails.")
        state.loading_emails = True
        try:
            state.log_activity(f"Fetching your last {self.fetch_count} emails from Gmail…")

            try:
                latest = await self.mailbox.list_latest()
            except AppError as e:
                logger.warning(f"Listing emails failed: {e.message}")
                state.log_activity(f"Failed to fetch emails: {e.message}")
                return FETCH_FAILED

            for note in latest.diagnostics:
                state.log_activity(f"AI debug: {note}")

            if not latest.emails:
                state.log_activity("No recent emails found in your inbox.")
                return FETCH_EMPTY

            state.log_activity(f"Fetched {len(latest.emails)} emails from your inbox.")
            state.replace_emails(latest.emails)
            return FETCH_LOADED

        except Exception as e:
            logger.exception(f"Unexpected error while fetching emails: {e}")
            state.log_activity(f"Unexpected error while fetching emails: {e}")
            return FETCH_PROBLEM
        finally:
            state.loading_emails = False

    async def _handle_delete(self, state, params, command) -> str:
        """
        Delete the email described by params (or by the command text).

        A held email matching the criterion is passed along as a hint so the
        mailbox can trash it without searching.
        """
        state.log_activity("Requested: Delete a specific email.")

        criterion = params or extract_deletion_params(command)
        if not criterion or not criterion.keyword.strip():
            return DELETE_CLARIFY

        keyword = criterion.keyword
        local_match = state.find_local_match(keyword, criterion.field)

        state.log_activity(
            f'Attempting to delete an email matching "{keyword}" ({criterion.field.value}).'
        )

        request = DeleteRequest(
            keyword=keyword,
            field=criterion.field,
            message_id=local_match.id if local_match else None,
            selected_subject=local_match.subject if local_match else None,
            selected_from=local_match.sender if local_match else None,
        )

        state.deleting = True
        try:
            try:
                result = await self.mailbox.delete(request)
            except AppError as e:
                result = DeleteResult(success=False, reason=e.message)

            if not result.success:
                reason = result.reason or "No matching email found."
                state.log_activity(f"Delete failed: {reason}")
                return f'I couldn\'t delete any email matching "{keyword}". {reason}'

            if result.deleted:
                state.remove_email(result.deleted.id)
                summary = (
                    f"Deleted email from {result.deleted.sender} "
                    f'with subject "{result.deleted.subject}".'
                )
            else:
                summary = "Deleted the requested email."

            state.log_activity(summary)
            return summary

        except Exception as e:
            logger.exception(f"Delete request failed: {e}")
            state.log_activity(f"Delete request failed: {e}")
            return DELETE_PROBLEM
        finally:
            state.deleting = False

    async def _handle_help(self, state, params, command) -> str:
        state.log_activity("Displayed help and available commands.")
        return COMMAND_HELP

    async def _handle_draft_reply(self, state, params, command) -> str:
        state.log_activity("Queued action: Draft reply.")
        return DRAFT_REPLY_ACK

    async def _handle_unknown(self, state, params, command) -> str:
        """Re-route with the heuristic classifier before giving up."""
        rerouted = classify(command).action
        if rerouted != Action.UNKNOWN:
            logger.info(f"Re-routed unknown command to {rerouted.value}")
            return await self.handlers[rerouted](state, None, command)

        state.log_activity("Received a free-form request. No matching email action.")
        return FREE_FORM_ACK


class ConversationController:
    """
    Owns one session's conversation and runs submissions one at a time.

    Usage:
        controller = ConversationController(state, ActionDispatcher(mailbox))
        reply = await controller.submit("read my latest emails")
    """

    def __init__(
        self,
        state: ConversationState,
        dispatcher: ActionDispatcher,
        interpreter: Interpreter = interpret,
        refiner: Refiner = refine_reply,
    ):
        self.state = state
        self.dispatcher = dispatcher
        self.interpreter = interpreter
        self.refiner = refiner

    async def submit(self, text: str) -> Message:
        """
        Handle one chat message.

        Returns:
            The assistant message holding the outcome

        Raises:
            InvalidRequestError: Blank message
            SubmissionInProgressError: A previous submission is still resolving
        """
        trimmed = (text or "").strip()
        if not trimmed:
            raise InvalidRequestError("Message must not be empty.")
        if self.state.in_flight:
            raise SubmissionInProgressError()

        # Pending: both messages land before the first await
        self.state.in_flight = True
        _, placeholder = self.state.begin_exchange(trimmed, placeholder_for(trimmed))

        try:
            result = await self._interpret(trimmed)
            params = result.delete_params if result.source == ResultSource.MODEL else None
            outcome = await self.dispatcher.dispatch(result.action, params, self.state, command=trimmed)
        finally:
            self.state.in_flight = False

        return self.state.resolve_placeholder(placeholder.id, outcome)

    async def _interpret(self, command: str) -> InterpretationResult:
        try:
            return await self.interpreter(command)
        except Exception as e:
            logger.warning(f"Interpreter failed, using heuristic routing: {e}")
            return classify(command)

    def select_email(self, email_id: str) -> None:
        if not self.state.find_email(email_id):
            raise EmailNotFoundError(email_id)
        self.state.selected_email_id = email_id

    async def send_reply(self, email_id: str, reply_text: Optional[str] = None) -> str:
        """
        Send the suggested (or edited) reply for a held email.

        Raises:
            EmailNotFoundError: email_id is not in the held list
            SubmissionInProgressError: A reply is already being sent
        """
        if self.state.sending_reply:
            raise SubmissionInProgressError("A reply is already being sent. Please wait for it to finish.")

        email = self.state.find_email(email_id)
        if not email:
            raise EmailNotFoundError(email_id)

        body = (reply_text or email.ai_reply or "").strip()
        if not body:
            return "There's no reply to send for this email yet."

        # Set before the first await
        self.state.sending_reply = True
        self.state.log_activity(f'Sending reply to {email.sender} about "{email.subject}"…')
        try:
            result = await self.dispatcher.mailbox.send_reply(SendReplyRequest(
                message_id=email.id,
                thread_id=email.thread_id,
                to=email.sender,
                subject=email.subject,
                reply_text=body,
            ))
            if not result.success:
                self.state.log_activity("Send failed: Gmail did not accept the reply.")
                return SEND_PROBLEM

            email.ai_reply = body
            self.state.log_activity(f"Reply sent to {email.sender}.")
            return f"Reply sent to {email.sender}."
        except Exception as e:
            logger.warning(f"Sending reply failed: {e}")
            self.state.log_activity(f"Send failed: {e}")
            return SEND_PROBLEM
        finally:
            self.state.sending_reply = False

    async def refine_reply(self, email_id: str, instructions: Optional[str] = None) -> str:
        """
        Rewrite a held email's suggested reply following the user's instructions.

        Raises:
            EmailNotFoundError: email_id is not in the held list
            SubmissionInProgressError: A refinement is already running
        """
        if self.state.refining_reply:
            raise SubmissionInProgressError("A reply is already being refined. Please wait for it to finish.")

        email = self.state.find_email(email_id)
        if not email:
            raise EmailNotFoundError(email_id)

        current = (email.ai_reply or "").strip()
        if not current:
            return "There's no draft reply to refine for this email."

        self.state.refining_reply = True
        self.state.log_activity(f'Refining the suggested reply for "{email.subject}"…')
        try:
            context = EmailContext(sender=email.sender, subject=email.subject, snippet=email.snippet)
            email.ai_reply = await self.refiner(current, instructions, context)
            self.state.log_activity(f'Updated the suggested reply for "{email.subject}".')
            return "I've updated the suggested reply."
        except Exception as e:
            logger.warning(f"Refining reply failed: {e}")
            self.state.log_activity(f"Refine failed: {e}")
            return REFINE_PROBLEM
        finally:
            self.state.refining_reply = False
