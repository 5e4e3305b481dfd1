"""
Unit tests for the action dispatcher and the conversation controller.

The mailbox is an AsyncMock so no Gmail or Gemini calls are made.
"""
import asyncio

import pytest
from unittest.mock import AsyncMock

from mailassist.models.assistant import (
    Action,
    CriterionField,
    DeleteCriterion,
    InterpretationResult,
    ResultSource,
)
from mailassist.models.conversation import COMMAND_HELP, Role
from mailassist.models.email import DeleteResult, DeletedEmail, LatestEmails, SendReplyResult
from mailassist.services.dispatcher import (
    DELETE_CLARIFY,
    DELETE_PROBLEM,
    DRAFT_REPLY_ACK,
    FETCH_EMPTY,
    FETCH_FAILED,
    FETCH_LOADED,
    FREE_FORM_ACK,
    PLACEHOLDER_DEFAULT,
    PLACEHOLDER_FETCH,
    REFINE_PROBLEM,
    SEND_PROBLEM,
    ActionDispatcher,
    ConversationController,
    placeholder_for,
)
from mailassist.services.heuristics import classify
from mailassist.utils.errors import (
    EmailNotFoundError,
    GmailError,
    InvalidRequestError,
    SubmissionInProgressError,
)


@pytest.fixture
def dispatcher(mailbox):
    return ActionDispatcher(mailbox)


@pytest.fixture
def loaded(conversation, email_summaries):
    """Conversation already holding fetched emails."""
    conversation.replace_emails(email_summaries)
    return conversation


class TestHelp:
    """Test help and acknowledgement actions."""

    @pytest.mark.asyncio
    async def test_help_is_idempotent(self, dispatcher, conversation, mailbox):
        first = await dispatcher.dispatch(Action.HELP, None, conversation)
        second = await dispatcher.dispatch(Action.HELP, None, conversation)

        assert first == second == COMMAND_HELP
        assert mailbox.mock_calls == []
        assert conversation.activity[0] == "Displayed help and available commands."

    @pytest.mark.asyncio
    async def test_draft_reply_acknowledges(self, dispatcher, conversation, mailbox):
        text = await dispatcher.dispatch(Action.DRAFT_REPLY, None, conversation)

        assert text == DRAFT_REPLY_ACK
        assert conversation.activity[0] == "Queued action: Draft reply."
        assert mailbox.mock_calls == []


class TestFetchLatest:
    """Test loading emails into the conversation."""

    @pytest.mark.asyncio
    async def test_fetch_loads_and_selects_first(self, dispatcher, conversation, email_summaries):
        text = await dispatcher.dispatch(Action.FETCH_LATEST, None, conversation)

        assert text == FETCH_LOADED
        assert [e.id for e in conversation.emails] == ["1", "2", "3"]
        assert conversation.selected_email_id == "1"
        assert conversation.loading_emails is False
        assert conversation.activity[:3] == [
            "Fetched 3 emails from your inbox.",
            "Fetching your last 5 emails from Gmail…",
            "Requested: Read latest emails.",
        ]

    @pytest.mark.asyncio
    async def test_fetch_empty_keeps_previous_emails(self, dispatcher, loaded, mailbox):
        mailbox.list_latest.return_value = LatestEmails(emails=[], diagnostics=[])

        text = await dispatcher.dispatch(Action.FETCH_LATEST, None, loaded)

        assert text == FETCH_EMPTY
        assert len(loaded.emails) == 3
        assert loaded.activity[0] == "No recent emails found in your inbox."

    @pytest.mark.asyncio
    async def test_fetch_logs_diagnostics(self, dispatcher, conversation, mailbox, email_summaries):
        mailbox.list_latest.return_value = LatestEmails(
            emails=email_summaries,
            diagnostics=["GEMINI_API_KEY is not set; skipping AI summaries."],
        )

        await dispatcher.dispatch(Action.FETCH_LATEST, None, conversation)

        assert "AI debug: GEMINI_API_KEY is not set; skipping AI summaries." in conversation.activity

    @pytest.mark.asyncio
    async def test_fetch_failure(self, dispatcher, conversation, mailbox):
        mailbox.list_latest.side_effect = GmailError("Gmail API error: 500")

        text = await dispatcher.dispatch(Action.FETCH_LATEST, None, conversation)

        assert text == FETCH_FAILED
        assert conversation.activity[0] == "Failed to fetch emails: Gmail API error: 500"
        assert conversation.emails == []
        assert conversation.loading_emails is False


class TestDelete:
    """Test deleting via the mailbox collaborator."""

    @pytest.mark.asyncio
    async def test_heuristic_delete_end_to_end(self, dispatcher, mailbox, conversation, email_summaries):
        """'delete spam emails' refines to 'spam emails' with no local id."""
        conversation.replace_emails(email_summaries[:1])  # {id "1", subject "Spam offer"}
        controller = ConversationController(conversation, dispatcher)

        reply = await controller.submit("delete spam emails")

        request = mailbox.delete.await_args.args[0]
        assert request.keyword == "spam emails"
        assert request.field == CriterionField.SUBJECT
        assert request.message_id is None
        assert reply.text == 'Deleted email from Jane Roe <jane@example.com> with subject "Invoice for March".'
        assert conversation.messages[-1] == reply
        assert conversation.deleting is False

    @pytest.mark.asyncio
    async def test_deleting_selected_email_clears_selection(self, dispatcher, mailbox, loaded):
        mailbox.delete.return_value = DeleteResult(
            success=True,
            deleted=DeletedEmail(id="1", sender="Deals Team <deals@shop.example>", subject="Spam offer"),
        )
        controller = ConversationController(loaded, dispatcher)
        assert loaded.selected_email_id == "1"

        reply = await controller.submit("delete spam offer")

        assert mailbox.delete.await_args.args[0].message_id == "1"
        assert loaded.selected_email_id is None
        assert [e.id for e in loaded.emails] == ["2", "3"]
        assert reply.text == 'Deleted email from Deals Team <deals@shop.example> with subject "Spam offer".'

    @pytest.mark.asyncio
    async def test_local_match_passes_hints(self, dispatcher, mailbox, loaded):
        params = DeleteCriterion(keyword="invoice", field=CriterionField.SUBJECT)

        text = await dispatcher.dispatch(Action.DELETE_EMAIL, params, loaded, command="bin it")

        request = mailbox.delete.await_args.args[0]
        assert request.message_id == "2"
        assert request.selected_subject == "Invoice for March"
        assert request.selected_from == "Jane Roe <jane@example.com>"
        assert loaded.find_email("2") is None
        assert text.startswith("Deleted email from Jane Roe")

    @pytest.mark.asyncio
    async def test_sender_criterion(self, dispatcher, mailbox, loaded):
        text = await dispatcher.dispatch(
            Action.DELETE_EMAIL, None, loaded, command="delete the one from deals@shop.example"
        )

        request = mailbox.delete.await_args.args[0]
        assert request.keyword == "deals@shop.example"
        assert request.field == CriterionField.FROM
        assert request.message_id == "1"
        assert text.startswith("Deleted email")

    @pytest.mark.asyncio
    async def test_blank_command_asks_for_clarification(self, dispatcher, mailbox, conversation):
        text = await dispatcher.dispatch(Action.DELETE_EMAIL, None, conversation, command="   ")

        assert text == DELETE_CLARIFY
        mailbox.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_collaborator_reports_failure(self, dispatcher, mailbox, loaded):
        mailbox.delete.return_value = DeleteResult(success=False, reason="No email matched the provided keyword.")

        text = await dispatcher.dispatch(Action.DELETE_EMAIL, None, loaded, command="remove receipts")

        assert text == 'I couldn\'t delete any email matching "receipts". No email matched the provided keyword.'
        assert loaded.activity[0] == "Delete failed: No email matched the provided keyword."
        assert len(loaded.emails) == 3

    @pytest.mark.asyncio
    async def test_collaborator_error_becomes_failure(self, dispatcher, mailbox, loaded):
        mailbox.delete.side_effect = GmailError("Gmail permission denied. Please re-authorize.")

        text = await dispatcher.dispatch(Action.DELETE_EMAIL, None, loaded, command="remove receipts")

        assert "Gmail permission denied" in text
        assert loaded.deleting is False

    @pytest.mark.asyncio
    async def test_unexpected_error(self, dispatcher, mailbox, loaded):
        mailbox.delete.side_effect = RuntimeError("boom")

        text = await dispatcher.dispatch(Action.DELETE_EMAIL, None, loaded, command="remove receipts")

        assert text == DELETE_PROBLEM
        assert loaded.deleting is False


class TestUnknown:
    """Test re-routing of unknown actions."""

    @pytest.mark.asyncio
    async def test_rerouted_to_help(self, dispatcher, conversation):
        text = await dispatcher.dispatch(Action.UNKNOWN, None, conversation, command="help please")
        assert text == COMMAND_HELP

    @pytest.mark.asyncio
    async def test_rerouted_to_delete(self, dispatcher, mailbox, conversation):
        await dispatcher.dispatch(Action.UNKNOWN, None, conversation, command="remove the newsletter")

        request = mailbox.delete.await_args.args[0]
        assert request.keyword == "the newsletter"

    @pytest.mark.asyncio
    async def test_free_form(self, dispatcher, mailbox, conversation):
        text = await dispatcher.dispatch(Action.UNKNOWN, None, conversation, command="tell me a joke")

        assert text == FREE_FORM_ACK
        assert mailbox.mock_calls == []


class TestPlaceholder:
    @pytest.mark.parametrize("command,expected", [
        ("read my latest emails", PLACEHOLDER_FETCH),
        ("delete spam", PLACEHOLDER_DEFAULT),
        ("hello", PLACEHOLDER_DEFAULT),
    ])
    def test_placeholder_for(self, command, expected):
        assert placeholder_for(command) == expected


class TestControllerSubmit:
    """Test chat submissions through the controller."""

    @pytest.mark.asyncio
    async def test_appends_pair_and_resolves_placeholder(self, conversation, dispatcher):
        controller = ConversationController(conversation, dispatcher)

        reply = await controller.submit("  help  ")

        user, assistant = conversation.messages[-2:]
        assert (user.id, user.role, user.text) == (4, Role.USER, "help")
        assert (assistant.id, assistant.role, assistant.text) == (5, Role.ASSISTANT, COMMAND_HELP)
        assert reply == assistant
        assert conversation.in_flight is False

    @pytest.mark.asyncio
    async def test_placeholder_visible_while_resolving(self, conversation, dispatcher):
        seen = {}

        async def peeking_interpreter(command):
            seen["texts"] = [m.text for m in conversation.messages[-2:]]
            seen["in_flight"] = conversation.in_flight
            return classify(command)

        controller = ConversationController(conversation, dispatcher, interpreter=peeking_interpreter)
        await controller.submit("read my latest emails")

        assert seen == {"texts": ["read my latest emails", PLACEHOLDER_FETCH], "in_flight": True}
        assert conversation.messages[-1].text == FETCH_LOADED

    @pytest.mark.asyncio
    async def test_rejects_blank_message(self, conversation, dispatcher):
        controller = ConversationController(conversation, dispatcher)

        with pytest.raises(InvalidRequestError):
            await controller.submit("   ")
        assert len(conversation.messages) == 3

    @pytest.mark.asyncio
    async def test_rejects_second_submission_in_flight(self, conversation, dispatcher):
        release = asyncio.Event()

        async def slow_interpreter(command):
            await release.wait()
            return classify(command)

        controller = ConversationController(conversation, dispatcher, interpreter=slow_interpreter)
        first = asyncio.create_task(controller.submit("help"))
        await asyncio.sleep(0)

        with pytest.raises(SubmissionInProgressError):
            await controller.submit("read my latest emails")

        release.set()
        await first
        assert [m.text for m in conversation.messages[3:]] == ["help", COMMAND_HELP]
        assert conversation.in_flight is False

    @pytest.mark.asyncio
    async def test_model_params_are_used_as_is(self, conversation, dispatcher, mailbox):
        interpreter = AsyncMock(return_value=InterpretationResult(
            action=Action.DELETE_EMAIL,
            delete_params=DeleteCriterion(keyword="LinkedIn", field=CriterionField.FROM),
            source=ResultSource.MODEL,
        ))
        controller = ConversationController(conversation, dispatcher, interpreter=interpreter)

        await controller.submit("get rid of that linkedin thing")

        request = mailbox.delete.await_args.args[0]
        assert (request.keyword, request.field) == ("LinkedIn", CriterionField.FROM)

    @pytest.mark.asyncio
    async def test_heuristic_params_are_refined(self, conversation, dispatcher, mailbox):
        controller = ConversationController(conversation, dispatcher)

        await controller.submit("delete spam emails")

        request = mailbox.delete.await_args.args[0]
        assert request.keyword == "spam emails"

    @pytest.mark.asyncio
    async def test_interpreter_crash_falls_back(self, conversation, dispatcher):
        interpreter = AsyncMock(side_effect=RuntimeError("boom"))
        controller = ConversationController(conversation, dispatcher, interpreter=interpreter)

        reply = await controller.submit("help")

        assert reply.text == COMMAND_HELP


class TestControllerReplies:
    """Test sending and refining suggested replies."""

    @pytest.mark.asyncio
    async def test_send_suggested_reply(self, loaded, dispatcher, mailbox):
        controller = ConversationController(loaded, dispatcher)

        text = await controller.send_reply("2")

        request = mailbox.send_reply.await_args.args[0]
        assert request.to == "Jane Roe <jane@example.com>"
        assert request.subject == "Invoice for March"
        assert request.thread_id == "t-2"
        assert request.reply_text.startswith("Hi Jane")
        assert text == "Reply sent to Jane Roe <jane@example.com>."
        assert loaded.sending_reply is False

    @pytest.mark.asyncio
    async def test_send_edited_reply(self, loaded, dispatcher, mailbox):
        controller = ConversationController(loaded, dispatcher)

        await controller.send_reply("2", "Paid already.")

        assert mailbox.send_reply.await_args.args[0].reply_text == "Paid already."
        assert loaded.find_email("2").ai_reply == "Paid already."

    @pytest.mark.asyncio
    async def test_send_without_reply(self, loaded, dispatcher, mailbox):
        controller = ConversationController(loaded, dispatcher)

        text = await controller.send_reply("3")

        assert "no reply" in text
        mailbox.send_reply.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_failure(self, loaded, dispatcher, mailbox):
        mailbox.send_reply.return_value = SendReplyResult(success=False)
        controller = ConversationController(loaded, dispatcher)

        assert await controller.send_reply("2") == SEND_PROBLEM

    @pytest.mark.asyncio
    async def test_unknown_email(self, loaded, dispatcher):
        controller = ConversationController(loaded, dispatcher)

        with pytest.raises(EmailNotFoundError):
            await controller.send_reply("missing")
        with pytest.raises(EmailNotFoundError):
            await controller.refine_reply("missing")
        with pytest.raises(EmailNotFoundError):
            controller.select_email("missing")

    @pytest.mark.asyncio
    async def test_refine_updates_reply(self, loaded, dispatcher):
        refiner = AsyncMock(return_value="Hi Jane, paid. Best")
        controller = ConversationController(loaded, dispatcher, refiner=refiner)

        text = await controller.refine_reply("2", "make it shorter")

        assert text == "I've updated the suggested reply."
        assert loaded.find_email("2").ai_reply == "Hi Jane, paid. Best"
        current, instructions, context = refiner.await_args.args
        assert instructions == "make it shorter"
        assert context.subject == "Invoice for March"
        assert loaded.refining_reply is False

    @pytest.mark.asyncio
    async def test_refine_failure_keeps_draft(self, loaded, dispatcher):
        refiner = AsyncMock(side_effect=RuntimeError("boom"))
        controller = ConversationController(loaded, dispatcher, refiner=refiner)

        assert await controller.refine_reply("1") == REFINE_PROBLEM
        assert loaded.find_email("1").ai_reply == "Hi, thanks but no thanks."

    @pytest.mark.asyncio
    async def test_rejects_second_send_in_flight(self, loaded, dispatcher, mailbox):
        release = asyncio.Event()

        async def slow_send(request):
            await release.wait()
            return SendReplyResult(success=True, sent_message_id="sent-1", thread_id="t-1")

        mailbox.send_reply.side_effect = slow_send
        controller = ConversationController(loaded, dispatcher)
        first = asyncio.create_task(controller.send_reply("1"))
        await asyncio.sleep(0)

        with pytest.raises(SubmissionInProgressError):
            await controller.send_reply("1")
        assert loaded.sending_reply is True

        release.set()
        assert await first == "Reply sent to Deals Team <deals@shop.example>."
        assert mailbox.send_reply.await_count == 1
        assert loaded.sending_reply is False

    @pytest.mark.asyncio
    async def test_rejects_second_refine_in_flight(self, loaded, dispatcher):
        release = asyncio.Event()

        async def slow_refine(current, instructions, context):
            await release.wait()
            return f"{current} (refined)"

        refiner = AsyncMock(side_effect=slow_refine)
        controller = ConversationController(loaded, dispatcher, refiner=refiner)
        first = asyncio.create_task(controller.refine_reply("1", "shorter"))
        await asyncio.sleep(0)

        with pytest.raises(SubmissionInProgressError):
            await controller.refine_reply("1", "longer")
        assert loaded.refining_reply is True

        release.set()
        await first
        assert refiner.await_count == 1
        assert loaded.find_email("1").ai_reply == "Hi, thanks but no thanks. (refined)"
        assert loaded.refining_reply is False

    def test_select_email(self, loaded, dispatcher):
        controller = ConversationController(loaded, dispatcher)

        controller.select_email("3")

        assert loaded.selected_email.id == "3"
