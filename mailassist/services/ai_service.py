"""
AI service for email intelligence.

This module provides:
1. Email summarization (replaces the Gmail snippet when available)
2. Suggested reply drafting for each fetched email
3. Reply refinement from user instructions

Summaries and suggested replies never fail the caller: problems are
recorded as diagnostic notes and None is returned. Refinement echoes the
current reply when no better text is available.
"""
from typing import List, Optional

from mailassist.config import get_settings
from mailassist.integrations.gemini_client import complete
from mailassist.models.email import EmailContext
from mailassist.utils.logger import get_logger
from mailassist.utils.errors import AIError

logger = get_logger(__name__)


# =============================================================================
# EMAIL SUMMARIZATION
# =============================================================================

SUMMARY_PROMPT = """You are an email summarization assistant. Given an email, write a concise, user-friendly summary that tells the recipient what the email is about and what (if anything) they need to do.

Summary requirements:
- 1 to 3 short sentences, max ~60 words total.
- Start with the key purpose of the email.
- Mention any requests, deadlines, or important decisions.
- Do NOT include greetings or sign-offs.
- Do NOT speak in the first person as the sender.
- Output only the summary text, nothing else.

Original message:
Sender: {sender}
Subject: {subject}
Email body: {body}

Write the summary now:"""


async def summarize_email(
    sender: str,
    subject: str,
    body: str,
    diagnostics: List[str],
) -> Optional[str]:
    """
    Generate a short summary of an email.

    Returns:
        Summary text, or None (with a note appended to diagnostics)
    """
    if not get_settings().has_model_credential:
        diagnostics.append("GEMINI_API_KEY is not set; skipping AI summaries.")
        return None

    prompt = SUMMARY_PROMPT.format(
        sender=sender,
        subject=subject,
        body=body or "(no body available)",
    )

    try:
        return await complete(prompt, max_tokens=200, temperature=0.3)
    except AIError as e:
        logger.warning(f"Summary failed for '{subject}': {e.message}")
        diagnostics.append(f"Summary failed: {e.message}")
        return None


# =============================================================================
# SUGGESTED REPLIES
# =============================================================================

REPLY_PROMPT = """You are an AI email assistant. Draft a clear, concise, professional email reply to the message below.

Reply requirements:
- Write the reply as if it will be sent directly to the sender.
- Include a short greeting that addresses the sender appropriately.
- Keep the body focused and actionable (2-5 short paragraphs).
- End with a natural, courteous sign-off.
- Do NOT explain what you are doing.
- Do NOT include headings like "Here is your reply" or "Explanation".
- Output only the email text, nothing else.
- Use the full email body below as context.

Original message:
Sender: {sender}
Subject: {subject}
Email body: {body}

Write the reply now:"""


async def suggest_reply(
    sender: str,
    subject: str,
    body: str,
    diagnostics: List[str],
) -> Optional[str]:
    """Draft a suggested reply; None (with a diagnostic note) when unavailable."""
    if not get_settings().has_model_credential:
        diagnostics.append("GEMINI_API_KEY is not set; skipping AI replies.")
        return None

    prompt = REPLY_PROMPT.format(
        sender=sender,
        subject=subject,
        body=body or "(no body available)",
    )

    try:
        return await complete(prompt, max_tokens=600, temperature=0.7)
    except AIError as e:
        logger.warning(f"Reply draft failed for '{subject}': {e.message}")
        diagnostics.append(f"Reply draft failed: {e.message}")
        return None


# =============================================================================
# REPLY REFINEMENT
# =============================================================================

DEFAULT_REFINE_INSTRUCTION = (
    "Please improve clarity, tone, and professionalism while keeping the original intent."
)


def build_refine_prompt(
    current_reply: str,
    instructions: Optional[str] = None,
    context: Optional[EmailContext] = None,
) -> str:
    """Assemble the copy-editor prompt from the draft, instructions and email context."""
    context_lines = []
    if context:
        if context.sender:
            context_lines.append(f"Sender: {context.sender}")
        if context.subject:
            context_lines.append(f"Subject: {context.subject}")
        if context.snippet:
            context_lines.append(f"Email snippet: {context.snippet}")

    context_block = ""
    if context_lines:
        context_block = "Original email context (for reference):\n" + "\n".join(context_lines) + "\n\n"

    instructions = (instructions or "").strip()
    instruction_line = (
        f"User refinement instructions: {instructions}\n\n"
        if instructions
        else f"{DEFAULT_REFINE_INSTRUCTION}\n\n"
    )

    return (
        "You are an expert email copy editor. Your job is to refine the draft reply below.\n\n"
        f"{context_block}{instruction_line}"
        f"Draft reply to refine:\n{current_reply}\n\n"
        "Return only the improved email text, nothing else."
    )


async def refine_reply(
    current_reply: str,
    instructions: Optional[str] = None,
    context: Optional[EmailContext] = None,
) -> str:
    """
    Refine a draft reply.

    Args:
        current_reply: Draft to improve (non-empty)
        instructions: Optional user guidance ("make it shorter")
        context: Optional original email details

    Returns:
        Refined text, or current_reply unchanged when no key is configured
        or the model produced nothing usable
    """
    if not get_settings().has_model_credential:
        return current_reply

    try:
        refined = await complete(
            build_refine_prompt(current_reply, instructions, context),
            max_tokens=800,
            temperature=0.5,
        )
    except AIError as e:
        logger.warning(f"Reply refinement failed, keeping draft: {e.message}")
        return current_reply

    return refined.strip() or current_reply
