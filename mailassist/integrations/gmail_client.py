"""
Gmail API client integration.

This module handles direct communication with the Gmail REST API:
1. List message ids (optionally with a search query)
2. Fetch message details and parse them into Email objects
3. Move messages to trash
4. Send plain-text replies

Gmail API Reference: https://developers.google.com/gmail/api/reference/rest
"""
import asyncio
import base64
from email.mime.text import MIMEText
from typing import List, Optional

import httpx

from mailassist.models.email import Email
from mailassist.utils.logger import get_logger
from mailassist.utils.errors import GmailError, RateLimitError, AuthError

logger = get_logger(__name__)

# Gmail API base URL
GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"

DEFAULT_SENDER = "Unknown"
DEFAULT_SUBJECT = "(no subject)"


def extract_header(message: dict, name: str) -> Optional[str]:
    """Case-insensitive header lookup on a raw Gmail message."""
    for header in message.get("payload", {}).get("headers", []) or []:
        if header.get("name", "").lower() == name.lower():
            return header.get("value")
    return None


def decode_body(data: str) -> str:
    """
    Decode base64url-encoded body data.

    Gmail uses URL-safe base64 without padding.
    """
    if not data:
        return ""
    try:
        padding = -len(data) % 4
        decoded = base64.urlsafe_b64decode(data + "=" * padding)
        return decoded.decode("utf-8", errors="replace")
    except (ValueError, TypeError) as e:
        logger.warning(f"Failed to decode body: {e}")
        return ""


def extract_plain_text(payload: Optional[dict]) -> str:
    """
    Find the first non-blank text/plain part, searching nested parts.

    Returns:
        Decoded text, or "" when the message has no plain text part
    """
    if not payload:
        return ""

    data = payload.get("body", {}).get("data")
    if payload.get("mimeType") == "text/plain" and data:
        return decode_body(data)

    for part in payload.get("parts", []) or []:
        text = extract_plain_text(part)
        if text.strip():
            return text

    return ""


def parse_email_message(message: dict) -> Email:
    """
    Parse a raw Gmail API message (format=full) into an Email.

    Missing From/Subject headers fall back to "Unknown" / "(no subject)".
    """
    return Email(
        id=message["id"],
        thread_id=message.get("threadId"),
        sender=extract_header(message, "From") or DEFAULT_SENDER,
        subject=extract_header(message, "Subject") or DEFAULT_SUBJECT,
        body=extract_plain_text(message.get("payload")),
        snippet=message.get("snippet", "") or "",
        labels=message.get("labelIds", []) or [],
    )


def build_raw_reply(to: str, subject: str, body: str) -> str:
    """Build a base64url-encoded plain text MIME message."""
    message = MIMEText(body, "plain", "utf-8")
    message["To"] = to
    message["Subject"] = subject
    return base64.urlsafe_b64encode(message.as_bytes()).decode("utf-8").rstrip("=")


class GmailClient:
    """
    Gmail API client for email operations.

    Usage:
        client = GmailClient(access_token)
        emails = await client.fetch_emails(count=5)
        await client.trash_message(email_id)
        await client.send_message(to, subject, body, thread_id)
    """

    def __init__(self, access_token: str):
        """
        Initialize Gmail client with access token.

        Args:
            access_token: Valid Google OAuth access token with Gmail scopes
        """
        self.access_token = access_token
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        json_data: dict = None,
        params: dict = None,
        retries: int = 2,
    ) -> Optional[dict]:
        """
        Make an authenticated request to the Gmail API.

        Transient errors (429, 5xx, timeouts) are retried with exponential
        backoff. A 404 returns None.

        Returns:
            Response JSON dict ({} for empty bodies), None on 404

        Raises:
            AuthError: Token expired or invalid (401)
            RateLimitError: Still rate limited after retries
            GmailError: Any other API or connection failure
        """
        url = f"{GMAIL_API_BASE}{endpoint}"

        for attempt in range(retries + 1):
            try:
                async with httpx.AsyncClient() as client:
                    response = await client.request(
                        method=method,
                        url=url,
                        headers=self.headers,
                        json=json_data,
                        params=params,
                        timeout=30.0,
                    )
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < retries:
                    wait_time = 2 ** attempt
                    logger.warning(f"Gmail API connection error, retrying in {wait_time}s...")
                    await asyncio.sleep(wait_time)
                    continue
                logger.error(f"Gmail API: request failed after {retries} retries - {e}")
                raise GmailError("Gmail service unavailable. Please try again later.")
            except httpx.HTTPError as e:
                logger.error(f"Unexpected Gmail API error: {e}")
                raise GmailError(f"Unexpected Gmail error: {e}")

            status = response.status_code

            if 200 <= status < 300:
                if status == 204 or not response.content:
                    return {}
                return response.json()

            if status == 429 or status >= 500:
                if attempt < retries:
                    wait_time = 2 ** attempt
                    logger.warning(f"Gmail API transient error {status}, retrying in {wait_time}s...")
                    await asyncio.sleep(wait_time)
                    continue
                if status == 429:
                    raise RateLimitError("Gmail is rate limiting requests. Please wait a moment.")

            if status == 404:
                return None

            if status == 401:
                logger.warning("Gmail API: token expired or invalid")
                raise AuthError("Gmail access token expired")

            if status == 403:
                logger.warning("Gmail API: permission denied")
                raise GmailError("Gmail permission denied. Please re-authorize.")

            logger.error(f"Gmail API error: {status} - {response.text[:200]}")
            raise GmailError(f"Gmail API error: {status}")

        raise GmailError("Gmail service unavailable. Please try again later.")

    async def list_message_ids(self, max_results: int, query: Optional[str] = None) -> List[str]:
        """
        List INBOX message ids, newest first.

        Args:
            max_results: Maximum ids to return
            query: Optional Gmail search query (e.g. "from:jane", "subject:invoice")
        """
        params = {"maxResults": max_results, "labelIds": "INBOX"}
        if query:
            params["q"] = query

        response = await self._make_request("GET", "/messages", params=params)
        return [m["id"] for m in (response or {}).get("messages", [])]

    async def get_message(self, message_id: str) -> Optional[Email]:
        """Fetch and parse one message; None if it no longer exists."""
        response = await self._make_request(
            "GET",
            f"/messages/{message_id}",
            params={"format": "full"},
        )
        if not response:
            return None
        return parse_email_message(response)

    async def fetch_emails(self, count: int = 5, query: Optional[str] = None) -> List[Email]:
        """
        Fetch the most recent emails with full details.

        Details are fetched concurrently; messages whose details can't be
        fetched are skipped.
        """
        logger.info(f"Fetching {count} emails (query: {query})")

        ids = await self.list_message_ids(count, query)
        if not ids:
            logger.info("No emails found in inbox")
            return []

        # gather keeps list order
        fetched = await asyncio.gather(*(self._get_message_or_none(m) for m in ids))
        emails = [email for email in fetched if email]

        logger.info(f"Fetched {len(emails)} emails successfully")
        return emails

    async def _get_message_or_none(self, message_id: str) -> Optional[Email]:
        try:
            return await self.get_message(message_id)
        except GmailError as e:
            logger.warning(f"Failed to fetch email {message_id}: {e.message}")
            return None

    async def trash_message(self, message_id: str) -> bool:
        """
        Move a message to trash (recoverable, unlike a permanent delete).

        Returns:
            True if trashed, False if Gmail doesn't know the message
        """
        logger.info(f"Trashing email: {message_id}")
        response = await self._make_request("POST", f"/messages/{message_id}/trash")
        return response is not None

    async def send_message(
        self,
        to: str,
        subject: str,
        body: str,
        thread_id: Optional[str] = None,
    ) -> dict:
        """
        Send a plain text email, threaded when thread_id is given.

        Returns:
            Gmail response with "id" and "threadId"
        """
        logger.info(f"Sending email to: {to}")

        request_body = {"raw": build_raw_reply(to, subject, body)}
        if thread_id:
            request_body["threadId"] = thread_id

        response = await self._make_request("POST", "/messages/send", json_data=request_body)
        if response is None:
            raise GmailError("Gmail could not find the thread to reply to.")

        logger.info(f"Email sent successfully, ID: {response.get('id')}")
        return response
