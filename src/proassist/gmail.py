"""Summary: Provider clients for fetching and sending messages.

Importance: Isolates Gmail REST calls and payload parsing from the sync pipeline.
Alternatives: Use google-api-python-client.
"""

from __future__ import annotations

import base64
import json
import logging
import re
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import EmailMessage, Message
from email.utils import parsedate_to_datetime
from typing import Any

from bs4 import BeautifulSoup

from proassist.errors import IntegrationError
from proassist.models import ProviderMessage
from proassist.oauth import GoogleOAuthClient

logger = logging.getLogger(__name__)

SENDER_PATTERN = re.compile(r'^"?([^"<]*?)"?\s*<([^<>]+@[^<>]+)>$')


class ProviderClient(ABC):
    """Summary: Abstract interface for a message provider.

    Importance: Lets the sync engine run against Gmail or an in-memory fake.
    Alternatives: Call the Gmail API directly from the sync engine.
    """

    @abstractmethod
    def list_new_messages(
        self, access_token: str, since: datetime | None, limit: int
    ) -> list[ProviderMessage]:
        """Summary: List inbox messages received at or after a watermark.

        Importance: Feeds candidates into the sync pass; duplicates are allowed.
        Alternatives: Use provider history IDs for exact deltas.
        """

    @abstractmethod
    def send_message(
        self,
        access_token: str,
        to: str,
        subject: str,
        body: str,
        thread_id: str | None = None,
    ) -> str:
        """Summary: Send a plain text message and return its provider ID.

        Importance: Delivers manual and automatic replies.
        Alternatives: Queue outgoing mail for a separate sender.
        """

    @abstractmethod
    def refresh_access_token(self, refresh_token: str) -> str:
        """Summary: Exchange a refresh token for a new access token.

        Importance: Backs the credential manager's refresh path.
        Alternatives: Require the user to log in again.
        """


class GmailProviderClient(ProviderClient):
    """Summary: Reads and sends email via the Gmail API using OAuth tokens.

    Importance: Enables OAuth-based ingestion without IMAP passwords.
    Alternatives: Use IMAP or a provider SDK.
    """

    def __init__(self, base_url: str, oauth: GoogleOAuthClient) -> None:
        self._base_url = base_url.rstrip("/")
        self._oauth = oauth

    def list_new_messages(
        self, access_token: str, since: datetime | None, limit: int
    ) -> list[ProviderMessage]:
        query = "is:inbox"
        if since is not None:
            query += f" after:{int(since.timestamp())}"
        params = urllib.parse.urlencode({"q": query, "maxResults": limit})
        payload = _gmail_api_request(f"{self._base_url}/users/me/messages?{params}", access_token)
        messages: list[ProviderMessage] = []
        for item in payload.get("messages", []) or []:
            message_id = item.get("id")
            if not message_id:
                continue
            detail_url = f"{self._base_url}/users/me/messages/{message_id}?format=full"
            parsed = parse_gmail_message(_gmail_api_request(detail_url, access_token))
            if parsed:
                messages.append(parsed)
        logger.info("Fetched %s Gmail messages for query %r.", len(messages), query)
        return messages

    def send_message(
        self,
        access_token: str,
        to: str,
        subject: str,
        body: str,
        thread_id: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {"raw": build_raw_message(to, subject, body)}
        if thread_id:
            payload["threadId"] = thread_id
        response = _gmail_api_request(
            f"{self._base_url}/users/me/messages/send", access_token, payload
        )
        return str(response.get("id", ""))

    def refresh_access_token(self, refresh_token: str) -> str:
        return self._oauth.refresh_access_token(refresh_token).access_token


@dataclass(frozen=True)
class SentMessage:
    """Summary: Record of a message sent through the mock client."""

    to: str
    subject: str
    body: str
    thread_id: str | None


class MockProviderClient(ProviderClient):
    """Summary: In-memory provider for local runs and tests.

    Importance: Enables offline sync flows and deterministic tests.
    Alternatives: Record and replay real Gmail responses.
    """

    def __init__(
        self, messages: list[ProviderMessage] | None = None, fail_sends: bool = False
    ) -> None:
        self.messages: list[ProviderMessage] = list(messages or [])
        self.sent: list[SentMessage] = []
        self.refresh_calls: list[str] = []
        self.fail_sends = fail_sends

    def list_new_messages(
        self, access_token: str, since: datetime | None, limit: int
    ) -> list[ProviderMessage]:
        candidates = [
            message
            for message in self.messages
            if since is None or message.received_at >= since
        ]
        candidates.sort(key=lambda message: message.received_at, reverse=True)
        return candidates[:limit]

    def send_message(
        self,
        access_token: str,
        to: str,
        subject: str,
        body: str,
        thread_id: str | None = None,
    ) -> str:
        if self.fail_sends:
            raise IntegrationError("Mock send failure")
        self.sent.append(SentMessage(to=to, subject=subject, body=body, thread_id=thread_id))
        return f"sent-{len(self.sent)}"

    def refresh_access_token(self, refresh_token: str) -> str:
        self.refresh_calls.append(refresh_token)
        return f"refreshed-{len(self.refresh_calls)}"


def _gmail_api_request(
    url: str, access_token: str, body: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Summary: Call the Gmail API and parse the JSON response.

    Importance: Encapsulates Gmail API calls without new dependencies.
    Alternatives: Use a third-party HTTP client or SDK.
    """

    headers = {"Authorization": f"Bearer {access_token}"}
    data = None
    if body is not None:
        headers["Content-Type"] = "application/json"
        data = json.dumps(body).encode("utf-8")
    request = urllib.request.Request(
        url, data=data, headers=headers, method="POST" if body is not None else "GET"
    )
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8")
        raise IntegrationError(f"Gmail API request failed: {error_body or exc.reason}") from exc
    except urllib.error.URLError as exc:
        raise IntegrationError(f"Gmail API request failed: {exc.reason}") from exc
    return json.loads(raw) if raw else {}


def parse_gmail_message(message: dict[str, Any]) -> ProviderMessage | None:
    """Summary: Parse a Gmail message payload into a ProviderMessage.

    Importance: Normalizes Gmail payloads into the sync model.
    Alternatives: Store raw Gmail payloads and parse later.
    """

    external_id = message.get("id")
    if not external_id:
        return None
    payload = message.get("payload") or {}
    headers = _parse_gmail_headers(payload.get("headers", []))
    sender_name, sender_contact = parse_sender(headers.get("from", ""))
    snippet = message.get("snippet", "")
    body = extract_gmail_body(payload)
    return ProviderMessage(
        external_id=external_id,
        thread_id=message.get("threadId"),
        sender_contact=sender_contact,
        sender_name=sender_name,
        subject=headers.get("subject", "(Sem assunto)"),
        body=body or snippet,
        received_at=_received_at(message.get("internalDate"), headers.get("date", "")),
        snippet=snippet,
    )


def parse_sender(raw: str) -> tuple[str, str]:
    """Summary: Split a From header into display name and address.

    Importance: Provides a readable sender and a reply address.
    Alternatives: Use email.utils.parseaddr.
    """

    raw = raw.strip()
    match = SENDER_PATTERN.match(raw)
    if not match:
        return raw, raw
    address = match.group(2).strip()
    return match.group(1).strip() or address, address


def extract_gmail_body(payload: dict[str, Any]) -> str:
    """Summary: Extract a plain text body from a Gmail payload.

    Importance: Provides readable content for summarization.
    Alternatives: Store the snippet only for Gmail messages.
    """

    text_parts: list[str] = []
    html_parts: list[str] = []
    for part in _walk_gmail_parts(payload):
        data = (part.get("body") or {}).get("data")
        if not data:
            continue
        mime_type = part.get("mimeType")
        if mime_type == "text/plain":
            text_parts.append(decode_base64url(data, _part_charset(part)))
        elif mime_type == "text/html":
            html_parts.append(html_to_text(decode_base64url(data, _part_charset(part))))
    for candidates in (text_parts, html_parts):
        joined = "\n".join(item.strip() for item in candidates if item.strip()).strip()
        if joined:
            return joined
    return ""


def html_to_text(html: str) -> str:
    """Summary: Convert an HTML body to plain text.

    Importance: Drops markup, scripts, and styles and resolves entities before summarization.
    Alternatives: Convert to markdown with html2text.
    """

    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()
    return " ".join(soup.get_text(" ").split())


def build_raw_message(to: str, subject: str, body: str) -> str:
    """Summary: Build a base64url RFC 2822 message for the Gmail send endpoint.

    Importance: Gmail requires the raw MIME message in URL-safe base64.
    Alternatives: Use the Gmail SDK's message helpers.
    """

    message = EmailMessage()
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body, subtype="plain", charset="utf-8")
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")


def reply_subject(subject: str | None) -> str:
    """Summary: Prefix a subject with "Re: " unless it already has it."""

    subject = subject or "Sem assunto"
    return subject if subject.startswith("Re:") else f"Re: {subject}"


def decode_base64url(data: str, charset: str | None = None) -> str:
    """Summary: Decode base64url-encoded Gmail content.

    Importance: Gmail payloads use URL-safe base64 encoding and keep the sender's charset.
    Alternatives: Use a third-party Gmail client library.
    """

    padded = data + "=" * (-len(data) % 4)
    raw = base64.urlsafe_b64decode(padded.encode("utf-8"))
    try:
        return raw.decode(charset or "utf-8")
    except (LookupError, UnicodeDecodeError):
        return raw.decode("utf-8", errors="replace")


def _part_charset(part: dict[str, Any]) -> str | None:
    content_type = _parse_gmail_headers(part.get("headers") or []).get("content-type")
    if not content_type:
        return None
    message = Message()
    message["Content-Type"] = content_type
    return message.get_content_charset()


def _parse_gmail_headers(headers: list[dict[str, Any]]) -> dict[str, str]:
    normalized: dict[str, str] = {}
    for header in headers:
        name = header.get("name")
        value = header.get("value")
        if name and value:
            normalized[name.lower()] = value
    return normalized


def _walk_gmail_parts(payload: dict[str, Any]) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = [payload]
    for part in payload.get("parts", []) or []:
        parts.extend(_walk_gmail_parts(part))
    return parts


def _received_at(internal_date: str | None, date_header: str) -> datetime:
    if internal_date:
        try:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
        except ValueError:
            pass
    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
        except (TypeError, ValueError):
            parsed = None
        if parsed is not None:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)
