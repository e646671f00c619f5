"""Summary: Domain model dataclasses for ProAssist.

Importance: Defines the core entities shared across services, storage, and the API.
Alternatives: Use Pydantic models or ORM classes directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Provider(str, Enum):
    """Summary: External message sources a user can connect.

    Importance: Keys connections and the message dedup constraint.
    Alternatives: Store free-form provider names.
    """

    GMAIL = "GMAIL"
    OUTLOOK = "OUTLOOK"
    WHATSAPP = "WHATSAPP"


class MessageStatus(str, Enum):
    """Summary: Lifecycle states of an inbound message.

    Importance: Drives inbox filtering and the unread/replied counters.
    Alternatives: Track separate read and replied boolean flags.
    """

    UNREAD = "UNREAD"
    READ = "READ"
    REPLIED = "REPLIED"
    ARCHIVED = "ARCHIVED"


URGENCY_LOW = "baixa"
URGENCY_MEDIUM = "média"
URGENCY_HIGH = "alta"


@dataclass(frozen=True)
class User:
    """Summary: Profile data used to create or update a user.

    Importance: Anchors connections, messages, and settings to one identity.
    Alternatives: Key everything by email address only.
    """

    email: str
    name: str
    profession: str | None = None
    phone: str | None = None
    plan: str = "FREE"


@dataclass(frozen=True)
class ProviderMessage:
    """Summary: A message as returned by a provider client before persistence.

    Importance: Normalizes provider payloads for the sync pipeline.
    Alternatives: Pass raw provider JSON through the pipeline.
    """

    external_id: str
    thread_id: str | None
    sender_contact: str
    sender_name: str
    subject: str
    body: str
    received_at: datetime
    snippet: str = ""


@dataclass(frozen=True)
class NewMessage:
    """Summary: Message record ready to be inserted.

    Importance: Carries the summary and ownership fields produced during sync.
    Alternatives: Insert provider messages and patch summaries afterwards.
    """

    user_id: int
    connection_id: int | None
    source: Provider
    external_id: str
    thread_id: str | None
    sender_name: str
    sender_contact: str
    subject: str | None
    original_content: str
    summary: str
    urgency: str
    action_required: str | None
    received_at: datetime


@dataclass(frozen=True)
class SummaryContext:
    """Summary: Context passed to the summarizer alongside message text.

    Importance: Lets the LLM tailor summaries to the sender and profession.
    Alternatives: Embed context directly in the message text.
    """

    sender_name: str | None = None
    subject: str | None = None
    profession: str | None = None
    is_audio: bool = False


@dataclass(frozen=True)
class SummaryResult:
    """Summary: Structured outcome of a summarization call.

    Importance: Normalizes LLM output and the deterministic fallback.
    Alternatives: Return the raw model text.
    """

    summary: str
    urgency: str
    action_required: str | None
    tokens_used: int


@dataclass(frozen=True)
class AutoReplySettings:
    """Summary: Per-user auto-reply configuration.

    Importance: Feeds the auto-reply eligibility policy.
    Alternatives: Store a single global schedule for all users.
    """

    enabled: bool
    message: str
    start_time: str = "08:00"
    end_time: str = "18:00"
    active_days: list[int] = field(default_factory=lambda: [1, 2, 3, 4, 5])


@dataclass(frozen=True)
class ProcessedMessage:
    """Summary: Result entry for a message created during a sync pass.

    Importance: Reports what the sync created, including urgency and auto-reply outcome.
    Alternatives: Re-query the store after syncing.
    """

    id: int
    source: Provider
    sender_name: str
    sender_contact: str
    subject: str | None
    summary: str
    urgency: str
    action_required: str | None
    is_audio: bool
    status: MessageStatus
    auto_reply_sent: bool
    received_at: datetime
