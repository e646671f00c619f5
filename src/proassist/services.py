"""Summary: Core application services for ProAssist.

Importance: Orchestrates sync, auto-reply, message state, settings, and login flows.
Alternatives: Build a full service layer with dependency injection framework.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from proassist.ai import Summarizer
from proassist.credentials import CredentialManager, utc_now
from proassist.errors import (
    ConnectionNotFound,
    DuplicateMessage,
    InvalidProvider,
    InvalidTimeWindow,
    MessageNotFound,
    UserNotFound,
)
from proassist.gmail import ProviderClient, reply_subject
from proassist.models import (
    AutoReplySettings,
    MessageStatus,
    NewMessage,
    ProcessedMessage,
    Provider,
    ProviderMessage,
    SummaryContext,
    User,
)
from proassist.oauth import GoogleOAuthClient
from proassist.policy import default_settings, is_eligible, is_valid_time, local_now
from proassist.security import TokenIssuer
from proassist.storage.sqlite_store import (
    SqliteStore,
    StoredConnection,
    StoredMessage,
    StoredReply,
    StoredUser,
    to_iso,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncEngine:
    """Summary: Runs one synchronization pass per (user, provider).

    Importance: Ingests new messages exactly once and applies the auto-reply policy.
    Alternatives: Poll providers from a background scheduler.
    """

    store: SqliteStore
    credentials: CredentialManager
    provider_client: ProviderClient
    summarizer: Summarizer
    clock: Callable[[], datetime] = utc_now
    max_results: int = 20
    timezone_name: str = ""

    def sync_messages(
        self, user_id: int, provider: Provider = Provider.GMAIL
    ) -> list[ProcessedMessage]:
        """Summary: Fetch, summarize, persist, and maybe auto-reply to new messages.

        Importance: Is the single ingestion path for provider messages.
        Alternatives: Persist raw messages and summarize lazily on read.

        Connection, credential, and fetch failures abort the pass; messages
        already persisted stay stored.
        """

        user = self.store.get_user(user_id)
        if user is None:
            raise UserNotFound(f"User {user_id} not found")
        connection = self.store.get_connection(user_id, provider)
        if connection is None or not connection.access_token:
            raise ConnectionNotFound(f"No {provider.value} connection for user {user_id}")
        access_token = self.credentials.get_valid_access_token(connection)
        watermark = self.store.latest_received_at(user_id, provider)
        candidates = self.provider_client.list_new_messages(
            access_token, watermark, self.max_results
        )
        processed: list[ProcessedMessage] = []
        skipped = 0
        for candidate in candidates:
            if self.store.message_exists(user_id, provider, candidate.external_id):
                skipped += 1
                continue
            result = self._process_candidate(user, connection, access_token, candidate)
            if result is None:
                skipped += 1
                continue
            processed.append(result)
        logger.info(
            "Synced %s %s messages for user %s (%s skipped).",
            len(processed),
            provider.value,
            user_id,
            skipped,
        )
        return processed

    def _process_candidate(
        self,
        user: StoredUser,
        connection: StoredConnection,
        access_token: str,
        candidate: ProviderMessage,
    ) -> ProcessedMessage | None:
        summary = self.summarizer.summarize(
            candidate.body,
            SummaryContext(
                sender_name=candidate.sender_name,
                subject=candidate.subject,
                profession=user.profession,
            ),
        )
        try:
            stored = self.store.insert_message(
                NewMessage(
                    user_id=user.id,
                    connection_id=connection.id,
                    source=connection.provider,
                    external_id=candidate.external_id,
                    thread_id=candidate.thread_id,
                    sender_name=candidate.sender_name,
                    sender_contact=candidate.sender_contact,
                    subject=candidate.subject,
                    original_content=candidate.body,
                    summary=summary.summary,
                    urgency=summary.urgency,
                    action_required=summary.action_required,
                    received_at=candidate.received_at,
                )
            )
        except DuplicateMessage:
            logger.info(
                "Message %s was stored concurrently; skipping.", candidate.external_id
            )
            return None
        auto_replied = self._maybe_auto_reply(user.id, access_token, stored)
        return ProcessedMessage(
            id=stored.id,
            source=stored.source,
            sender_name=stored.sender_name,
            sender_contact=stored.sender_contact,
            subject=stored.subject,
            summary=summary.summary,
            urgency=summary.urgency,
            action_required=summary.action_required,
            is_audio=False,
            status=MessageStatus.REPLIED if auto_replied else MessageStatus.UNREAD,
            auto_reply_sent=auto_replied,
            received_at=candidate.received_at,
        )

    def _maybe_auto_reply(self, user_id: int, access_token: str, message: StoredMessage) -> bool:
        settings = self.store.get_auto_reply_settings(user_id)
        now = local_now(self.clock(), self.timezone_name)
        if settings is None or not is_eligible(settings, now):
            return False
        try:
            self.provider_client.send_message(
                access_token,
                message.sender_contact,
                reply_subject(message.subject),
                settings.message,
                thread_id=message.thread_id,
            )
            self.store.add_reply(message.id, user_id, settings.message, is_auto_reply=True)
        except Exception:
            logger.exception("Auto-reply failed for message %s.", message.id)
            return False
        logger.info("Auto-reply sent for message %s.", message.id)
        return True


@dataclass(frozen=True)
class MessageListItem:
    """Summary: A listed message with its latest reply, if any."""

    message: StoredMessage
    last_reply: StoredReply | None


@dataclass(frozen=True)
class MessageDetail:
    """Summary: A message with its full reply history in ascending order."""

    message: StoredMessage
    replies: list[StoredReply]


@dataclass(frozen=True)
class MessageStats:
    """Summary: Dashboard counters for a user's messages."""

    total: int
    unread: int
    today_count: int
    replied_count: int
    read_rate: float


@dataclass(frozen=True)
class MessageService:
    """Summary: Reads and transitions message state for one user at a time.

    Importance: Owns the UNREAD, READ, REPLIED, and ARCHIVED state machine.
    Alternatives: Update statuses directly from API handlers.
    """

    store: SqliteStore
    credentials: CredentialManager
    provider_client: ProviderClient
    summarizer: Summarizer
    clock: Callable[[], datetime] = utc_now
    timezone_name: str = ""

    def list_messages(
        self,
        user_id: int,
        status: MessageStatus | None = None,
        source: Provider | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[MessageListItem], int]:
        messages, total = self.store.list_messages(user_id, status, source, limit, offset)
        items = [
            MessageListItem(message=message, last_reply=self.store.latest_reply(message.id))
            for message in messages
        ]
        return items, total

    def get_and_mark_read(self, user_id: int, message_id: int) -> MessageDetail:
        """Summary: Fetch a message and move it from UNREAD to READ.

        Importance: Opening a message is what marks it read.
        Alternatives: Require a separate mark-read call from clients.
        """

        message = self._require_message(user_id, message_id)
        if message.status == MessageStatus.UNREAD and self.store.mark_read(message_id, user_id):
            message = dataclasses.replace(message, status=MessageStatus.READ)
        elif message.status == MessageStatus.UNREAD:
            message = self._require_message(user_id, message_id)
        return MessageDetail(message=message, replies=self.store.list_replies(message_id))

    def mark_read(self, user_id: int, message_id: int) -> None:
        self._require_message(user_id, message_id)
        self.store.mark_read(message_id, user_id)

    def archive(self, user_id: int, message_id: int) -> None:
        if not self.store.archive_message(message_id, user_id):
            raise MessageNotFound(f"Message {message_id} not found")

    def send_reply(self, user_id: int, message_id: int, content: str) -> StoredReply:
        """Summary: Send a manual reply and record it.

        Importance: Appends to the reply history and marks the message REPLIED.
        Alternatives: Record the reply without delivering it.
        """

        message = self._require_message(user_id, message_id)
        connection = self._connection_for(message)
        access_token = self.credentials.get_valid_access_token(connection)
        if message.source == Provider.GMAIL:
            self.provider_client.send_message(
                access_token,
                message.sender_contact,
                reply_subject(message.subject),
                content,
                thread_id=message.thread_id or message.external_id,
            )
        reply = self.store.add_reply(message_id, user_id, content, is_auto_reply=False)
        logger.info("Manual reply recorded for message %s.", message_id)
        return reply

    def suggest_reply(self, user_id: int, message_id: int, tone: str = "formal") -> str:
        message = self._require_message(user_id, message_id)
        user = self.store.get_user(user_id)
        return self.summarizer.suggest_reply(
            message.original_content,
            message.summary,
            sender_name=message.sender_name,
            profession=user.profession if user else None,
            tone=tone,
        )

    def stats(self, user_id: int) -> MessageStats:
        """Summary: Compute dashboard counters.

        Importance: Gives a quick overview of inbox load.
        Alternatives: Compute counters on the client from the list endpoint.

        "Today" starts at local midnight in the auto-reply timezone.
        """

        now = local_now(self.clock(), self.timezone_name)
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if midnight.tzinfo is None:
            midnight = midnight.astimezone(timezone.utc)
        counts = self.store.message_counts(user_id, midnight)
        total = counts["total"]
        unread = counts["unread"]
        read_rate = (total - unread) / total * 100 if total > 0 else 0.0
        return MessageStats(
            total=total,
            unread=unread,
            today_count=counts["today"],
            replied_count=counts["replied"],
            read_rate=read_rate,
        )

    def _require_message(self, user_id: int, message_id: int) -> StoredMessage:
        message = self.store.get_message(message_id, user_id)
        if message is None:
            raise MessageNotFound(f"Message {message_id} not found")
        return message

    def _connection_for(self, message: StoredMessage) -> StoredConnection:
        connection = None
        if message.connection_id is not None:
            connection = self.store.get_connection_by_id(message.connection_id)
        if connection is None:
            connection = self.store.get_connection(message.user_id, message.source)
        if connection is None or not connection.access_token:
            raise ConnectionNotFound(f"No {message.source.value} connection for message {message.id}")
        return connection


@dataclass(frozen=True)
class SettingsService:
    """Summary: Manages per-user auto-reply settings.

    Importance: Feeds the auto-reply policy with validated schedules.
    Alternatives: Store settings on the user row.
    """

    store: SqliteStore
    default_message: str

    def get_or_initialize(self, user_id: int) -> AutoReplySettings:
        existing = self.store.get_auto_reply_settings(user_id)
        if existing is not None:
            return existing
        return self.store.create_auto_reply_settings(
            user_id, default_settings(self.default_message)
        )

    def update(
        self,
        user_id: int,
        enabled: bool | None = None,
        message: str | None = None,
        start_time: str | None = None,
        end_time: str | None = None,
        active_days: list[int] | None = None,
    ) -> AutoReplySettings:
        """Summary: Apply a partial update to a user's settings.

        Importance: Rejects windows where start is not before end.
        Alternatives: Replace the whole settings record on every update.

        The window check uses the merged result, so updating only one end
        is validated against the stored other end.
        """

        for value in (start_time, end_time):
            if value and not is_valid_time(value):
                raise InvalidTimeWindow(f"Horário inválido: {value}")
        current = self.get_or_initialize(user_id)
        changes: dict[str, object] = {}
        if enabled is not None:
            changes["enabled"] = enabled
        if message:
            changes["message"] = message
        if start_time:
            changes["start_time"] = start_time
        if end_time:
            changes["end_time"] = end_time
        if active_days:
            changes["active_days"] = sorted(set(active_days))
        merged = dataclasses.replace(current, **changes)
        if merged.start_time >= merged.end_time:
            raise InvalidTimeWindow(
                "O horário de início deve ser anterior ao horário de término"
            )
        saved = self.store.save_auto_reply_settings(user_id, merged)
        logger.info("Auto-reply settings updated for user %s.", user_id)
        return saved

    def toggle(self, user_id: int) -> AutoReplySettings:
        existing = self.store.get_auto_reply_settings(user_id)
        if existing is None:
            return self.get_or_initialize(user_id)
        return self.store.save_auto_reply_settings(
            user_id, dataclasses.replace(existing, enabled=not existing.enabled)
        )


@dataclass(frozen=True)
class UserProfile:
    """Summary: User data combined with connections and settings."""

    user: StoredUser
    connections: list[StoredConnection]
    settings: AutoReplySettings | None


@dataclass(frozen=True)
class ConnectionStatus:
    """Summary: Connection state shown in the settings screen."""

    connection: StoredConnection
    is_expired: bool


@dataclass(frozen=True)
class UserService:
    """Summary: Manages profile data and provider connections.

    Importance: Lets users set context for summaries and revoke access.
    Alternatives: Use an external identity provider.
    """

    store: SqliteStore
    clock: Callable[[], datetime] = utc_now

    def profile(self, user_id: int) -> UserProfile:
        user = self._require_user(user_id)
        return UserProfile(
            user=user,
            connections=self.store.list_connections(user_id),
            settings=self.store.get_auto_reply_settings(user_id),
        )

    def update_profile(
        self,
        user_id: int,
        name: str | None = None,
        profession: str | None = None,
        phone: str | None = None,
    ) -> StoredUser:
        user = self.store.update_user_profile(user_id, name, profession, phone)
        if user is None:
            raise UserNotFound(f"User {user_id} not found")
        return user

    def disconnect(self, user_id: int, provider_name: str) -> Provider:
        """Summary: Remove a provider connection.

        Importance: Revokes stored credentials on request.
        Alternatives: Mark the connection inactive and keep tokens.
        """

        provider = parse_provider(provider_name)
        if self.store.delete_connection(user_id, provider):
            logger.info("Removed %s connection for user %s.", provider.value, user_id)
        return provider

    def connection_statuses(self, user_id: int) -> list[ConnectionStatus]:
        now = self.clock()
        statuses = []
        for connection in self.store.list_connections(user_id):
            expired = bool(
                connection.expires_at and datetime.fromisoformat(connection.expires_at) < now
            )
            statuses.append(ConnectionStatus(connection=connection, is_expired=expired))
        return statuses

    def _require_user(self, user_id: int) -> StoredUser:
        user = self.store.get_user(user_id)
        if user is None:
            raise UserNotFound(f"User {user_id} not found")
        return user


@dataclass(frozen=True)
class LoginResult:
    """Summary: Outcome of a completed Google login."""

    token: str
    user: StoredUser


@dataclass(frozen=True)
class AuthService:
    """Summary: Completes Google logins and issues bearer tokens.

    Importance: Creates users, default settings, and the Gmail connection.
    Alternatives: Separate signup from provider connection.
    """

    store: SqliteStore
    oauth: GoogleOAuthClient
    issuer: TokenIssuer
    settings: SettingsService

    def login_url(self, state: str) -> str:
        return self.oauth.auth_url(state)

    def complete_google_login(self, code: str) -> LoginResult:
        """Summary: Exchange a code, upsert the user and connection, and sign a token.

        Importance: Is the only way users and Gmail connections are created.
        Alternatives: Accept Google ID tokens directly from the client.
        """

        tokens = self.oauth.exchange_code(code)
        profile = self.oauth.fetch_profile(tokens.access_token)
        user_id = self.store.ensure_user(User(email=profile.email, name=profile.name))
        self.settings.get_or_initialize(user_id)
        self.store.upsert_connection(
            user_id,
            Provider.GMAIL,
            tokens.access_token,
            tokens.refresh_token,
            to_iso(tokens.expires_at) if tokens.expires_at else None,
        )
        logger.info("User %s signed in with Google.", user_id)
        return self._login_result(user_id)

    def issue_token(self, email: str) -> LoginResult:
        """Summary: Issue a bearer token for an existing or new local user.

        Importance: Supports local development without Google credentials.
        Alternatives: Always require the OAuth flow.
        """

        user_id = self.store.ensure_user(User(email=email, name=email.split("@")[0]))
        self.settings.get_or_initialize(user_id)
        return self._login_result(user_id)

    def _login_result(self, user_id: int) -> LoginResult:
        user = self.store.get_user(user_id)
        if user is None:
            raise UserNotFound(f"User {user_id} not found")
        return LoginResult(token=self.issuer.issue(user.id, user.email), user=user)


def parse_provider(value: str) -> Provider:
    try:
        return Provider(value.upper())
    except ValueError as exc:
        raise InvalidProvider(f"Unknown provider: {value}") from exc
