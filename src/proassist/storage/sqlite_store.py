"""Summary: SQLite storage implementation for ProAssist.

Importance: Provides the transactional message state store behind a repository interface.
Alternatives: Use an ORM or an external database server.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from proassist.errors import DuplicateMessage
from proassist.models import AutoReplySettings, MessageStatus, NewMessage, Provider, User
from proassist.token_codec import TokenCodec

MESSAGE_COLUMNS = (
    "id, user_id, connection_id, source, external_id, thread_id, sender_name, sender_contact, "
    "subject, original_content, transcription, summary, urgency, action_required, is_audio, "
    "audio_duration_secs, audio_url, status, auto_reply_sent, auto_reply_sent_at, received_at, "
    "created_at"
)
CONNECTION_COLUMNS = (
    "id, user_id, provider, access_token, refresh_token, expires_at, token_version, "
    "created_at, updated_at"
)


@dataclass(frozen=True)
class StoredUser:
    """Summary: User record with database identifier.

    Importance: Supplies profile data and the profession used as LLM context.
    Alternatives: Keep only an email claim from the bearer token.
    """

    id: int
    email: str
    name: str
    profession: str | None
    phone: str | None
    plan: str
    created_at: str


@dataclass(frozen=True)
class StoredConnection:
    """Summary: Provider connection with decoded credentials.

    Importance: Gives the credential manager tokens plus a version for compare-and-swap.
    Alternatives: Re-read the raw row whenever tokens are needed.
    """

    id: int
    user_id: int
    provider: Provider
    access_token: str | None
    refresh_token: str | None
    expires_at: str | None
    token_version: int
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class StoredMessage:
    """Summary: Message record with database identifier.

    Importance: Backs listing, detail, reply, and stats workflows.
    Alternatives: Use the provider external id as the only identifier.
    """

    id: int
    user_id: int
    connection_id: int | None
    source: Provider
    external_id: str
    thread_id: str | None
    sender_name: str
    sender_contact: str
    subject: str | None
    original_content: str
    transcription: str | None
    summary: str
    urgency: str | None
    action_required: str | None
    is_audio: bool
    audio_duration_secs: int | None
    audio_url: str | None
    status: MessageStatus
    auto_reply_sent: bool
    auto_reply_sent_at: str | None
    received_at: str
    created_at: str


@dataclass(frozen=True)
class StoredReply:
    """Summary: Reply record linked to a message.

    Importance: Keeps an append-only history of manual and automatic replies.
    Alternatives: Store only the latest reply on the message row.
    """

    id: int
    message_id: int
    user_id: int
    content: str
    is_auto_reply: bool
    sent_at: str


class SqliteStore:
    """Summary: SQLite-backed message state store for ProAssist.

    Importance: Enforces dedup and connection uniqueness with database constraints.
    Alternatives: Use Postgres and SQLAlchemy from day one.
    """

    def __init__(self, db_path: str, codec: TokenCodec | None = None) -> None:
        """Summary: Initialize the storage with a database path.

        Importance: Allows configurable database location and token encoding per environment.
        Alternatives: Hardcode a default path in the class.
        """

        self._db_path = Path(db_path)
        self._codec = codec

    def initialize(self) -> None:
        """Summary: Create tables and indexes if they do not exist.

        Importance: Ensures the database is ready for sync and API queries.
        Alternatives: Run migrations using a dedicated migration tool.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    profession TEXT,
                    phone TEXT,
                    plan TEXT NOT NULL DEFAULT 'FREE',
                    created_at TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS connections (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    provider TEXT NOT NULL,
                    access_token TEXT,
                    refresh_token TEXT,
                    expires_at TEXT,
                    token_version INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE(user_id, provider)
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    connection_id INTEGER REFERENCES connections(id) ON DELETE SET NULL,
                    source TEXT NOT NULL,
                    external_id TEXT NOT NULL,
                    thread_id TEXT,
                    sender_name TEXT NOT NULL,
                    sender_contact TEXT NOT NULL,
                    subject TEXT,
                    original_content TEXT NOT NULL,
                    transcription TEXT,
                    summary TEXT NOT NULL,
                    urgency TEXT,
                    action_required TEXT,
                    is_audio INTEGER NOT NULL DEFAULT 0,
                    audio_duration_secs INTEGER,
                    audio_url TEXT,
                    status TEXT NOT NULL DEFAULT 'UNREAD',
                    auto_reply_sent INTEGER NOT NULL DEFAULT 0,
                    auto_reply_sent_at TEXT,
                    received_at TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE(user_id, source, external_id)
                )
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_messages_user_source_received
                ON messages (user_id, source, received_at)
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS replies (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    message_id INTEGER NOT NULL REFERENCES messages(id) ON DELETE CASCADE,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    content TEXT NOT NULL,
                    is_auto_reply INTEGER NOT NULL DEFAULT 0,
                    sent_at TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS auto_reply_settings (
                    user_id INTEGER PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
                    enabled INTEGER NOT NULL,
                    message TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    active_days TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            connection.commit()

    def ensure_user(self, user: User) -> int:
        """Summary: Ensure a user exists for an email and return their ID.

        Importance: Creates the identity anchor on first authentication.
        Alternatives: Require explicit registration before login.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT OR IGNORE INTO users (email, name, profession, phone, plan, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user.email, user.name, user.profession, user.phone, user.plan, _now_iso()),
            )
            cursor.execute("SELECT id FROM users WHERE email = ?", (user.email,))
            row = cursor.fetchone()
            connection.commit()
        return int(row["id"])

    def get_user(self, user_id: int) -> StoredUser | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "SELECT id, email, name, profession, phone, plan, created_at FROM users WHERE id = ?",
                (user_id,),
            )
            row = cursor.fetchone()
        return StoredUser(**dict(row)) if row else None

    def get_user_by_email(self, email: str) -> StoredUser | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "SELECT id, email, name, profession, phone, plan, created_at FROM users WHERE email = ?",
                (email,),
            )
            row = cursor.fetchone()
        return StoredUser(**dict(row)) if row else None

    def update_user_profile(
        self,
        user_id: int,
        name: str | None = None,
        profession: str | None = None,
        phone: str | None = None,
    ) -> StoredUser | None:
        """Summary: Update provided profile fields and return the user.

        Importance: Lets users set the profession that shapes summaries.
        Alternatives: Replace the entire profile on every update.
        """

        updates = {
            key: value
            for key, value in (("name", name), ("profession", profession), ("phone", phone))
            if value
        }
        if updates:
            assignments = ", ".join(f"{key} = ?" for key in updates)
            with self._connection() as connection:
                connection.execute(
                    f"UPDATE users SET {assignments} WHERE id = ?",
                    (*updates.values(), user_id),
                )
                connection.commit()
        return self.get_user(user_id)

    def upsert_connection(
        self,
        user_id: int,
        provider: Provider,
        access_token: str,
        refresh_token: str | None,
        expires_at: str | None,
    ) -> int:
        """Summary: Create or update the single connection for (user, provider).

        Importance: Enforces one credential set per provider via the unique key.
        Alternatives: Append a new connection row on every login.
        """

        now = _now_iso()
        encoded_access = self._encode(access_token)
        encoded_refresh = self._encode(refresh_token)
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO connections (
                    user_id, provider, access_token, refresh_token, expires_at, token_version,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, 0, ?, ?)
                ON CONFLICT(user_id, provider) DO UPDATE SET
                    access_token = excluded.access_token,
                    refresh_token = COALESCE(excluded.refresh_token, connections.refresh_token),
                    expires_at = COALESCE(excluded.expires_at, connections.expires_at),
                    token_version = connections.token_version + 1,
                    updated_at = excluded.updated_at
                """,
                (user_id, provider.value, encoded_access, encoded_refresh, expires_at, now, now),
            )
            cursor.execute(
                "SELECT id FROM connections WHERE user_id = ? AND provider = ?",
                (user_id, provider.value),
            )
            row = cursor.fetchone()
            connection.commit()
        return int(row["id"])

    def get_connection(self, user_id: int, provider: Provider) -> StoredConnection | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                f"SELECT {CONNECTION_COLUMNS} FROM connections WHERE user_id = ? AND provider = ?",
                (user_id, provider.value),
            )
            row = cursor.fetchone()
        return self._connection_from_row(row) if row else None

    def get_connection_by_id(self, connection_id: int) -> StoredConnection | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                f"SELECT {CONNECTION_COLUMNS} FROM connections WHERE id = ?",
                (connection_id,),
            )
            row = cursor.fetchone()
        return self._connection_from_row(row) if row else None

    def list_connections(self, user_id: int) -> list[StoredConnection]:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                f"SELECT {CONNECTION_COLUMNS} FROM connections WHERE user_id = ? ORDER BY id",
                (user_id,),
            )
            rows = cursor.fetchall()
        return [self._connection_from_row(row) for row in rows]

    def delete_connection(self, user_id: int, provider: Provider) -> bool:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "DELETE FROM connections WHERE user_id = ? AND provider = ?",
                (user_id, provider.value),
            )
            deleted = cursor.rowcount > 0
            connection.commit()
        return deleted

    def swap_connection_token(
        self,
        connection_id: int,
        expected_version: int,
        access_token: str,
        expires_at: str | None,
    ) -> bool:
        """Summary: Replace the access token only if the version is unchanged.

        Importance: Prevents two refreshers from overwriting each other's tokens.
        Alternatives: Take a database-level lock around refresh.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                UPDATE connections
                SET access_token = ?, expires_at = ?, token_version = token_version + 1,
                    updated_at = ?
                WHERE id = ? AND token_version = ?
                """,
                (self._encode(access_token), expires_at, _now_iso(), connection_id, expected_version),
            )
            swapped = cursor.rowcount == 1
            connection.commit()
        return swapped

    def message_exists(self, user_id: int, source: Provider, external_id: str) -> bool:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "SELECT 1 FROM messages WHERE user_id = ? AND source = ? AND external_id = ?",
                (user_id, source.value, external_id),
            )
            return cursor.fetchone() is not None

    def insert_message(self, message: NewMessage) -> StoredMessage:
        """Summary: Insert a new UNREAD message.

        Importance: The unique (user, source, external id) key is the authoritative dedup check.
        Alternatives: Query for existence and insert without a constraint.

        Raises DuplicateMessage when the dedup key already exists.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            try:
                cursor.execute(
                    """
                    INSERT INTO messages (
                        user_id, connection_id, source, external_id, thread_id, sender_name,
                        sender_contact, subject, original_content, summary, urgency,
                        action_required, status, received_at, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        message.user_id,
                        message.connection_id,
                        message.source.value,
                        message.external_id,
                        message.thread_id,
                        message.sender_name,
                        message.sender_contact,
                        message.subject,
                        message.original_content,
                        message.summary,
                        message.urgency,
                        message.action_required,
                        MessageStatus.UNREAD.value,
                        to_iso(message.received_at),
                        _now_iso(),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                if "UNIQUE" not in str(exc):
                    raise
                raise DuplicateMessage(
                    message.user_id, message.source.value, message.external_id
                ) from exc
            cursor.execute(
                f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE id = ?", (cursor.lastrowid,)
            )
            row = cursor.fetchone()
            connection.commit()
        return _message_from_row(row)

    def latest_received_at(self, user_id: int, source: Provider) -> datetime | None:
        """Summary: Return the newest received_at for a user's provider messages.

        Importance: Derives the sync watermark from persisted state.
        Alternatives: Store a separate sync cursor per connection.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "SELECT MAX(received_at) AS latest FROM messages WHERE user_id = ? AND source = ?",
                (user_id, source.value),
            )
            row = cursor.fetchone()
        if not row or not row["latest"]:
            return None
        return datetime.fromisoformat(row["latest"])

    def get_message(self, message_id: int, user_id: int) -> StoredMessage | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE id = ? AND user_id = ?",
                (message_id, user_id),
            )
            row = cursor.fetchone()
        return _message_from_row(row) if row else None

    def list_messages(
        self,
        user_id: int,
        status: MessageStatus | None = None,
        source: Provider | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[StoredMessage], int]:
        """Summary: List a page of messages and the total matching count.

        Importance: Powers the inbox view with filters and pagination.
        Alternatives: Return every message and paginate on the client.
        """

        clauses = ["user_id = ?"]
        params: list[object] = [user_id]
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if source is not None:
            clauses.append("source = ?")
            params.append(source.value)
        where = " AND ".join(clauses)
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                f"""
                SELECT {MESSAGE_COLUMNS} FROM messages
                WHERE {where}
                ORDER BY received_at DESC, id DESC
                LIMIT ? OFFSET ?
                """,
                (*params, limit, offset),
            )
            rows = cursor.fetchall()
            cursor.execute(f"SELECT COUNT(*) AS total FROM messages WHERE {where}", params)
            total = int(cursor.fetchone()["total"])
        return [_message_from_row(row) for row in rows], total

    def mark_read(self, message_id: int, user_id: int) -> bool:
        """Summary: Move a message from UNREAD to READ.

        Importance: Never moves REPLIED or ARCHIVED messages backwards.
        Alternatives: Overwrite the status unconditionally.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "UPDATE messages SET status = ? WHERE id = ? AND user_id = ? AND status = ?",
                (MessageStatus.READ.value, message_id, user_id, MessageStatus.UNREAD.value),
            )
            changed = cursor.rowcount == 1
            connection.commit()
        return changed

    def archive_message(self, message_id: int, user_id: int) -> bool:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                "UPDATE messages SET status = ? WHERE id = ? AND user_id = ?",
                (MessageStatus.ARCHIVED.value, message_id, user_id),
            )
            changed = cursor.rowcount == 1
            connection.commit()
        return changed

    def add_reply(
        self, message_id: int, user_id: int, content: str, is_auto_reply: bool
    ) -> StoredReply:
        """Summary: Record a reply and mark the message REPLIED in one transaction.

        Importance: Keeps reply history and message status consistent.
        Alternatives: Update status in a separate call after inserting the reply.
        """

        sent_at = _now_iso()
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT INTO replies (message_id, user_id, content, is_auto_reply, sent_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (message_id, user_id, content, int(is_auto_reply), sent_at),
            )
            reply_id = cursor.lastrowid
            if is_auto_reply:
                cursor.execute(
                    """
                    UPDATE messages
                    SET status = ?, auto_reply_sent = 1, auto_reply_sent_at = ?
                    WHERE id = ? AND user_id = ?
                    """,
                    (MessageStatus.REPLIED.value, sent_at, message_id, user_id),
                )
            else:
                cursor.execute(
                    "UPDATE messages SET status = ? WHERE id = ? AND user_id = ?",
                    (MessageStatus.REPLIED.value, message_id, user_id),
                )
            connection.commit()
        return StoredReply(
            id=int(reply_id),
            message_id=message_id,
            user_id=user_id,
            content=content,
            is_auto_reply=is_auto_reply,
            sent_at=sent_at,
        )

    def list_replies(self, message_id: int) -> list[StoredReply]:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT id, message_id, user_id, content, is_auto_reply, sent_at
                FROM replies WHERE message_id = ?
                ORDER BY sent_at ASC, id ASC
                """,
                (message_id,),
            )
            rows = cursor.fetchall()
        return [_reply_from_row(row) for row in rows]

    def latest_reply(self, message_id: int) -> StoredReply | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT id, message_id, user_id, content, is_auto_reply, sent_at
                FROM replies WHERE message_id = ?
                ORDER BY sent_at DESC, id DESC
                LIMIT 1
                """,
                (message_id,),
            )
            row = cursor.fetchone()
        return _reply_from_row(row) if row else None

    def message_counts(self, user_id: int, received_since: datetime) -> dict[str, int]:
        """Summary: Count total, unread, recent, and replied messages for a user.

        Importance: Feeds the dashboard statistics endpoint.
        Alternatives: Maintain counters on the user row.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    COALESCE(SUM(status = ?), 0) AS unread,
                    COALESCE(SUM(received_at >= ?), 0) AS today,
                    COALESCE(SUM(status = ?), 0) AS replied
                FROM messages WHERE user_id = ?
                """,
                (
                    MessageStatus.UNREAD.value,
                    to_iso(received_since),
                    MessageStatus.REPLIED.value,
                    user_id,
                ),
            )
            row = cursor.fetchone()
        return {
            "total": int(row["total"]),
            "unread": int(row["unread"]),
            "today": int(row["today"]),
            "replied": int(row["replied"]),
        }

    def get_auto_reply_settings(self, user_id: int) -> AutoReplySettings | None:
        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                SELECT enabled, message, start_time, end_time, active_days
                FROM auto_reply_settings WHERE user_id = ?
                """,
                (user_id,),
            )
            row = cursor.fetchone()
        return _settings_from_row(row) if row else None

    def create_auto_reply_settings(
        self, user_id: int, settings: AutoReplySettings
    ) -> AutoReplySettings:
        """Summary: Insert settings unless a row exists, returning the stored row.

        Importance: Makes get-or-initialize safe when two requests race.
        Alternatives: Check for existence and insert without a guard.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                INSERT OR IGNORE INTO auto_reply_settings (
                    user_id, enabled, message, start_time, end_time, active_days, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                _settings_params(user_id, settings),
            )
            cursor.execute(
                """
                SELECT enabled, message, start_time, end_time, active_days
                FROM auto_reply_settings WHERE user_id = ?
                """,
                (user_id,),
            )
            row = cursor.fetchone()
            connection.commit()
        return _settings_from_row(row)

    def save_auto_reply_settings(
        self, user_id: int, settings: AutoReplySettings
    ) -> AutoReplySettings:
        with self._connection() as connection:
            connection.execute(
                """
                INSERT INTO auto_reply_settings (
                    user_id, enabled, message, start_time, end_time, active_days, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    enabled = excluded.enabled,
                    message = excluded.message,
                    start_time = excluded.start_time,
                    end_time = excluded.end_time,
                    active_days = excluded.active_days,
                    updated_at = excluded.updated_at
                """,
                _settings_params(user_id, settings),
            )
            connection.commit()
        return settings

    def _encode(self, value: str | None) -> str | None:
        if self._codec is None:
            return value
        return self._codec.encode_optional(value)

    def _decode(self, value: str | None) -> str | None:
        if self._codec is None:
            return value
        return self._codec.decode_optional(value)

    def _connection_from_row(self, row: sqlite3.Row) -> StoredConnection:
        return StoredConnection(
            id=row["id"],
            user_id=row["user_id"],
            provider=Provider(row["provider"]),
            access_token=self._decode(row["access_token"]),
            refresh_token=self._decode(row["refresh_token"]),
            expires_at=row["expires_at"],
            token_version=row["token_version"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Summary: Context manager for SQLite connections.

        Importance: Closes connections cleanly and enables foreign keys per connection.
        Alternatives: Keep a single long-lived connection.
        """

        connection = sqlite3.connect(self._db_path, timeout=30)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        try:
            yield connection
        finally:
            connection.close()


def to_iso(value: datetime) -> str:
    """Summary: Normalize a datetime to a fixed-width UTC ISO string.

    Importance: Keeps stored timestamps comparable as plain strings.
    Alternatives: Store epoch integers.
    """

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def _now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


def _message_from_row(row: sqlite3.Row) -> StoredMessage:
    data = dict(row)
    data["source"] = Provider(data["source"])
    data["status"] = MessageStatus(data["status"])
    data["is_audio"] = bool(data["is_audio"])
    data["auto_reply_sent"] = bool(data["auto_reply_sent"])
    return StoredMessage(**data)


def _reply_from_row(row: sqlite3.Row) -> StoredReply:
    data = dict(row)
    data["is_auto_reply"] = bool(data["is_auto_reply"])
    return StoredReply(**data)


def _settings_from_row(row: sqlite3.Row) -> AutoReplySettings:
    return AutoReplySettings(
        enabled=bool(row["enabled"]),
        message=row["message"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        active_days=list(json.loads(row["active_days"])),
    )


def _settings_params(user_id: int, settings: AutoReplySettings) -> tuple[object, ...]:
    return (
        user_id,
        int(settings.enabled),
        settings.message,
        settings.start_time,
        settings.end_time,
        json.dumps(sorted(set(settings.active_days))),
        _now_iso(),
    )
