"""Summary: Credential management for provider connections.

Importance: Hands the sync engine a usable access token, refreshing it when expired.
Alternatives: Refresh tokens on a background schedule.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from proassist.errors import ConnectionNotFound, CredentialExpired
from proassist.gmail import ProviderClient
from proassist.storage.sqlite_store import SqliteStore, StoredConnection, to_iso

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CredentialManager:
    """Summary: Returns valid access tokens and serializes refreshes per connection.

    Importance: Prevents concurrent refreshers from clobbering each other's tokens.
    Alternatives: Refresh on every request without coordination.
    """

    store: SqliteStore
    provider_client: ProviderClient
    lease_seconds: int = 3600
    clock: Callable[[], datetime] = utc_now
    _locks: dict[int, threading.Lock] = field(default_factory=dict, init=False, repr=False)
    _registry_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def get_valid_access_token(self, connection: StoredConnection) -> str:
        """Summary: Return a non-expired access token for a connection.

        Importance: Is the only path by which sync obtains provider credentials.
        Alternatives: Let provider calls fail and retry after a refresh.
        """

        if not self._is_expired(connection):
            return _require_token(connection)
        with self._lock_for(connection.id):
            current = self.store.get_connection_by_id(connection.id)
            if current is None:
                raise ConnectionNotFound(f"Connection {connection.id} no longer exists")
            if not self._is_expired(current):
                return _require_token(current)
            if not current.refresh_token:
                raise CredentialExpired(
                    f"Access token for {current.provider.value} expired and no refresh token is stored"
                )
            access_token = self.provider_client.refresh_access_token(current.refresh_token)
            expires_at = to_iso(self.clock() + timedelta(seconds=self.lease_seconds))
            if self.store.swap_connection_token(
                current.id, current.token_version, access_token, expires_at
            ):
                logger.info("Refreshed access token for connection %s.", current.id)
                return access_token
            winner = self.store.get_connection_by_id(current.id)
            if winner is None:
                raise ConnectionNotFound(f"Connection {current.id} no longer exists")
            logger.info("Connection %s was refreshed concurrently; reusing stored token.", current.id)
            return _require_token(winner)

    def _is_expired(self, connection: StoredConnection) -> bool:
        if not connection.expires_at:
            return False
        return datetime.fromisoformat(connection.expires_at) <= self.clock()

    def _lock_for(self, connection_id: int) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(connection_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[connection_id] = lock
            return lock


def _require_token(connection: StoredConnection) -> str:
    if not connection.access_token:
        raise ConnectionNotFound(f"Connection {connection.id} has no access token")
    return connection.access_token
