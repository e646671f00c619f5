"""Summary: Exception hierarchy for ProAssist.

Importance: Lets the API map failures to status codes without inspecting messages.
Alternatives: Raise ValueError/RuntimeError and match on message text.
"""

from __future__ import annotations


class ProAssistError(Exception):
    """Base class for application errors."""


class AuthenticationError(ProAssistError):
    """Missing, malformed, or expired bearer credential."""


class UserNotFound(ProAssistError):
    """The authenticated user no longer exists."""


class MessageNotFound(ProAssistError):
    """The message does not exist or is not owned by the caller."""


class ConnectionNotFound(ProAssistError):
    """No usable provider connection for the user."""


class CredentialExpired(ProAssistError):
    """The provider access token expired and cannot be refreshed."""


class DuplicateMessage(ProAssistError):
    """A message with the same (user, source, external id) already exists."""

    def __init__(self, user_id: int, source: str, external_id: str) -> None:
        super().__init__(f"Message {source}:{external_id} already stored for user {user_id}")
        self.user_id = user_id
        self.source = source
        self.external_id = external_id


class InvalidProvider(ProAssistError):
    """Unknown provider name in a request."""


class InvalidTimeWindow(ProAssistError):
    """Auto-reply start time is not before end time."""


class IntegrationError(ProAssistError):
    """An external HTTP integration (provider, LLM, OAuth) failed."""
