"""Summary: Google OAuth helper utilities for the Gmail integration.

Importance: Generates authorization URLs and performs token exchanges without extra dependencies.
Alternatives: Use google-auth-oauthlib for OAuth flows.
"""

from __future__ import annotations

import json
import logging
import secrets
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from proassist.config import AppConfig
from proassist.errors import IntegrationError

logger = logging.getLogger(__name__)

GOOGLE_SCOPES = " ".join(
    [
        "https://www.googleapis.com/auth/gmail.readonly",
        "https://www.googleapis.com/auth/gmail.send",
        "https://www.googleapis.com/auth/gmail.modify",
        "https://www.googleapis.com/auth/userinfo.email",
        "https://www.googleapis.com/auth/userinfo.profile",
    ]
)


@dataclass(frozen=True)
class OAuthTokenResult:
    """Summary: Normalized OAuth token response data.

    Importance: Provides a consistent token representation for storage and refresh logic.
    Alternatives: Store the raw provider response without normalization.
    """

    access_token: str
    refresh_token: str | None
    expires_at: datetime | None
    token_type: str | None
    raw: dict[str, Any]

    @staticmethod
    def from_response(payload: dict[str, Any]) -> "OAuthTokenResult":
        """Summary: Build an OAuthTokenResult from a provider payload.

        Importance: Normalizes expiry and optional fields.
        Alternatives: Use provider-specific token response classes.
        """

        if "access_token" not in payload:
            raise IntegrationError("Token response did not include an access token")
        expires_in = payload.get("expires_in")
        expires_at = None
        if isinstance(expires_in, int):
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        return OAuthTokenResult(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_at,
            token_type=payload.get("token_type"),
            raw=payload,
        )


@dataclass(frozen=True)
class GoogleProfile:
    """Summary: Identity returned by the Google userinfo endpoint."""

    email: str
    name: str


def create_state_token() -> str:
    """Summary: Generate a CSRF state token.

    Importance: Protects OAuth flows from CSRF attacks.
    Alternatives: Use server-side session storage with pre-generated tokens.
    """

    return secrets.token_urlsafe(24)


class GoogleOAuthClient:
    """Summary: Google OAuth client for login, code exchange, and token refresh.

    Importance: Issues the offline credentials the sync engine needs.
    Alternatives: Delegate OAuth to an external identity provider.
    """

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    def auth_url(self, state: str) -> str:
        """Summary: Build a Google OAuth authorization URL.

        Importance: Requests offline access so a refresh token is issued.
        Alternatives: Use a different OAuth helper library.
        """

        params = {
            "client_id": self._config.google_client_id,
            "redirect_uri": self._config.oauth_redirect_uri,
            "response_type": "code",
            "access_type": "offline",
            "prompt": "consent",
            "scope": GOOGLE_SCOPES,
            "state": state,
        }
        return self._config.google_auth_url + "?" + urllib.parse.urlencode(params)

    def exchange_code(self, code: str) -> OAuthTokenResult:
        """Summary: Exchange an OAuth authorization code for tokens.

        Importance: Completes the login flow by retrieving access and refresh tokens.
        Alternatives: Use provider SDKs or external auth services.
        """

        self._ensure_credentials()
        payload = {
            "client_id": self._config.google_client_id,
            "client_secret": self._config.google_client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self._config.oauth_redirect_uri,
        }
        return OAuthTokenResult.from_response(_post_form(self._config.google_token_url, payload))

    def refresh_access_token(self, refresh_token: str) -> OAuthTokenResult:
        """Summary: Obtain a new access token with a refresh token.

        Importance: Keeps long-lived connections usable without re-login.
        Alternatives: Force users to reconnect whenever the token expires.
        """

        self._ensure_credentials()
        payload = {
            "client_id": self._config.google_client_id,
            "client_secret": self._config.google_client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        logger.info("Refreshing Google access token.")
        return OAuthTokenResult.from_response(_post_form(self._config.google_token_url, payload))

    def fetch_profile(self, access_token: str) -> GoogleProfile:
        """Summary: Fetch the email and display name for an access token.

        Importance: Identifies which user a login belongs to.
        Alternatives: Decode the id_token JWT locally.
        """

        request = urllib.request.Request(
            self._config.google_userinfo_url,
            headers={"Authorization": f"Bearer {access_token}"},
            method="GET",
        )
        try:
            with urllib.request.urlopen(request, timeout=10) as response:
                data = json.loads(response.read().decode("utf-8"))
        except urllib.error.URLError as exc:
            raise IntegrationError(f"Userinfo request failed: {exc}") from exc
        email = data.get("email")
        if not email:
            raise IntegrationError("Userinfo response did not include an email")
        return GoogleProfile(email=email, name=data.get("name") or email.split("@")[0])

    def _ensure_credentials(self) -> None:
        if not self._config.google_client_id or not self._config.google_client_secret:
            raise IntegrationError("Missing OAuth client credentials for google")


def _post_form(url: str, payload: dict[str, str]) -> dict[str, Any]:
    """Summary: Send a form-encoded POST request and parse JSON.

    Importance: Avoids new dependencies while supporting OAuth exchanges.
    Alternatives: Use requests or a provider SDK.
    """

    data = urllib.parse.urlencode(payload).encode("utf-8")
    request = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8")
        raise IntegrationError(f"Token request failed: {error_body or exc.reason}") from exc
    except urllib.error.URLError as exc:
        raise IntegrationError(f"Token request failed: {exc.reason}") from exc
    return json.loads(raw)
