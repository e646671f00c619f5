"""Summary: Application factory wiring core services.

Importance: Centralizes dependency creation for the CLI and API layers.
Alternatives: Instantiate services manually in each entrypoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from proassist.ai import AiProvider, AiProviderFactory, Summarizer
from proassist.config import AppConfig
from proassist.credentials import CredentialManager, utc_now
from proassist.gmail import GmailProviderClient, MockProviderClient, ProviderClient
from proassist.oauth import GoogleOAuthClient
from proassist.security import TokenIssuer
from proassist.services import (
    AuthService,
    MessageService,
    SettingsService,
    SyncEngine,
    UserService,
)
from proassist.storage.sqlite_store import SqliteStore
from proassist.token_codec import TokenCodec


@dataclass(frozen=True)
class AppContext:
    """Summary: Shared application context holding every service.

    Importance: Lets tests inject fakes while production wires real clients.
    Alternatives: Module-level singletons imported by each route.
    """

    config: AppConfig
    store: SqliteStore
    provider_client: ProviderClient
    summarizer: Summarizer
    credentials: CredentialManager
    issuer: TokenIssuer
    sync: SyncEngine
    messages: MessageService
    settings: SettingsService
    users: UserService
    auth: AuthService
    clock: Callable[[], datetime]


def build_context(
    config: AppConfig,
    provider_client: ProviderClient | None = None,
    ai_provider: AiProvider | None = None,
    clock: Callable[[], datetime] | None = None,
    oauth: GoogleOAuthClient | None = None,
) -> AppContext:
    """Summary: Build the shared context from configuration.

    Importance: Provides a single construction path for the application.
    Alternatives: Construct dependencies separately per request.
    """

    clock = clock or utc_now
    store = SqliteStore(config.db_path, TokenCodec(config.token_secret))
    store.initialize()
    oauth = oauth or GoogleOAuthClient(config)
    if provider_client is None:
        if config.provider_client == "mock":
            provider_client = MockProviderClient()
        else:
            provider_client = GmailProviderClient(config.google_api_base_url, oauth)
    summarizer = Summarizer(
        provider=ai_provider or AiProviderFactory(config).build(),
        max_tokens=config.summary_max_tokens,
    )
    credentials = CredentialManager(
        store=store,
        provider_client=provider_client,
        lease_seconds=config.token_lease_seconds,
        clock=clock,
    )
    issuer = TokenIssuer(secret=config.jwt_secret, expires_days=config.jwt_expires_days)
    settings = SettingsService(store=store, default_message=config.default_auto_reply_message)
    return AppContext(
        config=config,
        store=store,
        provider_client=provider_client,
        summarizer=summarizer,
        credentials=credentials,
        issuer=issuer,
        sync=SyncEngine(
            store=store,
            credentials=credentials,
            provider_client=provider_client,
            summarizer=summarizer,
            clock=clock,
            max_results=config.sync_max_results,
            timezone_name=config.auto_reply_timezone,
        ),
        messages=MessageService(
            store=store,
            credentials=credentials,
            provider_client=provider_client,
            summarizer=summarizer,
            clock=clock,
            timezone_name=config.auto_reply_timezone,
        ),
        settings=settings,
        users=UserService(store=store, clock=clock),
        auth=AuthService(store=store, oauth=oauth, issuer=issuer, settings=settings),
        clock=clock,
    )
