"""Summary: Shared pytest fixtures for ProAssist tests.

Importance: Keeps isolated storage, fixed clocks, and fake providers consistent across tests.
Alternatives: Rebuild configuration inline in every test module.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from proassist.ai import AiProvider, AiResult
from proassist.app import AppContext, build_context
from proassist.config import AppConfig
from proassist.gmail import MockProviderClient
from proassist.models import ProviderMessage, User
from proassist.storage.sqlite_store import SqliteStore
from proassist.token_codec import TokenCodec

# Tuesday
TUESDAY_10AM = datetime(2026, 1, 13, 10, 0, tzinfo=timezone.utc)


class FixedClock:
    """Summary: Controllable clock for deterministic time-dependent tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class ScriptedAiProvider(AiProvider):
    """Summary: AI provider returning a fixed response or raising an error."""

    def __init__(self, text: str = "", tokens: int = 42, error: Exception | None = None) -> None:
        self.text = text
        self.tokens = tokens
        self.error = error
        self.prompts: list[tuple[str, str]] = []

    def generate_text(
        self, prompt: str, purpose: str, system: str = "", max_tokens: int = 150
    ) -> AiResult:
        self.prompts.append((prompt, system))
        if self.error is not None:
            raise self.error
        return AiResult(self.text, 0, self.tokens)


def build_test_config(db_path: str, **overrides: object) -> AppConfig:
    values: dict[str, object] = dict(
        db_path=db_path,
        api_host="127.0.0.1",
        api_port=3000,
        log_level="INFO",
        jwt_secret="test-jwt-secret",
        jwt_expires_days=7,
        token_secret="test-token-secret",
        google_client_id="google-client",
        google_client_secret="google-secret",
        oauth_redirect_uri="http://localhost:3000/auth/google/callback",
        google_auth_url="https://accounts.google.com/o/oauth2/v2/auth",
        google_token_url="https://oauth2.googleapis.com/token",
        google_userinfo_url="https://www.googleapis.com/oauth2/v2/userinfo",
        google_api_base_url="https://gmail.googleapis.com/gmail/v1",
        ai_provider="mock",
        anthropic_api_key=None,
        openai_api_key=None,
        ollama_url="http://localhost:11434",
        summary_model="claude-3-haiku-20240307",
        summary_max_tokens=150,
        default_auto_reply_message="Recebi sua mensagem! Retorno em breve.",
        sync_max_results=20,
        token_lease_seconds=3600,
        auto_reply_timezone="UTC",
        provider_client="mock",
    )
    values.update(overrides)
    return AppConfig(**values)  # type: ignore[arg-type]


def provider_message(
    external_id: str,
    received_at: datetime,
    body: str = "Olá, gostaria de marcar uma consulta.",
    subject: str = "Consulta",
    sender: str = "paciente@example.com",
) -> ProviderMessage:
    return ProviderMessage(
        external_id=external_id,
        thread_id=f"thread-{external_id}",
        sender_contact=sender,
        sender_name="Paciente",
        subject=subject,
        body=body,
        received_at=received_at,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(TUESDAY_10AM)


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return build_test_config(str(tmp_path / "test.db"))


@pytest.fixture
def store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(str(tmp_path / "store.db"), TokenCodec("secret"))
    store.initialize()
    return store


@pytest.fixture
def user_id(store: SqliteStore) -> int:
    return store.ensure_user(User(email="dra.ana@example.com", name="Ana", profession="médica"))


@pytest.fixture
def provider_client() -> MockProviderClient:
    return MockProviderClient()


@pytest.fixture
def context(
    config: AppConfig, provider_client: MockProviderClient, clock: FixedClock
) -> AppContext:
    return build_context(
        config,
        provider_client=provider_client,
        ai_provider=ScriptedAiProvider(
            '{"resumo": "Paciente quer marcar consulta.", "urgencia": "baixa", '
            '"acao_necessaria": "Responder com horários"}'
        ),
        clock=clock,
    )
