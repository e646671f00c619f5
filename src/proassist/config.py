"""Summary: Application configuration for ProAssist.

Importance: Centralizes environment, .env, and config defaults for consistent behavior.
Alternatives: Use a dedicated settings library like Pydantic Settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class AppConfig:
    """Summary: Holds configuration values for storage, auth, providers, and AI.

    Importance: Ensures all services derive settings from a single source of truth.
    Alternatives: Read environment variables ad hoc inside each service.
    """

    db_path: str
    api_host: str
    api_port: int
    log_level: str
    jwt_secret: str
    jwt_expires_days: int
    token_secret: str
    google_client_id: str
    google_client_secret: str
    oauth_redirect_uri: str
    google_auth_url: str
    google_token_url: str
    google_userinfo_url: str
    google_api_base_url: str
    ai_provider: str
    anthropic_api_key: str | None
    openai_api_key: str | None
    ollama_url: str
    summary_model: str
    summary_max_tokens: int
    default_auto_reply_message: str
    sync_max_results: int
    token_lease_seconds: int
    auto_reply_timezone: str
    provider_client: str

    @staticmethod
    def from_env() -> "AppConfig":
        """Summary: Build configuration from defaults, .env, and environment.

        Importance: Keeps all variables defined in config defaults while allowing overrides.
        Alternatives: Parse only environment variables without a defaults file.
        """

        defaults = load_defaults(Path("config") / "defaults.json")
        load_dotenv(Path(".env"))
        return AppConfig(
            db_path=os.getenv("PROASSIST_DB_PATH", defaults["db_path"]),
            api_host=os.getenv("PROASSIST_API_HOST", defaults["api_host"]),
            api_port=int(os.getenv("PORT", defaults["api_port"])),
            log_level=os.getenv("PROASSIST_LOG_LEVEL", defaults["log_level"]).upper(),
            jwt_secret=os.getenv("JWT_SECRET", defaults["jwt_secret"]),
            jwt_expires_days=int(os.getenv("JWT_EXPIRES_DAYS", defaults["jwt_expires_days"])),
            token_secret=os.getenv("PROASSIST_TOKEN_SECRET", defaults["token_secret"]),
            google_client_id=os.getenv("GOOGLE_CLIENT_ID", defaults["google_client_id"]),
            google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET", defaults["google_client_secret"]),
            oauth_redirect_uri=os.getenv("GOOGLE_REDIRECT_URI", defaults["oauth_redirect_uri"]),
            google_auth_url=os.getenv("GOOGLE_AUTH_URL", defaults["google_auth_url"]),
            google_token_url=os.getenv("GOOGLE_TOKEN_URL", defaults["google_token_url"]),
            google_userinfo_url=os.getenv("GOOGLE_USERINFO_URL", defaults["google_userinfo_url"]),
            google_api_base_url=os.getenv("GMAIL_API_BASE_URL", defaults["google_api_base_url"]),
            ai_provider=os.getenv("PROASSIST_AI_PROVIDER", defaults["ai_provider"]),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or defaults["anthropic_api_key"] or None,
            openai_api_key=os.getenv("OPENAI_API_KEY") or defaults["openai_api_key"] or None,
            ollama_url=os.getenv("OLLAMA_URL", defaults["ollama_url"]),
            summary_model=os.getenv("SUMMARY_MODEL", defaults["summary_model"]),
            summary_max_tokens=int(os.getenv("MAX_SUMMARY_TOKENS", defaults["summary_max_tokens"])),
            default_auto_reply_message=os.getenv(
                "DEFAULT_AUTO_REPLY_MESSAGE", defaults["default_auto_reply_message"]
            ),
            sync_max_results=int(
                os.getenv("PROASSIST_SYNC_MAX_RESULTS", defaults["sync_max_results"])
            ),
            token_lease_seconds=int(
                os.getenv("PROASSIST_TOKEN_LEASE_SECONDS", defaults["token_lease_seconds"])
            ),
            auto_reply_timezone=os.getenv(
                "PROASSIST_AUTO_REPLY_TIMEZONE", defaults["auto_reply_timezone"]
            ),
            provider_client=os.getenv("PROASSIST_PROVIDER_CLIENT", defaults["provider_client"]),
        )


def load_defaults(path: Path) -> dict[str, str]:
    """Summary: Load configuration defaults from JSON.

    Importance: Ensures all variables exist in a single config file.
    Alternatives: Inline defaults in the AppConfig initializer.
    """

    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_dotenv(path: Path) -> None:
    """Summary: Load key-value pairs from a .env file into the environment.

    Importance: Keeps secrets out of code while supporting local workflows.
    Alternatives: Use python-dotenv or OS-specific secret stores.
    """

    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip().strip('"'))
