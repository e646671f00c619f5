"""Summary: FastAPI application for ProAssist.

Importance: Exposes HTTP endpoints for the mobile client.
Alternatives: Use a different web framework.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Literal

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from proassist.app import AppContext, build_context
from proassist.config import AppConfig
from proassist.errors import (
    AuthenticationError,
    ConnectionNotFound,
    CredentialExpired,
    IntegrationError,
    InvalidProvider,
    InvalidTimeWindow,
    MessageNotFound,
    ProAssistError,
    UserNotFound,
)
from proassist.message_templates import list_templates
from proassist.models import AutoReplySettings, MessageStatus, ProcessedMessage, Provider
from proassist.oauth import create_state_token
from proassist.policy import TIME_PATTERN, day_labels
from proassist.security import AuthClaims
from proassist.services import MessageDetail, MessageListItem
from proassist.storage.sqlite_store import StoredReply, StoredUser, to_iso

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
OAUTH_STATE_TTL = timedelta(minutes=10)

ERROR_RESPONSES: dict[type[ProAssistError], tuple[int, str]] = {
    AuthenticationError: (401, "Não autorizado"),
    UserNotFound: (404, "Usuário não encontrado"),
    MessageNotFound: (404, "Mensagem não encontrada"),
    ConnectionNotFound: (404, "Conexão não encontrada"),
    CredentialExpired: (409, "Credencial expirada"),
    InvalidProvider: (400, "Provider inválido"),
    InvalidTimeWindow: (400, "Horário inválido"),
}


class ProfileUpdateRequest(BaseModel):
    """Summary: Request payload for profile updates.

    Importance: Lets users set the profession used as summary context.
    Alternatives: Collect profile data only at signup.
    """

    name: str | None = Field(default=None, max_length=200)
    profession: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=50)


class ReplyRequest(BaseModel):
    """Summary: Request payload for manual replies."""

    content: str = Field(min_length=1, max_length=5000)


class SuggestReplyRequest(BaseModel):
    """Summary: Request payload for reply suggestions."""

    tone: Literal["formal", "informal"] = "formal"


class AutoReplyUpdateRequest(BaseModel):
    """Summary: Partial update of auto-reply settings.

    Importance: Validates time format, message length, and weekdays before storage.
    Alternatives: Validate inside the settings service only.
    """

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool | None = None
    message: str | None = Field(default=None, min_length=10, max_length=500)
    start_time: str | None = Field(default=None, alias="startTime", pattern=TIME_PATTERN.pattern)
    end_time: str | None = Field(default=None, alias="endTime", pattern=TIME_PATTERN.pattern)
    active_days: list[Annotated[int, Field(ge=0, le=6)]] | None = Field(
        default=None, alias="activeDays", min_length=1
    )


def create_app(config: AppConfig, context: AppContext | None = None) -> FastAPI:
    """Summary: Create a FastAPI app wired to ProAssist services.

    Importance: Ensures the API layer shares the same configuration and storage.
    Alternatives: Instantiate services globally outside the factory.
    """

    if not logging.getLogger().handlers:
        logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")
    app = FastAPI(title="ProAssist API", version=API_VERSION)
    context = context or build_context(config)
    app.state.context = context
    app.state.oauth_states = {}
    app.state.started_at = time.monotonic()
    bearer = HTTPBearer(auto_error=False)

    def _register_state(state: str) -> None:
        """Summary: Register an OAuth state token.

        Importance: Enables basic validation of OAuth callbacks.
        Alternatives: Store state in a database or signed cookies.
        """

        app.state.oauth_states[state] = {"created_at": datetime.now(timezone.utc)}

    def _consume_state(state: str) -> bool:
        record = app.state.oauth_states.pop(state, None)
        if not record:
            return False
        return datetime.now(timezone.utc) - record["created_at"] <= OAUTH_STATE_TTL

    def current_user(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    ) -> AuthClaims:
        """Summary: Resolve the caller from the bearer token.

        Importance: Guards every user-scoped endpoint.
        Alternatives: Use API keys per device.
        """

        if credentials is None or not credentials.credentials:
            raise AuthenticationError("Token não fornecido")
        return context.issuer.verify(credentials.credentials)

    @app.exception_handler(ProAssistError)
    def handle_domain_error(request: Request, exc: ProAssistError) -> JSONResponse:
        for error_type, (status_code, title) in ERROR_RESPONSES.items():
            if isinstance(exc, error_type):
                logger.info("%s %s -> %s: %s", request.method, request.url.path, status_code, exc)
                return JSONResponse(status_code=status_code, content={"error": title, "message": str(exc)})
        if isinstance(exc, IntegrationError):
            logger.error("Integration failure on %s: %s", request.url.path, exc)
        else:
            logger.error("Unhandled application error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": "Erro ao comunicar com serviço externo"})

    @app.exception_handler(RequestValidationError)
    def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
                "message": error.get("msg", ""),
            }
            for error in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Dados inválidos", "details": details})

    @app.exception_handler(Exception)
    def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unexpected error on %s %s.", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/")
    def root() -> dict[str, Any]:
        return {
            "name": "ProAssist API",
            "version": API_VERSION,
            "description": "Assistente de triagem de mensagens para profissionais",
            "endpoints": {
                "health": "/health",
                "auth": "/auth/*",
                "messages": "/messages/*",
                "settings": "/settings/*",
            },
        }

    @app.get("/health")
    def health() -> dict[str, Any]:
        """Summary: Health check endpoint.

        Importance: Supports uptime checks in local and cloud deployments.
        Alternatives: Use a metrics endpoint only.
        """

        return {
            "status": "ok",
            "timestamp": to_iso(datetime.now(timezone.utc)),
            "uptime": round(time.monotonic() - app.state.started_at, 3),
        }

    @app.get("/auth/google")
    def google_login() -> RedirectResponse:
        state = create_state_token()
        _register_state(state)
        return RedirectResponse(context.auth.login_url(state))

    @app.get("/auth/google/callback")
    def google_callback(
        code: str | None = None, state: str | None = None, error: str | None = None
    ) -> Any:
        """Summary: Complete the Google OAuth flow and return a bearer token.

        Importance: Creates the user and Gmail connection on first login.
        Alternatives: Redirect to the mobile app with the token in a deep link.
        """

        if error:
            return JSONResponse(status_code=400, content={"error": "Autorização negada", "message": error})
        if not code:
            return JSONResponse(
                status_code=400, content={"error": "Código de autorização não fornecido"}
            )
        if state is not None and not _consume_state(state):
            return JSONResponse(status_code=400, content={"error": "Estado OAuth inválido"})
        result = context.auth.complete_google_login(code)
        return {
            "success": True,
            "token": result.token,
            "user": {"id": result.user.id, "email": result.user.email, "name": result.user.name},
        }

    @app.get("/auth/me")
    def me(claims: AuthClaims = Depends(current_user)) -> dict[str, Any]:
        profile = context.users.profile(claims.user_id)
        user = profile.user
        return {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "profession": user.profession,
            "plan": user.plan,
            "connections": [
                {"provider": connection.provider.value, "createdAt": connection.created_at}
                for connection in profile.connections
            ],
            "autoReplySettings": _settings_payload(profile.settings) if profile.settings else None,
            "createdAt": user.created_at,
        }

    @app.patch("/auth/me")
    def update_me(
        payload: ProfileUpdateRequest, claims: AuthClaims = Depends(current_user)
    ) -> dict[str, Any]:
        user = context.users.update_profile(
            claims.user_id, payload.name, payload.profession, payload.phone
        )
        return _profile_payload(user)

    @app.delete("/auth/connections/{provider}")
    def disconnect(provider: str, claims: AuthClaims = Depends(current_user)) -> dict[str, Any]:
        context.users.disconnect(claims.user_id, provider)
        return {"success": True, "message": f"Conexão com {provider} removida"}

    @app.post("/messages/sync/gmail")
    def sync_gmail(claims: AuthClaims = Depends(current_user)) -> dict[str, Any]:
        processed = context.sync.sync_messages(claims.user_id, Provider.GMAIL)
        return {
            "success": True,
            "count": len(processed),
            "messages": [_processed_payload(item) for item in processed],
        }

    @app.get("/messages")
    def list_messages(
        status: MessageStatus | None = None,
        source: Provider | None = None,
        limit: int = Query(default=20, ge=1, le=50),
        offset: int = Query(default=0, ge=0),
        claims: AuthClaims = Depends(current_user),
    ) -> dict[str, Any]:
        """Summary: List messages newest first with filters and pagination.

        Importance: Powers the inbox screen.
        Alternatives: Cursor-based pagination on received_at.
        """

        items, total = context.messages.list_messages(claims.user_id, status, source, limit, offset)
        return {
            "messages": [_list_item_payload(item) for item in items],
            "total": total,
            "hasMore": offset + len(items) < total,
        }

    @app.get("/messages/stats")
    def message_stats(claims: AuthClaims = Depends(current_user)) -> dict[str, Any]:
        stats = context.messages.stats(claims.user_id)
        return {
            "total": stats.total,
            "unread": stats.unread,
            "todayCount": stats.today_count,
            "repliedCount": stats.replied_count,
            "readRate": stats.read_rate,
        }

    @app.get("/messages/{message_id}")
    def get_message(message_id: int, claims: AuthClaims = Depends(current_user)) -> dict[str, Any]:
        return _detail_payload(context.messages.get_and_mark_read(claims.user_id, message_id))

    @app.patch("/messages/{message_id}/read")
    def mark_read(message_id: int, claims: AuthClaims = Depends(current_user)) -> dict[str, Any]:
        context.messages.mark_read(claims.user_id, message_id)
        return {"success": True}

    @app.patch("/messages/{message_id}/archive")
    def archive(message_id: int, claims: AuthClaims = Depends(current_user)) -> dict[str, Any]:
        context.messages.archive(claims.user_id, message_id)
        return {"success": True}

    @app.post("/messages/{message_id}/reply")
    def reply(
        message_id: int, payload: ReplyRequest, claims: AuthClaims = Depends(current_user)
    ) -> dict[str, Any]:
        context.messages.send_reply(claims.user_id, message_id, payload.content)
        return {"success": True, "message": "Resposta enviada com sucesso"}

    @app.post("/messages/{message_id}/suggest-reply")
    def suggest_reply(
        message_id: int,
        payload: SuggestReplyRequest | None = None,
        claims: AuthClaims = Depends(current_user),
    ) -> dict[str, Any]:
        tone = payload.tone if payload else "formal"
        return {"suggestion": context.messages.suggest_reply(claims.user_id, message_id, tone)}

    @app.get("/settings/auto-reply")
    def get_auto_reply(claims: AuthClaims = Depends(current_user)) -> dict[str, Any]:
        settings = context.settings.get_or_initialize(claims.user_id)
        payload = _settings_payload(settings)
        payload["activeDaysLabels"] = day_labels(settings.active_days)
        return payload

    @app.patch("/settings/auto-reply")
    def update_auto_reply(
        payload: AutoReplyUpdateRequest, claims: AuthClaims = Depends(current_user)
    ) -> dict[str, Any]:
        settings = context.settings.update(
            claims.user_id,
            enabled=payload.enabled,
            message=payload.message,
            start_time=payload.start_time,
            end_time=payload.end_time,
            active_days=payload.active_days,
        )
        return {"success": True, "settings": _settings_payload(settings)}

    @app.post("/settings/auto-reply/toggle")
    def toggle_auto_reply(claims: AuthClaims = Depends(current_user)) -> dict[str, Any]:
        settings = context.settings.toggle(claims.user_id)
        return {
            "enabled": settings.enabled,
            "message": "Resposta automática ativada"
            if settings.enabled
            else "Resposta automática desativada",
        }

    @app.get("/settings/connections")
    def connections(claims: AuthClaims = Depends(current_user)) -> dict[str, Any]:
        statuses = context.users.connection_statuses(claims.user_id)
        connected = {status.connection.provider for status in statuses}
        return {
            "connections": [
                {
                    "id": status.connection.id,
                    "provider": status.connection.provider.value,
                    "connected": True,
                    "connectedAt": status.connection.created_at,
                    "isExpired": status.is_expired,
                }
                for status in statuses
            ],
            "availableProviders": [
                {"provider": provider.value, "connected": provider in connected}
                for provider in Provider
            ],
        }

    @app.get("/settings/message-templates")
    def message_templates(claims: AuthClaims = Depends(current_user)) -> dict[str, Any]:
        return {
            "templates": [
                {"id": template.id, "name": template.name, "message": template.message}
                for template in list_templates()
            ]
        }

    return app


def _settings_payload(settings: AutoReplySettings) -> dict[str, Any]:
    return {
        "enabled": settings.enabled,
        "message": settings.message,
        "startTime": settings.start_time,
        "endTime": settings.end_time,
        "activeDays": list(settings.active_days),
    }


def _profile_payload(user: StoredUser) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "profession": user.profession,
        "phone": user.phone,
    }


def _processed_payload(item: ProcessedMessage) -> dict[str, Any]:
    return {
        "id": item.id,
        "source": item.source.value,
        "senderName": item.sender_name,
        "senderContact": item.sender_contact,
        "subject": item.subject,
        "summary": item.summary,
        "urgency": item.urgency,
        "actionRequired": item.action_required,
        "isAudio": item.is_audio,
        "status": item.status.value,
        "autoReplySent": item.auto_reply_sent,
        "receivedAt": to_iso(item.received_at),
    }


def _list_item_payload(item: MessageListItem) -> dict[str, Any]:
    message = item.message
    return {
        "id": message.id,
        "source": message.source.value,
        "senderName": message.sender_name,
        "senderContact": message.sender_contact,
        "subject": message.subject,
        "summary": message.summary,
        "urgency": message.urgency,
        "actionRequired": message.action_required,
        "isAudio": message.is_audio,
        "audioDurationSecs": message.audio_duration_secs,
        "status": message.status.value,
        "autoReplySent": message.auto_reply_sent,
        "autoReplySentAt": message.auto_reply_sent_at,
        "receivedAt": message.received_at,
        "hasReplies": item.last_reply is not None,
        "lastReplyAt": item.last_reply.sent_at if item.last_reply else None,
    }


def _reply_payload(reply: StoredReply) -> dict[str, Any]:
    return {
        "id": reply.id,
        "content": reply.content,
        "isAutoReply": reply.is_auto_reply,
        "sentAt": reply.sent_at,
    }


def _detail_payload(detail: MessageDetail) -> dict[str, Any]:
    message = detail.message
    return {
        "id": message.id,
        "source": message.source.value,
        "senderName": message.sender_name,
        "senderContact": message.sender_contact,
        "subject": message.subject,
        "originalContent": message.original_content,
        "transcription": message.transcription,
        "summary": message.summary,
        "urgency": message.urgency,
        "actionRequired": message.action_required,
        "isAudio": message.is_audio,
        "audioUrl": message.audio_url,
        "audioDurationSecs": message.audio_duration_secs,
        "status": message.status.value,
        "autoReplySent": message.auto_reply_sent,
        "autoReplySentAt": message.auto_reply_sent_at,
        "receivedAt": message.received_at,
        "replies": [_reply_payload(reply) for reply in detail.replies],
    }
