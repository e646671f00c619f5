"""Summary: AI provider abstraction, implementations, and the message summarizer.

Importance: Centralizes LLM access for portability and a deterministic fallback.
Alternatives: Call provider SDKs directly in each service.
"""

from __future__ import annotations

import json
import logging
import re
import time
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from proassist.config import AppConfig
from proassist.errors import IntegrationError
from proassist.models import (
    URGENCY_HIGH,
    URGENCY_LOW,
    URGENCY_MEDIUM,
    SummaryContext,
    SummaryResult,
)

logger = logging.getLogger(__name__)

FALLBACK_WORDS = 20
JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")

SUMMARY_SYSTEM_PROMPT = """Você é um assistente de um {profession} brasileiro. Sua tarefa é resumir mensagens de forma clara e objetiva para que o profissional possa fazer uma triagem rápida entre atendimentos.

Regras:
1. Seja conciso: máximo 2-3 frases
2. Destaque o ponto principal da mensagem
3. Identifique se há algo urgente ou que requer ação imediata
4. Use linguagem profissional mas acessível
5. Se for uma mensagem simples (ex: confirmação, agradecimento), indique isso brevemente
6. Responda sempre em português brasileiro

Formato de resposta (JSON):
{{
  "resumo": "O resumo da mensagem em 2-3 frases",
  "urgencia": "baixa" | "média" | "alta",
  "acao_necessaria": "Descrição da ação se houver, ou null se não houver"
}}"""

REPLY_SYSTEM_PROMPT = """Você é um assistente de um {profession} brasileiro.
Gere uma resposta {style} para a mensagem abaixo.
A resposta deve ser curta (2-4 frases) e direta.
Não invente informações específicas como horários ou valores.
Responda sempre em português brasileiro."""


@dataclass(frozen=True)
class AiResult:
    """Summary: Captures AI output and metadata.

    Importance: Normalizes downstream handling of AI responses.
    Alternatives: Use dicts or provider response objects.
    """

    text: str
    latency_ms: int
    tokens_used: int


class AiProvider(ABC):
    """Summary: Abstract interface for AI text generation.

    Importance: Allows switching between local and cloud LLMs without refactors.
    Alternatives: Use a single vendor SDK and accept lock-in risk.
    """

    @abstractmethod
    def generate_text(
        self, prompt: str, purpose: str, system: str = "", max_tokens: int = 150
    ) -> AiResult:
        """Summary: Generate a response for a prompt.

        Importance: Standardizes AI outputs for downstream services.
        Alternatives: Return provider-specific response objects directly.
        """


class MockAiProvider(AiProvider):
    """Summary: Deterministic AI provider for local testing.

    Importance: Enables offline workflows and repeatable tests.
    Alternatives: Use a small local LLM for all development tasks.
    """

    def generate_text(
        self, prompt: str, purpose: str, system: str = "", max_tokens: int = 150
    ) -> AiResult:
        started = time.time()
        response = f"[mock:{purpose}] {prompt[:240]}"
        latency_ms = int((time.time() - started) * 1000)
        return AiResult(response, latency_ms, estimate_tokens(prompt) + estimate_tokens(response))


class AnthropicProvider(AiProvider):
    """Summary: AI provider using Anthropic's Messages API.

    Importance: Default cloud model for short Portuguese summaries.
    Alternatives: Use the anthropic SDK.
    """

    def __init__(self, api_key: str, model: str) -> None:
        self._api_key = api_key
        self._model = model

    def generate_text(
        self, prompt: str, purpose: str, system: str = "", max_tokens: int = 150
    ) -> AiResult:
        payload: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            payload["system"] = system
        request = urllib.request.Request(
            url="https://api.anthropic.com/v1/messages",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "x-api-key": self._api_key,
                "anthropic-version": "2023-06-01",
            },
            method="POST",
        )
        started = time.time()
        raw = _post_json(request, "Anthropic")
        latency_ms = int((time.time() - started) * 1000)
        blocks = raw.get("content") or []
        text = blocks[0].get("text", "") if blocks and blocks[0].get("type") == "text" else ""
        usage = raw.get("usage") or {}
        tokens = int(usage.get("input_tokens") or 0) + int(usage.get("output_tokens") or 0)
        return AiResult(text, latency_ms, tokens)


class OllamaProvider(AiProvider):
    """Summary: AI provider that targets a local Ollama server.

    Importance: Supports privacy-sensitive workflows on local hardware.
    Alternatives: Use llama.cpp directly with a Python binding.
    """

    def __init__(self, base_url: str, model: str) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model

    def generate_text(
        self, prompt: str, purpose: str, system: str = "", max_tokens: int = 150
    ) -> AiResult:
        payload = {
            "model": self._model,
            "prompt": prompt,
            "system": system,
            "stream": False,
            "options": {"num_predict": max_tokens},
        }
        request = urllib.request.Request(
            url=f"{self._base_url}/api/generate",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        started = time.time()
        raw = _post_json(request, "Ollama")
        latency_ms = int((time.time() - started) * 1000)
        text = raw.get("response", "")
        tokens = int(raw.get("prompt_eval_count") or 0) + int(raw.get("eval_count") or 0)
        return AiResult(text, latency_ms, tokens or estimate_tokens(prompt + text))


class OpenAiProvider(AiProvider):
    """Summary: AI provider using OpenAI's chat completion API.

    Importance: Enables an alternative cloud model when configured.
    Alternatives: Use the responses API or a different provider.
    """

    def __init__(self, api_key: str, model: str) -> None:
        self._api_key = api_key
        self._model = model

    def generate_text(
        self, prompt: str, purpose: str, system: str = "", max_tokens: int = 150
    ) -> AiResult:
        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system or f"You are ProAssist. Task: {purpose}."},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": 0.2,
        }
        request = urllib.request.Request(
            url="https://api.openai.com/v1/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )
        started = time.time()
        raw = _post_json(request, "OpenAI")
        latency_ms = int((time.time() - started) * 1000)
        content = raw["choices"][0]["message"]["content"]
        tokens = int((raw.get("usage") or {}).get("total_tokens") or 0)
        return AiResult(content, latency_ms, tokens)


@dataclass(frozen=True)
class AiProviderFactory:
    """Summary: Factory for selecting AI providers from configuration.

    Importance: Keeps provider selection logic centralized.
    Alternatives: Wire providers manually at the application entrypoint.
    """

    config: AppConfig

    def build(self) -> AiProvider:
        """Summary: Construct the configured AI provider.

        Importance: Ensures consistent provider selection across services.
        Alternatives: Use dependency injection frameworks.
        """

        if self.config.ai_provider == "anthropic":
            if not self.config.anthropic_api_key:
                raise ValueError("ANTHROPIC_API_KEY is required for anthropic provider")
            return AnthropicProvider(self.config.anthropic_api_key, self.config.summary_model)
        if self.config.ai_provider == "ollama":
            return OllamaProvider(self.config.ollama_url, self.config.summary_model)
        if self.config.ai_provider == "openai":
            if not self.config.openai_api_key:
                raise ValueError("OPENAI_API_KEY is required for openai provider")
            return OpenAiProvider(self.config.openai_api_key, self.config.summary_model)
        return MockAiProvider()


@dataclass(frozen=True)
class Summarizer:
    """Summary: Summarizes messages and drafts replies through an AI provider.

    Importance: Never lets an LLM failure block ingestion.
    Alternatives: Skip summarization when the model is unavailable.
    """

    provider: AiProvider
    max_tokens: int = 150

    def summarize(self, text: str, context: SummaryContext | None = None) -> SummaryResult:
        """Summary: Produce a summary, urgency, and suggested action for a message.

        Importance: Gives professionals a quick triage view between appointments.
        Alternatives: Show the raw message body in the inbox.

        Any provider or parsing failure yields the deterministic fallback.
        """

        context = context or SummaryContext()
        system = SUMMARY_SYSTEM_PROMPT.format(profession=context.profession or "profissional")
        try:
            result = self.provider.generate_text(
                _summary_prompt(text, context), "summary", system, self.max_tokens
            )
        except Exception:
            logger.exception("Summarization failed; using fallback summary.")
            return fallback_result(text)
        parsed = parse_json_response(result.text)
        return SummaryResult(
            summary=_as_text(parsed.get("resumo")) or result.text,
            urgency=normalize_urgency(parsed.get("urgencia")),
            action_required=_as_text(parsed.get("acao_necessaria")) or None,
            tokens_used=result.tokens_used,
        )

    def suggest_reply(
        self,
        original_message: str,
        summary: str,
        sender_name: str | None = None,
        profession: str | None = None,
        tone: str = "formal",
    ) -> str:
        """Summary: Draft a short reply for a stored message.

        Importance: Speeds up manual replies without sending anything automatically.
        Alternatives: Offer only fixed templates.
        """

        style = "profissional e formal" if tone == "formal" else "cordial e amigável"
        system = REPLY_SYSTEM_PROMPT.format(profession=profession or "profissional", style=style)
        origin = f" de {sender_name}" if sender_name else ""
        prompt = (
            f"Mensagem original{origin}:\n{original_message}\n\n"
            f"Resumo: {summary}\n\nGere uma resposta apropriada:"
        )
        try:
            result = self.provider.generate_text(prompt, "reply_suggestion", system, 200)
        except IntegrationError:
            raise
        except Exception as exc:
            raise IntegrationError(f"Reply suggestion failed: {exc}") from exc
        return result.text.strip()


def fallback_summary(text: str) -> str:
    """Summary: Truncate a message to its first words.

    Importance: Keeps the inbox readable when the LLM is down.
    Alternatives: Use the provider snippet.
    """

    words = text.split()
    if len(words) <= FALLBACK_WORDS:
        return text
    return " ".join(words[:FALLBACK_WORDS]) + "..."


def fallback_result(text: str) -> SummaryResult:
    return SummaryResult(
        summary=fallback_summary(text),
        urgency=URGENCY_MEDIUM,
        action_required=None,
        tokens_used=0,
    )


def normalize_urgency(value: Any) -> str:
    """Summary: Map model urgency output onto baixa/média/alta."""

    normalized = str(value).strip().lower() if value is not None else ""
    if normalized in ("alta", "high"):
        return URGENCY_HIGH
    if normalized in ("baixa", "low"):
        return URGENCY_LOW
    return URGENCY_MEDIUM


def parse_json_response(text: str) -> dict[str, Any]:
    """Summary: Extract the first JSON object embedded in model output.

    Importance: Models often wrap JSON in prose or code fences.
    Alternatives: Use provider JSON modes.
    """

    match = JSON_OBJECT_PATTERN.search(text or "")
    if not match:
        return {}
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def estimate_tokens(text: str) -> int:
    """Summary: Estimate tokens from text length.

    Importance: Provides a rough usage metric when a provider reports none.
    Alternatives: Use provider token counters or tiktoken.
    """

    return max(1, len(text) // 4)


def _summary_prompt(text: str, context: SummaryContext) -> str:
    lines = []
    if context.sender_name:
        lines.append(f"Remetente: {context.sender_name}")
    if context.subject:
        lines.append(f"Assunto: {context.subject}")
    if context.is_audio:
        lines.append("(Esta mensagem foi transcrita de um áudio)")
    if lines:
        return "\n".join(lines) + f"\n\nMensagem:\n{text}"
    return f"Mensagem:\n{text}"


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _post_json(request: urllib.request.Request, name: str) -> dict[str, Any]:
    try:
        with urllib.request.urlopen(request, timeout=60) as response:
            return json.loads(response.read().decode("utf-8"))
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8")
        raise IntegrationError(f"{name} request failed: {error_body or exc.reason}") from exc
    except urllib.error.URLError as exc:
        raise IntegrationError(f"{name} request failed: {exc.reason}") from exc
