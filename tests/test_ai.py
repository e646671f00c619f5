"""Summary: Tests for the AI abstraction layer and summarizer.

Importance: Ensures summaries degrade to the deterministic fallback when the LLM fails.
Alternatives: Skip AI testing and rely on manual verification.
"""

from __future__ import annotations

import pytest
from conftest import ScriptedAiProvider, build_test_config

from proassist.ai import (
    AiProviderFactory,
    AnthropicProvider,
    MockAiProvider,
    OllamaProvider,
    Summarizer,
    fallback_summary,
    normalize_urgency,
    parse_json_response,
)
from proassist.errors import IntegrationError
from proassist.models import SummaryContext


def test_mock_ai_provider_returns_response() -> None:
    """Summary: Verify mock AI provider returns deterministic text.

    Importance: Confirms basic AI abstraction behavior for tests.
    Alternatives: Use live providers in integration tests only.
    """

    provider = MockAiProvider()
    result = provider.generate_text("Hello", "test")
    assert "[mock:test]" in result.text
    assert result.latency_ms >= 0
    assert result.tokens_used > 0


def test_fallback_keeps_short_messages_verbatim() -> None:
    text = "Bom dia,  confirmo a consulta de amanhã."
    assert fallback_summary(text) == text
    twenty = " ".join(f"w{index}" for index in range(20))
    assert fallback_summary(twenty) == twenty


def test_fallback_truncates_long_messages_to_twenty_words() -> None:
    """Summary: Verify long bodies keep the first 20 words plus an ellipsis.

    Importance: Keeps the inbox readable when the LLM is unavailable.
    Alternatives: Truncate by character count.
    """

    summary = fallback_summary(" ".join(["palavra"] * 30))
    assert summary == " ".join(["palavra"] * 20) + "..."
    twenty_one = " ".join(f"w{index}" for index in range(21))
    assert fallback_summary(twenty_one) == " ".join(f"w{index}" for index in range(20)) + "..."


def test_summarizer_parses_json_wrapped_in_prose() -> None:
    provider = ScriptedAiProvider(
        'Claro! ```json\n{"resumo": "Pedido de reagendamento.", "urgencia": "HIGH", '
        '"acao_necessaria": "Confirmar novo horário"}\n```',
        tokens=87,
    )
    result = Summarizer(provider).summarize(
        "Preciso remarcar.", SummaryContext(sender_name="João", subject="Remarcação", profession="dentista")
    )
    assert result.summary == "Pedido de reagendamento."
    assert result.urgency == "alta"
    assert result.action_required == "Confirmar novo horário"
    assert result.tokens_used == 87
    prompt, system = provider.prompts[0]
    assert "Remetente: João" in prompt
    assert "Assunto: Remarcação" in prompt
    assert "dentista" in system


def test_summarizer_uses_raw_text_when_json_is_missing() -> None:
    provider = ScriptedAiProvider("Mensagem de agradecimento.")
    result = Summarizer(provider).summarize("Obrigado pelo atendimento!")
    assert result.summary == "Mensagem de agradecimento."
    assert result.urgency == "média"
    assert result.action_required is None


def test_summarizer_falls_back_on_provider_error() -> None:
    """Summary: Verify provider failures produce the fallback result.

    Importance: Summarization must never abort message ingestion.
    Alternatives: Propagate the error and skip the message.
    """

    provider = ScriptedAiProvider(error=IntegrationError("timeout"))
    text = " ".join(["palavra"] * 30)
    result = Summarizer(provider).summarize(text)
    assert result.summary == " ".join(["palavra"] * 20) + "..."
    assert result.urgency == "média"
    assert result.action_required is None
    assert result.tokens_used == 0


def test_normalize_urgency_and_json_parsing() -> None:
    assert normalize_urgency("Alta") == "alta"
    assert normalize_urgency(" low ") == "baixa"
    assert normalize_urgency("urgent") == "média"
    assert normalize_urgency(None) == "média"
    assert parse_json_response("sem json") == {}
    assert parse_json_response("{quebrado") == {}
    assert parse_json_response('x {"a": 1} y') == {"a": 1}


def test_suggest_reply_uses_tone_and_wraps_errors() -> None:
    provider = ScriptedAiProvider("  Olá! Posso atendê-lo na quinta.  ")
    summarizer = Summarizer(provider)
    suggestion = summarizer.suggest_reply("Tem horário?", "Pergunta sobre horário", tone="informal")
    assert suggestion == "Olá! Posso atendê-lo na quinta."
    assert "cordial e amigável" in provider.prompts[0][1]

    failing = Summarizer(ScriptedAiProvider(error=RuntimeError("boom")))
    with pytest.raises(IntegrationError):
        failing.suggest_reply("Tem horário?", "Pergunta")


def test_factory_selects_configured_provider() -> None:
    assert isinstance(AiProviderFactory(build_test_config("x.db")).build(), MockAiProvider)
    anthropic = build_test_config("x.db", ai_provider="anthropic", anthropic_api_key="key")
    assert isinstance(AiProviderFactory(anthropic).build(), AnthropicProvider)
    ollama = build_test_config("x.db", ai_provider="ollama")
    assert isinstance(AiProviderFactory(ollama).build(), OllamaProvider)
    with pytest.raises(ValueError):
        AiProviderFactory(build_test_config("x.db", ai_provider="anthropic")).build()
