"""Summary: Tests for the sync engine.

Importance: Ensures messages are ingested once, summarized, and auto-replied per policy.
Alternatives: Run syncs against a real Gmail account.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from conftest import TUESDAY_10AM, FixedClock, ScriptedAiProvider, provider_message

from proassist.ai import AiResult, Summarizer
from proassist.credentials import CredentialManager
from proassist.errors import ConnectionNotFound, IntegrationError
from proassist.gmail import MockProviderClient
from proassist.models import AutoReplySettings, MessageStatus, Provider
from proassist.services import SyncEngine
from proassist.storage.sqlite_store import SqliteStore

SUMMARY_JSON = '{"resumo": "Pedido de consulta.", "urgencia": "alta", "acao_necessaria": null}'


def _engine(
    store: SqliteStore,
    client: MockProviderClient,
    clock: FixedClock,
    ai: ScriptedAiProvider | None = None,
) -> SyncEngine:
    return SyncEngine(
        store=store,
        credentials=CredentialManager(store=store, provider_client=client, clock=clock),
        provider_client=client,
        summarizer=Summarizer(ai or ScriptedAiProvider(SUMMARY_JSON)),
        clock=clock,
        timezone_name="UTC",
    )


def _two_messages() -> list:
    return [
        provider_message("gm-1", TUESDAY_10AM - timedelta(minutes=30), subject="Consulta"),
        provider_message("gm-2", TUESDAY_10AM - timedelta(minutes=10), subject="Re: Exames"),
    ]


def _connect(store: SqliteStore, user_id: int) -> None:
    store.upsert_connection(user_id, Provider.GMAIL, "access", "refresh", None)


def test_sync_creates_unread_messages_without_auto_reply_settings(
    store: SqliteStore, user_id: int, clock: FixedClock
) -> None:
    """Summary: Verify two new candidates become two UNREAD messages.

    Importance: Covers the basic ingestion path end to end.
    Alternatives: Assert only on the returned list.
    """

    _connect(store, user_id)
    client = MockProviderClient(_two_messages())
    processed = _engine(store, client, clock).sync_messages(user_id)
    assert len(processed) == 2
    assert {item.status for item in processed} == {MessageStatus.UNREAD}
    assert all(item.urgency == "alta" for item in processed)
    messages, total = store.list_messages(user_id)
    assert total == 2
    assert {message.status for message in messages} == {MessageStatus.UNREAD}
    assert messages[0].summary == "Pedido de consulta."
    assert client.sent == []


def test_sync_is_idempotent(store: SqliteStore, user_id: int, clock: FixedClock) -> None:
    _connect(store, user_id)
    client = MockProviderClient(_two_messages())
    engine = _engine(store, client, clock)
    assert len(engine.sync_messages(user_id)) == 2
    assert engine.sync_messages(user_id) == []
    assert store.list_messages(user_id)[1] == 2


def test_sync_uses_watermark_and_picks_up_new_messages(
    store: SqliteStore, user_id: int, clock: FixedClock
) -> None:
    _connect(store, user_id)
    client = MockProviderClient(_two_messages())
    engine = _engine(store, client, clock)
    engine.sync_messages(user_id)
    client.messages.append(provider_message("gm-3", TUESDAY_10AM - timedelta(minutes=1)))
    processed = engine.sync_messages(user_id)
    assert [item.sender_contact for item in processed] == ["paciente@example.com"]
    assert store.message_exists(user_id, Provider.GMAIL, "gm-3")


def test_sync_auto_replies_when_eligible(
    store: SqliteStore, user_id: int, clock: FixedClock
) -> None:
    """Summary: Verify eligible settings send one auto-reply per new message.

    Importance: Auto-replies must be threaded and recorded with REPLIED status.
    Alternatives: Only record the intent to reply.
    """

    _connect(store, user_id)
    store.save_auto_reply_settings(
        user_id, AutoReplySettings(enabled=True, message="Estou em atendimento.")
    )
    client = MockProviderClient(_two_messages())
    processed = _engine(store, client, clock).sync_messages(user_id)
    assert [item.auto_reply_sent for item in processed] == [True, True]
    assert {item.status for item in processed} == {MessageStatus.REPLIED}
    assert len(client.sent) == 2
    subjects = sorted(sent.subject for sent in client.sent)
    assert subjects == ["Re: Consulta", "Re: Exames"]
    assert {sent.thread_id for sent in client.sent} == {"thread-gm-1", "thread-gm-2"}
    for message in store.list_messages(user_id)[0]:
        assert message.status == MessageStatus.REPLIED
        assert message.auto_reply_sent is True
        replies = store.list_replies(message.id)
        assert len(replies) == 1
        assert replies[0].is_auto_reply is True


def test_sync_skips_auto_reply_outside_window(
    store: SqliteStore, user_id: int, clock: FixedClock
) -> None:
    _connect(store, user_id)
    store.save_auto_reply_settings(user_id, AutoReplySettings(enabled=True, message="Fora do horário."))
    clock.now = TUESDAY_10AM.replace(hour=19)
    client = MockProviderClient(_two_messages())
    processed = _engine(store, client, clock).sync_messages(user_id)
    assert not any(item.auto_reply_sent for item in processed)
    assert client.sent == []


def test_auto_reply_failure_is_swallowed(
    store: SqliteStore, user_id: int, clock: FixedClock
) -> None:
    _connect(store, user_id)
    store.save_auto_reply_settings(user_id, AutoReplySettings(enabled=True, message="Estou ocupado."))
    client = MockProviderClient(_two_messages(), fail_sends=True)
    processed = _engine(store, client, clock).sync_messages(user_id)
    assert len(processed) == 2
    assert not any(item.auto_reply_sent for item in processed)
    for message in store.list_messages(user_id)[0]:
        assert message.status == MessageStatus.UNREAD
        assert store.list_replies(message.id) == []


def test_summarizer_failure_uses_fallback(
    store: SqliteStore, user_id: int, clock: FixedClock
) -> None:
    _connect(store, user_id)
    long_body = " ".join(["palavra"] * 30)
    client = MockProviderClient([provider_message("gm-1", TUESDAY_10AM, body=long_body)])
    engine = _engine(store, client, clock, ScriptedAiProvider(error=IntegrationError("down")))
    processed = engine.sync_messages(user_id)
    assert processed[0].summary == " ".join(["palavra"] * 20) + "..."
    assert processed[0].urgency == "média"


def test_sync_passes_profession_to_summarizer(
    store: SqliteStore, user_id: int, clock: FixedClock
) -> None:
    _connect(store, user_id)
    ai = ScriptedAiProvider(SUMMARY_JSON)
    client = MockProviderClient([provider_message("gm-1", TUESDAY_10AM)])
    _engine(store, client, clock, ai).sync_messages(user_id)
    assert "médica" in ai.prompts[0][1]


def test_sync_without_connection_raises(
    store: SqliteStore, user_id: int, clock: FixedClock
) -> None:
    with pytest.raises(ConnectionNotFound):
        _engine(store, MockProviderClient(), clock).sync_messages(user_id)


def test_lost_insert_race_is_skipped(
    store: SqliteStore, user_id: int, clock: FixedClock
) -> None:
    """Summary: Verify a concurrent insert of the same message is treated as synced.

    Importance: The unique constraint decides races the existence check cannot see.
    Alternatives: Serialize whole sync passes per user.
    """

    class RacingStore(SqliteStore):
        def message_exists(self, user_id: int, source: Provider, external_id: str) -> bool:
            return False

    racing = RacingStore(str(store._db_path), store._codec)
    _connect(racing, user_id)
    client = MockProviderClient(_two_messages())
    engine = _engine(racing, client, clock)
    assert len(engine.sync_messages(user_id)) == 2
    assert engine.sync_messages(user_id) == []
    assert racing.list_messages(user_id)[1] == 2


def test_summarizer_failure_does_not_stop_the_batch(
    store: SqliteStore, user_id: int, clock: FixedClock
) -> None:
    """Summary: Verify one failed summary still lets later messages use the model.

    Importance: A single provider hiccup must not degrade or abort the whole pass.
    Alternatives: Abort the pass on the first summarizer error.
    """

    class FlakyAiProvider(ScriptedAiProvider):
        def generate_text(
            self, prompt: str, purpose: str, system: str = "", max_tokens: int = 150
        ) -> AiResult:
            if not self.prompts:
                self.prompts.append((prompt, system))
                raise IntegrationError("timeout")
            return super().generate_text(prompt, purpose, system, max_tokens)

    _connect(store, user_id)
    messages = [
        provider_message("gm-1", TUESDAY_10AM - timedelta(minutes=30)),
        provider_message("gm-2", TUESDAY_10AM - timedelta(minutes=20)),
        provider_message("gm-3", TUESDAY_10AM - timedelta(minutes=10), body="Preciso remarcar amanhã"),
    ]
    ai = FlakyAiProvider(SUMMARY_JSON)
    processed = _engine(store, MockProviderClient(messages), clock, ai).sync_messages(user_id)
    assert len(processed) == 3
    assert processed[0].summary == "Preciso remarcar amanhã"
    assert processed[0].urgency == "média"
    assert [item.summary for item in processed[1:]] == ["Pedido de consulta."] * 2
    assert len(ai.prompts) == 3
    assert store.list_messages(user_id)[1] == 3


def test_auto_reply_eligibility_is_checked_per_message(
    store: SqliteStore, user_id: int
) -> None:
    """Summary: Verify a pass crossing the end of the window stops replying partway.

    Importance: Eligibility is evaluated at the moment of each reply, not once per pass.
    Alternatives: Decide eligibility once at the start of the pass.
    """

    class TickingClock(FixedClock):
        def __call__(self) -> datetime:
            current = self.now
            self.advance(minutes=1)
            return current

    _connect(store, user_id)
    store.save_auto_reply_settings(user_id, AutoReplySettings(enabled=True, message="Em atendimento."))
    messages = [
        provider_message(f"gm-{index}", TUESDAY_10AM + timedelta(hours=7, minutes=index))
        for index in range(3)
    ]
    client = MockProviderClient(messages)
    ticking = TickingClock(TUESDAY_10AM.replace(hour=17, minute=59))
    processed = _engine(store, client, ticking).sync_messages(user_id)
    assert [item.auto_reply_sent for item in processed] == [True, True, False]
    assert len(client.sent) == 2
