"""Summary: Tests for message state transitions and manual replies.

Importance: Ensures statuses only move forward and replies reach the original thread.
Alternatives: Exercise the same flows only through the HTTP API.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import TUESDAY_10AM, provider_message

from proassist.app import AppContext
from proassist.errors import ConnectionNotFound, MessageNotFound
from proassist.gmail import MockProviderClient
from proassist.models import MessageStatus, Provider, User


def _sync_inbox(context: AppContext, provider_client: MockProviderClient) -> int:
    user_id = context.store.ensure_user(
        User(email="dr.joao@example.com", name="João", profession="dentista")
    )
    context.store.upsert_connection(user_id, Provider.GMAIL, "access", "refresh", None)
    provider_client.messages.extend(
        [
            provider_message("gm-1", TUESDAY_10AM - timedelta(hours=2), subject="Orçamento"),
            provider_message("gm-2", TUESDAY_10AM - timedelta(hours=1), subject="Re: Retorno"),
            provider_message("gm-3", TUESDAY_10AM - timedelta(days=1), subject="Agenda"),
        ]
    )
    context.sync.sync_messages(user_id)
    return user_id


def _message_id(context: AppContext, user_id: int, external_id: str) -> int:
    messages, _ = context.store.list_messages(user_id)
    return next(message.id for message in messages if message.external_id == external_id)


def test_opening_a_message_marks_it_read(
    context: AppContext, provider_client: MockProviderClient
) -> None:
    """Summary: Verify fetching detail moves UNREAD to READ.

    Importance: Opening a message is the read signal for the dashboard.
    Alternatives: Require a separate mark-read call.
    """

    user_id = _sync_inbox(context, provider_client)
    message_id = _message_id(context, user_id, "gm-1")
    detail = context.messages.get_and_mark_read(user_id, message_id)
    assert detail.message.status == MessageStatus.READ
    assert detail.replies == []
    assert context.store.get_message(message_id, user_id).status == MessageStatus.READ


def test_reply_marks_replied_and_reading_never_moves_back(
    context: AppContext, provider_client: MockProviderClient
) -> None:
    user_id = _sync_inbox(context, provider_client)
    message_id = _message_id(context, user_id, "gm-1")
    context.messages.send_reply(user_id, message_id, "Segue o orçamento em anexo.")
    context.messages.mark_read(user_id, message_id)
    detail = context.messages.get_and_mark_read(user_id, message_id)
    assert detail.message.status == MessageStatus.REPLIED
    assert [reply.content for reply in detail.replies] == ["Segue o orçamento em anexo."]
    assert detail.replies[0].is_auto_reply is False


def test_send_reply_targets_sender_and_thread(
    context: AppContext, provider_client: MockProviderClient
) -> None:
    """Summary: Verify manual replies are threaded with a prefixed subject.

    Importance: Replies must land in the original conversation.
    Alternatives: Send replies as new conversations.
    """

    user_id = _sync_inbox(context, provider_client)
    first = _message_id(context, user_id, "gm-1")
    second = _message_id(context, user_id, "gm-2")
    context.messages.send_reply(user_id, first, "Olá!")
    context.messages.send_reply(user_id, second, "Até breve.")
    sent = provider_client.sent
    assert [item.subject for item in sent] == ["Re: Orçamento", "Re: Retorno"]
    assert [item.thread_id for item in sent] == ["thread-gm-1", "thread-gm-2"]
    assert sent[0].to == "paciente@example.com"


def test_send_reply_without_connection_raises(
    context: AppContext, provider_client: MockProviderClient
) -> None:
    user_id = _sync_inbox(context, provider_client)
    message_id = _message_id(context, user_id, "gm-1")
    context.users.disconnect(user_id, "gmail")
    with pytest.raises(ConnectionNotFound):
        context.messages.send_reply(user_id, message_id, "Olá!")
    assert context.store.list_replies(message_id) == []


def test_archive_and_list_filters(
    context: AppContext, provider_client: MockProviderClient
) -> None:
    user_id = _sync_inbox(context, provider_client)
    message_id = _message_id(context, user_id, "gm-2")
    context.messages.archive(user_id, message_id)
    items, total = context.messages.list_messages(user_id, status=MessageStatus.ARCHIVED)
    assert total == 1
    assert items[0].message.id == message_id
    assert items[0].last_reply is None
    unread, unread_total = context.messages.list_messages(user_id, status=MessageStatus.UNREAD)
    assert unread_total == 2
    assert [item.message.external_id for item in unread] == ["gm-1", "gm-3"]


def test_messages_of_other_users_are_not_found(
    context: AppContext, provider_client: MockProviderClient
) -> None:
    user_id = _sync_inbox(context, provider_client)
    message_id = _message_id(context, user_id, "gm-1")
    intruder = context.store.ensure_user(User(email="intruso@example.com", name="Intruso"))
    with pytest.raises(MessageNotFound):
        context.messages.get_and_mark_read(intruder, message_id)
    with pytest.raises(MessageNotFound):
        context.messages.mark_read(intruder, message_id)
    with pytest.raises(MessageNotFound):
        context.messages.archive(intruder, message_id)
    with pytest.raises(MessageNotFound):
        context.messages.send_reply(intruder, message_id, "Olá")
    assert context.store.get_message(message_id, user_id).status == MessageStatus.UNREAD


def test_stats_counts_today_from_local_midnight(
    context: AppContext, provider_client: MockProviderClient
) -> None:
    """Summary: Verify counters and read rate on a small inbox.

    Importance: Drives the dashboard summary cards.
    Alternatives: Count on the client.
    """

    user_id = _sync_inbox(context, provider_client)
    context.messages.get_and_mark_read(user_id, _message_id(context, user_id, "gm-1"))
    context.messages.send_reply(user_id, _message_id(context, user_id, "gm-2"), "Ok")
    stats = context.messages.stats(user_id)
    assert stats.total == 3
    assert stats.unread == 1
    assert stats.today_count == 2
    assert stats.replied_count == 1
    assert stats.read_rate == pytest.approx(200 / 3)


def test_stats_for_empty_inbox(context: AppContext) -> None:
    user_id = context.store.ensure_user(User(email="vazio@example.com", name="Vazio"))
    stats = context.messages.stats(user_id)
    assert (stats.total, stats.unread, stats.read_rate) == (0, 0, 0.0)


def test_suggest_reply_uses_message_context(
    context: AppContext, provider_client: MockProviderClient
) -> None:
    user_id = _sync_inbox(context, provider_client)
    message_id = _message_id(context, user_id, "gm-1")
    context.messages.suggest_reply(user_id, message_id, "informal")
    prompt, system = context.summarizer.provider.prompts[-1]
    assert "Resumo: Paciente quer marcar consulta." in prompt
    assert "dentista" in system
    assert "cordial" in system
