from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from app.models.domain.chat_domain import NewChatMessage
from app.repositories.message_repository import MessageRepository

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


def _message_row(**overrides):
    row = {
        "message_id": "m-1",
        "conversation_id": "conv-1",
        "sender_id": "u-a",
        "recipient_id": "u-b",
        "content": "Xin chào",
        "type": "text",
        "metadata": None,
        "sent_at": NOW,
        "is_read": False,
        "read_at": None,
        "status": "SENT",
    }
    row.update(overrides)
    return row


@pytest.mark.asyncio
async def test_append_inserts_as_sent(monkeypatch):
    fetch_mock = AsyncMock(return_value=_message_row())
    monkeypatch.setattr("app.repositories.message_repository.fetch_one", fetch_mock)
    conn = object()

    message = await MessageRepository().append(
        NewChatMessage(
            conversation_id="conv-1",
            sender_id="u-a",
            recipient_id="u-b",
            content="Xin chào",
            sent_at=NOW,
        ),
        connection=conn,
    )

    assert message.status == "SENT"
    assert message.is_read is False
    assert "'SENT'" in fetch_mock.await_args.args[0]
    assert fetch_mock.await_args.kwargs["connection"] is conn


@pytest.mark.asyncio
async def test_list_by_conversation_pages_newest_first(monkeypatch):
    fetch_all_mock = AsyncMock(return_value=[_message_row(message_id="m-3")])
    monkeypatch.setattr("app.repositories.message_repository.fetch_all", fetch_all_mock)
    monkeypatch.setattr("app.repositories.message_repository.fetch_val", AsyncMock(return_value=41))

    items, total = await MessageRepository().list_by_conversation("conv-1", page=3, limit=20)

    query, params = fetch_all_mock.await_args.args
    assert "ORDER BY sent_at DESC" in query
    assert params == ("conv-1", 20, 40)
    assert total == 41
    assert items[0].message_id == "m-3"


@pytest.mark.asyncio
async def test_mark_read_with_no_ids_skips_query(monkeypatch):
    execute_mock = AsyncMock()
    monkeypatch.setattr("app.repositories.message_repository.execute_query", execute_mock)

    assert await MessageRepository().mark_read(set(), "u-a") == 0
    execute_mock.assert_not_awaited()


@pytest.mark.asyncio
async def test_mark_read_only_touches_unread_rows_of_recipient(monkeypatch):
    execute_mock = AsyncMock(return_value=2)
    monkeypatch.setattr("app.repositories.message_repository.execute_query", execute_mock)

    count = await MessageRepository().mark_read({"m-2", "m-1"}, "u-a")

    query, params = execute_mock.await_args.args
    assert count == 2
    assert "recipient_id = %s AND is_read = FALSE" in query
    assert params == (["m-1", "m-2"], "u-a")


@pytest.mark.asyncio
async def test_mark_delivered_never_moves_read_messages_back(monkeypatch):
    execute_mock = AsyncMock(return_value=1)
    monkeypatch.setattr("app.repositories.message_repository.execute_query", execute_mock)

    await MessageRepository().mark_delivered({"m-1"}, "u-b")

    query = execute_mock.await_args.args[0]
    assert "status = 'SENT'" in query
