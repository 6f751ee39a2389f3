"""
PostgreSQL store for chat messages and their read state.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

import psycopg
from psycopg.types.json import Jsonb

from app.db.helpers import execute_query, fetch_all, fetch_one, fetch_val
from app.infrastructure.observability.logging import get_logger
from app.models.domain.chat_domain import ChatMessage, NewChatMessage

logger = get_logger(__name__)

_COLUMNS = """
    id::text AS message_id,
    conversation_id::text AS conversation_id,
    sender_id,
    recipient_id,
    content,
    type,
    metadata,
    sent_at,
    is_read,
    read_at,
    status
"""


def _to_message(row: dict[str, Any]) -> ChatMessage:
    return ChatMessage.model_validate(row)


class MessageRepository:
    """Durable messages; content is immutable, only read state changes."""

    async def append(
        self, message: NewChatMessage, *, connection: psycopg.AsyncConnection | None = None
    ) -> ChatMessage:
        row = await fetch_one(
            f"""
            INSERT INTO chat_messages
                (conversation_id, sender_id, recipient_id, content, type, metadata, sent_at, status)
            VALUES (%s, %s, %s, %s, %s, %s, %s, 'SENT')
            RETURNING {_COLUMNS}
            """,
            (
                message.conversation_id,
                message.sender_id,
                message.recipient_id,
                message.content,
                message.type,
                Jsonb(message.metadata) if message.metadata is not None else None,
                message.sent_at,
            ),
            connection=connection,
        )
        return _to_message(row)

    async def get_many(self, message_ids: Iterable[str]) -> list[ChatMessage]:
        ids = list(message_ids)
        if not ids:
            return []
        rows = await fetch_all(
            f"SELECT {_COLUMNS} FROM chat_messages WHERE id = ANY(%s::uuid[])",
            (ids,),
        )
        return [_to_message(row) for row in rows]

    async def list_by_conversation(
        self, conversation_id: str, page: int, limit: int
    ) -> tuple[list[ChatMessage], int]:
        """Page of messages newest-first, plus the total count."""
        offset = (page - 1) * limit
        rows = await fetch_all(
            f"""
            SELECT {_COLUMNS}
            FROM chat_messages
            WHERE conversation_id = %s
            ORDER BY sent_at DESC, id DESC
            LIMIT %s OFFSET %s
            """,
            (conversation_id, limit, offset),
        )
        total = await fetch_val(
            "SELECT COUNT(*) FROM chat_messages WHERE conversation_id = %s",
            (conversation_id,),
        )
        return [_to_message(row) for row in rows], int(total or 0)

    async def list_since(
        self, conversation_id: str, since: datetime, limit: int
    ) -> list[ChatMessage]:
        """Messages sent strictly after `since`, oldest first."""
        rows = await fetch_all(
            f"""
            SELECT {_COLUMNS}
            FROM chat_messages
            WHERE conversation_id = %s AND sent_at > %s
            ORDER BY sent_at ASC, id ASC
            LIMIT %s
            """,
            (conversation_id, since, limit),
        )
        return [_to_message(row) for row in rows]

    async def count_unread(self, conversation_id: str, recipient_id: str) -> int:
        total = await fetch_val(
            """
            SELECT COUNT(*)
            FROM chat_messages
            WHERE conversation_id = %s AND recipient_id = %s AND is_read = FALSE
            """,
            (conversation_id, recipient_id),
        )
        return int(total or 0)

    async def mark_read(self, message_ids: set[str], as_recipient: str) -> int:
        """
        Mark messages read for their recipient.

        Ids the caller is not the recipient of, or that are already read,
        are skipped without error.
        """
        if not message_ids:
            return 0
        affected = await execute_query(
            """
            UPDATE chat_messages
            SET is_read = TRUE, read_at = NOW(), status = 'READ'
            WHERE id = ANY(%s::uuid[]) AND recipient_id = %s AND is_read = FALSE
            """,
            (sorted(message_ids), as_recipient),
        )
        logger.info("Messages marked as read", recipient_id=as_recipient, count=affected)
        return affected

    async def mark_conversation_read(self, conversation_id: str, as_recipient: str) -> int:
        affected = await execute_query(
            """
            UPDATE chat_messages
            SET is_read = TRUE, read_at = NOW(), status = 'READ'
            WHERE conversation_id = %s AND recipient_id = %s AND is_read = FALSE
            """,
            (conversation_id, as_recipient),
        )
        logger.info(
            "Conversation marked as read",
            conversation_id=conversation_id,
            recipient_id=as_recipient,
            count=affected,
        )
        return affected

    async def mark_delivered(self, message_ids: set[str], as_recipient: str) -> int:
        """SENT -> DELIVERED only; read messages never move back."""
        if not message_ids:
            return 0
        return await execute_query(
            """
            UPDATE chat_messages
            SET status = 'DELIVERED'
            WHERE id = ANY(%s::uuid[]) AND recipient_id = %s AND status = 'SENT'
            """,
            (sorted(message_ids), as_recipient),
        )
