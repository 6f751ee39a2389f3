"""
PostgreSQL store for canonical 1:1 conversations.

A pair of users maps to exactly one row: participants are stored in
canonical order and the (participant1, participant2) unique index is the
final arbiter when two first-contact requests race.
"""

from datetime import datetime
from typing import Any

import psycopg
from psycopg.types.json import Jsonb

from app.db.helpers import (
    UniqueViolationError,
    execute_query,
    fetch_all,
    fetch_one,
    with_db_retry,
)
from app.infrastructure.observability.logging import get_logger
from app.models.domain.chat_domain import Conversation, ConversationContext, normalize_pair
from app.services.chat.errors import ConflictError, InvalidOperationError

logger = get_logger(__name__)

_COLUMNS = """
    id::text AS conversation_id,
    participant1,
    participant2,
    last_message_id::text AS last_message_id,
    last_message_at,
    context,
    created_at,
    updated_at
"""


def _to_conversation(row: dict[str, Any]) -> Conversation:
    return Conversation.model_validate(row)


def _context_param(context: ConversationContext | None) -> Jsonb | None:
    if context is None:
        return None
    return Jsonb(context.model_dump(mode="json"))


class ConversationRepository:
    """Conversation identity, last-message pointer and context."""

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def find_pair(self, user_a: str, user_b: str) -> Conversation | None:
        participant1, participant2 = normalize_pair(user_a, user_b)
        row = await fetch_one(
            f"""
            SELECT {_COLUMNS}
            FROM conversations
            WHERE participant1 = %s AND participant2 = %s
            """,
            (participant1, participant2),
        )
        return _to_conversation(row) if row else None

    async def create_pair(
        self, user_a: str, user_b: str, initial_context: ConversationContext | None = None
    ) -> Conversation:
        """
        Insert a conversation for the pair.

        Raises:
            InvalidOperationError: both ids are the same user
            ConflictError: the normalized pair already exists
        """
        if user_a == user_b:
            raise InvalidOperationError("Cannot create a conversation with yourself", user_id=user_a)

        participant1, participant2 = normalize_pair(user_a, user_b)
        try:
            row = await fetch_one(
                f"""
                INSERT INTO conversations (participant1, participant2, context)
                VALUES (%s, %s, %s)
                RETURNING {_COLUMNS}
                """,
                (participant1, participant2, _context_param(initial_context)),
            )
        except UniqueViolationError as e:
            logger.warning(
                "Conversation pair already exists",
                participant1=participant1,
                participant2=participant2,
            )
            raise ConflictError("Conversation already exists", user_id=user_a) from e

        conversation = _to_conversation(row)
        logger.info(
            "Conversation created",
            conversation_id=conversation.conversation_id,
            participant1=participant1,
            participant2=participant2,
            context_type=initial_context.type if initial_context else None,
        )
        return conversation

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def get_by_id(self, conversation_id: str) -> Conversation | None:
        row = await fetch_one(
            f"SELECT {_COLUMNS} FROM conversations WHERE id = %s",
            (conversation_id,),
        )
        return _to_conversation(row) if row else None

    async def touch_last_message(
        self,
        conversation_id: str,
        message_id: str,
        sent_at: datetime,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> bool:
        """
        Move the last-message pointer forward.

        Compare-and-set on last_message_at: a writer carrying an older
        sent_at than the stored one leaves the row untouched.
        """
        affected = await execute_query(
            """
            UPDATE conversations
            SET last_message_id = %s,
                last_message_at = %s,
                updated_at = NOW()
            WHERE id = %s
              AND (last_message_id IS NULL OR last_message_at < %s)
            """,
            (message_id, sent_at, conversation_id, sent_at),
            connection=connection,
        )
        if affected == 0:
            logger.debug(
                "Stale last-message pointer update ignored",
                conversation_id=conversation_id,
                message_id=message_id,
            )
        return affected > 0

    async def set_context(
        self, conversation_id: str, context: ConversationContext | None
    ) -> bool:
        affected = await execute_query(
            """
            UPDATE conversations
            SET context = %s, updated_at = NOW()
            WHERE id = %s
            """,
            (_context_param(context), conversation_id),
        )
        logger.info(
            "Conversation context replaced",
            conversation_id=conversation_id,
            context_type=context.type if context else None,
            updated=affected > 0,
        )
        return affected > 0

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def list_for_user(self, user_id: str) -> list[Conversation]:
        """Conversations of user_id that have at least one message, newest first."""
        rows = await fetch_all(
            f"""
            SELECT {_COLUMNS}
            FROM conversations
            WHERE (participant1 = %s OR participant2 = %s)
              AND last_message_id IS NOT NULL
            ORDER BY last_message_at DESC
            """,
            (user_id, user_id),
        )
        return [_to_conversation(row) for row in rows]
