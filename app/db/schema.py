"""
DDL for the tables owned by the chat core.

User, profile, job, application and credit tables belong to the marketplace
backend and are only read here (see app/repositories/evidence_repository.py).
"""

from app.db.pool import db_pool
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# User ids are compared with byte ordering so the CHECK agrees with
# normalize_pair() in Python.
CHAT_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS conversations (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        participant1 TEXT COLLATE "C" NOT NULL,
        participant2 TEXT COLLATE "C" NOT NULL,
        last_message_id UUID,
        last_message_at TIMESTAMPTZ,
        context JSONB,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        CONSTRAINT conversations_participants_ordered CHECK (participant1 < participant2)
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS conversations_participant_pair_key
        ON conversations (participant1, participant2)
    """,
    """
    CREATE INDEX IF NOT EXISTS conversations_participant2_idx
        ON conversations (participant2)
    """,
    """
    CREATE TABLE IF NOT EXISTS chat_messages (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        conversation_id UUID NOT NULL REFERENCES conversations (id),
        sender_id TEXT NOT NULL,
        recipient_id TEXT NOT NULL,
        content TEXT NOT NULL,
        type TEXT NOT NULL DEFAULT 'text',
        metadata JSONB,
        sent_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        is_read BOOLEAN NOT NULL DEFAULT FALSE,
        read_at TIMESTAMPTZ,
        status TEXT NOT NULL DEFAULT 'SENT',
        CONSTRAINT chat_messages_read_state CHECK (
            NOT is_read OR (read_at IS NOT NULL AND status = 'READ')
        )
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS chat_messages_conversation_sent_idx
        ON chat_messages (conversation_id, sent_at DESC)
    """,
    """
    CREATE INDEX IF NOT EXISTS chat_messages_unread_idx
        ON chat_messages (conversation_id, recipient_id)
        WHERE is_read = FALSE
    """,
]


async def ensure_chat_schema() -> None:
    """Create chat tables and indexes if they do not exist."""
    async with db_pool.transaction() as conn:
        for statement in CHAT_SCHEMA:
            await conn.execute(statement)

    logger.info("Chat schema ensured", statements=len(CHAT_SCHEMA))
