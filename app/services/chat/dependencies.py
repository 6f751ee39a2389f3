"""
Production wiring of the chat service against PostgreSQL.
"""

from functools import lru_cache

from app.db.pool import db_pool
from app.repositories.conversation_repository import ConversationRepository
from app.repositories.directory_repository import DirectoryRepository
from app.repositories.evidence_repository import EvidenceRepository
from app.repositories.message_repository import MessageRepository
from app.services.chat.chat_service import ChatService


@lru_cache(maxsize=1)
def get_chat_service() -> ChatService:
    """FastAPI dependency; tests override it with in-memory stores."""
    evidence = EvidenceRepository()
    return ChatService(
        conversations=ConversationRepository(),
        messages=MessageRepository(),
        evidence=evidence,
        directory=DirectoryRepository(evidence),
        transaction=db_pool.transaction,
    )
