"""
Message lifecycle: send, list, sync and read-state transitions.

Status only moves forward, SENT -> DELIVERED -> READ.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from app.config import settings
from app.db.pool import db_pool
from app.infrastructure.observability.logging import get_logger
from app.models.domain.chat_domain import (
    ChatMessage,
    Conversation,
    MessageType,
    NewChatMessage,
    Page,
    PageMeta,
    utcnow,
)
from app.services.chat.errors import ChatValidationError, ForbiddenError, NotFoundError
from app.services.chat.interfaces import ConversationStore, MessageStore, TransactionFactory
from app.services.chat.pagination import validate_page

logger = get_logger(__name__)


class MessageService:
    def __init__(
        self,
        conversations: ConversationStore,
        messages: MessageStore,
        transaction: TransactionFactory | None = None,
    ):
        self._conversations = conversations
        self._messages = messages
        self._transaction = transaction or db_pool.transaction

    async def get_participant_conversation(
        self, caller_id: str, conversation_id: str
    ) -> Conversation:
        """Load a conversation the caller participates in."""
        conversation = await self._conversations.get_by_id(conversation_id)
        if not conversation:
            raise NotFoundError("Conversation not found", user_id=caller_id)

        if not conversation.has_participant(caller_id):
            logger.warning(
                "Permission denied for conversation",
                user_id=caller_id,
                conversation_id=conversation_id,
                participant1=conversation.participant1,
                participant2=conversation.participant2,
            )
            raise ForbiddenError("You are not a participant of this conversation", user_id=caller_id)

        return conversation

    async def send(
        self,
        sender_id: str,
        conversation_id: str,
        content: str,
        type: MessageType = "text",
        metadata: dict[str, Any] | None = None,
    ) -> ChatMessage:
        """
        Persist a message and advance the conversation's last-message pointer.

        Both writes share one store transaction, so a failure between them
        cannot leave a message without its pointer update.
        """
        if not content or not content.strip():
            raise ChatValidationError("Message content must not be empty", user_id=sender_id)

        conversation = await self.get_participant_conversation(sender_id, conversation_id)

        new_message = NewChatMessage(
            conversation_id=conversation.conversation_id,
            sender_id=sender_id,
            recipient_id=conversation.other_participant(sender_id),
            content=content,
            type=type,
            metadata=metadata,
            sent_at=utcnow(),
        )

        async with self._transaction() as conn:
            message = await self._messages.append(new_message, connection=conn)
            await self._conversations.touch_last_message(
                conversation.conversation_id,
                message.message_id,
                message.sent_at,
                connection=conn,
            )

        logger.info(
            "Message sent",
            message_id=message.message_id,
            conversation_id=conversation_id,
            sender_id=sender_id,
            recipient_id=message.recipient_id,
            type=type,
        )
        return message

    async def list_messages(
        self, caller_id: str, conversation_id: str, page: int = 1, limit: int | None = None
    ) -> Page[ChatMessage]:
        page, limit = validate_page(page, limit or settings.CHAT_MESSAGES_PAGE_SIZE)
        await self.get_participant_conversation(caller_id, conversation_id)

        items, total = await self._messages.list_by_conversation(conversation_id, page, limit)
        return Page[ChatMessage](items=items, meta=PageMeta.build(page, limit, total))

    async def sync_since(
        self, caller_id: str, conversation_id: str, since: datetime, limit: int | None = None
    ) -> list[ChatMessage]:
        """Messages a reconnecting client missed, oldest first."""
        await self.get_participant_conversation(caller_id, conversation_id)
        missed = await self._messages.list_since(
            conversation_id, since, limit or settings.CHAT_SYNC_LIMIT
        )
        logger.info(
            "Messages synced",
            conversation_id=conversation_id,
            user_id=caller_id,
            count=len(missed),
        )
        return missed

    async def mark_read(self, caller_id: str, message_ids: Iterable[str]) -> int:
        ids = set(message_ids)
        if not ids:
            raise ChatValidationError("At least one message id is required", user_id=caller_id)
        return await self._messages.mark_read(ids, as_recipient=caller_id)

    async def mark_conversation_read(self, caller_id: str, conversation_id: str) -> int:
        await self.get_participant_conversation(caller_id, conversation_id)
        return await self._messages.mark_conversation_read(conversation_id, as_recipient=caller_id)

    async def mark_delivered(self, caller_id: str, message_ids: Iterable[str]) -> int:
        ids = set(message_ids)
        if not ids:
            raise ChatValidationError("At least one message id is required", user_id=caller_id)
        count = await self._messages.mark_delivered(ids, as_recipient=caller_id)
        logger.debug("Messages marked as delivered", recipient_id=caller_id, count=count)
        return count
