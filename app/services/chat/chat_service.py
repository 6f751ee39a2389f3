"""
Chat service: the operations the HTTP layer (or a socket transport) calls.

Composes the access policy, context resolver, message service and inbox
projector over injected stores. Returns domain models only; the API layer
handles HTTP concerns.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from app.infrastructure.observability.logging import get_logger
from app.models.domain.chat_domain import (
    AccessDecision,
    ChatMessage,
    Conversation,
    ConversationContext,
    ConversationDetail,
    ConversationListItem,
    MessageType,
    Page,
    UserRecord,
)
from app.services.chat.access_policy import AccessControlPolicy
from app.services.chat.context_resolver import ContextResolver, should_replace
from app.services.chat.conversation_list import ConversationListProjector
from app.services.chat.errors import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
)
from app.services.chat.interfaces import (
    ConversationStore,
    EvidenceSource,
    IdentityDirectory,
    MessageStore,
    TransactionFactory,
)
from app.services.chat.message_service import MessageService

logger = get_logger(__name__)


def _recruiter_candidate_pair(a: UserRecord, b: UserRecord) -> tuple[str, str] | None:
    """(recruiter_id, candidate_id) when the two users form that pair."""
    if a.role == "recruiter" and b.role == "candidate":
        return a.user_id, b.user_id
    if a.role == "candidate" and b.role == "recruiter":
        return b.user_id, a.user_id
    return None


class ChatService:
    def __init__(
        self,
        conversations: ConversationStore,
        messages: MessageStore,
        evidence: EvidenceSource,
        directory: IdentityDirectory,
        transaction: TransactionFactory | None = None,
    ):
        self._conversations = conversations
        self._directory = directory
        self.policy = AccessControlPolicy(evidence)
        self.resolver = ContextResolver(evidence)
        self.message_service = MessageService(conversations, messages, transaction)
        self.projector = ConversationListProjector(conversations, messages, directory, evidence)

    # -- access ------------------------------------------------------------

    async def check_messaging_access(self, caller_id: str, candidate_id: str) -> AccessDecision:
        """
        Can the caller message this candidate?

        Candidates checking themselves are always allowed; recruiters go
        through the access policy; any other caller is refused.
        """
        caller = await self._require_user(caller_id)

        if caller.role == "candidate" and caller_id == candidate_id:
            return AccessDecision(can_message=True, reason="SELF")

        if caller.role == "recruiter":
            return await self.policy.evaluate(caller_id, candidate_id)

        raise ForbiddenError("Not allowed to check messaging access", user_id=caller_id)

    # -- conversations -----------------------------------------------------

    async def create_or_get_conversation(
        self, caller_id: str, other_user_id: str, job_id: str | None = None
    ) -> tuple[ConversationDetail, bool]:
        """
        Return the conversation between caller and other user, creating it if needed.

        Recruiters reaching out to candidates must pass the access policy
        before anything is written. Candidates may contact recruiters freely.
        An existing conversation may have its context upgraded.

        Returns:
            (detail, created) where created is False for an existing conversation
        """
        if caller_id == other_user_id:
            raise InvalidOperationError("Cannot create a conversation with yourself", user_id=caller_id)

        caller = await self._require_user(caller_id)
        other = await self._directory.get_user(other_user_id)
        if not other:
            raise NotFoundError("User not found", user_id=other_user_id)

        logger.info(
            "Create or get conversation",
            user_id=caller_id,
            role=caller.role,
            other_user_id=other_user_id,
            job_id=job_id,
        )

        if caller.role == "recruiter" and other.role == "candidate":
            decision = await self.policy.evaluate(caller_id, other_user_id)
            if not decision.can_message:
                raise ForbiddenError(
                    "You cannot message this candidate. Unlock the profile or wait "
                    "for the candidate to apply to one of your jobs.",
                    user_id=caller_id,
                    reason=decision.reason,
                )

        pair = _recruiter_candidate_pair(caller, other)
        resolved = await self.resolver.resolve(*pair) if pair else None

        existing = await self._conversations.find_pair(caller_id, other_user_id)
        if existing:
            await self._upgrade_context(existing, resolved)
            return await self.get_conversation_by_id(existing.conversation_id, caller_id), False

        try:
            conversation = await self._conversations.create_pair(caller_id, other_user_id, resolved)
            created = True
        except ConflictError:
            # Lost a first-contact race: the other request created it
            conversation = await self._conversations.find_pair(caller_id, other_user_id)
            if not conversation:
                raise
            await self._upgrade_context(conversation, resolved)
            created = False

        return await self.get_conversation_by_id(conversation.conversation_id, caller_id), created

    async def _upgrade_context(
        self, conversation: Conversation, resolved: ConversationContext | None
    ) -> None:
        if not should_replace(conversation.context, resolved):
            return
        await self._conversations.set_context(conversation.conversation_id, resolved)
        logger.info(
            "Conversation context upgraded",
            conversation_id=conversation.conversation_id,
            previous_type=conversation.context.type if conversation.context else None,
            new_type=resolved.type,
        )

    async def get_conversation_by_id(
        self, conversation_id: str, caller_id: str
    ) -> ConversationDetail:
        conversation = await self.message_service.get_participant_conversation(
            caller_id, conversation_id
        )

        participant1 = await self.projector.resolve_display(conversation.participant1)
        participant2 = await self.projector.resolve_display(conversation.participant2)
        other = participant2 if conversation.participant1 == caller_id else participant1

        return ConversationDetail(
            conversation_id=conversation.conversation_id,
            participant1=participant1,
            participant2=participant2,
            other_participant=other,
            context=await self.projector.join_context(conversation.context),
            last_message_at=conversation.last_message_at,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )

    async def get_latest_conversations(
        self,
        caller_id: str,
        search: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[ConversationListItem]:
        return await self.projector.project(caller_id, search=search, page=page, limit=limit)

    async def update_conversation_context(
        self, conversation_id: str, caller_id: str, context: ConversationContext | None
    ) -> ConversationDetail:
        """Manual override: sets any context directly, ignoring priority."""
        await self.message_service.get_participant_conversation(caller_id, conversation_id)
        await self._conversations.set_context(conversation_id, context)
        logger.info(
            "Conversation context overridden",
            conversation_id=conversation_id,
            user_id=caller_id,
            context_type=context.type if context else None,
        )
        return await self.get_conversation_by_id(conversation_id, caller_id)

    # -- messages ----------------------------------------------------------

    async def get_conversation_messages(
        self, caller_id: str, conversation_id: str, page: int = 1, limit: int | None = None
    ) -> Page[ChatMessage]:
        return await self.message_service.list_messages(caller_id, conversation_id, page, limit)

    async def send_message(
        self,
        caller_id: str,
        conversation_id: str,
        content: str,
        type: MessageType = "text",
        metadata: dict[str, Any] | None = None,
    ) -> ChatMessage:
        # Access is not re-checked here: an open conversation stays open
        return await self.message_service.send(caller_id, conversation_id, content, type, metadata)

    async def sync_messages(
        self, caller_id: str, conversation_id: str, since: datetime
    ) -> list[ChatMessage]:
        return await self.message_service.sync_since(caller_id, conversation_id, since)

    async def mark_messages_as_read(self, caller_id: str, message_ids: Iterable[str]) -> int:
        return await self.message_service.mark_read(caller_id, message_ids)

    async def mark_messages_as_delivered(self, caller_id: str, message_ids: Iterable[str]) -> int:
        return await self.message_service.mark_delivered(caller_id, message_ids)

    async def mark_conversation_as_read(self, caller_id: str, conversation_id: str) -> int:
        return await self.message_service.mark_conversation_read(caller_id, conversation_id)

    # -- helpers -----------------------------------------------------------

    async def _require_user(self, user_id: str) -> UserRecord:
        user = await self._directory.get_user(user_id)
        if not user:
            raise NotFoundError("User not found", user_id=user_id)
        return user
