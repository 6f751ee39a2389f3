"""
Inbox read-model: the per-user list of conversations.

Each list item is assembled from small steps (other participant, display
data, unread count, context join) so they can be tested on their own and
reused by the conversation detail view.
"""

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.chat_domain import (
    ContextApplication,
    ContextView,
    Conversation,
    ConversationContext,
    ConversationListItem,
    LatestMessage,
    Page,
    PageMeta,
    ParticipantDisplay,
)
from app.services.chat.interfaces import (
    ConversationStore,
    EvidenceSource,
    IdentityDirectory,
    MessageStore,
)
from app.services.chat.pagination import validate_page

logger = get_logger(__name__)


def matches_search(display: ParticipantDisplay, search: str | None) -> bool:
    """Case-insensitive substring match on the display name."""
    if not search:
        return True
    return search.casefold() in display.name.casefold()


class ConversationListProjector:
    def __init__(
        self,
        conversations: ConversationStore,
        messages: MessageStore,
        directory: IdentityDirectory,
        evidence: EvidenceSource,
    ):
        self._conversations = conversations
        self._messages = messages
        self._directory = directory
        self._evidence = evidence

    # -- steps -------------------------------------------------------------

    @staticmethod
    def other_participant_id(conversation: Conversation, user_id: str) -> str:
        return conversation.other_participant(user_id)

    async def resolve_display(self, user_id: str) -> ParticipantDisplay:
        user = await self._directory.get_user(user_id)
        if not user:
            logger.warning("Conversation participant not found in directory", user_id=user_id)
            return ParticipantDisplay(user_id=user_id, name=user_id)
        return await self._directory.resolve_display(user.user_id, user.role, user.email)

    async def count_unread(self, conversation: Conversation, user_id: str) -> int:
        return await self._messages.count_unread(conversation.conversation_id, user_id)

    async def join_context(self, context: ConversationContext | None) -> ContextView | None:
        """
        Attach the referenced applications to an APPLICATION context.

        Legacy rows that only carry context_id are looked up by that id.
        """
        if context is None:
            return None

        view = ContextView(**context.model_dump())
        if context.type != "APPLICATION":
            return view

        application_ids = context.application_ids or [context.context_id]
        applications = await self._evidence.get_applications(application_ids)
        applications.sort(key=lambda a: a.applied_at, reverse=True)

        view.applications = [
            ContextApplication(
                application_id=app.application_id,
                job_id=app.job_id,
                job_title=app.job_title,
                status=app.status,
                applied_at=app.applied_at,
            )
            for app in applications
        ]
        view.status = applications[0].status if applications else None
        return view

    # -- projection --------------------------------------------------------

    async def project(
        self,
        user_id: str,
        search: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page[ConversationListItem]:
        page, limit = validate_page(page, limit or settings.CHAT_CONVERSATIONS_PAGE_SIZE)

        conversations = [
            c
            for c in await self._conversations.list_for_user(user_id)
            if c.last_message_id is not None
        ]
        conversations.sort(key=lambda c: c.last_message_at, reverse=True)

        offset = (page - 1) * limit
        if search:
            # Filtering needs every display name before the page can be cut
            items = [await self._build_item(c, user_id) for c in conversations]
            items = [item for item in items if matches_search(item.other_participant, search)]
            total = len(items)
            page_items = items[offset : offset + limit]
        else:
            total = len(conversations)
            page_items = [
                await self._build_item(c, user_id) for c in conversations[offset : offset + limit]
            ]

        logger.debug(
            "Conversation list projected",
            user_id=user_id,
            total=total,
            page=page,
            search=bool(search),
        )
        return Page[ConversationListItem](
            items=page_items, meta=PageMeta.build(page, limit, total)
        )

    async def _build_item(self, conversation: Conversation, user_id: str) -> ConversationListItem:
        other_id = self.other_participant_id(conversation, user_id)
        latest = await self._messages.get_many([conversation.last_message_id])

        return ConversationListItem(
            conversation_id=conversation.conversation_id,
            last_message_at=conversation.last_message_at,
            latest_message=LatestMessage(**latest[0].model_dump()) if latest else None,
            other_participant=await self.resolve_display(other_id),
            unread_count=await self.count_unread(conversation, user_id),
            context=await self.join_context(conversation.context),
        )
