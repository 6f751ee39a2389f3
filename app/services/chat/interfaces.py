"""
Storage and collaborator interfaces consumed by the chat services.

The PostgreSQL implementations live in app.repositories; tests pass
in-memory fakes. Services receive these through their constructors.
"""

from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any, Protocol

from app.models.domain.chat_domain import (
    Application,
    CandidateProfile,
    ChatMessage,
    Conversation,
    ConversationContext,
    NewChatMessage,
    ParticipantDisplay,
    RecruiterProfile,
    UnlockTransaction,
    UserRecord,
    UserRole,
)


class TransactionFactory(Protocol):
    """Callable returning an async context manager that yields a connection handle."""

    def __call__(self) -> AbstractAsyncContextManager[Any]: ...


class ConversationStore(Protocol):
    async def find_pair(self, user_a: str, user_b: str) -> Conversation | None: ...

    async def create_pair(
        self, user_a: str, user_b: str, initial_context: ConversationContext | None = None
    ) -> Conversation: ...

    async def get_by_id(self, conversation_id: str) -> Conversation | None: ...

    async def touch_last_message(
        self, conversation_id: str, message_id: str, sent_at: datetime, *, connection: Any = None
    ) -> bool: ...

    async def set_context(
        self, conversation_id: str, context: ConversationContext | None
    ) -> bool: ...

    async def list_for_user(self, user_id: str) -> list[Conversation]: ...


class MessageStore(Protocol):
    async def append(self, message: NewChatMessage, *, connection: Any = None) -> ChatMessage: ...

    async def get_many(self, message_ids: Iterable[str]) -> list[ChatMessage]: ...

    async def list_by_conversation(
        self, conversation_id: str, page: int, limit: int
    ) -> tuple[list[ChatMessage], int]: ...

    async def list_since(
        self, conversation_id: str, since: datetime, limit: int
    ) -> list[ChatMessage]: ...

    async def count_unread(self, conversation_id: str, recipient_id: str) -> int: ...

    async def mark_read(self, message_ids: set[str], as_recipient: str) -> int: ...

    async def mark_conversation_read(self, conversation_id: str, as_recipient: str) -> int: ...

    async def mark_delivered(self, message_ids: set[str], as_recipient: str) -> int: ...


class EvidenceSource(Protocol):
    """Profiles, jobs, applications and credit ledger of the marketplace."""

    async def get_recruiter_profile(self, user_id: str) -> RecruiterProfile | None: ...

    async def get_candidate_profile(self, user_id: str) -> CandidateProfile | None: ...

    async def list_recruiter_job_ids(self, recruiter_profile_id: str) -> list[str]: ...

    async def list_applications(
        self, candidate_profile_id: str, job_ids: list[str]
    ) -> list[Application]: ...

    async def get_applications(self, application_ids: list[str]) -> list[Application]: ...

    async def find_unlock(
        self, recruiter_user_id: str, candidate_user_id: str
    ) -> UnlockTransaction | None: ...


class IdentityDirectory(Protocol):
    async def get_user(self, user_id: str) -> UserRecord | None: ...

    async def resolve_display(
        self, user_id: str, role: UserRole | None, email: str | None = None
    ) -> ParticipantDisplay: ...
