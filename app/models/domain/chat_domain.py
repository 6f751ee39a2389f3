"""
Domain models for recruiter/candidate messaging.

Persisted entities (Conversation, ChatMessage), read-only evidence from the
marketplace backend (profiles, applications, unlocks) and the read-model
shapes returned to callers.
"""

from datetime import UTC, datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field, model_validator

UserRole = Literal["candidate", "recruiter", "admin"]

ApplicationStatus = Literal[
    "PENDING",
    "REVIEWING",
    "SUITABLE",
    "SCHEDULED_INTERVIEW",
    "INTERVIEWED",
    "OFFER_SENT",
    "ACCEPTED",
    "REJECTED",
    "OFFER_DECLINED",
]

ContextType = Literal["APPLICATION", "PROFILE_UNLOCK"]
MessageType = Literal["text", "image", "file"]
MessageStatus = Literal["SENT", "DELIVERED", "READ"]

ReasonCode = Literal[
    "RECRUITER_PROFILE_NOT_FOUND",
    "CANDIDATE_PROFILE_NOT_FOUND",
    "HAS_APPLICATION",
    "PROFILE_UNLOCKED",
    "NO_ACCESS",
    "SELF",
]

PROFILE_UNLOCK_CATEGORY = "PROFILE_UNLOCK"


def utcnow() -> datetime:
    return datetime.now(UTC)


def normalize_pair(user_a: str, user_b: str) -> tuple[str, str]:
    """Return the pair in canonical order: the smaller id first."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


# ---------------------------------------------------------------------------
# Evidence (owned by the marketplace backend, read-only here)
# ---------------------------------------------------------------------------


class UserRecord(BaseModel):
    user_id: str
    role: UserRole
    email: str | None = None


class CandidateProfile(BaseModel):
    profile_id: str
    user_id: str
    fullname: str | None = None
    avatar: str | None = None


class RecruiterProfile(BaseModel):
    profile_id: str
    user_id: str
    fullname: str | None = None
    company_name: str | None = None
    company_logo: str | None = None


class Application(BaseModel):
    """A candidate's application to one job, joined with the job title."""

    application_id: str
    job_id: str
    job_title: str | None = None
    candidate_profile_id: str
    status: ApplicationStatus
    applied_at: datetime


class UnlockTransaction(BaseModel):
    """A recruiter's paid profile unlock for one candidate."""

    transaction_id: str
    user_id: str
    candidate_id: str
    category: Literal["PROFILE_UNLOCK"] = PROFILE_UNLOCK_CATEGORY
    created_at: datetime


class AccessDecision(BaseModel):
    can_message: bool
    reason: ReasonCode


# ---------------------------------------------------------------------------
# Persisted chat entities
# ---------------------------------------------------------------------------


class ConversationContext(BaseModel):
    """Why a conversation exists: an application thread or a profile unlock."""

    type: ContextType
    context_id: str
    application_ids: list[str] = Field(default_factory=list)
    title: str
    attached_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _application_context_has_ids(self) -> "ConversationContext":
        if self.type == "APPLICATION" and not self.application_ids:
            # Legacy single-application rows only carried context_id
            self.application_ids = [self.context_id]
        return self

    def same_source(self, other: "ConversationContext | None") -> bool:
        """True when both point at the same evidence, ignoring attach time."""
        if other is None:
            return False
        return (
            self.type == other.type
            and self.context_id == other.context_id
            and sorted(self.application_ids) == sorted(other.application_ids)
        )


class Conversation(BaseModel):
    conversation_id: str
    participant1: str
    participant2: str
    last_message_id: str | None = None
    last_message_at: datetime | None = None
    context: ConversationContext | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def participants(self) -> tuple[str, str]:
        return (self.participant1, self.participant2)

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participants

    def other_participant(self, user_id: str) -> str:
        """The participant that is not user_id."""
        return self.participant2 if self.participant1 == user_id else self.participant1


class ChatMessage(BaseModel):
    message_id: str
    conversation_id: str
    sender_id: str
    recipient_id: str
    content: str
    type: MessageType = "text"
    metadata: dict[str, Any] | None = None
    sent_at: datetime
    is_read: bool = False
    read_at: datetime | None = None
    status: MessageStatus = "SENT"


class NewChatMessage(BaseModel):
    """A message about to be appended; the store assigns the id."""

    conversation_id: str
    sender_id: str
    recipient_id: str
    content: str
    type: MessageType = "text"
    metadata: dict[str, Any] | None = None
    sent_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Read-model
# ---------------------------------------------------------------------------


class ParticipantDisplay(BaseModel):
    user_id: str
    role: UserRole | None = None
    email: str | None = None
    name: str
    avatar: str | None = None


class ContextApplication(BaseModel):
    application_id: str
    job_id: str
    job_title: str | None = None
    status: ApplicationStatus
    applied_at: datetime


class ContextView(ConversationContext):
    """Stored context enriched with the referenced applications."""

    applications: list[ContextApplication] = Field(default_factory=list)
    status: ApplicationStatus | None = None


class LatestMessage(BaseModel):
    message_id: str
    sender_id: str
    recipient_id: str
    content: str
    type: MessageType = "text"
    sent_at: datetime
    is_read: bool
    status: MessageStatus


class ConversationListItem(BaseModel):
    conversation_id: str
    last_message_at: datetime | None
    latest_message: LatestMessage | None
    other_participant: ParticipantDisplay
    unread_count: int
    context: ContextView | None = None


class ConversationDetail(BaseModel):
    conversation_id: str
    participant1: ParticipantDisplay
    participant2: ParticipantDisplay
    other_participant: ParticipantDisplay
    context: ContextView | None = None
    last_message_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def participants(self) -> list[ParticipantDisplay]:
        return [self.participant1, self.participant2]


class PageMeta(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    limit: int

    @classmethod
    def build(cls, page: int, limit: int, total_items: int) -> "PageMeta":
        total_pages = (total_items + limit - 1) // limit if limit > 0 else 0
        return cls(current_page=page, total_pages=total_pages, total_items=total_items, limit=limit)


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: list[T]
    meta: PageMeta
