# app/models/api/chat_request.py
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.models.domain.chat_domain import ContextType, ConversationContext, MessageType


class CreateConversationRequest(BaseModel):
    """Request for POST /chat/conversations"""

    recipient_id: str | None = Field(None, min_length=1)
    candidate_id: str | None = Field(None, min_length=1, description="Legacy alias of recipient_id")
    job_id: str | None = None

    @model_validator(mode="after")
    def _require_target(self) -> "CreateConversationRequest":
        if not (self.recipient_id or self.candidate_id):
            raise ValueError("recipient_id is required")
        return self

    @property
    def target_user_id(self) -> str:
        return self.recipient_id or self.candidate_id


class SendMessageRequest(BaseModel):
    """Request for POST /chat/conversations/{id}/messages"""

    content: str = Field(..., min_length=1, max_length=5000)
    type: MessageType = "text"
    metadata: dict[str, Any] | None = None


class MessageIdsRequest(BaseModel):
    """Request for PATCH /chat/messages/read and /chat/messages/delivered"""

    message_ids: list[UUID] = Field(..., min_length=1)

    @property
    def ids(self) -> list[str]:
        return [str(message_id) for message_id in self.message_ids]


class UpdateContextRequest(BaseModel):
    """Request for PUT /chat/conversations/{id}/context (manual override)"""

    type: ContextType | None = None
    context_id: str | None = None
    application_ids: list[str] = Field(default_factory=list)
    title: str | None = None

    @model_validator(mode="after")
    def _complete_when_typed(self) -> "UpdateContextRequest":
        if self.type is not None and not (self.context_id and self.title):
            raise ValueError("context_id and title are required when type is set")
        return self

    def to_context(self) -> ConversationContext | None:
        """None clears the context."""
        if self.type is None:
            return None
        return ConversationContext(
            type=self.type,
            context_id=self.context_id,
            application_ids=self.application_ids,
            title=self.title,
        )
