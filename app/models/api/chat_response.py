# app/models/api/chat_response.py
from pydantic import BaseModel

from app.models.domain.chat_domain import (
    AccessDecision,
    ChatMessage,
    ConversationDetail,
    ConversationListItem,
    PageMeta,
)


class AccessCheckResponse(BaseModel):
    """Response for GET /chat/access-check/{candidate_id}"""

    success: bool = True
    data: AccessDecision


class ConversationResponse(BaseModel):
    """Response for POST /chat/conversations and GET/PUT on a single conversation"""

    success: bool = True
    message: str
    data: ConversationDetail


class ConversationListResponse(BaseModel):
    """Response for GET /chat/conversations"""

    success: bool = True
    message: str
    data: list[ConversationListItem]
    meta: PageMeta


class MessageListResponse(BaseModel):
    """Response for GET /chat/conversations/{id}/messages"""

    success: bool = True
    message: str
    data: list[ChatMessage]
    meta: PageMeta


class MessageSyncResponse(BaseModel):
    """Response for GET /chat/conversations/{id}/sync"""

    success: bool = True
    messages: list[ChatMessage]


class MessageResponse(BaseModel):
    """Response for POST /chat/conversations/{id}/messages"""

    success: bool = True
    message: str
    data: ChatMessage


class MarkResponse(BaseModel):
    """Response for read/delivered receipts"""

    success: bool = True
    message: str
    updated: int
