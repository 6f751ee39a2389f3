"""
chat.py
-------
Purpose:
    API endpoints for recruiter/candidate messaging.

Architecture:
    - API layer: HTTP concerns, request validation, auth
    - Service layer (ChatService): returns domain models, raises ChatServiceError
    - API layer: converts domain errors -> HTTP status codes

Usage:
    1. GET  /chat/access-check/{candidate_id} - Can I message this candidate?
    2. POST /chat/conversations - Create or fetch the 1:1 conversation
    3. GET  /chat/conversations - Inbox (search + pagination)
    4. GET  /chat/conversations/{id}/messages - History, newest first
    5. POST /chat/conversations/{id}/messages - Send
    6. PUT  /chat/conversations/{id}/read - Mark everything read
"""

from datetime import datetime
from typing import NoReturn
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.auth.verify import current_user_id
from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.api.chat_request import (
    CreateConversationRequest,
    MessageIdsRequest,
    SendMessageRequest,
    UpdateContextRequest,
)
from app.models.api.chat_response import (
    AccessCheckResponse,
    ConversationListResponse,
    ConversationResponse,
    MarkResponse,
    MessageListResponse,
    MessageResponse,
    MessageSyncResponse,
)
from app.services.chat.chat_service import ChatService
from app.services.chat.dependencies import get_chat_service
from app.services.chat.errors import (
    ChatServiceError,
    ChatValidationError,
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
)

router = APIRouter(prefix="/chat", tags=["chat"])
logger = get_logger(__name__)

_STATUS_BY_ERROR = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (InvalidOperationError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ChatValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def _raise_http(error: Exception) -> NoReturn:
    if isinstance(error, DatabaseError):
        logger.error("Chat database error", operation=error.operation, error=str(error))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Messaging is temporarily unavailable",
        ) from error

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            detail = {"message": str(error)}
            if isinstance(error, ForbiddenError) and error.reason:
                detail["reason"] = error.reason
            raise HTTPException(status_code=status_code, detail=detail) from error

    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error)
    ) from error


@router.get("/access-check/{candidate_id}", response_model=AccessCheckResponse)
async def check_access(
    candidate_id: str,
    user_id: str = Depends(current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """
    Check whether the current user may message a candidate.

    Raises:
        403: Caller is neither a recruiter nor the candidate themself
    """
    try:
        decision = await service.check_messaging_access(user_id, candidate_id)
    except (ChatServiceError, DatabaseError) as e:
        _raise_http(e)
    return AccessCheckResponse(data=decision)


@router.post("/conversations", response_model=ConversationResponse)
async def create_or_get_conversation(
    request: CreateConversationRequest,
    response: Response,
    user_id: str = Depends(current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """
    Create the conversation with another user, or return the existing one.

    Returns 201 when created, 200 when it already existed.

    Raises:
        400: Conversation with yourself
        403: Recruiter without access (detail.reason carries the code)
        404: Other user not found
    """
    try:
        detail, created = await service.create_or_get_conversation(
            user_id, request.target_user_id, job_id=request.job_id
        )
    except (ChatServiceError, DatabaseError) as e:
        _raise_http(e)

    if created:
        response.status_code = status.HTTP_201_CREATED
        return ConversationResponse(message="Conversation created", data=detail)
    return ConversationResponse(message="Conversation retrieved", data=detail)


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    try:
        result = await service.get_latest_conversations(user_id, search=search, page=page, limit=limit)
    except (ChatServiceError, DatabaseError) as e:
        _raise_http(e)
    return ConversationListResponse(
        message="Conversations retrieved", data=result.items, meta=result.meta
    )


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    user_id: str = Depends(current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    try:
        detail = await service.get_conversation_by_id(str(conversation_id), user_id)
    except (ChatServiceError, DatabaseError) as e:
        _raise_http(e)
    return ConversationResponse(message="Conversation retrieved", data=detail)


@router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse)
async def get_messages(
    conversation_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    try:
        result = await service.get_conversation_messages(
            user_id, str(conversation_id), page=page, limit=limit
        )
    except (ChatServiceError, DatabaseError) as e:
        _raise_http(e)
    return MessageListResponse(message="Messages retrieved", data=result.items, meta=result.meta)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: UUID,
    request: SendMessageRequest,
    user_id: str = Depends(current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    try:
        message = await service.send_message(
            user_id,
            str(conversation_id),
            request.content,
            type=request.type,
            metadata=request.metadata,
        )
    except (ChatServiceError, DatabaseError) as e:
        _raise_http(e)
    return MessageResponse(message="Message sent", data=message)


@router.get("/conversations/{conversation_id}/sync", response_model=MessageSyncResponse)
async def sync_messages(
    conversation_id: UUID,
    since: datetime = Query(...),
    user_id: str = Depends(current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Messages sent after `since`, for clients catching up after a reconnect."""
    try:
        messages = await service.sync_messages(user_id, str(conversation_id), since)
    except (ChatServiceError, DatabaseError) as e:
        _raise_http(e)
    return MessageSyncResponse(messages=messages)


@router.put("/conversations/{conversation_id}/read", response_model=MarkResponse)
async def mark_conversation_read(
    conversation_id: UUID,
    user_id: str = Depends(current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    try:
        count = await service.mark_conversation_as_read(user_id, str(conversation_id))
    except (ChatServiceError, DatabaseError) as e:
        _raise_http(e)
    return MarkResponse(message="Conversation marked as read", updated=count)


@router.put("/conversations/{conversation_id}/context", response_model=ConversationResponse)
async def update_context(
    conversation_id: UUID,
    request: UpdateContextRequest,
    user_id: str = Depends(current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Manually set (or clear) a conversation's context."""
    try:
        detail = await service.update_conversation_context(
            str(conversation_id), user_id, request.to_context()
        )
    except (ChatServiceError, DatabaseError) as e:
        _raise_http(e)
    return ConversationResponse(message="Conversation context updated", data=detail)


@router.patch("/messages/read", response_model=MarkResponse)
async def mark_messages_read(
    request: MessageIdsRequest,
    user_id: str = Depends(current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    try:
        count = await service.mark_messages_as_read(user_id, request.ids)
    except (ChatServiceError, DatabaseError) as e:
        _raise_http(e)
    return MarkResponse(message="Messages marked as read", updated=count)


@router.patch("/messages/delivered", response_model=MarkResponse)
async def mark_messages_delivered(
    request: MessageIdsRequest,
    user_id: str = Depends(current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    try:
        count = await service.mark_messages_as_delivered(user_id, request.ids)
    except (ChatServiceError, DatabaseError) as e:
        _raise_http(e)
    return MarkResponse(message="Messages marked as delivered", updated=count)
