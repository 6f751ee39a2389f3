"""
Chat service exceptions.

Service layer raises these; the API layer maps them to HTTP status codes.
"""

from app.models.domain.chat_domain import ReasonCode


class ChatServiceError(Exception):
    """Base exception for chat service operations."""

    def __init__(self, message: str, user_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.user_id = user_id
        self.recoverable = recoverable


class NotFoundError(ChatServiceError):
    """Conversation, user or profile does not exist."""


class ForbiddenError(ChatServiceError):
    """Caller is not a participant, or lacks messaging access."""

    def __init__(
        self,
        message: str,
        user_id: str | None = None,
        reason: ReasonCode | None = None,
    ):
        super().__init__(message, user_id=user_id, recoverable=False)
        self.reason = reason


class InvalidOperationError(ChatServiceError):
    """Request is well-formed but not allowed, e.g. a self-conversation."""


class ConflictError(ChatServiceError):
    """Conversation for this participant pair already exists."""


class ChatValidationError(ChatServiceError):
    """Malformed identifiers or payload."""
