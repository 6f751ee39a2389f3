from app.config import settings
from app.services.chat.errors import ChatValidationError


def validate_page(page: int, limit: int, max_limit: int | None = None) -> tuple[int, int]:
    max_limit = max_limit or settings.CHAT_MAX_PAGE_SIZE
    if page < 1:
        raise ChatValidationError(f"page must be >= 1, got {page}")
    if limit < 1 or limit > max_limit:
        raise ChatValidationError(f"limit must be between 1 and {max_limit}, got {limit}")
    return page, limit
