"""
Identity directory backed by the marketplace `users` table.
"""

from app.db.helpers import fetch_one, with_db_retry
from app.models.domain.chat_domain import ParticipantDisplay, UserRecord, UserRole
from app.repositories.evidence_repository import EvidenceRepository
from app.services.chat.display import ParticipantDisplayResolver


class DirectoryRepository:
    def __init__(self, evidence: EvidenceRepository | None = None):
        self._display = ParticipantDisplayResolver(evidence or EvidenceRepository())

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def get_user(self, user_id: str) -> UserRecord | None:
        row = await fetch_one(
            "SELECT id::text AS user_id, role, email FROM users WHERE id::text = %s",
            (user_id,),
        )
        return UserRecord.model_validate(row) if row else None

    async def resolve_display(
        self, user_id: str, role: UserRole | None, email: str | None = None
    ) -> ParticipantDisplay:
        return await self._display.resolve(user_id, role, email)
