"""
Role-dependent display data for conversation participants.

Candidates show their profile name and avatar; recruiters show their
company name and logo, falling back to their personal name. Anything that
cannot be resolved falls back to the email, then the raw user id.
"""

from collections.abc import Awaitable, Callable

from app.models.domain.chat_domain import ParticipantDisplay, UserRole
from app.services.chat.interfaces import EvidenceSource

NameAndAvatar = tuple[str | None, str | None]


class ParticipantDisplayResolver:
    def __init__(self, evidence: EvidenceSource):
        self._evidence = evidence
        self._by_role: dict[str, Callable[[str], Awaitable[NameAndAvatar]]] = {
            "candidate": self._candidate,
            "recruiter": self._recruiter,
        }

    async def resolve(
        self, user_id: str, role: UserRole | None, email: str | None = None
    ) -> ParticipantDisplay:
        name, avatar = None, None
        lookup = self._by_role.get(role) if role else None
        if lookup:
            name, avatar = await lookup(user_id)

        return ParticipantDisplay(
            user_id=user_id,
            role=role,
            email=email,
            name=name or email or user_id,
            avatar=avatar,
        )

    async def _candidate(self, user_id: str) -> NameAndAvatar:
        profile = await self._evidence.get_candidate_profile(user_id)
        if not profile:
            return None, None
        return profile.fullname, profile.avatar

    async def _recruiter(self, user_id: str) -> NameAndAvatar:
        profile = await self._evidence.get_recruiter_profile(user_id)
        if not profile:
            return None, None
        return profile.company_name or profile.fullname, profile.company_logo
