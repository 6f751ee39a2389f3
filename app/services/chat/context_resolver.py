"""
Derive the business context of a recruiter/candidate conversation.

APPLICATION always wins over PROFILE_UNLOCK. The resolver only reads; the
caller decides whether to persist the result.
"""

from app.config import settings
from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.domain.chat_domain import ConversationContext, utcnow
from app.services.chat.interfaces import EvidenceSource

logger = get_logger(__name__)


def application_title(latest_job_title: str | None, count: int) -> str:
    title = latest_job_title or ""
    if count > 1:
        return f"{title} (+{count - 1} vị trí khác)"
    return title


def should_replace(
    current: ConversationContext | None, resolved: ConversationContext | None
) -> bool:
    """
    Upgrade rule for automatic re-resolution.

    A conversation gains a context, or moves to a different one, but an
    APPLICATION context is never replaced by PROFILE_UNLOCK or by nothing.
    """
    if resolved is None:
        return False
    if current is None:
        return True
    if current.type == "APPLICATION" and resolved.type != "APPLICATION":
        return False
    return not resolved.same_source(current)


class ContextResolver:
    def __init__(self, evidence: EvidenceSource, unlock_title: str | None = None):
        self._evidence = evidence
        self._unlock_title = unlock_title or settings.CHAT_PROFILE_UNLOCK_TITLE

    async def resolve(
        self, recruiter_user_id: str, candidate_user_id: str
    ) -> ConversationContext | None:
        """
        Resolve the context for a recruiter/candidate pair.

        Store failures degrade to no context: context enriches a
        conversation, it never blocks one.
        """
        try:
            return await self._resolve(recruiter_user_id, candidate_user_id)
        except DatabaseError as e:
            logger.error(
                "Error determining conversation context",
                recruiter_id=recruiter_user_id,
                candidate_id=candidate_user_id,
                error=str(e),
            )
            return None

    async def _resolve(
        self, recruiter_user_id: str, candidate_user_id: str
    ) -> ConversationContext | None:
        recruiter_profile = await self._evidence.get_recruiter_profile(recruiter_user_id)
        candidate_profile = await self._evidence.get_candidate_profile(candidate_user_id)
        if not recruiter_profile or not candidate_profile:
            return None

        job_ids = await self._evidence.list_recruiter_job_ids(recruiter_profile.profile_id)
        if job_ids:
            applications = await self._evidence.list_applications(
                candidate_profile.profile_id, job_ids
            )
            if applications:
                applications = sorted(applications, key=lambda a: a.applied_at, reverse=True)
                latest = applications[0]
                return ConversationContext(
                    type="APPLICATION",
                    context_id=latest.application_id,
                    application_ids=[a.application_id for a in applications],
                    title=application_title(latest.job_title, len(applications)),
                    attached_at=utcnow(),
                )

        unlock = await self._evidence.find_unlock(recruiter_user_id, candidate_user_id)
        if unlock:
            return ConversationContext(
                type="PROFILE_UNLOCK",
                context_id=unlock.transaction_id,
                title=self._unlock_title,
                attached_at=utcnow(),
            )

        return None
