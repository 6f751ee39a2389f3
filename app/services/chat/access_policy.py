"""
Recruiter -> candidate messaging access.

A recruiter may open a conversation with a candidate only when the candidate
applied to one of the recruiter's jobs, or when the recruiter paid to unlock
the candidate's profile. The decision is evaluated fresh on every
conversation-creation attempt and never stored on the conversation.
"""

from app.infrastructure.observability.logging import log_access_decision
from app.models.domain.chat_domain import AccessDecision
from app.services.chat.interfaces import EvidenceSource

# Application statuses that count as an active or resolved contact.
# SUITABLE, OFFER_SENT and OFFER_DECLINED deliberately do not qualify.
CONTACT_STATUSES = frozenset(
    {"PENDING", "REVIEWING", "SCHEDULED_INTERVIEW", "INTERVIEWED", "ACCEPTED", "REJECTED"}
)


class AccessControlPolicy:
    def __init__(self, evidence: EvidenceSource):
        self._evidence = evidence

    async def evaluate(self, recruiter_user_id: str, candidate_user_id: str) -> AccessDecision:
        decision = await self._decide(recruiter_user_id, candidate_user_id)
        log_access_decision(
            recruiter_user_id, candidate_user_id, decision.can_message, decision.reason
        )
        return decision

    async def _decide(self, recruiter_user_id: str, candidate_user_id: str) -> AccessDecision:
        recruiter_profile = await self._evidence.get_recruiter_profile(recruiter_user_id)
        if not recruiter_profile:
            return AccessDecision(can_message=False, reason="RECRUITER_PROFILE_NOT_FOUND")

        candidate_profile = await self._evidence.get_candidate_profile(candidate_user_id)
        if not candidate_profile:
            return AccessDecision(can_message=False, reason="CANDIDATE_PROFILE_NOT_FOUND")

        job_ids = await self._evidence.list_recruiter_job_ids(recruiter_profile.profile_id)
        if job_ids:
            applications = await self._evidence.list_applications(
                candidate_profile.profile_id, job_ids
            )
            if any(app.status in CONTACT_STATUSES for app in applications):
                return AccessDecision(can_message=True, reason="HAS_APPLICATION")

        unlock = await self._evidence.find_unlock(recruiter_user_id, candidate_user_id)
        if unlock:
            return AccessDecision(can_message=True, reason="PROFILE_UNLOCKED")

        return AccessDecision(can_message=False, reason="NO_ACCESS")
