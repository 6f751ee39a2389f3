"""
Read-only access to the marketplace tables that justify a conversation:
profiles, jobs, applications and the credit ledger.
"""

from app.db.helpers import fetch_all, fetch_one, with_db_retry
from app.models.domain.chat_domain import (
    PROFILE_UNLOCK_CATEGORY,
    Application,
    CandidateProfile,
    RecruiterProfile,
    UnlockTransaction,
)

_APPLICATION_COLUMNS = """
    a.id::text AS application_id,
    a.job_id::text AS job_id,
    j.title AS job_title,
    a.candidate_profile_id::text AS candidate_profile_id,
    a.status,
    a.applied_at
"""


class EvidenceRepository:
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def get_recruiter_profile(self, user_id: str) -> RecruiterProfile | None:
        row = await fetch_one(
            """
            SELECT id::text AS profile_id, user_id::text AS user_id, fullname,
                   company_name, company_logo
            FROM recruiter_profiles
            WHERE user_id::text = %s
            """,
            (user_id,),
        )
        return RecruiterProfile.model_validate(row) if row else None

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def get_candidate_profile(self, user_id: str) -> CandidateProfile | None:
        row = await fetch_one(
            """
            SELECT id::text AS profile_id, user_id::text AS user_id, fullname, avatar
            FROM candidate_profiles
            WHERE user_id::text = %s
            """,
            (user_id,),
        )
        return CandidateProfile.model_validate(row) if row else None

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def list_recruiter_job_ids(self, recruiter_profile_id: str) -> list[str]:
        rows = await fetch_all(
            "SELECT id::text AS job_id FROM jobs WHERE recruiter_profile_id::text = %s",
            (recruiter_profile_id,),
        )
        return [row["job_id"] for row in rows]

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def list_applications(
        self, candidate_profile_id: str, job_ids: list[str]
    ) -> list[Application]:
        """Applications of one candidate to the given jobs, newest first."""
        if not job_ids:
            return []
        rows = await fetch_all(
            f"""
            SELECT {_APPLICATION_COLUMNS}
            FROM applications a
            LEFT JOIN jobs j ON j.id = a.job_id
            WHERE a.candidate_profile_id::text = %s
              AND a.job_id::text = ANY(%s)
            ORDER BY a.applied_at DESC
            """,
            (candidate_profile_id, job_ids),
        )
        return [Application.model_validate(row) for row in rows]

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def get_applications(self, application_ids: list[str]) -> list[Application]:
        if not application_ids:
            return []
        rows = await fetch_all(
            f"""
            SELECT {_APPLICATION_COLUMNS}
            FROM applications a
            LEFT JOIN jobs j ON j.id = a.job_id
            WHERE a.id::text = ANY(%s)
            ORDER BY a.applied_at DESC
            """,
            (application_ids,),
        )
        return [Application.model_validate(row) for row in rows]

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def find_unlock(
        self, recruiter_user_id: str, candidate_user_id: str
    ) -> UnlockTransaction | None:
        """Most recent profile-unlock purchase by the recruiter for the candidate."""
        row = await fetch_one(
            """
            SELECT id::text AS transaction_id,
                   user_id::text AS user_id,
                   metadata->>'candidateId' AS candidate_id,
                   category,
                   created_at
            FROM credit_transactions
            WHERE user_id::text = %s
              AND category = %s
              AND metadata->>'candidateId' = %s
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (recruiter_user_id, PROFILE_UNLOCK_CATEGORY, candidate_user_id),
        )
        return UnlockTransaction.model_validate(row) if row else None
