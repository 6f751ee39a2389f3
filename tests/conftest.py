from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from app.auth.verify import current_user_id
from app.db.helpers import DatabaseError
from app.models.domain.chat_domain import (
    Application,
    CandidateProfile,
    ChatMessage,
    Conversation,
    ConversationContext,
    NewChatMessage,
    RecruiterProfile,
    UnlockTransaction,
    UserRecord,
    normalize_pair,
    utcnow,
)
from app.services.chat.chat_service import ChatService
from app.services.chat.display import ParticipantDisplayResolver
from app.services.chat.errors import ConflictError, InvalidOperationError

BASE_TIME = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


@asynccontextmanager
async def null_transaction():
    yield None


class FakeConversationStore:
    def __init__(self):
        self.rows: dict[str, Conversation] = {}

    async def find_pair(self, user_a: str, user_b: str) -> Conversation | None:
        participant1, participant2 = normalize_pair(user_a, user_b)
        for conversation in self.rows.values():
            if conversation.participants == (participant1, participant2):
                return conversation.model_copy(deep=True)
        return None

    async def create_pair(self, user_a, user_b, initial_context=None) -> Conversation:
        if user_a == user_b:
            raise InvalidOperationError("Cannot create a conversation with yourself")
        if await self.find_pair(user_a, user_b):
            raise ConflictError("Conversation already exists")
        return self.seed(user_a, user_b, initial_context)

    def seed(self, user_a, user_b, context=None) -> Conversation:
        participant1, participant2 = normalize_pair(user_a, user_b)
        now = utcnow()
        conversation = Conversation(
            conversation_id=str(uuid4()),
            participant1=participant1,
            participant2=participant2,
            context=context,
            created_at=now,
            updated_at=now,
        )
        self.rows[conversation.conversation_id] = conversation
        return conversation.model_copy(deep=True)

    async def get_by_id(self, conversation_id: str) -> Conversation | None:
        conversation = self.rows.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation else None

    async def touch_last_message(self, conversation_id, message_id, sent_at, *, connection=None):
        conversation = self.rows.get(conversation_id)
        if not conversation:
            return False
        if conversation.last_message_id is not None and conversation.last_message_at >= sent_at:
            return False
        conversation.last_message_id = message_id
        conversation.last_message_at = sent_at
        conversation.updated_at = utcnow()
        return True

    async def set_context(self, conversation_id, context):
        conversation = self.rows.get(conversation_id)
        if not conversation:
            return False
        conversation.context = context
        return True

    async def list_for_user(self, user_id: str) -> list[Conversation]:
        found = [
            c.model_copy(deep=True)
            for c in self.rows.values()
            if c.has_participant(user_id) and c.last_message_id is not None
        ]
        return sorted(found, key=lambda c: c.last_message_at, reverse=True)


class FakeMessageStore:
    def __init__(self):
        self.rows: dict[str, ChatMessage] = {}

    async def append(self, message: NewChatMessage, *, connection=None) -> ChatMessage:
        stored = ChatMessage(message_id=str(uuid4()), **message.model_dump())
        self.rows[stored.message_id] = stored
        return stored.model_copy()

    async def get_many(self, message_ids):
        return [self.rows[i].model_copy() for i in message_ids if i in self.rows]

    async def list_by_conversation(self, conversation_id, page, limit):
        found = [m for m in self.rows.values() if m.conversation_id == conversation_id]
        found.sort(key=lambda m: m.sent_at, reverse=True)
        offset = (page - 1) * limit
        return [m.model_copy() for m in found[offset : offset + limit]], len(found)

    async def list_since(self, conversation_id, since, limit):
        found = [
            m for m in self.rows.values() if m.conversation_id == conversation_id and m.sent_at > since
        ]
        found.sort(key=lambda m: m.sent_at)
        return [m.model_copy() for m in found[:limit]]

    async def count_unread(self, conversation_id, recipient_id):
        return sum(
            1
            for m in self.rows.values()
            if m.conversation_id == conversation_id
            and m.recipient_id == recipient_id
            and not m.is_read
        )

    def _read(self, messages, as_recipient) -> int:
        count = 0
        now = utcnow()
        for message in messages:
            if message.recipient_id == as_recipient and not message.is_read:
                message.is_read = True
                message.read_at = now
                message.status = "READ"
                count += 1
        return count

    async def mark_read(self, message_ids, as_recipient):
        return self._read([self.rows[i] for i in message_ids if i in self.rows], as_recipient)

    async def mark_conversation_read(self, conversation_id, as_recipient):
        messages = [m for m in self.rows.values() if m.conversation_id == conversation_id]
        return self._read(messages, as_recipient)

    async def mark_delivered(self, message_ids, as_recipient):
        count = 0
        for message_id in message_ids:
            message = self.rows.get(message_id)
            if message and message.recipient_id == as_recipient and message.status == "SENT":
                message.status = "DELIVERED"
                count += 1
        return count


class FakeEvidence:
    """In-memory marketplace: profiles, jobs, applications and unlocks."""

    def __init__(self):
        self.recruiters: dict[str, RecruiterProfile] = {}
        self.candidates: dict[str, CandidateProfile] = {}
        self.jobs: dict[str, tuple[str, str]] = {}
        self.applications: list[Application] = []
        self.unlocks: list[UnlockTransaction] = []
        self.fail_with: Exception | None = None

    def _check(self):
        if self.fail_with:
            raise self.fail_with

    def add_recruiter(self, user_id, company_name=None, fullname=None, company_logo=None):
        self.recruiters[user_id] = RecruiterProfile(
            profile_id=f"rp-{user_id}",
            user_id=user_id,
            fullname=fullname,
            company_name=company_name,
            company_logo=company_logo,
        )
        return self.recruiters[user_id]

    def add_candidate(self, user_id, fullname=None, avatar=None):
        self.candidates[user_id] = CandidateProfile(
            profile_id=f"cp-{user_id}", user_id=user_id, fullname=fullname, avatar=avatar
        )
        return self.candidates[user_id]

    def add_job(self, recruiter_user_id, title, job_id=None):
        job_id = job_id or f"job-{len(self.jobs) + 1}"
        self.jobs[job_id] = (self.recruiters[recruiter_user_id].profile_id, title)
        return job_id

    def apply(self, candidate_user_id, job_id, status="PENDING", days_ago=0):
        application = Application(
            application_id=f"app-{len(self.applications) + 1}",
            job_id=job_id,
            job_title=self.jobs[job_id][1],
            candidate_profile_id=self.candidates[candidate_user_id].profile_id,
            status=status,
            applied_at=BASE_TIME - timedelta(days=days_ago),
        )
        self.applications.append(application)
        return application

    def unlock(self, recruiter_user_id, candidate_user_id):
        transaction = UnlockTransaction(
            transaction_id=f"tx-{len(self.unlocks) + 1}",
            user_id=recruiter_user_id,
            candidate_id=candidate_user_id,
            created_at=BASE_TIME,
        )
        self.unlocks.append(transaction)
        return transaction

    async def get_recruiter_profile(self, user_id):
        self._check()
        return self.recruiters.get(user_id)

    async def get_candidate_profile(self, user_id):
        self._check()
        return self.candidates.get(user_id)

    async def list_recruiter_job_ids(self, recruiter_profile_id):
        self._check()
        return [job_id for job_id, (owner, _) in self.jobs.items() if owner == recruiter_profile_id]

    async def list_applications(self, candidate_profile_id, job_ids):
        self._check()
        found = [
            a
            for a in self.applications
            if a.candidate_profile_id == candidate_profile_id and a.job_id in job_ids
        ]
        return sorted(found, key=lambda a: a.applied_at, reverse=True)

    async def get_applications(self, application_ids):
        self._check()
        return [a for a in self.applications if a.application_id in application_ids]

    async def find_unlock(self, recruiter_user_id, candidate_user_id):
        self._check()
        for transaction in reversed(self.unlocks):
            if transaction.user_id == recruiter_user_id and transaction.candidate_id == candidate_user_id:
                return transaction
        return None


class FakeDirectory:
    def __init__(self, evidence: FakeEvidence):
        self.users: dict[str, UserRecord] = {}
        self._display = ParticipantDisplayResolver(evidence)

    def add_user(self, user_id, role, email=None):
        self.users[user_id] = UserRecord(user_id=user_id, role=role, email=email)
        return self.users[user_id]

    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def resolve_display(self, user_id, role, email=None):
        return await self._display.resolve(user_id, role, email)


class ChatWorld:
    """Fakes plus the service wired over them, with fixture helpers."""

    def __init__(self):
        self.conversations = FakeConversationStore()
        self.messages = FakeMessageStore()
        self.evidence = FakeEvidence()
        self.directory = FakeDirectory(self.evidence)
        self.service = ChatService(
            conversations=self.conversations,
            messages=self.messages,
            evidence=self.evidence,
            directory=self.directory,
            transaction=null_transaction,
        )

    def recruiter(self, user_id, company_name="Acme Corp", fullname="Rita Recruiter"):
        self.directory.add_user(user_id, "recruiter", email=f"{user_id}@acme.test")
        self.evidence.add_recruiter(user_id, company_name=company_name, fullname=fullname)
        return user_id

    def candidate(self, user_id, fullname="Cao Candidate"):
        self.directory.add_user(user_id, "candidate", email=f"{user_id}@mail.test")
        self.evidence.add_candidate(user_id, fullname=fullname)
        return user_id

    def context(self, type_="PROFILE_UNLOCK", context_id="tx-1", **kwargs):
        return ConversationContext(type=type_, context_id=context_id, title="ctx", **kwargs)


@pytest.fixture
def world():
    return ChatWorld()


@pytest.fixture
def fail_evidence():
    return DatabaseError("connection reset", operation="fetch_one", recoverable=True)


@pytest.fixture
def apply_user_override():
    def _apply(app, user_id: str):
        app.dependency_overrides[current_user_id] = lambda: user_id

    return _apply


@pytest.fixture
def clock(monkeypatch):
    """Deterministic send times: each message is one minute after the previous."""
    ticks = {"now": BASE_TIME}

    def _tick():
        ticks["now"] += timedelta(minutes=1)
        return ticks["now"]

    monkeypatch.setattr("app.services.chat.message_service.utcnow", _tick)
    return ticks
