import pytest

from app.models.domain.chat_domain import ConversationContext
from app.services.chat.context_resolver import (
    ContextResolver,
    application_title,
    should_replace,
)


@pytest.fixture
def resolver(world):
    return ContextResolver(world.evidence, unlock_title="Hồ sơ đã mở khóa")


def _context(type_, context_id, application_ids=None):
    return ConversationContext(
        type=type_,
        context_id=context_id,
        application_ids=application_ids or [],
        title="title",
    )


def test_application_title_single():
    assert application_title("Backend Engineer", 1) == "Backend Engineer"


def test_application_title_counts_other_positions():
    assert application_title("Backend Engineer", 3) == "Backend Engineer (+2 vị trí khác)"


@pytest.mark.asyncio
async def test_applications_win_over_unlock(world, resolver):
    world.recruiter("u-rec")
    world.candidate("u-cand")
    older = world.evidence.apply(
        "u-cand", world.evidence.add_job("u-rec", "Data Analyst"), days_ago=5
    )
    newer = world.evidence.apply(
        "u-cand", world.evidence.add_job("u-rec", "Backend Engineer"), days_ago=1
    )
    world.evidence.unlock("u-rec", "u-cand")

    context = await resolver.resolve("u-rec", "u-cand")

    assert context.type == "APPLICATION"
    assert context.context_id == newer.application_id
    assert context.application_ids == [newer.application_id, older.application_id]
    assert context.title == "Backend Engineer (+1 vị trí khác)"


@pytest.mark.asyncio
async def test_any_status_counts_for_context(world, resolver):
    world.recruiter("u-rec")
    world.candidate("u-cand")
    world.evidence.apply(
        "u-cand", world.evidence.add_job("u-rec", "Backend Engineer"), status="OFFER_DECLINED"
    )

    context = await resolver.resolve("u-rec", "u-cand")

    assert context.type == "APPLICATION"
    assert context.title == "Backend Engineer"


@pytest.mark.asyncio
async def test_unlock_only(world, resolver):
    world.recruiter("u-rec")
    world.candidate("u-cand")
    transaction = world.evidence.unlock("u-rec", "u-cand")

    context = await resolver.resolve("u-rec", "u-cand")

    assert context.type == "PROFILE_UNLOCK"
    assert context.context_id == transaction.transaction_id
    assert context.title == "Hồ sơ đã mở khóa"


@pytest.mark.asyncio
async def test_no_evidence_resolves_to_none(world, resolver):
    world.recruiter("u-rec")
    world.candidate("u-cand")

    assert await resolver.resolve("u-rec", "u-cand") is None


@pytest.mark.asyncio
async def test_missing_profile_resolves_to_none(world, resolver):
    world.recruiter("u-rec")

    assert await resolver.resolve("u-rec", "u-ghost") is None


@pytest.mark.asyncio
async def test_store_failure_degrades_to_none(world, resolver, fail_evidence):
    world.recruiter("u-rec")
    world.candidate("u-cand")
    world.evidence.unlock("u-rec", "u-cand")
    world.evidence.fail_with = fail_evidence

    assert await resolver.resolve("u-rec", "u-cand") is None


def test_should_replace_fills_empty_context():
    assert should_replace(None, _context("PROFILE_UNLOCK", "tx-1")) is True


def test_should_replace_ignores_missing_resolution():
    assert should_replace(_context("PROFILE_UNLOCK", "tx-1"), None) is False


def test_should_replace_upgrades_unlock_to_application():
    current = _context("PROFILE_UNLOCK", "tx-1")
    assert should_replace(current, _context("APPLICATION", "app-1")) is True


def test_should_replace_never_downgrades_application():
    current = _context("APPLICATION", "app-1")
    assert should_replace(current, _context("PROFILE_UNLOCK", "tx-1")) is False


def test_should_replace_picks_up_new_applications():
    current = _context("APPLICATION", "app-1")
    resolved = _context("APPLICATION", "app-2", ["app-2", "app-1"])
    assert should_replace(current, resolved) is True


def test_should_replace_skips_same_source():
    current = _context("APPLICATION", "app-2", ["app-2", "app-1"])
    resolved = _context("APPLICATION", "app-2", ["app-1", "app-2"])
    assert should_replace(current, resolved) is False
