import pytest

from app.services.chat.access_policy import CONTACT_STATUSES, AccessControlPolicy


@pytest.fixture
def policy(world):
    return AccessControlPolicy(world.evidence)


@pytest.mark.asyncio
async def test_recruiter_without_profile_is_denied(world, policy):
    world.candidate("u-cand")

    decision = await policy.evaluate("u-nobody", "u-cand")

    assert decision.can_message is False
    assert decision.reason == "RECRUITER_PROFILE_NOT_FOUND"


@pytest.mark.asyncio
async def test_candidate_without_profile_is_denied(world, policy):
    world.recruiter("u-rec")

    decision = await policy.evaluate("u-rec", "u-ghost")

    assert decision.can_message is False
    assert decision.reason == "CANDIDATE_PROFILE_NOT_FOUND"


@pytest.mark.asyncio
async def test_pending_application_grants_access(world, policy):
    world.recruiter("u-rec")
    world.candidate("u-cand")
    job_id = world.evidence.add_job("u-rec", "Backend Engineer")
    world.evidence.apply("u-cand", job_id, status="PENDING")

    decision = await policy.evaluate("u-rec", "u-cand")

    assert decision.can_message is True
    assert decision.reason == "HAS_APPLICATION"


@pytest.mark.asyncio
async def test_rejected_application_still_counts_as_contact(world, policy):
    world.recruiter("u-rec")
    world.candidate("u-cand")
    job_id = world.evidence.add_job("u-rec", "Backend Engineer")
    world.evidence.apply("u-cand", job_id, status="REJECTED")

    decision = await policy.evaluate("u-rec", "u-cand")

    assert decision.reason == "HAS_APPLICATION"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["SUITABLE", "OFFER_SENT", "OFFER_DECLINED"])
async def test_non_contact_statuses_do_not_grant_access(world, policy, status):
    world.recruiter("u-rec")
    world.candidate("u-cand")
    job_id = world.evidence.add_job("u-rec", "Backend Engineer")
    world.evidence.apply("u-cand", job_id, status=status)

    decision = await policy.evaluate("u-rec", "u-cand")

    assert status not in CONTACT_STATUSES
    assert decision.can_message is False
    assert decision.reason == "NO_ACCESS"


@pytest.mark.asyncio
async def test_application_to_another_recruiters_job_does_not_count(world, policy):
    world.recruiter("u-rec")
    world.recruiter("u-other-rec", company_name="Other Co")
    world.candidate("u-cand")
    job_id = world.evidence.add_job("u-other-rec", "Data Analyst")
    world.evidence.apply("u-cand", job_id)

    decision = await policy.evaluate("u-rec", "u-cand")

    assert decision.reason == "NO_ACCESS"


@pytest.mark.asyncio
async def test_profile_unlock_grants_access(world, policy):
    world.recruiter("u-rec")
    world.candidate("u-cand")
    world.evidence.unlock("u-rec", "u-cand")

    decision = await policy.evaluate("u-rec", "u-cand")

    assert decision.can_message is True
    assert decision.reason == "PROFILE_UNLOCKED"


@pytest.mark.asyncio
async def test_application_reason_wins_over_unlock(world, policy):
    world.recruiter("u-rec")
    world.candidate("u-cand")
    job_id = world.evidence.add_job("u-rec", "Backend Engineer")
    world.evidence.apply("u-cand", job_id, status="INTERVIEWED")
    world.evidence.unlock("u-rec", "u-cand")

    decision = await policy.evaluate("u-rec", "u-cand")

    assert decision.reason == "HAS_APPLICATION"


@pytest.mark.asyncio
async def test_decision_is_logged(world, policy, monkeypatch):
    calls = []
    monkeypatch.setattr(
        "app.services.chat.access_policy.log_access_decision",
        lambda *args: calls.append(args),
    )
    world.recruiter("u-rec")
    world.candidate("u-cand")

    await policy.evaluate("u-rec", "u-cand")

    assert calls == [("u-rec", "u-cand", False, "NO_ACCESS")]
