"""
Test submission intake, evaluation and operator overrides.
"""

import pytest
from sqlalchemy import func, select

from campaign_rewards.core.database import get_async_session
from campaign_rewards.core.exceptions import (
    AuthenticationError,
    DuplicateSubmissionError,
    InvalidStatusTransitionError,
    SubmissionNotFoundError,
    ValidationError,
)
from campaign_rewards.models import Submission, SubmissionStatus
from campaign_rewards.services.eligibility import ContentMetrics
from campaign_rewards.services.metrics_provider import (
    ContentNotFound, MetricsFound, ProviderUnavailable
)
from campaign_rewards.services.submission_service import SubmissionService

from conftest import (
    ALICE, BOB, create_campaign, create_submission, create_user_session, load_submission
)

VIDEO_URL = "https://www.tiktok.com/@alice/video/7234567890123456789"
VIDEO_ID = "7234567890123456789"


async def _submit(provider, session_id="session-1", url=VIDEO_URL, address=ALICE, campaign_id=None):
    async with get_async_session() as db:
        return await SubmissionService(db, provider).create_submission(
            session_id, url, address, campaign_id
        )


async def _count_submissions() -> int:
    async with get_async_session() as db:
        return await db.scalar(select(func.count(Submission.id)))


@pytest.mark.asyncio
async def test_eligible_submission(db_engine, provider):
    """Metrics above the thresholds enter as eligible."""
    await create_campaign(reward_amount="10")
    await create_user_session()
    provider.results[VIDEO_ID] = MetricsFound(ContentMetrics(views=1500, likes=60))

    result = await _submit(provider)

    assert result.eligible is True
    assert result.submission.status == SubmissionStatus.ELIGIBLE
    assert result.submission.content_id == VIDEO_ID
    assert result.submission.submitter_identity == "open-alice"
    assert result.submission.views == 1500
    assert result.message == "Congratulations! Your video is eligible for 10 SOL."
    assert provider.calls == [(VIDEO_ID, "token-alice")]


@pytest.mark.asyncio
async def test_rejected_submission_lists_requirements(db_engine, provider):
    await create_campaign(min_views=1000, min_likes=50)
    await create_user_session()
    provider.results[VIDEO_ID] = MetricsFound(ContentMetrics(views=1000, likes=49))

    result = await _submit(provider)

    assert result.eligible is False
    assert result.submission.status == SubmissionStatus.REJECTED
    assert result.message == "Your video does not meet the criteria. Required: 1000 views, 50 likes."


@pytest.mark.asyncio
async def test_same_video_from_another_account_is_rejected(db_engine, provider):
    """A content id can be submitted once, whoever submits it."""
    await create_campaign()
    await create_user_session()
    await create_user_session("session-2", account="open-bob", username="bob", token="token-bob")

    first = await _submit(provider)

    with pytest.raises(DuplicateSubmissionError) as exc:
        await _submit(provider, session_id="session-2", address=BOB)
    assert exc.value.message == "This video has already been submitted"

    stored = await load_submission(first.submission.id)
    assert stored.payout_address == ALICE
    assert stored.submitter_identity == "open-alice"
    assert stored.status == SubmissionStatus.ELIGIBLE
    assert await _count_submissions() == 1


@pytest.mark.asyncio
async def test_provider_outage_records_zero_metrics(db_engine, provider):
    await create_campaign(min_views=1000, min_likes=50)
    await create_user_session()
    provider.results[VIDEO_ID] = ProviderUnavailable("timeout")

    result = await _submit(provider)

    assert result.submission.views == 0
    assert result.submission.likes == 0
    assert result.submission.status == SubmissionStatus.REJECTED


@pytest.mark.asyncio
async def test_provider_outage_with_zero_thresholds_is_eligible(db_engine, provider):
    await create_campaign(min_views=0, min_likes=0)
    await create_user_session()
    provider.results[VIDEO_ID] = ProviderUnavailable("HTTP 503")

    result = await _submit(provider)
    assert result.submission.status == SubmissionStatus.ELIGIBLE


@pytest.mark.asyncio
async def test_video_not_visible_to_account(db_engine, provider):
    await create_campaign()
    await create_user_session()
    provider.results[VIDEO_ID] = ContentNotFound(VIDEO_ID)

    with pytest.raises(ValidationError, match="Video not found"):
        await _submit(provider)
    assert await _count_submissions() == 0


@pytest.mark.asyncio
async def test_input_validation(db_engine, provider):
    await create_campaign()
    await create_user_session()

    with pytest.raises(ValidationError, match="required"):
        await _submit(provider, url="")
    with pytest.raises(ValidationError, match="Invalid Solana wallet address"):
        await _submit(provider, address="0x1234abcd")
    with pytest.raises(ValidationError, match="Could not extract video ID"):
        await _submit(provider, url="https://vm.tiktok.com/ZMabcdef/")
    with pytest.raises(AuthenticationError, match="Invalid session"):
        await _submit(provider, session_id="nope")

    assert provider.calls == []


@pytest.mark.asyncio
async def test_campaign_resolution(db_engine, provider):
    await create_user_session()

    with pytest.raises(ValidationError, match="No active campaign"):
        await _submit(provider)

    older = await create_campaign(name="Older")
    newer = await create_campaign(name="Newer")
    inactive = await create_campaign(name="Closed", is_active=False)

    with pytest.raises(ValidationError, match="Campaign not found or not active"):
        await _submit(provider, campaign_id=inactive.id)

    result = await _submit(provider)
    assert result.submission.campaign_id == newer.id

    other = await _submit(
        provider,
        url="https://www.tiktok.com/@alice/video/111",
        campaign_id=older.id
    )
    assert other.submission.campaign_id == older.id


@pytest.mark.asyncio
async def test_status_override(db_engine):
    campaign = await create_campaign()
    eligible = await create_submission(campaign, "1", status=SubmissionStatus.ELIGIBLE)
    rejected = await create_submission(campaign, "2", status=SubmissionStatus.REJECTED)
    paid = await create_submission(campaign, "3", status=SubmissionStatus.PAID, tx_reference="fake")

    async with get_async_session() as db:
        service = SubmissionService(db)
        updated = await service.override_status(eligible.id, SubmissionStatus.WINNER)
        assert updated.status == SubmissionStatus.WINNER

        with pytest.raises(InvalidStatusTransitionError):
            await service.override_status(rejected.id, SubmissionStatus.ELIGIBLE)
        with pytest.raises(InvalidStatusTransitionError, match="payout or reconciliation"):
            await service.override_status(eligible.id, SubmissionStatus.PAID)
        with pytest.raises(SubmissionNotFoundError):
            await service.override_status(999, SubmissionStatus.WINNER)

        unchanged = await service.override_status(paid.id, SubmissionStatus.PAID)
        assert unchanged.status == SubmissionStatus.PAID

    assert (await load_submission(eligible.id)).status == SubmissionStatus.WINNER
    assert (await load_submission(rejected.id)).status == SubmissionStatus.REJECTED


@pytest.mark.asyncio
async def test_batch_override_skips_final_rows(db_engine):
    campaign = await create_campaign()
    a = await create_submission(campaign, "1", status=SubmissionStatus.ELIGIBLE)
    b = await create_submission(campaign, "2", status=SubmissionStatus.PAID, tx_reference="fake")
    c = await create_submission(campaign, "3", status=SubmissionStatus.PENDING)

    async with get_async_session() as db:
        result = await SubmissionService(db).batch_override_status(
            [a.id, b.id, c.id, 404], SubmissionStatus.WINNER
        )

    assert result.updated == [a.id, c.id]
    assert result.skipped == [b.id, 404]
    assert (await load_submission(b.id)).status == SubmissionStatus.PAID

    async with get_async_session() as db:
        with pytest.raises(InvalidStatusTransitionError):
            await SubmissionService(db).batch_override_status([a.id], SubmissionStatus.PAID)
        with pytest.raises(ValidationError):
            await SubmissionService(db).batch_override_status([], SubmissionStatus.WINNER)


@pytest.mark.asyncio
async def test_listing_and_stats(db_engine):
    first = await create_campaign(name="First")
    second = await create_campaign(name="Second")
    await create_submission(first, "1", status=SubmissionStatus.ELIGIBLE)
    await create_submission(first, "2", status=SubmissionStatus.REJECTED)
    await create_submission(second, "3", status=SubmissionStatus.WINNER)

    async with get_async_session() as db:
        service = SubmissionService(db)

        everything = await service.list_submissions()
        assert len(everything) == 3
        assert {s.campaign.name for s in everything} == {"First", "Second"}

        filtered = await service.list_submissions(campaign_id=first.id, status=SubmissionStatus.REJECTED)
        assert [s.content_id for s in filtered] == ["2"]

        stats = await service.get_stats()

    assert stats == {
        "total": 3,
        "pending": 0,
        "eligible": 1,
        "winner": 1,
        "paid": 0,
        "rejected": 1,
    }
