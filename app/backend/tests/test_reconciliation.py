"""
Test detection and repair of confirmed transfers missing from the database.
"""

from datetime import datetime, timezone

import pytest

from campaign_rewards.core.database import get_async_session
from campaign_rewards.core.exceptions import (
    InvalidStatusTransitionError, SubmissionNotFoundError, ValidationError
)
from campaign_rewards.models import SubmissionStatus
from campaign_rewards.services.ledger import OutboundTransfer, TransactionState
from campaign_rewards.services.reconciliation import ReconciliationService

from conftest import (
    ALICE, BOB, CAROL, SIG_1, SIG_2, SIG_3, create_campaign, create_submission, load_submission
)

TEN = 10 * 10 ** 9
BLOCK_TIME = datetime(2024, 5, 1, tzinfo=timezone.utc)


async def _scan(ledger, limit=None):
    async with get_async_session() as db:
        return await ReconciliationService(db, ledger).find_unrecorded_settlements(limit)


async def _repair(ledger, submission_id, signature):
    async with get_async_session() as db:
        return await ReconciliationService(db, ledger).repair(submission_id, signature)


@pytest.mark.asyncio
async def test_matching_transfer_is_reported(db_engine, ledger):
    campaign = await create_campaign(reward_amount="10")
    submission = await create_submission(campaign, "1", payout_address=ALICE)
    ledger.outbound = [OutboundTransfer(SIG_1, ALICE, TEN, BLOCK_TIME)]

    matches = await _scan(ledger)

    assert len(matches) == 1
    assert matches[0].to_dict() == {
        "submission_id": submission.id,
        "recipient": ALICE,
        "raw_amount": TEN,
        "tx_reference": SIG_1,
        "block_time": "2024-05-01T00:00:00+00:00",
    }
    # Scanning never changes rows
    assert (await load_submission(submission.id)).status == SubmissionStatus.ELIGIBLE


@pytest.mark.asyncio
async def test_non_matching_transfers_are_ignored(db_engine, ledger):
    campaign = await create_campaign(reward_amount="10")
    await create_submission(campaign, "1", payout_address=ALICE)
    await create_submission(campaign, "2", payout_address=BOB, status=SubmissionStatus.PAID, tx_reference=SIG_3)
    await create_submission(campaign, "3", payout_address=CAROL, status=SubmissionStatus.REJECTED)
    ledger.outbound = [
        OutboundTransfer(SIG_1, ALICE, TEN - 1),
        OutboundTransfer(SIG_2, CAROL, TEN),
        OutboundTransfer(SIG_3, ALICE, TEN),
    ]

    assert await _scan(ledger) == []


@pytest.mark.asyncio
async def test_each_transfer_matches_one_submission(db_engine, ledger):
    """Two identical rewards to one wallet claim one transfer each, lowest id first."""
    campaign = await create_campaign(reward_amount="10")
    first = await create_submission(campaign, "1", payout_address=ALICE)
    second = await create_submission(campaign, "2", payout_address=ALICE)
    await create_submission(campaign, "3", payout_address=ALICE)
    ledger.outbound = [
        OutboundTransfer(SIG_2, ALICE, TEN),
        OutboundTransfer(SIG_1, ALICE, TEN),
    ]

    matches = await _scan(ledger)

    assert [(m.submission_id, m.tx_reference) for m in matches] == [
        (first.id, SIG_2),
        (second.id, SIG_1),
    ]


@pytest.mark.asyncio
async def test_scan_limit_is_passed_to_ledger(db_engine, ledger):
    campaign = await create_campaign(reward_amount="10")
    await create_submission(campaign, "1", payout_address=ALICE)
    ledger.outbound = [
        OutboundTransfer(SIG_1, BOB, TEN),
        OutboundTransfer(SIG_2, ALICE, TEN),
    ]

    assert await _scan(ledger, limit=1) == []
    assert len(await _scan(ledger, limit=2)) == 1


@pytest.mark.asyncio
async def test_repair_marks_submission_paid(db_engine, ledger):
    campaign = await create_campaign()
    submission = await create_submission(campaign, "1", status=SubmissionStatus.WINNER)
    ledger.statuses[SIG_1] = TransactionState.CONFIRMED
    ledger.outbound = [OutboundTransfer(SIG_1, ALICE, TEN)]

    repaired = await _repair(ledger, submission.id, SIG_1)

    assert repaired.status == SubmissionStatus.PAID
    stored = await load_submission(submission.id)
    assert stored.status == SubmissionStatus.PAID
    assert stored.tx_reference == SIG_1
    assert stored.paid_at is not None


@pytest.mark.asyncio
async def test_repair_refusals(db_engine, ledger):
    campaign = await create_campaign()
    open_row = await create_submission(campaign, "1")
    paid_row = await create_submission(campaign, "2", status=SubmissionStatus.PAID, tx_reference=SIG_2)
    rejected_row = await create_submission(campaign, "3", status=SubmissionStatus.REJECTED)
    ledger.statuses[SIG_2] = TransactionState.CONFIRMED
    ledger.statuses[SIG_3] = TransactionState.FAILED

    with pytest.raises(ValidationError, match="Invalid transaction signature"):
        await _repair(ledger, open_row.id, "not-a-signature")

    with pytest.raises(SubmissionNotFoundError):
        await _repair(ledger, 999, SIG_1)

    with pytest.raises(InvalidStatusTransitionError):
        await _repair(ledger, paid_row.id, SIG_1)
    with pytest.raises(InvalidStatusTransitionError):
        await _repair(ledger, rejected_row.id, SIG_1)

    with pytest.raises(ValidationError) as exc:
        await _repair(ledger, open_row.id, SIG_2)
    assert exc.value.code == "TX_ALREADY_RECORDED"

    with pytest.raises(ValidationError) as exc:
        await _repair(ledger, open_row.id, SIG_3)
    assert exc.value.code == "TX_NOT_CONFIRMED"

    with pytest.raises(ValidationError) as exc:
        await _repair(ledger, open_row.id, SIG_1)
    assert exc.value.details["state"] == "unknown"

    assert (await load_submission(open_row.id)).status == SubmissionStatus.ELIGIBLE


@pytest.mark.asyncio
@pytest.mark.parametrize("outbound", [
    [],
    [OutboundTransfer(SIG_1, ALICE, TEN - 1)],
    [OutboundTransfer(SIG_1, BOB, TEN)],
])
async def test_repair_refuses_unrelated_transaction(db_engine, ledger, outbound):
    """A confirmed signature is only accepted when it paid this reward from the treasury."""
    campaign = await create_campaign(reward_amount="10")
    submission = await create_submission(campaign, "1", payout_address=ALICE)
    ledger.statuses[SIG_1] = TransactionState.CONFIRMED
    ledger.outbound = outbound

    with pytest.raises(ValidationError) as exc:
        await _repair(ledger, submission.id, SIG_1)

    assert exc.value.code == "TX_MISMATCH"
    assert exc.value.details["expected_amount"] == TEN
    stored = await load_submission(submission.id)
    assert stored.status == SubmissionStatus.ELIGIBLE
    assert stored.tx_reference is None
