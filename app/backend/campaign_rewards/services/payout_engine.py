"""
Payout engine - settles reward transfers for a batch of submissions.

A batch runs inside the treasury lock: payable rows are selected, the
treasury is resolved once and every row is settled in id order. Each
settled row is committed before the next transfer starts, so a repeated
or concurrent ``disburse`` never selects it again.
"""

import asyncio
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

import structlog

from campaign_rewards.core.exceptions import (
    NoEligibleSubmissionsError, RewardsException, SettlementError, ValidationError
)
from campaign_rewards.models.campaign import Campaign
from campaign_rewards.models.submission import (
    PAYABLE_STATUSES, Submission, SubmissionStatus
)
from campaign_rewards.services.ledger import (
    Ledger, TreasuryHandle, from_base_units, to_base_units
)
from campaign_rewards.services.treasury_lock import treasury_lock

logger = structlog.get_logger(__name__)


def display_amount(raw: int, decimals: int) -> str:
    """Exact token amount of ``raw`` base units without trailing zeros."""
    return format(from_base_units(raw, decimals).normalize(), "f")


@dataclass
class PayoutItem:
    """A payable submission joined to its campaign reward."""
    submission_id: int
    recipient: str
    reward_amount: str
    submitter_username: Optional[str] = None


@dataclass
class PayoutOutcome:
    """Result of settling one submission."""
    id: int
    success: bool
    recipient: str
    amount: Optional[str] = None
    raw_amount: Optional[int] = None
    tx_reference: Optional[str] = None
    error: Optional[str] = None
    reconciliation_required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.success:
            data.pop("error")
        return data


@dataclass
class PayoutReport:
    results: List[PayoutOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def message(self) -> str:
        return f"Payout complete: {self.succeeded} successful, {self.failed} failed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class PayoutPreview:
    count: int
    total_amount: str
    items: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _normalize_ids(submission_ids: Optional[Iterable[int]]) -> List[int]:
    ids = sorted({int(i) for i in (submission_ids or [])})
    if not ids:
        raise ValidationError("Submission IDs array required")
    return ids


class PayoutEngine:
    """Disburses campaign rewards from the treasury."""

    def __init__(
        self,
        db: AsyncSession,
        ledger: Ledger,
        engine: Optional[AsyncEngine] = None
    ):
        self.db = db
        self.ledger = ledger
        self.engine = engine
        self.logger = logger.bind(service="payout_engine")

    async def _select_payable(self, ids: List[int]) -> List[PayoutItem]:
        result = await self.db.execute(
            select(
                Submission.id,
                Submission.payout_address,
                Submission.submitter_username,
                Campaign.reward_amount,
            )
            .join(Campaign, Submission.campaign_id == Campaign.id)
            .where(
                Submission.id.in_(ids),
                Submission.status.in_(PAYABLE_STATUSES)
            )
            .order_by(Submission.id)
        )
        return [
            PayoutItem(
                submission_id=row.id,
                recipient=row.payout_address,
                reward_amount=row.reward_amount,
                submitter_username=row.submitter_username,
            )
            for row in result.all()
        ]

    async def simulate(self, submission_ids: Iterable[int]) -> PayoutPreview:
        """Preview what ``disburse`` would pay; touches neither chain nor rows."""
        ids = _normalize_ids(submission_ids)
        items = await self._select_payable(ids)
        decimals = self.ledger.decimals

        total_raw = 0
        preview = []
        for item in items:
            raw = to_base_units(item.reward_amount, decimals)
            total_raw += raw
            preview.append({
                "id": item.submission_id,
                "recipient": item.recipient,
                "amount": display_amount(raw, decimals),
                "raw_amount": raw,
                "submitter_username": item.submitter_username,
            })

        return PayoutPreview(
            count=len(preview),
            total_amount=display_amount(total_raw, decimals),
            items=preview,
        )

    async def disburse(self, submission_ids: Iterable[int]) -> PayoutReport:
        """
        Pay every payable submission among ``submission_ids``.

        Raises:
            ValidationError: empty id list
            NoEligibleSubmissionsError: none of the ids is eligible or winner
            TreasuryUnavailableError: treasury could not be resolved

        Per-item failures do not abort the batch; they are reported and the
        affected rows keep their status.
        """
        ids = _normalize_ids(submission_ids)

        async with treasury_lock(self.ledger.treasury_address(), self.engine):
            items = await self._select_payable(ids)
            if not items:
                raise NoEligibleSubmissionsError(len(ids))

            treasury = await self.ledger.resolve_treasury()
            self.logger.info(
                "Payout batch started",
                requested=len(ids),
                selected=len(items),
                treasury=treasury.address
            )

            report = PayoutReport()
            for item in items:
                report.results.append(await self._settle_to_completion(treasury, item))

        self.logger.info(
            "Payout batch finished",
            succeeded=report.succeeded,
            failed=report.failed
        )
        return report

    async def _settle_to_completion(self, treasury: TreasuryHandle, item: PayoutItem) -> PayoutOutcome:
        """
        Settle ``item`` even if the batch is cancelled meanwhile.

        The item runs in its own task. On cancellation that task is awaited
        to the end, with the lock still held, so a transfer already on chain
        is recorded before the cancellation propagates. Remaining items are
        not started.
        """
        task = asyncio.ensure_future(self._settle(treasury, item))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            self.logger.warning(
                "Payout batch cancelled, finishing in-flight transfer",
                submission_id=item.submission_id
            )
            while not task.done():
                try:
                    await asyncio.shield(task)
                except asyncio.CancelledError:
                    continue
            outcome = task.result()
            if not outcome.success and outcome.tx_reference:
                self.logger.error(
                    "Payout batch cancelled after transfer was submitted",
                    submission_id=item.submission_id,
                    signature=outcome.tx_reference,
                    error=outcome.error
                )
            else:
                self.logger.info(
                    "Payout batch cancelled",
                    submission_id=item.submission_id,
                    paid=outcome.success,
                    signature=outcome.tx_reference
                )
            raise

    async def _settle(self, treasury: TreasuryHandle, item: PayoutItem) -> PayoutOutcome:
        outcome = PayoutOutcome(
            id=item.submission_id,
            success=False,
            recipient=item.recipient
        )

        try:
            raw = to_base_units(item.reward_amount, self.ledger.decimals)
            if raw <= 0:
                raise ValidationError(
                    f"Reward amount {item.reward_amount} is below one base unit",
                    {"reward_amount": item.reward_amount}
                )
            outcome.raw_amount = raw
            outcome.amount = display_amount(raw, self.ledger.decimals)

            signature = await self.ledger.submit_transfer(treasury, item.recipient, raw)
            outcome.tx_reference = signature
            await self.ledger.wait_for_finality(signature)

        except SettlementError as e:
            outcome.error = e.message
            if e.signature:
                outcome.tx_reference = e.signature
            self.logger.warning(
                "Payout failed",
                submission_id=item.submission_id,
                signature=outcome.tx_reference,
                error=e.message
            )
            return outcome
        except RewardsException as e:
            outcome.error = e.message
            self.logger.warning("Payout failed", submission_id=item.submission_id, error=e.message)
            return outcome
        except Exception as e:
            outcome.error = str(e)
            self.logger.error(
                "Payout failed",
                submission_id=item.submission_id,
                signature=outcome.tx_reference,
                error=str(e),
                exc_info=True
            )
            return outcome

        await self._record_paid(outcome, signature)
        return outcome

    async def _record_paid(self, outcome: PayoutOutcome, signature: str) -> None:
        """Mark a confirmed transfer's row paid and commit it immediately."""
        try:
            result = await self.db.execute(
                update(Submission)
                .where(
                    Submission.id == outcome.id,
                    Submission.status.in_(PAYABLE_STATUSES)
                )
                .values(
                    status=SubmissionStatus.PAID,
                    tx_reference=signature,
                    paid_at=datetime.now(timezone.utc)
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise RuntimeError("submission is no longer payable")
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            outcome.error = f"Transfer confirmed but not recorded: {e}"
            outcome.reconciliation_required = True
            self.logger.error(
                "Confirmed transfer not recorded, reconciliation required",
                submission_id=outcome.id,
                signature=signature,
                raw_amount=outcome.raw_amount,
                error=str(e)
            )
            return

        outcome.success = True
        self.logger.info(
            "Submission paid",
            submission_id=outcome.id,
            signature=signature,
            raw_amount=outcome.raw_amount
        )


def total_amount(outcomes: Iterable[PayoutOutcome], decimals: int) -> Decimal:
    """Sum of amounts actually settled by successful outcomes."""
    return from_base_units(
        sum(o.raw_amount or 0 for o in outcomes if o.success),
        decimals
    )
