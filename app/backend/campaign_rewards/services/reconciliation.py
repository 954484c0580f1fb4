"""
Reconciliation - finds treasury transfers that settled a submission whose row
was never marked paid, and repairs such rows on operator request.

Nothing here runs automatically.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from campaign_rewards.core.config import settings
from campaign_rewards.core.exceptions import (
    InvalidStatusTransitionError, ValidationError
)
from campaign_rewards.models.campaign import Campaign
from campaign_rewards.models.submission import (
    PAYABLE_STATUSES, Submission, SubmissionStatus, can_transition
)
from campaign_rewards.services.ledger import Ledger, TransactionState, to_base_units
from campaign_rewards.services.submission_service import SubmissionService
from campaign_rewards.utils.validation import SolanaValidator

logger = structlog.get_logger(__name__)


@dataclass
class ReconciliationMatch:
    """An unpaid submission and the treasury transfer that appears to settle it."""
    submission_id: int
    recipient: str
    raw_amount: int
    tx_reference: str
    block_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["block_time"] = self.block_time.isoformat() if self.block_time else None
        return data


class ReconciliationService:
    """Cross-references local payout state with the treasury's history."""

    def __init__(self, db: AsyncSession, ledger: Ledger):
        self.db = db
        self.ledger = ledger

    async def _recorded_signatures(self) -> set:
        result = await self.db.execute(
            select(Submission.tx_reference).where(Submission.tx_reference.is_not(None))
        )
        return {row[0] for row in result.all()}

    async def find_unrecorded_settlements(
        self,
        limit: Optional[int] = None
    ) -> List[ReconciliationMatch]:
        """
        Match unpaid payable submissions to recent outbound transfers.

        A transfer matches when its destination and raw amount equal what the
        payout engine would have sent for the submission. Signatures already
        recorded on a submission are ignored and each transfer is attributed
        to at most one submission, lowest id first.
        """
        limit = limit or settings.reconciliation_scan_limit
        transfers = await self.ledger.recent_outbound_transfers(limit)
        recorded = await self._recorded_signatures()
        unclaimed = [t for t in transfers if t.signature not in recorded]
        if not unclaimed:
            return []

        result = await self.db.execute(
            select(Submission.id, Submission.payout_address, Campaign.reward_amount)
            .join(Campaign, Submission.campaign_id == Campaign.id)
            .where(Submission.status.in_(PAYABLE_STATUSES))
            .order_by(Submission.id)
        )

        matches = []
        used = set()
        for row in result.all():
            try:
                raw = to_base_units(row.reward_amount, self.ledger.decimals)
                destination = self.ledger.destination_for(row.payout_address)
            except (ValidationError, ValueError) as e:
                logger.warning("Skipping unmatchable submission", submission_id=row.id, error=str(e))
                continue

            for transfer in unclaimed:
                key = (transfer.signature, transfer.destination, transfer.amount)
                if key in used:
                    continue
                if transfer.destination == destination and transfer.amount == raw:
                    used.add(key)
                    matches.append(ReconciliationMatch(
                        submission_id=row.id,
                        recipient=row.payout_address,
                        raw_amount=raw,
                        tx_reference=transfer.signature,
                        block_time=transfer.block_time,
                    ))
                    break

        logger.info(
            "Reconciliation scan finished",
            transfers_scanned=len(transfers),
            matches=len(matches)
        )
        return matches

    async def repair(self, submission_id: int, tx_reference: str) -> Submission:
        """
        Record ``tx_reference`` as the settlement of an unpaid submission.

        The signature must be confirmed on chain, not already recorded on any
        submission, and must carry a treasury transfer of this submission's
        reward to its payout address.
        """
        if not SolanaValidator.is_valid_signature(tx_reference):
            raise ValidationError("Invalid transaction signature", {"tx_reference": tx_reference})

        submission = await SubmissionService(self.db).get_submission(submission_id)
        if not can_transition(submission.status, SubmissionStatus.PAID):
            raise InvalidStatusTransitionError(
                submission.status.value,
                SubmissionStatus.PAID.value,
                "only eligible or winner submissions can be repaired"
            )

        owner = await self.db.scalar(
            select(Submission.id).where(Submission.tx_reference == tx_reference)
        )
        if owner is not None:
            raise ValidationError(
                "Transaction already recorded for another submission",
                {"tx_reference": tx_reference, "submission_id": owner},
                code="TX_ALREADY_RECORDED"
            )

        state = await self.ledger.transaction_status(tx_reference)
        if state != TransactionState.CONFIRMED:
            raise ValidationError(
                f"Transaction is not confirmed on chain ({state.value})",
                {"tx_reference": tx_reference, "state": state.value},
                code="TX_NOT_CONFIRMED"
            )

        await self._check_settles(submission, tx_reference)

        submission.status = SubmissionStatus.PAID
        submission.tx_reference = tx_reference
        submission.paid_at = datetime.now(timezone.utc)
        await self.db.flush()
        await self.db.refresh(submission)

        logger.warning(
            "Submission repaired from ledger",
            submission_id=submission_id,
            signature=tx_reference
        )
        return submission

    async def _check_settles(self, submission: Submission, tx_reference: str) -> None:
        """Require a treasury transfer of the reward to the payout address in ``tx_reference``."""
        campaign = await self.db.get(Campaign, submission.campaign_id)
        raw = to_base_units(campaign.reward_amount, self.ledger.decimals)
        destination = self.ledger.destination_for(submission.payout_address)

        transfers = await self.ledger.settlement_transfers(tx_reference)
        if any(t.destination == destination and t.amount == raw for t in transfers):
            return

        raise ValidationError(
            "Transaction does not pay this submission's reward from the treasury",
            {
                "tx_reference": tx_reference,
                "expected_destination": destination,
                "expected_amount": raw,
                "transfers": [{"destination": t.destination, "amount": t.amount} for t in transfers],
            },
            code="TX_MISMATCH"
        )
