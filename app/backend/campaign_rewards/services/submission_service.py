"""
Submission workflow - intake, evaluation and operator status overrides.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, func, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

import structlog

from campaign_rewards.core.config import settings
from campaign_rewards.core.exceptions import (
    DuplicateSubmissionError,
    InvalidStatusTransitionError,
    SubmissionNotFoundError,
    ValidationError,
)
from campaign_rewards.models.campaign import Campaign
from campaign_rewards.models.submission import (
    Submission, SubmissionStatus, can_override, evaluated_status
)
from campaign_rewards.services.campaign_service import CampaignService
from campaign_rewards.services.eligibility import (
    ContentMetrics, Thresholds, evaluate, describe_thresholds
)
from campaign_rewards.services.metrics_provider import (
    ContentNotFound, MetricsFound, MetricsProvider, ProviderUnavailable,
    extract_content_id
)
from campaign_rewards.services.session_service import SessionService
from campaign_rewards.utils.validation import is_valid_solana_address

logger = structlog.get_logger(__name__)


@dataclass
class SubmissionResult:
    submission: Submission
    eligible: bool
    message: str


@dataclass
class BatchOverrideResult:
    updated: List[int]
    skipped: List[int]


def eligibility_message(eligible: bool, campaign: Campaign) -> str:
    if eligible:
        return (
            f"Congratulations! Your video is eligible for "
            f"{campaign.reward_amount} {settings.reward_token_symbol}."
        )
    requirements = describe_thresholds(Thresholds.for_campaign(campaign))
    return f"Your video does not meet the criteria. Required: {requirements}."


class SubmissionService:
    """Service for creating and managing submissions."""

    def __init__(self, db: AsyncSession, provider: Optional[MetricsProvider] = None):
        self.db = db
        self.provider = provider
        self.campaigns = CampaignService(db)
        self.sessions = SessionService(db)

    async def create_submission(
        self,
        session_id: str,
        content_url: str,
        payout_address: str,
        campaign_id: Optional[int] = None
    ) -> SubmissionResult:
        """
        Evaluate a content item against a campaign and record the outcome.

        The new row enters as ``eligible`` or ``rejected``. When the metrics
        provider is unreachable the submission is recorded with a zero
        snapshot and is therefore rejected unless the campaign has no
        thresholds.
        """
        if not session_id or not content_url or not payout_address:
            raise ValidationError("Session ID, video URL, and wallet address required")

        if not is_valid_solana_address(payout_address):
            raise ValidationError(
                "Invalid Solana wallet address",
                {"payout_address": payout_address}
            )

        session = await self.sessions.authenticate(session_id)
        campaign = await self._resolve_campaign(campaign_id)

        content_id = extract_content_id(content_url)
        if not content_id:
            raise ValidationError(
                "Could not extract video ID from URL. Please use a direct TikTok video URL.",
                {"content_url": content_url}
            )

        existing = await self.db.scalar(
            select(Submission.id).where(Submission.content_id == content_id)
        )
        if existing is not None:
            raise DuplicateSubmissionError(content_id)

        metrics = await self._fetch_metrics(content_id, session.access_token or "")
        eligible = evaluate(metrics, Thresholds.for_campaign(campaign))
        status = evaluated_status(eligible)

        submission = Submission(
            campaign_id=campaign.id,
            content_id=content_id,
            content_url=content_url,
            submitter_identity=session.external_account_id or "",
            submitter_username=session.username,
            payout_address=payout_address,
            views=metrics.views,
            likes=metrics.likes,
            comments=metrics.comments,
            shares=metrics.shares,
            status=status,
        )
        self.db.add(submission)
        try:
            await self.db.flush()
            await self.db.refresh(submission)
        except IntegrityError:
            # Lost a race with a concurrent submission of the same video
            await self.db.rollback()
            raise DuplicateSubmissionError(content_id)

        logger.info(
            "Submission recorded",
            submission_id=submission.id,
            campaign_id=campaign.id,
            content_id=content_id,
            status=status.value
        )
        return SubmissionResult(
            submission=submission,
            eligible=eligible,
            message=eligibility_message(eligible, campaign)
        )

    async def _resolve_campaign(self, campaign_id: Optional[int]) -> Campaign:
        if campaign_id is not None:
            campaign = await self.campaigns.get_active_campaign_by_id(campaign_id)
            if campaign is None:
                raise ValidationError(
                    "Campaign not found or not active",
                    {"campaign_id": campaign_id}
                )
            return campaign

        campaign = await self.campaigns.get_active_campaign()
        if campaign is None:
            raise ValidationError("No active campaign")
        return campaign

    async def _fetch_metrics(self, content_id: str, credential: str) -> ContentMetrics:
        if self.provider is None:
            raise RuntimeError("SubmissionService requires a metrics provider to create submissions")

        result = await self.provider.fetch(content_id, credential)
        if isinstance(result, MetricsFound):
            return result.metrics
        if isinstance(result, ContentNotFound):
            raise ValidationError(
                "Video not found or does not belong to your account. "
                "Make sure you are logged in with the correct TikTok account.",
                {"content_id": content_id}
            )
        if isinstance(result, ProviderUnavailable):
            logger.warning(
                "Metrics provider unavailable, recording zero metrics",
                content_id=content_id,
                reason=result.reason
            )
            return ContentMetrics.zero()
        raise TypeError(f"Unexpected metrics result: {result!r}")

    # -- queries -----------------------------------------------------------

    async def get_submission(self, submission_id: int) -> Submission:
        submission = await self.db.get(Submission, submission_id)
        if submission is None:
            raise SubmissionNotFoundError(submission_id)
        return submission

    async def list_submissions(
        self,
        campaign_id: Optional[int] = None,
        status: Optional[SubmissionStatus] = None
    ) -> List[Submission]:
        """Submissions with their campaign, newest first."""
        query = select(Submission).options(selectinload(Submission.campaign))
        if campaign_id is not None:
            query = query.where(Submission.campaign_id == campaign_id)
        if status is not None:
            query = query.where(Submission.status == status)
        query = query.order_by(Submission.created_at.desc(), Submission.id.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_stats(self) -> Dict[str, int]:
        """Submission counts per status."""
        columns = [func.count(Submission.id).label("total")]
        for status in SubmissionStatus:
            columns.append(
                func.sum(case((Submission.status == status, 1), else_=0)).label(status.value)
            )
        row = (await self.db.execute(select(*columns))).one()
        stats = {"total": row.total or 0}
        for status in SubmissionStatus:
            stats[status.value] = getattr(row, status.value) or 0
        return stats

    # -- operator overrides --------------------------------------------------

    async def override_status(self, submission_id: int, status: SubmissionStatus) -> Submission:
        """
        Force a submission into ``status``.

        Terminal submissions are never changed and ``paid`` cannot be set by
        hand; settlement and reconciliation repair are the only ways to pay.
        """
        submission = await self.get_submission(submission_id)
        current = submission.status

        if not can_override(current, status):
            reason = (
                "use the payout or reconciliation flow"
                if status == SubmissionStatus.PAID
                else "submission is final"
            )
            raise InvalidStatusTransitionError(current.value, status.value, reason)

        if current != status:
            submission.status = status
            await self.db.flush()
            await self.db.refresh(submission)
            logger.info(
                "Submission status overridden",
                submission_id=submission_id,
                previous=current.value,
                status=status.value
            )
        return submission

    async def batch_override_status(
        self,
        submission_ids: Iterable[int],
        status: SubmissionStatus
    ) -> BatchOverrideResult:
        """Apply ``override_status`` to many ids; refused or unknown ids are skipped."""
        ids = sorted(set(submission_ids))
        if not ids:
            raise ValidationError("IDs array required")
        if status == SubmissionStatus.PAID:
            raise InvalidStatusTransitionError(
                "*", status.value, "use the payout or reconciliation flow"
            )

        result = await self.db.execute(select(Submission).where(Submission.id.in_(ids)))
        found = {s.id: s for s in result.scalars().all()}

        updated, skipped = [], []
        for submission_id in ids:
            submission = found.get(submission_id)
            if submission is None or not can_override(submission.status, status):
                skipped.append(submission_id)
                continue
            submission.status = status
            updated.append(submission_id)

        await self.db.flush()
        logger.info(
            "Batch status override",
            status=status.value,
            updated=len(updated),
            skipped=len(skipped)
        )
        return BatchOverrideResult(updated=updated, skipped=skipped)

