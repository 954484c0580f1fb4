"""
Campaign store - reward programs and their thresholds.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from campaign_rewards.core.exceptions import (
    CampaignNotFoundError, ValidationError
)
from campaign_rewards.models.campaign import Campaign
from campaign_rewards.models.submission import Submission, SubmissionStatus
from campaign_rewards.utils.validation import is_valid_token_amount

logger = structlog.get_logger(__name__)

THRESHOLD_FIELDS = ("min_views", "min_likes", "min_comments", "min_shares")
UPDATABLE_FIELDS = ("name", "reward_amount", "max_winners", "is_active") + THRESHOLD_FIELDS

DEFAULT_CAMPAIGN = {
    "name": "Campaign TikTok #1",
    "min_views": 1000,
    "min_likes": 50,
    "reward_amount": "10",
    "max_winners": 50,
}


class CampaignService:
    """Service for managing reward campaigns."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_campaign(self) -> Optional[Campaign]:
        """The most recently created active campaign."""
        result = await self.db.execute(
            select(Campaign)
            .where(Campaign.is_active.is_(True))
            .order_by(Campaign.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_active_campaign_by_id(self, campaign_id: int) -> Optional[Campaign]:
        result = await self.db.execute(
            select(Campaign).where(
                Campaign.id == campaign_id,
                Campaign.is_active.is_(True)
            )
        )
        return result.scalar_one_or_none()

    async def get_campaign(self, campaign_id: int) -> Campaign:
        campaign = await self.db.get(Campaign, campaign_id)
        if not campaign:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    async def list_campaigns(self) -> List[Campaign]:
        result = await self.db.execute(select(Campaign).order_by(Campaign.id.desc()))
        return list(result.scalars().all())

    async def create_campaign(
        self,
        name: str,
        reward_amount: str,
        min_views: int = 0,
        min_likes: int = 0,
        min_comments: int = 0,
        min_shares: int = 0,
        max_winners: int = 100,
        is_active: bool = True,
    ) -> Campaign:
        """Create a campaign after validating its configuration."""
        values = {
            "name": name,
            "reward_amount": str(reward_amount),
            "min_views": min_views,
            "min_likes": min_likes,
            "min_comments": min_comments,
            "min_shares": min_shares,
            "max_winners": max_winners,
            "is_active": is_active,
        }
        self._validate(values)

        campaign = Campaign(**values)
        self.db.add(campaign)
        await self.db.flush()
        await self.db.refresh(campaign)

        logger.info(
            "Campaign created",
            campaign_id=campaign.id,
            reward_amount=campaign.reward_amount
        )
        return campaign

    async def update_campaign(self, campaign_id: int, **changes: Any) -> Campaign:
        """Apply a partial update; fields passed as None are left unchanged."""
        campaign = await self.get_campaign(campaign_id)

        updates = {
            key: value for key, value in changes.items()
            if key in UPDATABLE_FIELDS and value is not None
        }
        self._validate(updates)

        for key, value in updates.items():
            if key == "reward_amount":
                value = str(value)
            setattr(campaign, key, value)

        await self.db.flush()
        await self.db.refresh(campaign)
        logger.info("Campaign updated", campaign_id=campaign_id, fields=sorted(updates))
        return campaign

    async def delete_campaign(self, campaign_id: int) -> int:
        """
        Delete a campaign together with its unpaid submissions.

        Refused while the campaign has paid submissions, which are the audit
        trail of settled transfers. Returns the number of submissions removed.
        """
        campaign = await self.get_campaign(campaign_id)

        paid = await self.db.scalar(
            select(func.count(Submission.id)).where(
                Submission.campaign_id == campaign_id,
                Submission.status == SubmissionStatus.PAID
            )
        )
        if paid:
            raise ValidationError(
                "Campaign has paid submissions and cannot be deleted",
                {"campaign_id": campaign_id, "paid_submissions": paid},
                code="CAMPAIGN_HAS_PAYOUTS"
            )

        result = await self.db.execute(
            delete(Submission).where(Submission.campaign_id == campaign_id)
        )
        await self.db.delete(campaign)
        await self.db.flush()

        logger.info(
            "Campaign deleted",
            campaign_id=campaign_id,
            submissions_removed=result.rowcount
        )
        return result.rowcount or 0

    async def ensure_default_campaign(self) -> Optional[Campaign]:
        """Seed the default campaign when the table is empty."""
        count = await self.db.scalar(select(func.count(Campaign.id)))
        if count:
            return None
        return await self.create_campaign(**DEFAULT_CAMPAIGN)

    @staticmethod
    def _validate(values: Dict[str, Any]) -> None:
        if "name" in values and not str(values["name"]).strip():
            raise ValidationError("Name and reward amount required", {"field": "name"})
        if "reward_amount" in values and not is_valid_token_amount(values["reward_amount"]):
            raise ValidationError(
                "Reward amount must be a positive decimal",
                {"reward_amount": str(values["reward_amount"])}
            )
        for field in THRESHOLD_FIELDS:
            if field in values and values[field] is not None and int(values[field]) < 0:
                raise ValidationError(f"{field} must be non-negative", {field: values[field]})
        if "max_winners" in values and values["max_winners"] is not None and int(values["max_winners"]) < 1:
            raise ValidationError("max_winners must be positive", {"max_winners": values["max_winners"]})
