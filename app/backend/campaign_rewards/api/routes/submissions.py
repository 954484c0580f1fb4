"""
Submission routes: public intake plus admin listing, stats and overrides.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from campaign_rewards.admin import require_admin_auth
from campaign_rewards.api.dependencies import get_database, get_metrics_provider
from campaign_rewards.api.schemas.submissions import (
    BatchStatusUpdateRequest,
    BatchStatusUpdateResponse,
    StatusUpdateRequest,
    SubmissionCreate,
    SubmissionCreateResponse,
    SubmissionResponse,
    SubmissionStatsResponse,
    SubmissionWithCampaign,
)
from campaign_rewards.core.exceptions import ValidationError
from campaign_rewards.models.submission import SubmissionStatus
from campaign_rewards.services.metrics_provider import MetricsProvider
from campaign_rewards.services.submission_service import SubmissionService


logger = structlog.get_logger(__name__)

router = APIRouter()


def parse_status(value: Optional[str]) -> SubmissionStatus:
    try:
        return SubmissionStatus.parse(value or "")
    except ValueError as e:
        raise ValidationError("Invalid status", {"status": value, "reason": str(e)})


@router.post(
    "",
    response_model=SubmissionCreateResponse,
    summary="Submit Video",
    description="Evaluate a TikTok video against the campaign and record the result"
)
async def create_submission(
    request: SubmissionCreate,
    db: AsyncSession = Depends(get_database),
    provider: MetricsProvider = Depends(get_metrics_provider)
):
    result = await SubmissionService(db, provider).create_submission(
        session_id=request.session_id,
        content_url=request.content_url,
        payout_address=request.payout_address,
        campaign_id=request.campaign_id,
    )
    return SubmissionCreateResponse(
        submission=SubmissionResponse.model_validate(result.submission),
        eligible=result.eligible,
        message=result.message,
    )


@router.get(
    "",
    response_model=List[SubmissionWithCampaign],
    summary="List Submissions",
    dependencies=[Depends(require_admin_auth)]
)
async def list_submissions(
    campaign_id: Optional[int] = Query(None, ge=1),
    status: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_database)
):
    status_filter = parse_status(status) if status else None
    submissions = await SubmissionService(db).list_submissions(campaign_id, status_filter)

    items = []
    for submission in submissions:
        item = SubmissionWithCampaign.model_validate(submission)
        item.campaign_name = submission.campaign.name
        item.reward_amount = submission.campaign.reward_amount
        items.append(item)
    return items


@router.get(
    "/stats",
    response_model=SubmissionStatsResponse,
    summary="Submission Statistics",
    dependencies=[Depends(require_admin_auth)]
)
async def get_submission_stats(db: AsyncSession = Depends(get_database)):
    counts = await SubmissionService(db).get_stats()
    return SubmissionStatsResponse.from_counts(counts)


@router.patch(
    "/{submission_id}",
    response_model=SubmissionResponse,
    summary="Override Submission Status",
    dependencies=[Depends(require_admin_auth)]
)
async def update_submission_status(
    request: StatusUpdateRequest,
    submission_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_database)
):
    status = parse_status(request.status)
    return await SubmissionService(db).override_status(submission_id, status)


@router.post(
    "/batch-status",
    response_model=BatchStatusUpdateResponse,
    summary="Batch Override Submission Status",
    dependencies=[Depends(require_admin_auth)]
)
async def batch_update_status(
    request: BatchStatusUpdateRequest,
    db: AsyncSession = Depends(get_database)
):
    if not request.ids:
        raise ValidationError("IDs array required")
    status = parse_status(request.status)
    result = await SubmissionService(db).batch_override_status(request.ids, status)
    return BatchStatusUpdateResponse(updated=result.updated, skipped=result.skipped)
