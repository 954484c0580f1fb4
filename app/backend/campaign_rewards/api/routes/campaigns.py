"""
Campaign routes: the public active-campaign lookup and admin CRUD.
"""

from typing import List

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from campaign_rewards.admin import require_admin_auth
from campaign_rewards.api.dependencies import get_database
from campaign_rewards.api.schemas.campaigns import (
    CampaignCreate,
    CampaignDeleteResponse,
    CampaignResponse,
    CampaignUpdate,
)
from campaign_rewards.core.exceptions import NotFoundError
from campaign_rewards.services.campaign_service import CampaignService


logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/active",
    response_model=CampaignResponse,
    summary="Get Active Campaign",
    description="The most recently created active campaign"
)
async def get_active_campaign(db: AsyncSession = Depends(get_database)):
    campaign = await CampaignService(db).get_active_campaign()
    if campaign is None:
        raise NotFoundError("No active campaign")
    return campaign


@router.get(
    "",
    response_model=List[CampaignResponse],
    summary="List Campaigns",
    dependencies=[Depends(require_admin_auth)]
)
async def list_campaigns(db: AsyncSession = Depends(get_database)):
    return await CampaignService(db).list_campaigns()


@router.post(
    "",
    response_model=CampaignResponse,
    summary="Create Campaign",
    dependencies=[Depends(require_admin_auth)]
)
async def create_campaign(
    request: CampaignCreate,
    db: AsyncSession = Depends(get_database)
):
    return await CampaignService(db).create_campaign(**request.model_dump())


@router.put(
    "/{campaign_id}",
    response_model=CampaignResponse,
    summary="Update Campaign",
    dependencies=[Depends(require_admin_auth)]
)
async def update_campaign(
    request: CampaignUpdate,
    campaign_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_database)
):
    return await CampaignService(db).update_campaign(
        campaign_id, **request.model_dump(exclude_unset=True)
    )


@router.delete(
    "/{campaign_id}",
    response_model=CampaignDeleteResponse,
    summary="Delete Campaign",
    description="Deletes the campaign and its unpaid submissions; refused once any are paid",
    dependencies=[Depends(require_admin_auth)]
)
async def delete_campaign(
    campaign_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_database)
):
    removed = await CampaignService(db).delete_campaign(campaign_id)
    return CampaignDeleteResponse(submissions_removed=removed)
