"""
Session routes: identity lookup, logout and the submitter's video list.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_rewards.api.dependencies import get_database, get_metrics_provider
from campaign_rewards.api.schemas.common import SuccessResponse
from campaign_rewards.services.metrics_provider import MetricsProvider
from campaign_rewards.services.session_service import SessionService


router = APIRouter()


@router.get("/session/{session_id}", summary="Verify Session")
async def get_session(session_id: str, db: AsyncSession = Depends(get_database)):
    session = await SessionService(db).get_session(session_id)
    return {
        "user": {
            "open_id": session.external_account_id,
            "username": session.username,
        }
    }


@router.delete("/session/{session_id}", response_model=SuccessResponse, summary="Logout")
async def delete_session(session_id: str, db: AsyncSession = Depends(get_database)):
    await SessionService(db).delete_session(session_id)
    return SuccessResponse()


@router.get("/videos/{session_id}", summary="List Account Videos")
async def list_videos(
    session_id: str,
    cursor: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_database),
    provider: MetricsProvider = Depends(get_metrics_provider)
):
    page = await SessionService(db).list_videos(session_id, provider, cursor)
    return {
        "videos": [
            {
                "id": item.id,
                "title": item.title,
                "description": item.description,
                "duration": item.duration,
                "cover_url": item.cover_url,
                "share_url": item.share_url,
                "create_time": item.create_time,
                "views": item.metrics.views,
                "likes": item.metrics.likes,
                "comments": item.metrics.comments,
                "shares": item.metrics.shares,
            }
            for item in page.items
        ],
        "cursor": page.cursor,
        "has_more": page.has_more,
    }
