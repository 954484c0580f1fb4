"""
Session lookup - read access to sessions written by the auth collaborator.
"""

from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from campaign_rewards.core.exceptions import AuthenticationError, NotFoundError
from campaign_rewards.models.session import UserSession
from campaign_rewards.services.metrics_provider import ContentPage, MetricsProvider

logger = structlog.get_logger(__name__)


class SessionService:
    """Resolves opaque session ids to submitter identity and credential."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find(self, session_id: str) -> Optional[UserSession]:
        if not session_id:
            return None
        return await self.db.get(UserSession, session_id)

    async def authenticate(self, session_id: str) -> UserSession:
        """Session for a submission request; unknown ids are an auth failure."""
        session = await self.find(session_id)
        if session is None:
            logger.info("Unknown session presented", session_id=session_id)
            raise AuthenticationError("Invalid session")
        return session

    async def get_session(self, session_id: str) -> UserSession:
        session = await self.find(session_id)
        if session is None:
            raise NotFoundError("Session not found", {"session_id": session_id})
        return session

    async def delete_session(self, session_id: str) -> bool:
        result = await self.db.execute(
            delete(UserSession).where(UserSession.id == session_id)
        )
        await self.db.flush()
        return bool(result.rowcount)

    async def list_videos(
        self,
        session_id: str,
        provider: MetricsProvider,
        cursor: Optional[int] = None
    ) -> ContentPage:
        """Recent videos of the account behind the session."""
        session = await self.get_session(session_id)
        return await provider.list_content(session.access_token or "", cursor)
