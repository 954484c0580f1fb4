"""
API dependencies for FastAPI endpoints.
Provides database sessions and the external collaborators used by routes.
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_rewards.core import database
from campaign_rewards.services.ledger import Ledger, get_ledger
from campaign_rewards.services.metrics_provider import MetricsProvider, TikTokMetricsProvider
from campaign_rewards.services.payout_engine import PayoutEngine


_metrics_provider: Optional[TikTokMetricsProvider] = None


async def get_database() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with database.get_async_session() as session:
        yield session


def get_ledger_dep() -> Ledger:
    """Settlement ledger for the configured treasury."""
    return get_ledger()


def get_metrics_provider() -> MetricsProvider:
    global _metrics_provider
    if _metrics_provider is None:
        _metrics_provider = TikTokMetricsProvider()
    return _metrics_provider


def get_payout_engine(
    db: AsyncSession = Depends(get_database),
    ledger: Ledger = Depends(get_ledger_dep)
) -> PayoutEngine:
    return PayoutEngine(db, ledger, database.get_engine())
