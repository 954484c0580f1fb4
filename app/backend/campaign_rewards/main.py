"""
Main FastAPI application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.responses import JSONResponse

import structlog

from campaign_rewards.api.middleware import add_exception_handlers, add_middleware
from campaign_rewards.api.routes import campaigns, payouts, sessions, submissions
from campaign_rewards.api.schemas.common import HealthCheckResponse
from campaign_rewards.core import database
from campaign_rewards.core.config import settings
from campaign_rewards.core.logging import setup_logging
from campaign_rewards.services.ledger import shutdown_ledger

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Campaign Rewards Backend", version=settings.app_version)

    if database.async_engine is None:
        await database.init_database()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    await shutdown_ledger()
    await database.close_database()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        description="""
        Campaign rewards backend: TikTok video submissions are checked against
        campaign thresholds and winners are paid from a Solana treasury.

        ## Authentication

        Operator endpoints require the admin API key:
        ```
        Authorization: Bearer <admin-api-key>
        ```

        ## Error Handling

        Errors are returned as `{"error": ..., "code": ..., "details": {...}}`.
        """,
        version=settings.app_version,
        lifespan=lifespan,
    )

    add_middleware(app)
    add_exception_handlers(app)

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        tags=["System"],
        summary="Health Check"
    )
    async def health_check():
        if await database.DatabaseManager.health_check():
            return HealthCheckResponse(version=settings.app_version)

        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "services": {"database": "unhealthy", "api": "healthy"},
            }
        )

    app.include_router(sessions.router, prefix="/auth", tags=["Sessions"])
    app.include_router(campaigns.router, prefix="/campaigns", tags=["Campaigns"])
    app.include_router(submissions.router, prefix="/submissions", tags=["Submissions"])
    app.include_router(payouts.router, prefix="/admin/payout", tags=["Payouts"])

    logger.info("FastAPI application created successfully")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "campaign_rewards.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
