"""
Common Pydantic schemas for API responses and requests.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned for every handled failure."""
    error: str
    code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = "0.1.0"
    services: Dict[str, str] = Field(
        default_factory=lambda: {
            "database": "healthy",
            "api": "healthy"
        }
    )


TokenAmountField = Field(
    pattern=r"^\d+(\.\d+)?$",
    max_length=80,
    description="Token amount as a decimal string"
)
