"""
Campaign schemas.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import TokenAmountField


class CampaignBase(BaseModel):
    name: str = Field(min_length=1, max_length=200, description="Campaign display name")
    min_views: int = Field(default=0, ge=0)
    min_likes: int = Field(default=0, ge=0)
    min_comments: int = Field(default=0, ge=0)
    min_shares: int = Field(default=0, ge=0)
    reward_amount: str = TokenAmountField
    max_winners: int = Field(default=100, ge=1)

    @field_validator("reward_amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        # Numbers are accepted but stored as their decimal text
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class CampaignCreate(CampaignBase):
    is_active: bool = True


class CampaignUpdate(BaseModel):
    """Partial update; omitted fields keep their value."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    min_views: Optional[int] = Field(default=None, ge=0)
    min_likes: Optional[int] = Field(default=None, ge=0)
    min_comments: Optional[int] = Field(default=None, ge=0)
    min_shares: Optional[int] = Field(default=None, ge=0)
    reward_amount: Optional[str] = Field(default=None, pattern=r"^\d+(\.\d+)?$", max_length=80)
    max_winners: Optional[int] = Field(default=None, ge=1)
    is_active: Optional[bool] = None

    @field_validator("reward_amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class CampaignResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    min_views: int
    min_likes: int
    min_comments: int
    min_shares: int
    reward_amount: str
    max_winners: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CampaignDeleteResponse(BaseModel):
    success: bool = True
    submissions_removed: int = 0
