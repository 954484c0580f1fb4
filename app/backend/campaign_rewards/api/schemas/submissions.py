"""
Submission schemas.

Request bodies accept both snake_case and the camelCase names used by the
web client.
"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from campaign_rewards.models.submission import SubmissionStatus


class SubmissionCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Presence is checked by the service so the error text matches the web client
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    content_url: Optional[str] = Field(default=None, alias="videoUrl")
    payout_address: Optional[str] = Field(default=None, alias="walletAddress")
    campaign_id: Optional[int] = Field(default=None, alias="campaignId")


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    campaign_id: int
    content_id: str
    content_url: str
    submitter_identity: str
    submitter_username: Optional[str] = None
    payout_address: str
    views: int
    likes: int
    comments: int
    shares: int
    status: SubmissionStatus
    tx_reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SubmissionWithCampaign(SubmissionResponse):
    campaign_name: Optional[str] = None
    reward_amount: Optional[str] = None


class SubmissionCreateResponse(BaseModel):
    submission: SubmissionResponse
    eligible: bool
    message: str


class StatusUpdateRequest(BaseModel):
    # Plain string so unknown values produce the API's own validation error
    status: Optional[str] = None


class BatchStatusUpdateRequest(BaseModel):
    ids: List[int] = Field(default_factory=list)
    status: Optional[str] = None


class BatchStatusUpdateResponse(BaseModel):
    success: bool = True
    updated: List[int]
    skipped: List[int]


class SubmissionStatsResponse(BaseModel):
    total: int = 0
    pending: int = 0
    eligible: int = 0
    winner: int = 0
    paid: int = 0
    rejected: int = 0

    @classmethod
    def from_counts(cls, counts: Dict[str, int]) -> "SubmissionStatsResponse":
        return cls(**counts)
