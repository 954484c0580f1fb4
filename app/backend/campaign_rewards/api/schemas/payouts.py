"""
Payout and reconciliation schemas.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class PayoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    submission_ids: List[int] = Field(default_factory=list, alias="submissionIds")


class PayoutOutcomeResponse(BaseModel):
    id: int
    success: bool
    recipient: str
    amount: Optional[str] = None
    raw_amount: Optional[int] = None
    tx_reference: Optional[str] = None
    error: Optional[str] = None
    reconciliation_required: bool = False


class PayoutResponse(BaseModel):
    message: str
    succeeded: int
    failed: int
    results: List[PayoutOutcomeResponse]


class PayoutPreviewItem(BaseModel):
    id: int
    recipient: str
    amount: str
    raw_amount: int
    submitter_username: Optional[str] = None


class PayoutPreviewResponse(BaseModel):
    count: int
    total_amount: str = Field(serialization_alias="totalAmount")
    items: List[PayoutPreviewItem]


class BalanceResponse(BaseModel):
    address: str
    balance: str = Field(description="Balance in token units, truncated to 4 decimals")
    raw: str = Field(description="Balance in base units")
    symbol: str


class ReconciliationMatchResponse(BaseModel):
    submission_id: int
    recipient: str
    raw_amount: int
    tx_reference: str
    block_time: Optional[datetime] = None


class ReconciliationResponse(BaseModel):
    count: int
    matches: List[ReconciliationMatchResponse]


class RepairRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tx_reference: str = Field(min_length=1, alias="txReference")
