"""
Payout routes: treasury balance, batch disbursement, dry runs and
reconciliation of unrecorded settlements. All endpoints require admin auth.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

import structlog

from campaign_rewards.admin import require_admin_auth
from campaign_rewards.api.dependencies import get_database, get_ledger_dep, get_payout_engine
from campaign_rewards.api.schemas.payouts import (
    BalanceResponse,
    PayoutPreviewResponse,
    PayoutRequest,
    PayoutResponse,
    ReconciliationResponse,
    RepairRequest,
)
from campaign_rewards.api.schemas.submissions import SubmissionResponse
from campaign_rewards.core.config import settings
from campaign_rewards.services.ledger import Ledger, format_token_amount
from campaign_rewards.services.payout_engine import PayoutEngine
from campaign_rewards.services.reconciliation import ReconciliationService


logger = structlog.get_logger(__name__)

router = APIRouter(dependencies=[Depends(require_admin_auth)])


@router.get(
    "/balance",
    response_model=BalanceResponse,
    summary="Treasury Balance"
)
async def get_treasury_balance(ledger: Ledger = Depends(get_ledger_dep)):
    address = ledger.treasury_address()
    raw = await ledger.balance(address)
    return BalanceResponse(
        address=address,
        balance=format_token_amount(raw, ledger.decimals),
        raw=str(raw),
        symbol=settings.reward_token_symbol,
    )


@router.post(
    "",
    response_model=PayoutResponse,
    summary="Pay Winners",
    description="Transfer the campaign reward to every eligible or winner submission in the list"
)
async def disburse(
    request: PayoutRequest,
    engine: PayoutEngine = Depends(get_payout_engine)
):
    logger.info("Payout requested", submission_ids=request.submission_ids)
    report = await engine.disburse(request.submission_ids)
    return report.to_dict()


@router.post(
    "/simulate",
    response_model=PayoutPreviewResponse,
    summary="Simulate Payout"
)
async def simulate(
    request: PayoutRequest,
    engine: PayoutEngine = Depends(get_payout_engine)
):
    preview = await engine.simulate(request.submission_ids)
    return preview.to_dict()


@router.get(
    "/reconcile",
    response_model=ReconciliationResponse,
    summary="Find Unrecorded Settlements",
    description="Match unpaid submissions against recent treasury transfers"
)
async def find_unrecorded_settlements(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: AsyncSession = Depends(get_database),
    ledger: Ledger = Depends(get_ledger_dep)
):
    matches = await ReconciliationService(db, ledger).find_unrecorded_settlements(limit)
    return ReconciliationResponse(
        count=len(matches),
        matches=[m.to_dict() for m in matches],
    )


@router.post(
    "/reconcile/{submission_id}",
    response_model=SubmissionResponse,
    summary="Repair Submission",
    description="Record a confirmed treasury transfer as the settlement of a submission"
)
async def repair_submission(
    request: RepairRequest,
    submission_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_database),
    ledger: Ledger = Depends(get_ledger_dep)
):
    return await ReconciliationService(db, ledger).repair(submission_id, request.tx_reference)
