"""
Shared fixtures: a throwaway SQLite database per test plus in-memory doubles
for the settlement ledger and the metrics provider.
"""

import asyncio
from typing import Dict, List, Optional, Set

import pytest

from campaign_rewards.core import database
from campaign_rewards.core.database import DatabaseManager, get_async_session
from campaign_rewards.core.exceptions import SettlementError, TreasuryUnavailableError
from campaign_rewards.models import Campaign, Submission, SubmissionStatus, UserSession
from campaign_rewards.services.eligibility import ContentMetrics
from campaign_rewards.services.ledger import OutboundTransfer, TransactionState, TreasuryHandle
from campaign_rewards.services.metrics_provider import ContentPage, MetricsFound


TREASURY = "SysvarC1ock11111111111111111111111111111111"
ALICE = "Vote111111111111111111111111111111111111111"
BOB = "SysvarRent111111111111111111111111111111111"
CAROL = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

# Real devnet signatures, valid base58 64-byte values
SIG_1 = "4JArkZW4G3TsFEsS9Ebz2FpP6VuhoEtLM2m95vNY6e3j9zwRj53eKmWq8P8oQ88FmAtxnL6q92zqZmsTBb6AoPjG"
SIG_2 = "3XRfta7u6JBELdUf1u7tbv5nFRBzCNYu9CYRoskLBo4ZxrLeTa9qz3M9yDniqL9qrDsNMQeTbrL16gsAVa218xiE"
SIG_3 = "4YGibu6LVo7cuXyfZTUQbxdP28oH7afQSn8yDksyTMSrfb4EAJS188mD6jqtns28wfBEqXuaKVex4T6TYz5ndG29"


class FakeLedger:
    """In-memory ledger recording every transfer it is asked to make."""

    def __init__(self, decimals: int = 9):
        self.decimals = decimals
        self.transfers: List[dict] = []
        self.balances: Dict[str, int] = {TREASURY: 500 * 10 ** decimals}
        self.fail_submit: Set[str] = set()
        self.fail_finality: Set[str] = set()
        self.statuses: Dict[str, TransactionState] = {}
        self.outbound: List[OutboundTransfer] = []
        self.treasury_error: Optional[str] = None
        self.resolve_calls = 0
        self.handles: List[TreasuryHandle] = []

    def treasury_address(self) -> str:
        return TREASURY

    def destination_for(self, recipient: str) -> str:
        return recipient

    async def resolve_treasury(self) -> TreasuryHandle:
        self.resolve_calls += 1
        if self.treasury_error:
            raise TreasuryUnavailableError(self.treasury_error)
        handle = TreasuryHandle(address=TREASURY)
        self.handles.append(handle)
        return handle

    async def balance(self, address: str) -> int:
        return self.balances.get(address, 0)

    async def submit_transfer(self, treasury: TreasuryHandle, recipient: str, amount: int) -> str:
        await asyncio.sleep(0)
        if recipient in self.fail_submit:
            raise SettlementError(f"Transfer submission failed: insufficient funds for {recipient}")
        sequence = treasury.next_sequence()
        signature = f"fake-sig-{len(self.transfers) + 1}"
        self.transfers.append({
            "recipient": recipient,
            "amount": amount,
            "sequence": sequence,
            "signature": signature,
        })
        return signature

    async def wait_for_finality(self, signature: str) -> None:
        await asyncio.sleep(0)
        transfer = next(t for t in self.transfers if t["signature"] == signature)
        if transfer["recipient"] in self.fail_finality:
            raise SettlementError("Finality wait failed: timed out", signature)

    async def transaction_status(self, signature: str) -> TransactionState:
        return self.statuses.get(signature, TransactionState.UNKNOWN)

    async def settlement_transfers(self, signature: str) -> List[OutboundTransfer]:
        return [t for t in self.outbound if t.signature == signature]

    async def recent_outbound_transfers(self, limit: int) -> List[OutboundTransfer]:
        return self.outbound[:limit]


class FakeMetricsProvider:
    """Returns canned results per content id."""

    def __init__(self, default=None):
        self.results: Dict[str, object] = {}
        self.default = default or MetricsFound(ContentMetrics(views=5000, likes=500))
        self.calls: List[tuple] = []
        self.page = ContentPage(items=[])

    async def fetch(self, content_id: str, credential: str):
        self.calls.append((content_id, credential))
        return self.results.get(content_id, self.default)

    async def list_content(self, credential: str, cursor: Optional[int] = None) -> ContentPage:
        self.calls.append(("list", credential, cursor))
        return self.page


@pytest.fixture
async def db_engine(tmp_path):
    """Fresh SQLite database with all tables."""
    await database.init_database(f"sqlite+aiosqlite:///{tmp_path / 'rewards.db'}")
    await DatabaseManager.create_tables()
    yield database.get_engine()
    await database.close_database()


@pytest.fixture
async def db_session(db_engine):
    async with get_async_session() as session:
        yield session


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def provider():
    return FakeMetricsProvider()


async def create_campaign(
    name: str = "Campaign TikTok #1",
    reward_amount: str = "10",
    min_views: int = 1000,
    min_likes: int = 50,
    is_active: bool = True,
    **kwargs
) -> Campaign:
    async with get_async_session() as db:
        campaign = Campaign(
            name=name,
            reward_amount=reward_amount,
            min_views=min_views,
            min_likes=min_likes,
            min_comments=kwargs.get("min_comments", 0),
            min_shares=kwargs.get("min_shares", 0),
            max_winners=kwargs.get("max_winners", 100),
            is_active=is_active,
        )
        db.add(campaign)
        await db.flush()
        await db.refresh(campaign)
    return campaign


async def create_submission(
    campaign: Campaign,
    content_id: str,
    payout_address: str = ALICE,
    status: SubmissionStatus = SubmissionStatus.ELIGIBLE,
    tx_reference: Optional[str] = None,
    username: str = "creator",
) -> Submission:
    async with get_async_session() as db:
        submission = Submission(
            campaign_id=campaign.id,
            content_id=content_id,
            content_url=f"https://www.tiktok.com/@{username}/video/{content_id}",
            submitter_identity=f"open-{username}",
            submitter_username=username,
            payout_address=payout_address,
            views=5000,
            likes=500,
            comments=0,
            shares=0,
            status=status,
            tx_reference=tx_reference,
        )
        db.add(submission)
        await db.flush()
        await db.refresh(submission)
    return submission


async def create_user_session(
    session_id: str = "session-1",
    account: str = "open-alice",
    username: str = "alice",
    token: str = "token-alice"
) -> UserSession:
    async with get_async_session() as db:
        row = UserSession(
            id=session_id,
            external_account_id=account,
            username=username,
            access_token=token,
        )
        db.add(row)
        await db.flush()
        await db.refresh(row)
    return row


async def load_submission(submission_id: int) -> Submission:
    """Read a submission through a new session so no identity map is reused."""
    async with get_async_session() as db:
        return await db.get(Submission, submission_id)
