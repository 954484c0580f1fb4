"""
Submission model and the submission lifecycle state machine.

A submission is a user's claim that one content item satisfies a campaign's
reward criteria. Its status only ever moves along ``TRANSITIONS``; ``paid`` and
``rejected`` are terminal.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, TYPE_CHECKING

from sqlalchemy import (
    String, Integer, BigInteger, Text, Index, ForeignKey, DateTime,
    Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin

if TYPE_CHECKING:
    from .campaign import Campaign


class SubmissionStatus(str, Enum):
    """Lifecycle states of a submission."""

    PENDING = "pending"
    ELIGIBLE = "eligible"
    WINNER = "winner"
    PAID = "paid"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: str) -> "SubmissionStatus":
        """Parse a raw status string, raising ValueError on unknown values."""
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValueError(f"Invalid status '{value}'. Allowed: {allowed}") from None

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_payable(self) -> bool:
        return self in PAYABLE_STATUSES


TRANSITIONS: Dict[SubmissionStatus, FrozenSet[SubmissionStatus]] = {
    SubmissionStatus.PENDING: frozenset({SubmissionStatus.ELIGIBLE, SubmissionStatus.REJECTED}),
    SubmissionStatus.ELIGIBLE: frozenset({SubmissionStatus.WINNER, SubmissionStatus.PAID}),
    SubmissionStatus.WINNER: frozenset({SubmissionStatus.PAID}),
    SubmissionStatus.PAID: frozenset(),
    SubmissionStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[SubmissionStatus] = frozenset(
    status for status, targets in TRANSITIONS.items() if not targets
)

# Rows settlement may move to paid; the payout engine selects only these
PAYABLE_STATUSES: FrozenSet[SubmissionStatus] = frozenset(
    status for status, targets in TRANSITIONS.items() if SubmissionStatus.PAID in targets
)

# A submission is created already evaluated, i.e. past pending
CREATION_STATUSES: FrozenSet[SubmissionStatus] = TRANSITIONS[SubmissionStatus.PENDING]


def can_transition(current: SubmissionStatus, target: SubmissionStatus) -> bool:
    """Return True if the lifecycle allows ``current -> target``."""
    return target in TRANSITIONS[current]


def evaluated_status(eligible: bool) -> SubmissionStatus:
    """Status a new submission enters with once its metrics are evaluated."""
    status = SubmissionStatus.ELIGIBLE if eligible else SubmissionStatus.REJECTED
    if status not in CREATION_STATUSES:
        raise ValueError(f"{status.value} is not a creation status")
    return status


def can_override(current: SubmissionStatus, target: SubmissionStatus) -> bool:
    """
    Return True if an operator may force ``current -> target``.

    Operators may move any non-terminal submission to any non-paid state;
    ``paid`` is only reachable through settlement.
    """
    if current == target:
        return True
    return not current.is_terminal and target != SubmissionStatus.PAID


class Submission(BaseModel, TimestampMixin):
    """A content item submitted for a campaign reward."""

    __tablename__ = "submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    campaign_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("campaigns.id"),
        comment="Campaign this submission competes in"
    )

    # One submission per content item, ever
    content_id: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        comment="Platform content identifier"
    )

    content_url: Mapped[str] = mapped_column(Text, comment="Submitted content URL")

    submitter_identity: Mapped[str] = mapped_column(
        String(128),
        comment="External account id of the submitter"
    )

    submitter_username: Mapped[Optional[str]] = mapped_column(
        String(128),
        comment="External account display name"
    )

    payout_address: Mapped[str] = mapped_column(
        String(44),
        comment="Solana address receiving the reward"
    )

    # Metrics snapshot taken at evaluation time
    views: Mapped[int] = mapped_column(BigInteger, default=0)
    likes: Mapped[int] = mapped_column(BigInteger, default=0)
    comments: Mapped[int] = mapped_column(BigInteger, default=0)
    shares: Mapped[int] = mapped_column(BigInteger, default=0)

    status: Mapped[SubmissionStatus] = mapped_column(
        SQLEnum(
            SubmissionStatus,
            name="submissionstatus",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=SubmissionStatus.PENDING,
        comment="Lifecycle status"
    )

    tx_reference: Mapped[Optional[str]] = mapped_column(
        String(88),
        comment="Settlement transaction signature"
    )

    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        comment="When the reward transfer was confirmed"
    )

    campaign: Mapped["Campaign"] = relationship(
        "Campaign",
        back_populates="submissions"
    )

    __table_args__ = (
        Index("idx_submission_status", "status"),
        Index("idx_submission_campaign", "campaign_id", "status"),
        Index("idx_submission_tx_reference", "tx_reference"),
    )

    def __repr__(self) -> str:
        return f"<Submission(id={self.id}, content_id={self.content_id}, status={self.status.value})>"

    @property
    def is_payable(self) -> bool:
        return self.status.is_payable
