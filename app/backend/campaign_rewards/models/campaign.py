"""
Campaign model - reward programs with eligibility thresholds.
"""

from decimal import Decimal
from typing import List, TYPE_CHECKING

from sqlalchemy import String, Integer, Boolean, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin

if TYPE_CHECKING:
    from .submission import Submission


class Campaign(BaseModel, TimestampMixin):
    """A reward program defining thresholds and a fixed per-winner reward."""

    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(
        String(200),
        comment="Campaign display name"
    )

    # Eligibility thresholds
    min_views: Mapped[int] = mapped_column(Integer, default=0, comment="Minimum view count")
    min_likes: Mapped[int] = mapped_column(Integer, default=0, comment="Minimum like count")
    min_comments: Mapped[int] = mapped_column(Integer, default=0, comment="Minimum comment count")
    min_shares: Mapped[int] = mapped_column(Integer, default=0, comment="Minimum share count")

    # Kept as text so the decimal is never routed through a float column
    reward_amount: Mapped[str] = mapped_column(
        String(80),
        comment="Reward per winner in token units (decimal string)"
    )

    max_winners: Mapped[int] = mapped_column(
        Integer,
        default=100,
        comment="Advisory cap on the number of winners"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        comment="Whether the campaign accepts submissions"
    )

    submissions: Mapped[List["Submission"]] = relationship(
        "Submission",
        back_populates="campaign",
        passive_deletes=True
    )

    __table_args__ = (
        Index("idx_campaign_active", "is_active", "id"),
    )

    def __repr__(self) -> str:
        return f"<Campaign(id={self.id}, name={self.name}, active={self.is_active})>"

    @property
    def reward_decimal(self) -> Decimal:
        return Decimal(self.reward_amount)
