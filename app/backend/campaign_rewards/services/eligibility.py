"""
Eligibility evaluation - compares a content metrics snapshot against campaign
thresholds. Pure functions only.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class ContentMetrics:
    """Engagement counters of a content item."""
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0

    @classmethod
    def zero(cls) -> "ContentMetrics":
        """Snapshot used when the metrics provider is unavailable."""
        return cls()

    @classmethod
    def from_counts(cls, counts: Optional[Mapping[str, Any]]) -> "ContentMetrics":
        """Build from a loose mapping; absent or null counters become zero."""
        counts = counts or {}
        return cls(
            views=int(counts.get("views") or 0),
            likes=int(counts.get("likes") or 0),
            comments=int(counts.get("comments") or 0),
            shares=int(counts.get("shares") or 0),
        )


@dataclass(frozen=True)
class Thresholds:
    """Minimum engagement required by a campaign."""
    min_views: int = 0
    min_likes: int = 0
    min_comments: int = 0
    min_shares: int = 0

    @classmethod
    def for_campaign(cls, campaign) -> "Thresholds":
        return cls(
            min_views=campaign.min_views or 0,
            min_likes=campaign.min_likes or 0,
            min_comments=campaign.min_comments or 0,
            min_shares=campaign.min_shares or 0,
        )


def evaluate(metrics: ContentMetrics, thresholds: Thresholds) -> bool:
    """Return True when every counter meets its threshold."""
    return (
        metrics.views >= thresholds.min_views
        and metrics.likes >= thresholds.min_likes
        and metrics.comments >= thresholds.min_comments
        and metrics.shares >= thresholds.min_shares
    )


def describe_thresholds(thresholds: Thresholds) -> str:
    """Human-readable requirement list, e.g. ``1000 views, 50 likes``."""
    parts = [f"{thresholds.min_views} views", f"{thresholds.min_likes} likes"]
    if thresholds.min_comments:
        parts.append(f"{thresholds.min_comments} comments")
    if thresholds.min_shares:
        parts.append(f"{thresholds.min_shares} shares")
    return ", ".join(parts)
