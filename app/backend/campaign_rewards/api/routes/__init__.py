"""API routes package."""

from . import campaigns, submissions, payouts, sessions

__all__ = ["campaigns", "submissions", "payouts", "sessions"]
