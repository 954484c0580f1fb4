"""
Database models for the campaign rewards backend.

Campaigns and submissions are owned by their stores; sessions are written by
the external auth collaborator and only read here.
"""

from .base import Base, BaseModel, TimestampMixin
from .campaign import Campaign
from .submission import (
    Submission, SubmissionStatus, TRANSITIONS, TERMINAL_STATUSES,
    PAYABLE_STATUSES, CREATION_STATUSES, can_transition, can_override,
    evaluated_status
)
from .session import UserSession

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "Campaign",
    "Submission",
    "SubmissionStatus",
    "TRANSITIONS",
    "TERMINAL_STATUSES",
    "PAYABLE_STATUSES",
    "CREATION_STATUSES",
    "can_transition",
    "can_override",
    "evaluated_status",
    "UserSession",
]
