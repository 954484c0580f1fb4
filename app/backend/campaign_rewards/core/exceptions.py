"""
Custom exception classes for the application.
Provides structured error handling across all modules.
"""

from typing import Any, Optional, Dict


class RewardsException(Exception):
    """Base exception class for the campaign rewards backend."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(RewardsException):
    """Raised when data validation fails."""

    status_code = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: str = "VALIDATION_ERROR"
    ):
        super().__init__(message, code, details)


class NotFoundError(RewardsException):
    """Raised when a requested resource is not found."""

    status_code = 404

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "NOT_FOUND", details)


class AuthenticationError(RewardsException):
    """Raised when authentication fails."""

    status_code = 401

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "AUTHENTICATION_ERROR", details)


class ExternalServiceError(RewardsException):
    """Raised when an external service error occurs."""

    status_code = 502

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "EXTERNAL_SERVICE_ERROR", details)


class SolanaError(ExternalServiceError):
    """Raised when there's a Solana blockchain error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.code = "SOLANA_ERROR"


# Submission lifecycle exceptions
class DuplicateSubmissionError(ValidationError):
    """Raised when a content item has already been submitted."""

    def __init__(self, content_id: str):
        super().__init__(
            "This video has already been submitted",
            {"content_id": content_id},
            code="DUPLICATE_SUBMISSION"
        )


class SubmissionNotFoundError(NotFoundError):
    """Raised when a submission is not found."""

    def __init__(self, submission_id: int):
        super().__init__(
            f"Submission not found: {submission_id}",
            {"submission_id": submission_id}
        )


class CampaignNotFoundError(NotFoundError):
    """Raised when a campaign is not found."""

    def __init__(self, campaign_id: int):
        super().__init__(
            f"Campaign not found: {campaign_id}",
            {"campaign_id": campaign_id}
        )


class InvalidStatusTransitionError(RewardsException):
    """Raised when a status change is not allowed by the lifecycle."""

    status_code = 409

    def __init__(self, current: str, target: str, reason: Optional[str] = None):
        message = f"Cannot change submission status from {current} to {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            "INVALID_STATUS_TRANSITION",
            {"current": current, "target": target}
        )


# Payout exceptions
class NoEligibleSubmissionsError(ValidationError):
    """Raised when none of the requested ids can be paid."""

    def __init__(self, requested: int):
        super().__init__(
            "No eligible submissions found",
            {"requested": requested},
            code="NO_ELIGIBLE_SUBMISSIONS"
        )


class TreasuryUnavailableError(RewardsException):
    """Raised when the treasury account cannot be resolved."""

    status_code = 503

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "TREASURY_UNAVAILABLE", details)


class SettlementError(SolanaError):
    """Raised when a single transfer fails to submit or confirm."""

    def __init__(self, message: str, signature: Optional[str] = None):
        super().__init__(message, {"signature": signature} if signature else None)
        self.code = "SETTLEMENT_ERROR"
        self.signature = signature
