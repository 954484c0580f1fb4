"""
Admin authentication for operator endpoints.
"""

import hmac
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

import structlog

from campaign_rewards.core.config import settings
from campaign_rewards.core.exceptions import AuthenticationError

logger = structlog.get_logger(__name__)

security = HTTPBearer(auto_error=False)


class AdminAuth:
    """Checks bearer tokens against the configured admin API key."""

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key

    @property
    def admin_api_key(self) -> Optional[str]:
        return self._api_key if self._api_key is not None else settings.admin_api_key

    def is_valid_api_key(self, token: str) -> bool:
        """No key configured means admin access is disabled."""
        expected = self.admin_api_key
        if not expected or not token:
            return False
        return hmac.compare_digest(token.encode(), expected.encode())


# Global admin auth instance
admin_auth = AdminAuth()


async def require_admin_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> dict:
    """
    Dependency that requires admin authentication.

    Raises AuthenticationError when the bearer token is missing or wrong.
    """
    token = credentials.credentials.strip() if credentials else ""

    if not admin_auth.is_valid_api_key(token):
        logger.warning(
            "Admin authentication failed",
            token_preview=token[:4] + "..." if len(token) > 4 else None
        )
        raise AuthenticationError("Admin authentication required")

    return {"auth_type": "api_key", "admin": True}
