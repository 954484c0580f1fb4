"""
Session model - written by the external auth collaborator after the OAuth
exchange; this service only reads it.
"""

from typing import Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, TimestampMixin


class UserSession(BaseModel, TimestampMixin):
    """Maps an opaque session id to a provider credential and identity."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    external_account_id: Mapped[Optional[str]] = mapped_column(
        String(128),
        comment="Platform account identifier (TikTok open_id)"
    )

    username: Mapped[Optional[str]] = mapped_column(
        String(128),
        comment="Platform display name"
    )

    access_token: Mapped[Optional[str]] = mapped_column(
        Text,
        comment="Provider access credential"
    )

    def __repr__(self) -> str:
        return f"<UserSession(id={self.id}, account={self.external_account_id})>"
