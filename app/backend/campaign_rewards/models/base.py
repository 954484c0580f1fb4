"""
Declarative base and shared mixins for all models.
"""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base holding the shared metadata."""


class BaseModel(Base):
    """Abstract base model with a dict serializer."""

    __abstract__ = True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize column values, rendering enums by value."""
        data = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if hasattr(value, "value"):
                value = value.value
            data[column.key] = value
        return data


class TimestampMixin:
    """Adds created_at / updated_at columns maintained by the database."""

    # Load server-generated timestamps in the flush instead of lazily
    __mapper_args__ = {"eager_defaults": True}

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        comment="Row creation timestamp"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        comment="Last modification timestamp"
    )
