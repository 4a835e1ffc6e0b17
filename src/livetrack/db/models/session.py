"""Session model for authenticated access.

Sessions are issued by the surrounding platform; this service only
validates them. Tokens are stored as SHA-256 hashes.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from datetime import UTC, datetime

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from livetrack.db.models.base import (
    Base,
    OptionalTimestampTZ,
    TimestampTZ,
    UUIDPrimaryKey,
)


class Session(Base):
    """Authenticated session of an internal user or a customer."""

    __tablename__ = "sessions"

    session_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    # Token hash (SHA-256 of the actual token)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    # Principal linkage - exactly one of these is set
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=True,
    )
    customer_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("customers.customer_id", ondelete="CASCADE"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[TimestampTZ]
    revoked_at: Mapped[OptionalTimestampTZ]

    __table_args__ = (
        Index("ix_sessions_user_id", "user_id"),
        Index("ix_sessions_customer_id", "customer_id"),
        Index("ix_sessions_expires_at", "expires_at"),
    )

    @property
    def is_expired(self) -> bool:
        """Check if the session has expired."""
        return datetime.now(UTC) > self.expires_at

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def is_valid(self) -> bool:
        """Check if the session is still valid for use."""
        return self.is_active and not self.is_expired and not self.is_revoked
