"""Account models: internal users and customers.

Both tables are owned by the surrounding order-management system. This
service only reads them to resolve principals and render summaries.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from livetrack.db.models.base import (
    Base,
    TimestampTZ,
    UserRole,
    UUIDPrimaryKey,
    enum_values,
)


class User(Base):
    """Internal user: staff (admin) or courier (delivery)."""

    __tablename__ = "users"

    user_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(
            UserRole,
            name="user_role",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def is_staff(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def can_carry(self) -> bool:
        """Whether this user may be assigned as a delivery's courier."""
        return self.is_active and self.role in (UserRole.ADMIN, UserRole.DELIVERY)


class Customer(Base):
    """Customer who placed the order being delivered."""

    __tablename__ = "customers"

    customer_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
