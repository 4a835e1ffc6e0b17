"""Delivery record: the current state of one order's fulfillment."""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from livetrack.db.models.base import (
    Base,
    DeliveryStatus,
    OptionalTimestampTZ,
    TimestampTZ,
    UUIDPrimaryKey,
    enum_values,
)

if TYPE_CHECKING:
    from livetrack.db.models.accounts import Customer, User
    from livetrack.db.models.tracking import TrackingEvent


class Delivery(Base):
    """Delivery of a single order.

    The delivery_id doubles as the public tracking capability: anyone
    presenting it may read the delivery detail.
    """

    __tablename__ = "deliveries"

    delivery_id: Mapped[UUIDPrimaryKey]
    created_at: Mapped[TimestampTZ]
    updated_at: Mapped[TimestampTZ]

    # External order reference, one delivery per order
    order_ref: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    status: Mapped[DeliveryStatus] = mapped_column(
        Enum(
            DeliveryStatus,
            name="delivery_status",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=DeliveryStatus.PENDING,
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("customers.customer_id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Assigned courier (nullable until staff assigns one)
    courier_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True,
    )

    # Set once, on the first move into out_for_delivery
    started_at: Mapped[OptionalTimestampTZ]
    # Non-null exactly while status is delivered
    delivered_at: Mapped[OptionalTimestampTZ]
    estimated_delivery_time: Mapped[OptionalTimestampTZ]

    customer: Mapped[Customer] = relationship(
        "Customer",
        foreign_keys=[customer_id],
        lazy="select",
    )
    courier: Mapped[User | None] = relationship(
        "User",
        foreign_keys=[courier_id],
        lazy="select",
    )
    tracking_events: Mapped[list[TrackingEvent]] = relationship(
        "TrackingEvent",
        back_populates="delivery",
        lazy="select",
        order_by="TrackingEvent.event_time",
    )

    __table_args__ = (
        Index("ix_deliveries_customer_id", "customer_id"),
        Index("ix_deliveries_courier_id", "courier_id"),
        Index("ix_deliveries_status", "status"),
    )
