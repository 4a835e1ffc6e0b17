"""Tracking ledger rows.

Events are append-only: once written they are never updated or deleted.
"""

from __future__ import annotations

import uuid  # noqa: TC003 - required at runtime for SQLAlchemy type resolution
from decimal import Decimal  # noqa: TC003
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Enum, ForeignKey, Identity, Index, Numeric, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from livetrack.db.models.base import (
    Base,
    DeliveryStatus,
    TimestampTZ,
    UUIDPrimaryKey,
    enum_values,
)

if TYPE_CHECKING:
    from livetrack.db.models.deliveries import Delivery


class TrackingEvent(Base):
    """One breadcrumb in a delivery's trail: status snapshot plus optional position."""

    __tablename__ = "tracking_events"

    event_id: Mapped[UUIDPrimaryKey]

    delivery_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("deliveries.delivery_id", ondelete="RESTRICT"),
        nullable=False,
    )

    event_time: Mapped[TimestampTZ]

    # Insertion order; breaks ties between events with the same event_time
    seq_no: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=True),
        nullable=False,
        unique=True,
    )

    # Status of the delivery when the event was written
    status: Mapped[DeliveryStatus] = mapped_column(
        Enum(
            DeliveryStatus,
            name="delivery_status",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )

    # Signed decimal degrees
    latitude: Mapped[Decimal | None] = mapped_column(Numeric(10, 7), nullable=True)
    longitude: Mapped[Decimal | None] = mapped_column(Numeric(10, 7), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    delivery: Mapped[Delivery] = relationship(
        "Delivery",
        back_populates="tracking_events",
        lazy="select",
    )

    __table_args__ = (Index("ix_tracking_events_delivery_time", "delivery_id", "event_time"),)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None
