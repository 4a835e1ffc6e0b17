"""Pydantic schemas for delivery tracking endpoints.

Wire names are camelCase (startedAt, estimatedDeliveryTime, courierId...);
Python attributes stay snake_case. Requests accept either spelling.
"""

from __future__ import annotations

# NOTE: datetime and UUID must remain at runtime for Pydantic validation
from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from livetrack.db.models.base import DeliveryStatus  # noqa: TC001

if TYPE_CHECKING:
    from livetrack.db.models.deliveries import Delivery
    from livetrack.db.models.tracking import TrackingEvent
    from livetrack.services.live_feed import DeliverySnapshot


class CamelModel(BaseModel):
    """Base model serialising to camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------


class UpdateDeliveryRequest(CamelModel):
    """Status and position update sent by staff or the assigned courier.

    At least one field must be present. Latitude and longitude travel together.
    """

    status: str | None = Field(None, description="Target status wire value")
    latitude: float | None = Field(None, description="Latitude, signed decimal degrees")
    longitude: float | None = Field(None, description="Longitude, signed decimal degrees")
    estimated_delivery_time: datetime | None = Field(None, description="New ETA")
    notes: str | None = Field(None, max_length=2000, description="Courier notes")

    model_config = ConfigDict(extra="forbid")


class AssignCourierRequest(CamelModel):
    """Courier assignment request."""

    courier_id: UUID = Field(..., description="User to assign as courier")

    model_config = ConfigDict(extra="forbid")


# -----------------------------------------------------------------------------
# Responses
# -----------------------------------------------------------------------------


class CustomerSummary(CamelModel):
    customer_id: UUID
    name: str
    phone: str | None = None
    address: str | None = None


class CourierSummary(CamelModel):
    user_id: UUID
    name: str
    email: str


class TrackingEventResponse(CamelModel):
    """One tracking ledger entry."""

    event_id: UUID | None = None
    delivery_id: UUID
    event_time: datetime
    status: DeliveryStatus
    latitude: float | None = None
    longitude: float | None = None
    notes: str | None = None


class DeliveryResponse(CamelModel):
    """Current delivery state with customer and courier summaries."""

    delivery_id: UUID
    order_ref: str
    status: DeliveryStatus
    customer_id: UUID
    courier_id: UUID | None = None
    started_at: datetime | None = None
    delivered_at: datetime | None = None
    estimated_delivery_time: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    customer: CustomerSummary | None = None
    courier: CourierSummary | None = None

    @classmethod
    def from_delivery(cls, delivery: Delivery) -> DeliveryResponse:
        return cls.model_validate(delivery)


class DeliveryDetailResponse(DeliveryResponse):
    """Delivery detail with its most recent tracking events, newest first."""

    tracking_events: list[TrackingEventResponse] = Field(default_factory=list)

    @classmethod
    def build(cls, delivery: Delivery, events: list[TrackingEvent]) -> DeliveryDetailResponse:
        base = DeliveryResponse.model_validate(delivery)
        return cls(
            **base.model_dump(),
            tracking_events=[TrackingEventResponse.model_validate(e) for e in events],
        )


class DeliveryUpdateResponse(DeliveryResponse):
    """Delivery after an update, with the latest tracking event."""

    latest_event: TrackingEventResponse | None = None

    @classmethod
    def build(
        cls, delivery: Delivery, latest_event: TrackingEvent | None
    ) -> DeliveryUpdateResponse:
        base = DeliveryResponse.model_validate(delivery)
        return cls(
            **base.model_dump(),
            latest_event=(
                TrackingEventResponse.model_validate(latest_event) if latest_event else None
            ),
        )


class DeliveryListResponse(CamelModel):
    """Page of deliveries."""

    items: list[DeliveryResponse]
    offset: int = 0
    limit: int
    count: int


class TrackingHistoryResponse(CamelModel):
    """Full tracking history of a delivery, oldest first."""

    delivery_id: UUID
    events: list[TrackingEventResponse]


class SnapshotPayload(DeliveryUpdateResponse):
    """Frame body pushed on the live feed."""

    generated_at: datetime

    @classmethod
    def from_snapshot(cls, snapshot: DeliverySnapshot) -> SnapshotPayload:
        base = DeliveryUpdateResponse.build(snapshot.delivery, snapshot.latest_event)
        return cls(**base.model_dump(), generated_at=snapshot.generated_at)


class FeedErrorFrame(CamelModel):
    """Body of the final `event: error` frame sent when a live feed fails."""

    error: str
    message: str
