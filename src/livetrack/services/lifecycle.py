"""Delivery lifecycle state machine service.

This module owns every write to a delivery's status and position:
- Closed set of statuses, permissive transitions between them
- started_at stamped once, delivered_at kept in step with the delivered status
- Coordinate validation
- One tracking event per status/location/notes update, in the same transaction
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, ClassVar

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from livetrack.db.models.base import DeliveryStatus
from livetrack.db.models.deliveries import Delivery
from livetrack.services.authz import Operation, access_gate
from livetrack.services.tracking import TrackingLedger

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from livetrack.db.models.tracking import TrackingEvent
    from livetrack.services.authz import Principal

logger = logging.getLogger(__name__)

LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)


@dataclass(frozen=True, slots=True)
class DeliveryChanges:
    """Requested changes to a delivery.

    Every field is optional but at least one must be present. The status
    is kept as its wire value so unknown values are rejected here rather
    than at the edge.

    Attributes:
        status: Target status wire value (e.g. "in_transit").
        latitude: Current latitude, signed decimal degrees.
        longitude: Current longitude, signed decimal degrees.
        estimated_delivery_time: New ETA, stored as given.
        notes: Courier notes attached to the tracking event.
    """

    status: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    estimated_delivery_time: datetime | None = None
    notes: str | None = None

    def is_empty(self) -> bool:
        return (
            self.status is None
            and self.latitude is None
            and self.longitude is None
            and self.estimated_delivery_time is None
            and self.notes is None
        )

    @property
    def has_location(self) -> bool:
        return self.latitude is not None or self.longitude is not None


@dataclass(frozen=True, slots=True)
class DeliveryUpdateResult:
    """Result of an applied delivery update.

    Attributes:
        delivery: The delivery after the update.
        latest_event: Most recent tracking event (the one just written, if any).
        previous_status: Status before the update.
    """

    delivery: Delivery
    latest_event: TrackingEvent | None
    previous_status: DeliveryStatus


class DeliveryNotFoundError(Exception):
    """Raised when a delivery is not found."""

    def __init__(self, delivery_id: UUID) -> None:
        self.delivery_id = delivery_id
        super().__init__(f"Delivery {delivery_id} not found")


class InvalidDeliveryUpdateError(Exception):
    """Raised when an update request is malformed or out of range."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)


def parse_status(value: str) -> DeliveryStatus:
    """Convert a status wire value into a DeliveryStatus.

    Raises:
        InvalidDeliveryUpdateError: If the value is not a known status.
    """
    try:
        return DeliveryStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in DeliveryStatus)
        raise InvalidDeliveryUpdateError(
            f"Invalid status: {value}. Valid statuses: {valid}",
            field="status",
        ) from None


def validate_location(
    latitude: float | None,
    longitude: float | None,
) -> tuple[Decimal, Decimal] | None:
    """Validate a coordinate pair.

    Returns:
        (latitude, longitude) as Decimals, or None when neither was given.

    Raises:
        InvalidDeliveryUpdateError: If only one coordinate is given, a value
            is not a finite number, or a value is out of range.
    """
    if latitude is None and longitude is None:
        return None
    if latitude is None or longitude is None:
        raise InvalidDeliveryUpdateError(
            "Latitude and longitude must be provided together",
            field="latitude" if latitude is None else "longitude",
        )

    for name, value, (low, high) in (
        ("latitude", latitude, LATITUDE_RANGE),
        ("longitude", longitude, LONGITUDE_RANGE),
    ):
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidDeliveryUpdateError(f"Invalid {name}: {value!r}", field=name) from None
        if not math.isfinite(number):
            raise InvalidDeliveryUpdateError(f"Invalid {name}: {value!r}", field=name)
        if not low <= number <= high:
            raise InvalidDeliveryUpdateError(
                f"Invalid {name}: must be between {low:g} and {high:g}",
                field=name,
            )

    return Decimal(str(float(latitude))), Decimal(str(float(longitude)))


class DeliveryLifecycleService:
    """Service for managing delivery status and position updates.

    Transitions are permissive: any status may move to any other status,
    including back out of delivered or cancelled (logged as a warning).
    The timestamps follow the status:

        started_at    set on the first move into out_for_delivery, then frozen
        delivered_at  set on a move into delivered, cleared on any other move

    Example:
        service = DeliveryLifecycleService(session)
        result = await service.update_delivery(
            principal,
            delivery_id,
            DeliveryChanges(status="in_transit", latitude=52.37, longitude=4.89),
        )
    """

    TERMINAL_STATUSES: ClassVar[frozenset[DeliveryStatus]] = frozenset(
        {DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED}
    )

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the lifecycle service.

        Args:
            session: SQLAlchemy async session for database operations.
        """
        self._session = session
        self._ledger = TrackingLedger(session)

    def is_valid_transition(self, from_status: DeliveryStatus, to_status: DeliveryStatus) -> bool:
        """Check if a status transition is valid.

        Every member of DeliveryStatus is a valid target from every status.
        """
        return isinstance(from_status, DeliveryStatus) and isinstance(to_status, DeliveryStatus)

    def is_terminal_status(self, status: DeliveryStatus) -> bool:
        return status in self.TERMINAL_STATUSES

    async def get_delivery(self, delivery_id: UUID, *, for_update: bool = False) -> Delivery:
        """Get a delivery by ID with its customer and courier loaded.

        Args:
            delivery_id: UUID of the delivery.
            for_update: Lock the row until the transaction ends.

        Returns:
            The Delivery model instance.

        Raises:
            DeliveryNotFoundError: If the delivery does not exist.
        """
        query = (
            select(Delivery)
            .where(Delivery.delivery_id == delivery_id)
            .options(selectinload(Delivery.customer), selectinload(Delivery.courier))
        )
        if for_update:
            query = query.with_for_update()

        result = await self._session.execute(query)
        delivery = result.scalar_one_or_none()

        if delivery is None:
            raise DeliveryNotFoundError(delivery_id)

        return delivery

    async def open_delivery(self, order_ref: str, customer_id: UUID) -> Delivery:
        """Create the delivery record for a newly placed order.

        The delivery starts pending, with no courier and an empty ledger.

        Args:
            order_ref: External order reference.
            customer_id: Customer who placed the order.

        Returns:
            The new Delivery.
        """
        now = datetime.now(UTC)
        delivery = Delivery(
            order_ref=order_ref,
            customer_id=customer_id,
            status=DeliveryStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self._session.add(delivery)
        await self._session.commit()

        logger.info(
            "Delivery opened",
            extra={
                "delivery_id": str(delivery.delivery_id),
                "order_ref": order_ref,
                "customer_id": str(customer_id),
            },
        )
        return delivery

    async def update_delivery(
        self,
        principal: Principal,
        delivery_id: UUID,
        changes: DeliveryChanges,
    ) -> DeliveryUpdateResult:
        """Apply a validated update to a delivery.

        The delivery row is locked, the caller's access is checked, the
        changes are validated, and then the row update and the optional
        tracking event are committed together.

        Args:
            principal: Principal performing the update.
            delivery_id: Delivery to update.
            changes: Requested changes.

        Returns:
            DeliveryUpdateResult with the delivery and its latest event.

        Raises:
            InvalidDeliveryUpdateError: Empty, unknown status or bad coordinates.
            DeliveryNotFoundError: The delivery does not exist.
            AccessDeniedError: The principal may not update this delivery.
        """
        if changes.is_empty():
            raise InvalidDeliveryUpdateError("No changes supplied")

        delivery = await self.get_delivery(delivery_id, for_update=True)
        access_gate.require(principal, Operation.UPDATE, delivery)

        new_status = parse_status(changes.status) if changes.status is not None else None
        location = validate_location(changes.latitude, changes.longitude)

        now = datetime.now(UTC)
        previous_status = delivery.status

        if new_status is not None:
            self._apply_status(delivery, new_status, now)

        if changes.estimated_delivery_time is not None:
            delivery.estimated_delivery_time = changes.estimated_delivery_time

        delivery.updated_at = now

        event = None
        if new_status is not None or location is not None or changes.notes is not None:
            latitude, longitude = location if location is not None else (None, None)
            event = self._ledger.append(
                delivery,
                delivery.status,
                latitude=latitude,
                longitude=longitude,
                notes=changes.notes,
                event_time=now,
            )

        await self._session.commit()

        logger.info(
            "Delivery updated",
            extra={
                "delivery_id": str(delivery_id),
                "principal_kind": principal.kind,
                "from_status": previous_status.value,
                "to_status": delivery.status.value,
                "has_location": location is not None,
                "event_written": event is not None,
            },
        )

        latest_event = event if event is not None else await self._ledger.latest_one(delivery_id)
        return DeliveryUpdateResult(
            delivery=delivery,
            latest_event=latest_event,
            previous_status=previous_status,
        )

    def _apply_status(self, delivery: Delivery, new_status: DeliveryStatus, now: datetime) -> None:
        """Set the status and keep the lifecycle timestamps consistent with it."""
        from_status = delivery.status

        if self.is_terminal_status(from_status) and new_status != from_status:
            logger.warning(
                "Delivery moved out of a terminal status",
                extra={
                    "delivery_id": str(delivery.delivery_id),
                    "from_status": from_status.value,
                    "to_status": new_status.value,
                },
            )

        delivery.status = new_status

        if new_status == DeliveryStatus.OUT_FOR_DELIVERY and delivery.started_at is None:
            delivery.started_at = now

        if new_status == DeliveryStatus.DELIVERED:
            delivery.delivered_at = now
        else:
            delivery.delivered_at = None
