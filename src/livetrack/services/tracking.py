"""Tracking ledger: append-only breadcrumb trail per delivery.

Events are written only from inside the delivery update transaction and
are never modified afterwards. Reads come in two shapes: the full history
in chronological order, and the most recent N events newest first.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select

from livetrack.db.models.tracking import TrackingEvent

if TYPE_CHECKING:
    from decimal import Decimal
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from livetrack.db.models.base import DeliveryStatus
    from livetrack.db.models.deliveries import Delivery

logger = logging.getLogger(__name__)

# Upper bound on a single "latest events" read
MAX_LATEST_EVENTS = 50


class TrackingLedger:
    """Reads and appends tracking events.

    The ledger adds rows to the caller's session but never commits: the
    caller owns the transaction so the event and the delivery row change
    together.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    def append(
        self,
        delivery: Delivery,
        status: DeliveryStatus,
        *,
        latitude: Decimal | None = None,
        longitude: Decimal | None = None,
        notes: str | None = None,
        event_time: datetime | None = None,
    ) -> TrackingEvent:
        """Stage a new event for the delivery in the current transaction.

        Args:
            delivery: Delivery the event belongs to.
            status: Delivery status at the time of the event.
            latitude: Optional latitude in signed decimal degrees.
            longitude: Optional longitude in signed decimal degrees.
            notes: Optional free-text courier notes.
            event_time: Event timestamp, defaults to now.

        Returns:
            The pending TrackingEvent.
        """
        event = TrackingEvent(
            delivery_id=delivery.delivery_id,
            event_time=event_time or datetime.now(UTC),
            status=status,
            latitude=latitude,
            longitude=longitude,
            notes=notes,
        )
        self._session.add(event)

        logger.debug(
            "Tracking event staged",
            extra={
                "delivery_id": str(delivery.delivery_id),
                "status": status.value,
                "has_location": latitude is not None,
            },
        )
        return event

    async def history(self, delivery_id: UUID) -> list[TrackingEvent]:
        """Return every event of a delivery, oldest first."""
        query = (
            select(TrackingEvent)
            .where(TrackingEvent.delivery_id == delivery_id)
            .order_by(TrackingEvent.event_time.asc(), TrackingEvent.seq_no.asc())
        )
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def latest(self, delivery_id: UUID, n: int = 1) -> list[TrackingEvent]:
        """Return the n most recent events of a delivery, newest first.

        Args:
            delivery_id: Delivery to read.
            n: Number of events, clamped to [1, MAX_LATEST_EVENTS].

        Returns:
            Up to n events; empty if the delivery has no events yet.
        """
        limit = max(1, min(n, MAX_LATEST_EVENTS))
        query = (
            select(TrackingEvent)
            .where(TrackingEvent.delivery_id == delivery_id)
            .order_by(TrackingEvent.event_time.desc(), TrackingEvent.seq_no.desc())
            .limit(limit)
        )
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def latest_one(self, delivery_id: UUID) -> TrackingEvent | None:
        """Return the most recent event, or None if the ledger is empty."""
        events = await self.latest(delivery_id, 1)
        return events[0] if events else None
