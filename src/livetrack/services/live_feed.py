"""Live feed of delivery snapshots.

Each subscriber gets its own polling loop: one snapshot immediately on
subscribe, then a fresh snapshot every interval until the subscription is
closed. Snapshots are sent unconditionally, even if nothing changed.

Subscriptions share nothing. Each tick reads the store through the
configured fetch function, which opens its own short-lived DB session.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Self

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType
    from uuid import UUID

    from livetrack.core.config import Settings
    from livetrack.db.models.deliveries import Delivery
    from livetrack.db.models.tracking import TrackingEvent

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 5.0


@dataclass(frozen=True, slots=True)
class DeliverySnapshot:
    """Point-in-time view of a delivery pushed to subscribers.

    Attributes:
        delivery: Delivery with customer and courier loaded.
        latest_event: Most recent tracking event, if any.
        generated_at: When the snapshot was read.
    """

    delivery: Delivery
    latest_event: TrackingEvent | None
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class LiveFeedError(Exception):
    """Raised when a snapshot cannot be produced; the subscription is over."""

    def __init__(self, delivery_id: UUID, message: str = "Live feed read failed") -> None:
        self.delivery_id = delivery_id
        self.message = message
        super().__init__(f"{message} for delivery {delivery_id}")


async def load_snapshot(delivery_id: UUID) -> DeliverySnapshot:
    """Read a snapshot using a dedicated database session.

    Raises:
        DeliveryNotFoundError: If the delivery no longer exists.
    """
    from livetrack.db import get_async_session
    from livetrack.services.lifecycle import DeliveryLifecycleService
    from livetrack.services.tracking import TrackingLedger

    async with get_async_session() as session:
        delivery = await DeliveryLifecycleService(session).get_delivery(delivery_id)
        latest_event = await TrackingLedger(session).latest_one(delivery_id)
        return DeliverySnapshot(delivery=delivery, latest_event=latest_event)


class FeedSubscription:
    """A single subscriber's stream of snapshots.

    Usable as an async iterator and as an async context manager; leaving
    the context (or calling close()) stops the polling loop, and no store
    read happens after that.

    Example:
        async with bridge.subscribe(delivery_id) as feed:
            async for snapshot in feed:
                send(snapshot)
    """

    def __init__(
        self,
        delivery_id: UUID,
        fetch: Callable[[UUID], Awaitable[DeliverySnapshot]],
        interval_seconds: float,
        disconnected: Callable[[], Awaitable[bool]] | None = None,
    ) -> None:
        self.delivery_id = delivery_id
        self._fetch = fetch
        self._interval = interval_seconds
        self._disconnected = disconnected
        self._closed = asyncio.Event()
        self._emitted = 0

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def emitted(self) -> int:
        """Number of snapshots handed out so far."""
        return self._emitted

    def close(self) -> None:
        """Stop the subscription. Idempotent."""
        if not self._closed.is_set():
            self._closed.set()
            logger.debug(
                "Live feed closed",
                extra={"delivery_id": str(self.delivery_id), "emitted": self._emitted},
            )

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> DeliverySnapshot:
        if self._closed.is_set():
            raise StopAsyncIteration

        # First snapshot goes out immediately, later ones wait for the interval
        if self._emitted > 0:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._closed.wait(), timeout=self._interval)
            if self._closed.is_set():
                raise StopAsyncIteration

        # No store read once the subscriber is gone
        if self._disconnected is not None and await self._disconnected():
            self.close()
            raise StopAsyncIteration

        try:
            snapshot = await self._fetch(self.delivery_id)
        except Exception as exc:
            logger.exception(
                "Live feed read failed",
                extra={"delivery_id": str(self.delivery_id), "emitted": self._emitted},
            )
            self._closed.set()
            raise LiveFeedError(self.delivery_id) from exc

        # Closed while the read was in flight
        if self._closed.is_set():
            raise StopAsyncIteration

        self._emitted += 1
        return snapshot

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class LiveFeedBridge:
    """Creates independent snapshot subscriptions for deliveries.

    The bridge holds no per-subscriber state; every call to subscribe()
    returns a fresh FeedSubscription.
    """

    def __init__(
        self,
        fetch: Callable[[UUID], Awaitable[DeliverySnapshot]] = load_snapshot,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        if interval_seconds <= 0:
            msg = "interval_seconds must be positive"
            raise ValueError(msg)
        self._fetch = fetch
        self.interval_seconds = interval_seconds

    @classmethod
    def from_settings(cls, settings: Settings | None) -> LiveFeedBridge:
        """Build a bridge using the configured interval, or the default without settings."""
        if settings is None:
            return cls()
        return cls(interval_seconds=settings.feed.interval_seconds)

    def subscribe(
        self,
        delivery_id: UUID,
        disconnected: Callable[[], Awaitable[bool]] | None = None,
    ) -> FeedSubscription:
        """Open a subscription.

        Args:
            delivery_id: Delivery to follow.
            disconnected: Optional check run before every store read; when it
                returns True the subscription closes without reading.
        """
        logger.debug(
            "Live feed opened",
            extra={"delivery_id": str(delivery_id), "interval_seconds": self.interval_seconds},
        )
        return FeedSubscription(delivery_id, self._fetch, self.interval_seconds, disconnected)


def encode_sse(data: str, event: str | None = None) -> str:
    """Frame a payload as a server-sent event."""
    lines = []
    if event:
        lines.append(f"event: {event}")
    lines.extend(f"data: {line}" for line in data.splitlines() or [""])
    return "\n".join(lines) + "\n\n"
