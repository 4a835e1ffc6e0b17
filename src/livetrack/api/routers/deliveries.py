"""Delivery tracking API router.

Endpoints:
- GET    /deliveries                       staff listing
- GET    /deliveries/{id}                  detail with recent events
- PUT    /deliveries/{id}                  status / position update
- POST   /deliveries/{id}/assign           assign a courier
- DELETE /deliveries/{id}/assign           clear the courier
- GET    /deliveries/{id}/tracking         full tracking history
- GET    /deliveries/{id}/stream           live feed (server-sent events)

Every handler resolves the caller to a principal first. Anonymous callers
become tracking-link holders scoped to the delivery id in the path.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Annotated
from uuid import UUID  # noqa: TC003 - FastAPI resolves path parameter types at runtime

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: TC002

from livetrack.api.middleware.auth import AuthenticatedUser, optional_authenticated_user
from livetrack.api.middleware.errors import translate_service_errors
from livetrack.api.schemas.deliveries import (
    AssignCourierRequest,
    DeliveryDetailResponse,
    DeliveryListResponse,
    DeliveryResponse,
    DeliveryUpdateResponse,
    FeedErrorFrame,
    SnapshotPayload,
    TrackingEventResponse,
    TrackingHistoryResponse,
    UpdateDeliveryRequest,
)
from livetrack.services.assignment import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    CourierAssignmentService,
)
from livetrack.services.authz import Operation, access_gate, resolve_principal
from livetrack.services.lifecycle import DeliveryChanges, DeliveryLifecycleService, parse_status
from livetrack.services.live_feed import LiveFeedBridge, LiveFeedError, encode_sse
from livetrack.services.tracking import MAX_LATEST_EVENTS, TrackingLedger

if TYPE_CHECKING:
    from livetrack.services.live_feed import FeedSubscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/deliveries", tags=["deliveries"])


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """Get database session from the application's async session factory."""
    from livetrack.db import get_async_session

    async with get_async_session() as session:
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
# Released when the handler returns, not when the response body is done
ShortDbSession = Annotated[AsyncSession, Depends(get_db_session, scope="function")]


def get_lifecycle_service(db: DbSession) -> DeliveryLifecycleService:
    return DeliveryLifecycleService(db)


def get_assignment_service(db: DbSession) -> CourierAssignmentService:
    return CourierAssignmentService(db)


def get_tracking_ledger(db: DbSession) -> TrackingLedger:
    return TrackingLedger(db)


def get_live_feed(request: Request) -> LiveFeedBridge:
    """Return the app-wide bridge, creating a default one if the app has none."""
    bridge = getattr(request.app.state, "live_feed", None)
    if bridge is None:
        bridge = LiveFeedBridge.from_settings(getattr(request.app.state, "settings", None))
        request.app.state.live_feed = bridge
    return bridge


def get_detail_event_limit(request: Request) -> int:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        return MAX_LATEST_EVENTS
    return settings.feed.detail_event_limit


CurrentUser = Annotated[AuthenticatedUser | None, Depends(optional_authenticated_user)]
Lifecycle = Annotated[DeliveryLifecycleService, Depends(get_lifecycle_service)]
Assignment = Annotated[CourierAssignmentService, Depends(get_assignment_service)]
Ledger = Annotated[TrackingLedger, Depends(get_tracking_ledger)]
Feed = Annotated[LiveFeedBridge, Depends(get_live_feed)]


# -----------------------------------------------------------------------------
# Listing
# -----------------------------------------------------------------------------


@router.get(
    "",
    response_model=DeliveryListResponse,
    summary="List deliveries",
    description="Staff-only paginated listing, newest first.",
)
async def list_deliveries(
    user: CurrentUser,
    assignment: Assignment,
    offset: Annotated[int, Query(ge=0, description="Pagination offset")] = 0,
    limit: Annotated[
        int, Query(ge=1, le=MAX_PAGE_SIZE, description="Page size")
    ] = DEFAULT_PAGE_SIZE,
    status_filter: Annotated[
        str | None, Query(alias="status", description="Filter by status")
    ] = None,
) -> DeliveryListResponse:
    principal = resolve_principal(user)
    with translate_service_errors():
        status = parse_status(status_filter) if status_filter is not None else None
        deliveries = await assignment.list_deliveries(
            principal, status=status, offset=offset, limit=limit
        )

    items = [DeliveryResponse.from_delivery(d) for d in deliveries]
    return DeliveryListResponse(items=items, offset=offset, limit=limit, count=len(items))


# -----------------------------------------------------------------------------
# Single delivery
# -----------------------------------------------------------------------------


@router.get(
    "/{delivery_id}",
    response_model=DeliveryDetailResponse,
    summary="Get delivery detail",
    description=(
        "Delivery with customer and courier summaries and its most recent tracking "
        "events (newest first). Anonymous callers may read a delivery by its id."
    ),
)
async def get_delivery(
    delivery_id: UUID,
    request: Request,
    user: CurrentUser,
    lifecycle: Lifecycle,
    ledger: Ledger,
) -> DeliveryDetailResponse:
    principal = resolve_principal(user, delivery_id)
    with translate_service_errors():
        delivery = await lifecycle.get_delivery(delivery_id)
        access_gate.require(principal, Operation.READ, delivery)

    events = await ledger.latest(delivery_id, get_detail_event_limit(request))
    return DeliveryDetailResponse.build(delivery, events)


@router.put(
    "/{delivery_id}",
    response_model=DeliveryUpdateResponse,
    summary="Update delivery status or position",
    description=(
        "Staff or the assigned courier update status, position, ETA or notes. "
        "An update carrying status, position or notes adds one tracking event."
    ),
)
async def update_delivery(
    delivery_id: UUID,
    body: UpdateDeliveryRequest,
    user: CurrentUser,
    lifecycle: Lifecycle,
) -> DeliveryUpdateResponse:
    principal = resolve_principal(user, delivery_id)
    changes = DeliveryChanges(
        status=body.status,
        latitude=body.latitude,
        longitude=body.longitude,
        estimated_delivery_time=body.estimated_delivery_time,
        notes=body.notes,
    )
    with translate_service_errors():
        result = await lifecycle.update_delivery(principal, delivery_id, changes)

    return DeliveryUpdateResponse.build(result.delivery, result.latest_event)


# -----------------------------------------------------------------------------
# Assignment
# -----------------------------------------------------------------------------


@router.post(
    "/{delivery_id}/assign",
    response_model=DeliveryResponse,
    summary="Assign a courier",
)
async def assign_courier(
    delivery_id: UUID,
    body: AssignCourierRequest,
    user: CurrentUser,
    assignment: Assignment,
) -> DeliveryResponse:
    principal = resolve_principal(user, delivery_id)
    with translate_service_errors():
        delivery = await assignment.assign(principal, delivery_id, body.courier_id)
    return DeliveryResponse.from_delivery(delivery)


@router.delete(
    "/{delivery_id}/assign",
    response_model=DeliveryResponse,
    summary="Clear the courier",
)
async def unassign_courier(
    delivery_id: UUID,
    user: CurrentUser,
    assignment: Assignment,
) -> DeliveryResponse:
    principal = resolve_principal(user, delivery_id)
    with translate_service_errors():
        delivery = await assignment.unassign(principal, delivery_id)
    return DeliveryResponse.from_delivery(delivery)


# -----------------------------------------------------------------------------
# Tracking history and live feed
# -----------------------------------------------------------------------------


@router.get(
    "/{delivery_id}/tracking",
    response_model=TrackingHistoryResponse,
    summary="Get full tracking history",
    description="Every tracking event of the delivery, oldest first.",
)
async def get_tracking_history(
    delivery_id: UUID,
    user: CurrentUser,
    lifecycle: Lifecycle,
    ledger: Ledger,
) -> TrackingHistoryResponse:
    principal = resolve_principal(user, delivery_id)
    with translate_service_errors():
        delivery = await lifecycle.get_delivery(delivery_id)
        access_gate.require(principal, Operation.READ_HISTORY, delivery)

    events = await ledger.history(delivery_id)
    return TrackingHistoryResponse(
        delivery_id=delivery_id,
        events=[TrackingEventResponse.model_validate(e) for e in events],
    )


@router.get(
    "/{delivery_id}/stream",
    summary="Subscribe to live delivery updates",
    description=(
        "Server-sent events: one snapshot immediately, then one per interval "
        "until the client disconnects."
    ),
    response_class=StreamingResponse,
)
async def stream_delivery(
    delivery_id: UUID,
    request: Request,
    user: CurrentUser,
    db: ShortDbSession,
    feed: Feed,
) -> StreamingResponse:
    principal = resolve_principal(user, delivery_id)
    with translate_service_errors():
        delivery = await DeliveryLifecycleService(db).get_delivery(delivery_id)
        access_gate.require(principal, Operation.SUBSCRIBE, delivery)

    logger.info(
        "Live feed subscribed",
        extra={"delivery_id": str(delivery_id), "principal_kind": principal.kind},
    )
    subscription = feed.subscribe(delivery_id, disconnected=request.is_disconnected)
    return StreamingResponse(
        _sse_frames(subscription),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def _sse_frames(subscription: FeedSubscription) -> AsyncIterator[str]:
    """Encode a subscription as SSE frames until it closes or the feed fails."""
    async with subscription:
        try:
            async for snapshot in subscription:
                payload = SnapshotPayload.from_snapshot(snapshot)
                yield encode_sse(payload.model_dump_json(by_alias=True))
        except LiveFeedError as exc:
            body = FeedErrorFrame(error="feed_error", message=exc.message)
            yield encode_sse(body.model_dump_json(), event="error")

    logger.info(
        "Live feed ended",
        extra={"delivery_id": str(subscription.delivery_id), "emitted": subscription.emitted},
    )
