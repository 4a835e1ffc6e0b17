"""Livetrack services.

Business logic behind the HTTP surface:
- authz: principal resolution and the access matrix
- lifecycle: delivery status machine and validated updates
- tracking: append-only tracking ledger
- assignment: courier assignment and assignment listings
- live_feed: per-subscriber snapshot streams
- session: session token validation
"""

from livetrack.services.assignment import (
    CourierAssignmentService,
    CourierNotFoundError,
    InvalidCourierError,
)
from livetrack.services.authz import (
    AccessDeniedError,
    AccessGate,
    AuthenticationRequiredError,
    CourierPrincipal,
    CustomerPrincipal,
    Operation,
    PublicLinkPrincipal,
    StaffPrincipal,
    resolve_principal,
)
from livetrack.services.lifecycle import (
    DeliveryChanges,
    DeliveryLifecycleService,
    DeliveryNotFoundError,
    DeliveryUpdateResult,
    InvalidDeliveryUpdateError,
)
from livetrack.services.live_feed import (
    DeliverySnapshot,
    FeedSubscription,
    LiveFeedBridge,
    LiveFeedError,
)
from livetrack.services.tracking import MAX_LATEST_EVENTS, TrackingLedger

__all__ = [
    "MAX_LATEST_EVENTS",
    "AccessDeniedError",
    "AccessGate",
    "AuthenticationRequiredError",
    "CourierAssignmentService",
    "CourierNotFoundError",
    "CourierPrincipal",
    "CustomerPrincipal",
    "DeliveryChanges",
    "DeliveryLifecycleService",
    "DeliveryNotFoundError",
    "DeliverySnapshot",
    "DeliveryUpdateResult",
    "FeedSubscription",
    "InvalidCourierError",
    "InvalidDeliveryUpdateError",
    "LiveFeedBridge",
    "LiveFeedError",
    "Operation",
    "PublicLinkPrincipal",
    "StaffPrincipal",
    "TrackingLedger",
    "resolve_principal",
]
