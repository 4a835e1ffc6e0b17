"""Pydantic schemas for the livetrack API."""

from livetrack.api.schemas.deliveries import (
    AssignCourierRequest,
    CourierSummary,
    CustomerSummary,
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

__all__ = [
    "AssignCourierRequest",
    "CourierSummary",
    "CustomerSummary",
    "DeliveryDetailResponse",
    "DeliveryListResponse",
    "DeliveryResponse",
    "DeliveryUpdateResponse",
    "FeedErrorFrame",
    "SnapshotPayload",
    "TrackingEventResponse",
    "TrackingHistoryResponse",
    "UpdateDeliveryRequest",
]
