"""Courier dashboard API router.

- GET /courier/deliveries   deliveries assigned to the caller, newest first
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from livetrack.api.middleware.errors import translate_service_errors
from livetrack.api.routers.deliveries import Assignment, CurrentUser
from livetrack.api.schemas.deliveries import DeliveryResponse
from livetrack.services.authz import resolve_principal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courier", tags=["courier"])


@router.get(
    "/deliveries",
    response_model=list[DeliveryResponse],
    summary="List my assigned deliveries",
    description="Deliveries whose courier is the calling user. Staff may call it too.",
)
async def list_my_deliveries(
    user: CurrentUser,
    assignment: Assignment,
) -> list[DeliveryResponse]:
    principal = resolve_principal(user)
    with translate_service_errors():
        deliveries = await assignment.list_assigned(principal)

    logger.debug(
        "Assigned deliveries listed",
        extra={"principal_kind": principal.kind, "count": len(deliveries)},
    )
    return [DeliveryResponse.from_delivery(d) for d in deliveries]
