"""Courier assignment service.

Staff attach a courier to a delivery or detach it. Assignment changes
who may update the delivery; it does not touch the status and does not
write a tracking event.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from livetrack.db.models.accounts import User
from livetrack.db.models.deliveries import Delivery
from livetrack.services.authz import (
    CourierPrincipal,
    Operation,
    StaffPrincipal,
    access_gate,
)
from livetrack.services.lifecycle import DeliveryLifecycleService

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from livetrack.db.models.base import DeliveryStatus
    from livetrack.services.authz import Principal

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class CourierNotFoundError(Exception):
    """Raised when the courier to assign does not exist."""

    def __init__(self, courier_id: UUID) -> None:
        self.courier_id = courier_id
        super().__init__(f"Courier {courier_id} not found")


class InvalidCourierError(Exception):
    """Raised when the user to assign cannot carry deliveries."""

    def __init__(self, courier_id: UUID, reason: str) -> None:
        self.courier_id = courier_id
        self.reason = reason
        super().__init__(f"User {courier_id} cannot be assigned: {reason}")


class CourierAssignmentService:
    """Assigns couriers and lists deliveries by assignment.

    Example:
        service = CourierAssignmentService(session)
        delivery = await service.assign(staff, delivery_id, courier_id)
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._lifecycle = DeliveryLifecycleService(session)

    async def assign(self, principal: Principal, delivery_id: UUID, courier_id: UUID) -> Delivery:
        """Set the courier of a delivery, replacing any previous one.

        Args:
            principal: Principal performing the assignment (must be staff).
            delivery_id: Delivery to assign.
            courier_id: User to assign as courier.

        Returns:
            The updated delivery with its courier loaded.

        Raises:
            DeliveryNotFoundError: The delivery does not exist.
            AccessDeniedError: The principal is not staff.
            CourierNotFoundError: The user does not exist.
            InvalidCourierError: The user is inactive or lacks a courier-capable role.
        """
        delivery = await self._lifecycle.get_delivery(delivery_id, for_update=True)
        access_gate.require(principal, Operation.ASSIGN, delivery)

        result = await self._session.execute(select(User).where(User.user_id == courier_id))
        courier = result.scalar_one_or_none()
        if courier is None:
            raise CourierNotFoundError(courier_id)
        if not courier.is_active:
            raise InvalidCourierError(courier_id, "account is inactive")
        if not courier.can_carry:
            raise InvalidCourierError(courier_id, f"role {courier.role.value} cannot carry")

        previous_courier_id = delivery.courier_id
        delivery.courier_id = courier.user_id
        delivery.courier = courier
        delivery.updated_at = datetime.now(UTC)
        await self._session.commit()

        logger.info(
            "Courier assigned",
            extra={
                "delivery_id": str(delivery_id),
                "courier_id": str(courier_id),
                "previous_courier_id": str(previous_courier_id) if previous_courier_id else None,
            },
        )
        return delivery

    async def unassign(self, principal: Principal, delivery_id: UUID) -> Delivery:
        """Clear the courier of a delivery. Clearing an unassigned delivery is a no-op.

        Raises:
            DeliveryNotFoundError: The delivery does not exist.
            AccessDeniedError: The principal is not staff.
        """
        delivery = await self._lifecycle.get_delivery(delivery_id, for_update=True)
        access_gate.require(principal, Operation.ASSIGN, delivery)

        previous_courier_id = delivery.courier_id
        delivery.courier_id = None
        delivery.courier = None
        delivery.updated_at = datetime.now(UTC)
        await self._session.commit()

        logger.info(
            "Courier unassigned",
            extra={
                "delivery_id": str(delivery_id),
                "previous_courier_id": str(previous_courier_id) if previous_courier_id else None,
            },
        )
        return delivery

    async def list_assigned(self, principal: Principal) -> list[Delivery]:
        """List the deliveries assigned to the calling courier, newest first.

        Staff users can be assigned too, so they get their own list as well.

        Raises:
            AccessDeniedError: The principal is not an internal user.
        """
        if not isinstance(principal, (CourierPrincipal, StaffPrincipal)):
            # Customers and link holders have no assignment list
            access_gate.require(principal, Operation.READ_ANY)

        query = (
            select(Delivery)
            .where(Delivery.courier_id == principal.user_id)
            .options(selectinload(Delivery.customer), selectinload(Delivery.courier))
            .order_by(Delivery.created_at.desc())
        )
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def list_deliveries(
        self,
        principal: Principal,
        *,
        status: DeliveryStatus | None = None,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> list[Delivery]:
        """List all deliveries, newest first (staff only).

        Args:
            principal: Principal performing the read.
            status: Optional status filter.
            offset: Number of rows to skip.
            limit: Page size, clamped to [1, MAX_PAGE_SIZE].

        Raises:
            AccessDeniedError: The principal is not staff.
        """
        access_gate.require(principal, Operation.READ_ANY)

        query = select(Delivery).options(
            selectinload(Delivery.customer), selectinload(Delivery.courier)
        )
        if status is not None:
            query = query.where(Delivery.status == status)
        query = (
            query.order_by(Delivery.created_at.desc())
            .offset(max(offset, 0))
            .limit(max(1, min(limit, MAX_PAGE_SIZE)))
        )
        result = await self._session.execute(query)
        return list(result.scalars().all())
