"""Tests for courier assignment and delivery listings."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from livetrack.db.models import DeliveryStatus, UserRole
from livetrack.services.assignment import (
    MAX_PAGE_SIZE,
    CourierAssignmentService,
    CourierNotFoundError,
    InvalidCourierError,
)
from livetrack.services.authz import (
    AccessDeniedError,
    AuthenticationRequiredError,
    CourierPrincipal,
    PublicLinkPrincipal,
)
from livetrack.services.lifecycle import DeliveryNotFoundError
from tests.factories import make_delivery, make_user


@pytest.fixture
def service(fake_session):
    return CourierAssignmentService(fake_session)


class TestAssign:
    async def test_assigns_courier(self, service, fake_session, delivery, staff, courier_user):
        result = await service.assign(staff, delivery.delivery_id, courier_user.user_id)

        assert result.courier_id == courier_user.user_id
        assert result.courier is courier_user
        assert fake_session.commits == 1

    async def test_does_not_touch_status_or_ledger(
        self, service, fake_session, delivery, staff, courier_user
    ):
        await service.assign(staff, delivery.delivery_id, courier_user.user_id)
        assert delivery.status == DeliveryStatus.PENDING
        assert fake_session.events_for(delivery.delivery_id) == []

    async def test_reassign_replaces_courier(
        self, service, delivery, staff, courier_user, other_courier
    ):
        await service.assign(staff, delivery.delivery_id, courier_user.user_id)
        await service.assign(staff, delivery.delivery_id, other_courier.user_id)
        assert delivery.courier_id == other_courier.user_id

    async def test_staff_user_can_be_assigned(self, service, delivery, staff, staff_user):
        result = await service.assign(staff, delivery.delivery_id, staff_user.user_id)
        assert result.courier_id == staff_user.user_id

    async def test_unknown_courier(self, service, fake_session, delivery, staff):
        with pytest.raises(CourierNotFoundError):
            await service.assign(staff, delivery.delivery_id, uuid4())
        assert delivery.courier_id is None
        assert fake_session.commits == 0

    async def test_inactive_courier(self, service, fake_session, delivery, staff):
        retired = make_user(UserRole.DELIVERY, is_active=False)
        fake_session.add(retired)
        with pytest.raises(InvalidCourierError) as exc:
            await service.assign(staff, delivery.delivery_id, retired.user_id)
        assert "inactive" in exc.value.reason

    async def test_unknown_delivery(self, service, staff, courier_user):
        with pytest.raises(DeliveryNotFoundError):
            await service.assign(staff, uuid4(), courier_user.user_id)

    async def test_courier_cannot_assign(self, service, delivery, courier, courier_user):
        with pytest.raises(AccessDeniedError):
            await service.assign(courier, delivery.delivery_id, courier_user.user_id)

    async def test_customer_cannot_assign(self, service, delivery, owner, courier_user):
        with pytest.raises(AccessDeniedError):
            await service.assign(owner, delivery.delivery_id, courier_user.user_id)

    async def test_anonymous_cannot_assign(self, service, delivery, courier_user):
        link = PublicLinkPrincipal(presented_delivery_id=delivery.delivery_id)
        with pytest.raises(AuthenticationRequiredError):
            await service.assign(link, delivery.delivery_id, courier_user.user_id)


class TestUnassign:
    async def test_clears_courier(self, service, fake_session, customer, staff, courier_user):
        assigned = make_delivery(customer, courier_user)
        fake_session.add(assigned)

        result = await service.unassign(staff, assigned.delivery_id)

        assert result.courier_id is None
        assert result.courier is None
        assert fake_session.commits == 1

    async def test_unassigned_is_noop(self, service, delivery, staff):
        result = await service.unassign(staff, delivery.delivery_id)
        assert result.courier_id is None

    async def test_courier_cannot_unassign_self(self, service, fake_session, customer, courier):
        assigned = make_delivery(customer, courier_id=courier.user_id)
        fake_session.add(assigned)
        with pytest.raises(AccessDeniedError):
            await service.unassign(courier, assigned.delivery_id)


class TestListAssigned:
    async def test_only_own_deliveries_newest_first(
        self, service, fake_session, customer, courier, courier_user, other_courier
    ):
        now = datetime.now(UTC)
        older = make_delivery(customer, courier_user, created_at=now - timedelta(hours=2))
        newer = make_delivery(customer, courier_user, created_at=now - timedelta(hours=1))
        foreign = make_delivery(customer, other_courier, created_at=now)
        for d in (older, newer, foreign):
            fake_session.add(d)

        assert await service.list_assigned(courier) == [newer, older]

    async def test_empty_when_nothing_assigned(self, service, delivery):
        assert await service.list_assigned(CourierPrincipal(user_id=uuid4())) == []

    async def test_customer_denied(self, service, owner):
        with pytest.raises(AccessDeniedError):
            await service.list_assigned(owner)

    async def test_anonymous_requires_authentication(self, service, anonymous):
        with pytest.raises(AuthenticationRequiredError):
            await service.list_assigned(anonymous)


class TestListDeliveries:
    @pytest.fixture
    def many(self, fake_session, customer):
        now = datetime.now(UTC)
        deliveries = []
        for i, status in enumerate(
            [DeliveryStatus.PENDING, DeliveryStatus.IN_TRANSIT, DeliveryStatus.PENDING]
        ):
            d = make_delivery(customer, status=status, created_at=now - timedelta(minutes=i))
            fake_session.add(d)
            deliveries.append(d)
        return deliveries

    async def test_staff_lists_newest_first(self, service, staff, many):
        assert await service.list_deliveries(staff) == many

    async def test_status_filter(self, service, staff, many):
        pending = await service.list_deliveries(staff, status=DeliveryStatus.PENDING)
        assert pending == [many[0], many[2]]

    async def test_pagination(self, service, staff, many):
        page = await service.list_deliveries(staff, offset=1, limit=1)
        assert page == [many[1]]

    async def test_limit_clamped(self, service, fake_session, staff, many):
        await service.list_deliveries(staff, limit=MAX_PAGE_SIZE * 10)
        assert fake_session.statements[-1]._limit == MAX_PAGE_SIZE

    async def test_courier_denied(self, service, courier):
        with pytest.raises(AccessDeniedError):
            await service.list_deliveries(courier)

    async def test_anonymous_requires_authentication(self, service, anonymous):
        with pytest.raises(AuthenticationRequiredError):
            await service.list_deliveries(anonymous)
