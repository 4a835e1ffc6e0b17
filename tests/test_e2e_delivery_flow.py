"""End-to-end delivery flow through the HTTP API.

An order is opened, staff assign a courier, the courier drives the
delivery through its statuses while reporting positions, and the customer
and an anonymous link holder follow along. Every step goes through the
public endpoints against the in-memory store.
"""

from __future__ import annotations

import pytest

from livetrack.services.lifecycle import DeliveryLifecycleService


@pytest.fixture
async def opened(fake_session, customer):
    service = DeliveryLifecycleService(fake_session)
    return await service.open_delivery("ORD-7731", customer.customer_id)


class TestDeliveryFlow:
    async def test_order_to_doorstep(
        self, client, login, fake_session, opened, customer, staff_user, courier_user
    ):
        path = f"/api/deliveries/{opened.delivery_id}"

        # A fresh order is visible by link, unassigned, with an empty trail
        response = await client.get(path)
        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        assert response.json()["courierId"] is None
        assert response.json()["trackingEvents"] == []

        # The courier cannot touch it before assignment
        login(courier_user)
        response = await client.put(path, json={"status": "preparing"})
        assert response.status_code == 403

        # Staff assign the courier
        login(staff_user)
        response = await client.post(
            f"{path}/assign", json={"courierId": str(courier_user.user_id)}
        )
        assert response.status_code == 200
        assert response.json()["courier"]["name"] == courier_user.name

        # The courier now sees it in their list and moves it along
        login(courier_user)
        mine = (await client.get("/api/courier/deliveries")).json()
        assert [d["deliveryId"] for d in mine] == [str(opened.delivery_id)]

        steps = [
            {"status": "preparing"},
            {"status": "out_for_delivery", "latitude": 52.3676, "longitude": 4.9041},
            {"status": "in_transit", "latitude": 52.3702, "longitude": 4.8952},
            {"latitude": 52.3731, "longitude": 4.8922, "notes": "Around the corner"},
        ]
        for step in steps:
            response = await client.put(path, json=step)
            assert response.status_code == 200, response.text

        started_at = response.json()["startedAt"]
        assert started_at is not None
        assert response.json()["status"] == "in_transit"
        assert response.json()["latestEvent"]["notes"] == "Around the corner"

        response = await client.put(path, json={"status": "delivered"})
        delivered = response.json()
        assert delivered["status"] == "delivered"
        assert delivered["deliveredAt"] is not None
        assert delivered["startedAt"] == started_at

        # The customer reviews the full trail, oldest first
        login(customer)
        history = (await client.get(f"{path}/tracking")).json()["events"]
        assert [e["status"] for e in history] == [
            "preparing",
            "out_for_delivery",
            "in_transit",
            "in_transit",
            "delivered",
        ]
        assert history[0]["latitude"] is None
        assert history[3]["notes"] == "Around the corner"

        # The link holder sees the final state and the newest events first
        login(None)
        detail = (await client.get(path)).json()
        assert detail["status"] == "delivered"
        assert detail["trackingEvents"][0]["status"] == "delivered"
        assert len(detail["trackingEvents"]) == 5

        # ...but may not read the full history or change anything
        assert (await client.get(f"{path}/tracking")).status_code == 401
        assert (await client.put(path, json={"status": "cancelled"})).status_code == 401

    async def test_reopened_delivery_loses_delivered_at(
        self, client, login, opened, staff_user
    ):
        path = f"/api/deliveries/{opened.delivery_id}"
        login(staff_user)

        await client.put(path, json={"status": "delivered"})
        response = await client.put(path, json={"status": "in_transit"})

        assert response.status_code == 200
        assert response.json()["deliveredAt"] is None
