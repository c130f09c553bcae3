"""
Tests for the availability, selection and quote endpoints.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from agri_rental.models import Equipment
from tests.factories import RentalRequestPayloadFactory


async def book(client: AsyncClient, headers: dict, equipment: Equipment, start, end):
    payload = RentalRequestPayloadFactory(
        equipment_id=equipment.id, start_date=start.isoformat(), end_date=end.isoformat()
    )
    response = await client.post("/api/v1/rental-requests", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestGetAvailability:
    """Tests for GET /api/v1/equipment/{id}/availability"""

    @pytest.mark.asyncio
    async def test_default_window_starts_today(self, client: AsyncClient, farmer_headers: dict, equipment: Equipment, today):
        response = await client.get(f"/api/v1/equipment/{equipment.id}/availability", headers=farmer_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["date_from"] == today.isoformat()
        assert len(data["availability"]) == 30
        assert data["availability"][today.isoformat()] == {"available": True, "reason": None}

    @pytest.mark.asyncio
    async def test_booked_days_are_half_open(
        self, client: AsyncClient, farmer_headers: dict, equipment: Equipment, future
    ):
        await book(client, farmer_headers, equipment, future(2), future(4))

        response = await client.get(
            f"/api/v1/equipment/{equipment.id}/availability",
            params={"date_from": future(1).isoformat(), "date_to": future(5).isoformat()},
            headers=farmer_headers,
        )

        days = response.json()["availability"]
        assert days[future(1).isoformat()]["available"] is True
        assert days[future(2).isoformat()] == {"available": False, "reason": "booked"}
        assert days[future(3).isoformat()] == {"available": False, "reason": "booked"}
        assert days[future(4).isoformat()]["available"] is True

    @pytest.mark.asyncio
    async def test_past_days(self, client: AsyncClient, farmer_headers: dict, equipment: Equipment, future):
        response = await client.get(
            f"/api/v1/equipment/{equipment.id}/availability",
            params={"date_from": future(-1).isoformat(), "date_to": future(0).isoformat()},
            headers=farmer_headers,
        )

        days = response.json()["availability"]
        assert days[future(-1).isoformat()] == {"available": False, "reason": "past date"}
        assert days[future(0).isoformat()]["available"] is True

    @pytest.mark.asyncio
    async def test_inverted_window(self, client: AsyncClient, farmer_headers: dict, equipment: Equipment, future):
        response = await client.get(
            f"/api/v1/equipment/{equipment.id}/availability",
            params={"date_from": future(5).isoformat(), "date_to": future(1).isoformat()},
            headers=farmer_headers,
        )

        assert response.status_code == 422
        assert response.json()["code"] == "RNT_001"

    @pytest.mark.asyncio
    async def test_window_too_wide(self, client: AsyncClient, farmer_headers: dict, equipment: Equipment, today):
        response = await client.get(
            f"/api/v1/equipment/{equipment.id}/availability",
            params={"date_from": today.isoformat(), "date_to": (today + timedelta(days=400)).isoformat()},
            headers=farmer_headers,
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_end_of_calendar(self, client: AsyncClient, farmer_headers: dict, equipment: Equipment):
        url = f"/api/v1/equipment/{equipment.id}/availability"

        explicit = await client.get(
            url, params={"date_from": "9999-12-20", "date_to": "9999-12-31"}, headers=farmer_headers
        )
        defaulted = await client.get(url, params={"date_from": "9999-12-20"}, headers=farmer_headers)

        assert explicit.status_code == 422
        assert explicit.json()["code"] == "RNT_001"
        assert defaulted.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_equipment(self, client: AsyncClient, farmer_headers: dict):
        response = await client.get("/api/v1/equipment/9999/availability", headers=farmer_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_summary(self, client: AsyncClient, farmer_headers: dict, equipment: Equipment, future):
        await book(client, farmer_headers, equipment, future(1), future(2))

        response = await client.get(
            f"/api/v1/equipment/{equipment.id}/availability/summary",
            params={"date_from": future(1).isoformat(), "date_to": future(4).isoformat()},
            headers=farmer_headers,
        )

        data = response.json()
        assert data["total_dates"] == 4
        assert data["available_dates"] == 3
        assert data["unavailable_dates"] == 1
        assert data["availability_percentage"] == 75.0


class TestOverrides:
    """Tests for PUT /api/v1/equipment/{id}/availability"""

    @pytest.mark.asyncio
    async def test_farmer_cannot_override(self, client: AsyncClient, farmer_headers: dict, equipment: Equipment, future):
        response = await client.put(
            f"/api/v1/equipment/{equipment.id}/availability",
            json={"dates": [future(3).isoformat()], "is_available": False},
            headers=farmer_headers,
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_block_and_reopen(self, client: AsyncClient, admin_headers: dict, equipment: Equipment, future):
        url = f"/api/v1/equipment/{equipment.id}/availability"
        window = {"date_from": future(3).isoformat(), "date_to": future(3).isoformat()}

        blocked = await client.put(
            url,
            json={"dates": [future(3).isoformat()], "is_available": False, "reason": "servicing"},
            headers=admin_headers,
        )
        assert blocked.status_code == 200
        assert blocked.json() == [
            {"equipment_id": equipment.id, "date": future(3).isoformat(), "is_available": False, "reason": "servicing"}
        ]
        day = (await client.get(url, params=window, headers=admin_headers)).json()["availability"]
        assert day[future(3).isoformat()] == {"available": False, "reason": "servicing"}

        await client.put(url, json={"dates": [future(3).isoformat()], "is_available": True}, headers=admin_headers)
        day = (await client.get(url, params=window, headers=admin_headers)).json()["availability"]
        assert day[future(3).isoformat()]["available"] is True

    @pytest.mark.asyncio
    async def test_override_cannot_reopen_booked_day(
        self, client: AsyncClient, admin_headers: dict, farmer_headers: dict, equipment: Equipment, future
    ):
        url = f"/api/v1/equipment/{equipment.id}/availability"
        await book(client, farmer_headers, equipment, future(3), future(4))

        await client.put(url, json={"dates": [future(3).isoformat()], "is_available": True}, headers=admin_headers)

        window = {"date_from": future(3).isoformat(), "date_to": future(3).isoformat()}
        day = (await client.get(url, params=window, headers=admin_headers)).json()["availability"]
        assert day[future(3).isoformat()] == {"available": False, "reason": "booked"}

    @pytest.mark.asyncio
    async def test_empty_dates_rejected(self, client: AsyncClient, admin_headers: dict, equipment: Equipment):
        response = await client.put(
            f"/api/v1/equipment/{equipment.id}/availability",
            json={"dates": [], "is_available": False},
            headers=admin_headers,
        )
        assert response.status_code == 422


class TestSelection:
    """Tests for POST /api/v1/equipment/{id}/selection"""

    @pytest.mark.asyncio
    async def test_fill_skips_unavailable_days(
        self, client: AsyncClient, admin_headers: dict, farmer_headers: dict, equipment: Equipment, future
    ):
        await client.put(
            f"/api/v1/equipment/{equipment.id}/availability",
            json={"dates": [future(3).isoformat()], "is_available": False},
            headers=admin_headers,
        )

        response = await client.post(
            f"/api/v1/equipment/{equipment.id}/selection",
            json={"selected_dates": [future(1).isoformat()], "toggled_date": future(4).isoformat()},
            headers=farmer_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["selected_dates"] == [future(1).isoformat(), future(2).isoformat(), future(4).isoformat()]
        assert data["start_date"] == future(1).isoformat()
        assert data["end_date"] == future(5).isoformat()
        assert data["quote"]["days"] == 3
        assert Decimal(data["quote"]["machine_fee"]) == Decimal("4500.00")
        assert Decimal(data["quote"]["total_amount"]) == Decimal("7000.00")

    @pytest.mark.asyncio
    async def test_deselect_keeps_largest_run(self, client: AsyncClient, farmer_headers: dict, equipment: Equipment, future):
        selected = [future(n).isoformat() for n in range(1, 6)]

        response = await client.post(
            f"/api/v1/equipment/{equipment.id}/selection",
            json={"selected_dates": selected, "toggled_date": future(2).isoformat()},
            headers=farmer_headers,
        )

        assert response.json()["selected_dates"] == [future(3).isoformat(), future(4).isoformat(), future(5).isoformat()]

    @pytest.mark.asyncio
    async def test_tapping_past_day_changes_nothing(
        self, client: AsyncClient, farmer_headers: dict, equipment: Equipment, future
    ):
        response = await client.post(
            f"/api/v1/equipment/{equipment.id}/selection",
            json={"selected_dates": [], "toggled_date": future(-1).isoformat()},
            headers=farmer_headers,
        )

        data = response.json()
        assert data["selected_dates"] == []
        assert data["start_date"] is None
        assert data["quote"]["days"] == 0
        assert Decimal(data["quote"]["total_amount"]) == Decimal("0")

    @pytest.mark.asyncio
    async def test_tapping_last_calendar_day(self, client: AsyncClient, farmer_headers: dict, equipment: Equipment):
        response = await client.post(
            f"/api/v1/equipment/{equipment.id}/selection",
            json={"selected_dates": ["9999-12-30"], "toggled_date": "9999-12-31"},
            headers=farmer_headers,
        )

        assert response.status_code == 422
        assert response.json()["code"] == "RNT_001"

    @pytest.mark.asyncio
    async def test_booked_days_drop_out_of_stale_selection(
        self, client: AsyncClient, farmer_headers: dict, other_farmer_headers: dict, equipment: Equipment, future
    ):
        await book(client, other_farmer_headers, equipment, future(2), future(3))

        response = await client.post(
            f"/api/v1/equipment/{equipment.id}/selection",
            json={"selected_dates": [future(1).isoformat(), future(2).isoformat()], "toggled_date": future(4).isoformat()},
            headers=farmer_headers,
        )

        assert response.json()["selected_dates"] == [future(1).isoformat(), future(3).isoformat(), future(4).isoformat()]


@pytest.mark.asyncio
async def test_quote(client: AsyncClient, farmer_headers: dict, equipment: Equipment):
    response = await client.get(f"/api/v1/equipment/{equipment.id}/quote?days=3", headers=farmer_headers)

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["machine_fee"]) == Decimal("4500.00")
    assert Decimal(data["delivery_fee"]) == Decimal("500.00")
    assert Decimal(data["total_fee"]) == Decimal("5000.00")
    assert Decimal(data["security_deposit"]) == Decimal("2000.00")
    assert Decimal(data["total_amount"]) == Decimal("7000.00")
