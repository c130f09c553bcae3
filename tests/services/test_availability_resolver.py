"""
Tests for the availability resolver and admin overrides.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from agri_rental.exceptions import DateRangeInvalid, NotFoundError
from agri_rental.models import RentalRequest
from agri_rental.services.availability_resolver import (
    REASON_BOOKED,
    REASON_EQUIPMENT_UNAVAILABLE,
    REASON_OVERRIDE_DEFAULT,
    REASON_PAST,
    AvailabilityOverrideService,
    AvailabilityResolver,
    DayAvailability,
    OverrideState,
    booked_days,
    resolve_day,
    summarize,
    validate_window,
)

TODAY = date(2026, 6, 1)


async def add_request(db, farmer, equipment, start: date, end: date, status: str) -> RentalRequest:
    request = RentalRequest(
        farmer_id=farmer.id,
        equipment_id=equipment.id,
        start_date=start,
        end_date=end,
        rental_duration_days=(end - start).days,
        machine_fee=Decimal("0.00"),
        delivery_fee=Decimal("0.00"),
        security_deposit=Decimal("0.00"),
        total_amount=Decimal("0.00"),
        receiver_name="Receiver",
        receiver_phone="+15550001111",
        delivery_address="Farm road 1",
        status=status,
    )
    db.add(request)
    await db.commit()
    return request


class TestResolveDay:
    def resolve(self, day, **kwargs):
        params = {"equipment_available": True, "booked": set(), "overrides": {}, "today": TODAY}
        params.update(kwargs)
        return resolve_day(day, **params)

    def test_free_day(self):
        assert self.resolve(TODAY) == DayAvailability(TODAY, True, None)

    def test_past_day_wins_over_everything(self):
        yesterday = TODAY - timedelta(days=1)
        result = self.resolve(yesterday, equipment_available=False, booked={yesterday})
        assert result.reason == REASON_PAST

    def test_kill_switch(self):
        assert self.resolve(TODAY, equipment_available=False).reason == REASON_EQUIPMENT_UNAVAILABLE

    def test_booked(self):
        result = self.resolve(TODAY, booked={TODAY})
        assert result.available is False
        assert result.reason == REASON_BOOKED

    def test_override_blocks_with_its_reason(self):
        result = self.resolve(TODAY, overrides={TODAY: OverrideState(False, "maintenance")})
        assert result == DayAvailability(TODAY, False, "maintenance")

    def test_override_without_reason(self):
        result = self.resolve(TODAY, overrides={TODAY: OverrideState(False)})
        assert result.reason == REASON_OVERRIDE_DEFAULT

    def test_available_override_never_reopens_booked_day(self):
        result = self.resolve(TODAY, booked={TODAY}, overrides={TODAY: OverrideState(True)})
        assert result.reason == REASON_BOOKED

    def test_available_override_never_reopens_killed_equipment(self):
        result = self.resolve(TODAY, equipment_available=False, overrides={TODAY: OverrideState(True)})
        assert result.available is False


def test_booked_days_are_half_open():
    start = date(2026, 6, 10)
    days = booked_days([(start, start + timedelta(days=3))])
    assert days == {start, start + timedelta(days=1), start + timedelta(days=2)}


def test_summarize():
    availability = {
        TODAY: DayAvailability(TODAY, True),
        TODAY + timedelta(days=1): DayAvailability(TODAY + timedelta(days=1), False, REASON_BOOKED),
        TODAY + timedelta(days=2): DayAvailability(TODAY + timedelta(days=2), True),
    }
    summary = summarize(availability)
    assert summary.total_dates == 3
    assert summary.available_dates == 2
    assert summary.unavailable_dates == 1
    assert summary.availability_percentage == 66.67


def test_summarize_empty():
    assert summarize({}).availability_percentage == 0.0


class TestValidateWindow:
    def test_reversed_window(self):
        with pytest.raises(DateRangeInvalid):
            validate_window(TODAY, TODAY - timedelta(days=1))

    def test_too_long(self):
        with pytest.raises(DateRangeInvalid):
            validate_window(TODAY, TODAY + timedelta(days=10), max_days=5)

    def test_single_day_ok(self):
        validate_window(TODAY, TODAY, max_days=1)

    def test_rejects_last_representable_day(self):
        with pytest.raises(DateRangeInvalid):
            validate_window(date.max - timedelta(days=11), date.max)


class TestAvailabilityResolver:
    @pytest.mark.asyncio
    async def test_blocking_requests_mark_days_booked(self, service_db, test_db, farmer, equipment, future):
        await add_request(test_db, farmer, equipment, future(10), future(13), "approved")

        availability = await AvailabilityResolver(service_db).resolve(equipment.id, future(9), future(13))

        assert availability[future(9)].available is True
        for offset in (10, 11, 12):
            assert availability[future(offset)].reason == REASON_BOOKED
        # end_date is exclusive
        assert availability[future(13)].available is True

    @pytest.mark.asyncio
    async def test_released_requests_do_not_block(self, service_db, test_db, farmer, equipment, future):
        for status in ("rejected", "cancelled", "returned", "completed"):
            await add_request(test_db, farmer, equipment, future(5), future(6), status)

        availability = await AvailabilityResolver(service_db).resolve(equipment.id, future(5), future(5))
        assert availability[future(5)].available is True

    @pytest.mark.asyncio
    async def test_pending_request_blocks(self, service_db, test_db, farmer, equipment, future):
        await add_request(test_db, farmer, equipment, future(5), future(6), "pending")

        availability = await AvailabilityResolver(service_db).resolve(equipment.id, future(5), future(5))
        assert availability[future(5)].reason == REASON_BOOKED

    @pytest.mark.asyncio
    async def test_past_days(self, service_db, equipment, today):
        yesterday = today - timedelta(days=1)
        availability = await AvailabilityResolver(service_db).resolve(equipment.id, yesterday, today)

        assert availability[yesterday].reason == REASON_PAST
        assert availability[today].available is True

    @pytest.mark.asyncio
    async def test_deactivated_equipment(self, service_db, test_db, equipment, future):
        equipment.is_active = False
        await test_db.commit()

        availability = await AvailabilityResolver(service_db).resolve(equipment.id, future(1), future(2))
        assert {a.reason for a in availability.values()} == {REASON_EQUIPMENT_UNAVAILABLE}

    @pytest.mark.asyncio
    async def test_unknown_equipment(self, service_db, future):
        with pytest.raises(NotFoundError):
            await AvailabilityResolver(service_db).resolve(9999, future(1), future(2))

    @pytest.mark.asyncio
    async def test_summary(self, service_db, test_db, farmer, equipment, future):
        await add_request(test_db, farmer, equipment, future(1), future(3), "approved")

        summary = await AvailabilityResolver(service_db).summary(equipment.id, future(1), future(4))
        assert summary.total_dates == 4
        assert summary.available_dates == 2
        assert summary.availability_percentage == 50.0


class TestAvailabilityOverrideService:
    @pytest.mark.asyncio
    async def test_override_blocks_day(self, service_db, admin, equipment, future):
        await AvailabilityOverrideService(service_db).set_overrides(
            equipment.id, [future(3)], is_available=False, reason="servicing", admin_id=admin.id
        )

        availability = await AvailabilityResolver(service_db).resolve(equipment.id, future(3), future(3))
        assert availability[future(3)] == DayAvailability(future(3), False, "servicing")

    @pytest.mark.asyncio
    async def test_latest_override_wins(self, service_db, admin, equipment, future):
        overrides = AvailabilityOverrideService(service_db)
        await overrides.set_overrides(equipment.id, [future(3)], is_available=False, reason="servicing")
        rows = await overrides.set_overrides(equipment.id, [future(3), future(3)], is_available=True)

        assert len(rows) == 1
        availability = await AvailabilityResolver(service_db).resolve(equipment.id, future(3), future(3))
        assert availability[future(3)].available is True

    @pytest.mark.asyncio
    async def test_available_override_does_not_unbook(self, service_db, test_db, farmer, equipment, future):
        await add_request(test_db, farmer, equipment, future(3), future(4), "approved")
        await AvailabilityOverrideService(service_db).set_overrides(equipment.id, [future(3)], is_available=True)

        availability = await AvailabilityResolver(service_db).resolve(equipment.id, future(3), future(3))
        assert availability[future(3)].reason == REASON_BOOKED

    @pytest.mark.asyncio
    async def test_unknown_equipment(self, service_db, future):
        with pytest.raises(NotFoundError):
            await AvailabilityOverrideService(service_db).set_overrides(9999, [future(1)], is_available=False)
