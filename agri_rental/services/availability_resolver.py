"""
Availability Resolver.

Answers "which days of this window can this machine be booked?" by merging
the master kill-switch, the calendar, blocking rental requests and admin
overrides. Read-only: it is called for display and again, authoritatively,
when a rental request is submitted.

Precedence for a single day:
    1. past day                               -> "past date"
    2. equipment switched off or deactivated  -> "equipment unavailable"
    3. held by a pending/approved/active request -> "booked"
    4. admin override for the day             -> override wins
    5. otherwise available

An override marked available never lifts rules 1-3; it only records an
administrative correction on a day that is already free.
"""
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, Mapping, Optional
import logging

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from agri_rental.config import settings
from agri_rental.exceptions import DateRangeInvalid, NotFoundError
from agri_rental.models.availability import AvailabilityOverride
from agri_rental.models.equipment import Equipment
from agri_rental.models.rental_request import RentalRequest, BLOCKING_STATUSES
from agri_rental.services.calendar import enumerate_range, half_open_days, is_past

logger = logging.getLogger(__name__)

REASON_PAST = "past date"
REASON_EQUIPMENT_UNAVAILABLE = "equipment unavailable"
REASON_BOOKED = "booked"
REASON_OVERRIDE_DEFAULT = "unavailable"


@dataclass(frozen=True)
class DayAvailability:
    date: date
    available: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class OverrideState:
    is_available: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class AvailabilitySummary:
    total_dates: int
    available_dates: int
    unavailable_dates: int
    availability_percentage: float


def booked_days(windows: Iterable[tuple[date, date]]) -> set[date]:
    """Days covered by half-open ``(start, end)`` booking windows."""
    days: set[date] = set()
    for start, end in windows:
        days.update(half_open_days(start, end))
    return days


def resolve_day(
    day: date,
    *,
    equipment_available: bool,
    booked: set[date],
    overrides: Mapping[date, OverrideState],
    today: date,
) -> DayAvailability:
    """Apply the precedence rules to a single day."""
    if is_past(day, today):
        return DayAvailability(day, False, REASON_PAST)
    if not equipment_available:
        return DayAvailability(day, False, REASON_EQUIPMENT_UNAVAILABLE)
    if day in booked:
        return DayAvailability(day, False, REASON_BOOKED)

    override = overrides.get(day)
    if override is not None and not override.is_available:
        return DayAvailability(day, False, override.reason or REASON_OVERRIDE_DEFAULT)
    return DayAvailability(day, True)


def resolve_window(
    date_from: date,
    date_to: date,
    *,
    equipment_available: bool,
    booked: set[date],
    overrides: Mapping[date, OverrideState],
    today: date,
) -> dict[date, DayAvailability]:
    """Resolve every day of the inclusive window ``[date_from, date_to]``."""
    return {
        day: resolve_day(
            day,
            equipment_available=equipment_available,
            booked=booked,
            overrides=overrides,
            today=today,
        )
        for day in enumerate_range(date_from, date_to)
    }


def summarize(availability: Mapping[date, DayAvailability]) -> AvailabilitySummary:
    total = len(availability)
    available = sum(1 for day in availability.values() if day.available)
    percentage = round(available / total * 100, 2) if total else 0.0
    return AvailabilitySummary(
        total_dates=total,
        available_dates=available,
        unavailable_dates=total - available,
        availability_percentage=percentage,
    )


def validate_window(date_from: date, date_to: date, max_days: Optional[int] = None) -> None:
    if date_to < date_from:
        raise DateRangeInvalid("date_to must not be before date_from")
    if date_to >= date.max:
        # The exclusive end of the window must still be a valid date
        raise DateRangeInvalid("date_to is beyond the supported calendar")
    max_days = max_days or settings.AVAILABILITY_MAX_WINDOW_DAYS
    if (date_to - date_from).days + 1 > max_days:
        raise DateRangeInvalid(f"Availability window cannot exceed {max_days} days")


class AvailabilityResolver:
    """Loads the rows the precedence rules need and applies them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_equipment(self, equipment_id: int) -> Equipment:
        equipment = await self.db.get(Equipment, equipment_id)
        if equipment is None:
            raise NotFoundError("Equipment", equipment_id)
        return equipment

    async def resolve(
        self,
        equipment_id: int,
        date_from: date,
        date_to: date,
        today: Optional[date] = None,
    ) -> dict[date, DayAvailability]:
        """Availability for each day of ``[date_from, date_to]``."""
        validate_window(date_from, date_to)
        equipment = await self.get_equipment(equipment_id)
        return await self.resolve_for(equipment, date_from, date_to, today=today)

    async def resolve_for(
        self,
        equipment: Equipment,
        date_from: date,
        date_to: date,
        today: Optional[date] = None,
    ) -> dict[date, DayAvailability]:
        today = today or date.today()
        booked = await self._booked_days(equipment.id, date_from, date_to)
        overrides = await self._overrides(equipment.id, date_from, date_to)
        return resolve_window(
            date_from,
            date_to,
            equipment_available=bool(equipment.is_available and equipment.is_active),
            booked=booked,
            overrides=overrides,
            today=today,
        )

    async def summary(
        self,
        equipment_id: int,
        date_from: date,
        date_to: date,
        today: Optional[date] = None,
    ) -> AvailabilitySummary:
        return summarize(await self.resolve(equipment_id, date_from, date_to, today=today))

    async def _booked_days(self, equipment_id: int, date_from: date, date_to: date) -> set[date]:
        result = await self.db.execute(
            select(RentalRequest.start_date, RentalRequest.end_date).where(
                and_(
                    RentalRequest.equipment_id == equipment_id,
                    RentalRequest.status.in_([s.value for s in BLOCKING_STATUSES]),
                    RentalRequest.start_date <= date_to,
                    RentalRequest.end_date > date_from,
                )
            )
        )
        return booked_days(result.all())

    async def _overrides(self, equipment_id: int, date_from: date, date_to: date) -> dict[date, OverrideState]:
        result = await self.db.execute(
            select(AvailabilityOverride)
            .where(
                and_(
                    AvailabilityOverride.equipment_id == equipment_id,
                    AvailabilityOverride.date >= date_from,
                    AvailabilityOverride.date <= date_to,
                )
            )
            .order_by(AvailabilityOverride.created_at, AvailabilityOverride.id)
        )
        overrides: dict[date, OverrideState] = {}
        # Later rows overwrite earlier ones for the same date
        for row in result.scalars():
            overrides[row.date] = OverrideState(row.is_available, row.reason)
        return overrides


class AvailabilityOverrideService:
    """Admin writes to the per-date override table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def set_overrides(
        self,
        equipment_id: int,
        dates: Iterable[date],
        is_available: bool,
        reason: Optional[str] = None,
        admin_id: Optional[int] = None,
    ) -> list[AvailabilityOverride]:
        """Create or replace the override for each date."""
        equipment = await self.db.get(Equipment, equipment_id)
        if equipment is None:
            raise NotFoundError("Equipment", equipment_id)

        unique_dates = sorted(set(dates))
        existing_result = await self.db.execute(
            select(AvailabilityOverride).where(
                and_(
                    AvailabilityOverride.equipment_id == equipment_id,
                    AvailabilityOverride.date.in_(unique_dates),
                )
            )
        )
        existing = {row.date: row for row in existing_result.scalars()}

        now = datetime.now(timezone.utc)
        saved = []
        for day in unique_dates:
            row = existing.get(day)
            if row is None:
                row = AvailabilityOverride(equipment_id=equipment_id, date=day)
                self.db.add(row)
            row.is_available = is_available
            row.reason = reason
            row.created_by = admin_id
            row.updated_at = now
            saved.append(row)

        await self.db.commit()
        logger.info(
            "Availability overrides set: equipment=%s days=%d available=%s",
            equipment_id,
            len(saved),
            is_available,
        )
        return saved
