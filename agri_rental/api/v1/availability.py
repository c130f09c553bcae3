"""
Availability API - calendar data, admin overrides and the booking selector.

Endpoints:
- GET  /equipment/{id}/availability          per-day availability
- GET  /equipment/{id}/availability/summary  counts and percentage
- PUT  /equipment/{id}/availability          admin overrides
- POST /equipment/{id}/selection             apply a calendar tap
- GET  /equipment/{id}/quote                 fee quote for N billed days
"""

from datetime import date, timedelta
from typing import Optional
import logging

from fastapi import APIRouter, Query

from agri_rental.api.deps import DbSession, CurrentUser, AvailabilityManager
from agri_rental.schemas.availability import (
    AvailabilityResponse,
    AvailabilitySummaryResponse,
    AvailabilityUpdate,
    AvailabilityOverrideResponse,
    DayAvailabilityResponse,
    FeeQuoteResponse,
    SelectionRequest,
    SelectionResponse,
)
from agri_rental.services import fee_calculator, range_selector
from agri_rental.services.availability_resolver import (
    AvailabilityOverrideService,
    AvailabilityResolver,
    validate_window,
)

logger = logging.getLogger(__name__)
router = APIRouter()

DEFAULT_WINDOW_DAYS = 30


def _default_window(date_from: Optional[date], date_to: Optional[date]) -> tuple[date, date]:
    date_from = date_from or date.today()
    date_to = date_to or date_from + min(timedelta(days=DEFAULT_WINDOW_DAYS - 1), date.max - date_from)
    return date_from, date_to


@router.get("/{equipment_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
    equipment_id: int,
    db: DbSession,
    current_user: CurrentUser,
    date_from: Optional[date] = Query(None, description="First day (default today)"),
    date_to: Optional[date] = Query(None, description="Last day, inclusive (default 30 days)"),
):
    """Availability of every day in ``[date_from, date_to]``."""
    date_from, date_to = _default_window(date_from, date_to)
    availability = await AvailabilityResolver(db).resolve(equipment_id, date_from, date_to)

    return AvailabilityResponse(
        equipment_id=equipment_id,
        date_from=date_from,
        date_to=date_to,
        availability={
            day: DayAvailabilityResponse(available=entry.available, reason=entry.reason)
            for day, entry in availability.items()
        },
    )


@router.get("/{equipment_id}/availability/summary", response_model=AvailabilitySummaryResponse)
async def get_availability_summary(
    equipment_id: int,
    db: DbSession,
    current_user: CurrentUser,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    date_from, date_to = _default_window(date_from, date_to)
    summary = await AvailabilityResolver(db).summary(equipment_id, date_from, date_to)
    return AvailabilitySummaryResponse(
        equipment_id=equipment_id,
        date_from=date_from,
        date_to=date_to,
        total_dates=summary.total_dates,
        available_dates=summary.available_dates,
        unavailable_dates=summary.unavailable_dates,
        availability_percentage=summary.availability_percentage,
    )


@router.put("/{equipment_id}/availability", response_model=list[AvailabilityOverrideResponse])
async def set_availability(
    equipment_id: int,
    update: AvailabilityUpdate,
    db: DbSession,
    current_user: AvailabilityManager,
):
    """Create or replace admin overrides for the given dates."""
    rows = await AvailabilityOverrideService(db).set_overrides(
        equipment_id,
        update.dates,
        is_available=update.is_available,
        reason=update.reason,
        admin_id=current_user.id,
    )
    return [
        AvailabilityOverrideResponse(
            equipment_id=row.equipment_id,
            date=row.date,
            is_available=row.is_available,
            reason=row.reason,
        )
        for row in rows
    ]


@router.post("/{equipment_id}/selection", response_model=SelectionResponse)
async def apply_selection(
    equipment_id: int,
    selection_data: SelectionRequest,
    db: DbSession,
    current_user: CurrentUser,
):
    """Toggle one calendar day and return the new selection with its quote.

    Availability is resolved over the span of the current selection and the
    tapped day; previously selected days that are no longer bookable drop out.
    """
    days = set(selection_data.selected_dates) | {selection_data.toggled_date}
    date_from, date_to = min(days), max(days)
    validate_window(date_from, date_to)

    resolver = AvailabilityResolver(db)
    equipment = await resolver.get_equipment(equipment_id)
    availability = await resolver.resolve_for(equipment, date_from, date_to)
    is_bookable = range_selector.bookable_from(availability)

    current = range_selector.Selection.of(d for d in selection_data.selected_dates if is_bookable(d))
    selection = range_selector.toggle(current, selection_data.toggled_date, is_bookable)
    quote = fee_calculator.compute(len(selection), equipment)

    window = selection.window()
    return SelectionResponse(
        selected_dates=list(selection.days),
        start_date=window[0] if window else None,
        end_date=window[1] if window else None,
        quote=FeeQuoteResponse.from_quote(quote),
    )


@router.get("/{equipment_id}/quote", response_model=FeeQuoteResponse)
async def get_quote(
    equipment_id: int,
    db: DbSession,
    current_user: CurrentUser,
    days: int = Query(..., ge=0, le=366),
):
    equipment = await AvailabilityResolver(db).get_equipment(equipment_id)
    return FeeQuoteResponse.from_quote(fee_calculator.compute(days, equipment))
