"""Availability, selection and quote schemas."""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class DayAvailabilityResponse(BaseModel):
    available: bool
    reason: Optional[str] = None


class AvailabilityResponse(BaseModel):
    """Per-day availability keyed by ISO date."""

    equipment_id: int
    date_from: date
    date_to: date
    availability: dict[date, DayAvailabilityResponse]


class AvailabilitySummaryResponse(BaseModel):
    equipment_id: int
    date_from: date
    date_to: date
    total_dates: int
    available_dates: int
    unavailable_dates: int
    availability_percentage: float


class AvailabilityUpdate(BaseModel):
    """Admin override for one or more dates."""

    dates: list[date] = Field(..., min_length=1)
    is_available: bool
    reason: Optional[str] = Field(None, max_length=255)


class AvailabilityOverrideResponse(BaseModel):
    equipment_id: int
    date: date
    is_available: bool
    reason: Optional[str] = None

    class Config:
        from_attributes = True


class FeeQuoteResponse(BaseModel):
    days: int
    machine_fee: Decimal
    delivery_fee: Decimal
    total_fee: Decimal
    security_deposit: Decimal
    total_amount: Decimal

    @classmethod
    def from_quote(cls, quote) -> "FeeQuoteResponse":
        return cls(
            days=quote.days,
            machine_fee=quote.machine_fee,
            delivery_fee=quote.delivery_fee,
            total_fee=quote.total_fee,
            security_deposit=quote.security_deposit,
            total_amount=quote.total_amount,
        )


class SelectionRequest(BaseModel):
    """A calendar tap: the days currently selected and the day tapped."""

    selected_dates: list[date] = Field(default_factory=list)
    toggled_date: date


class SelectionResponse(BaseModel):
    selected_dates: list[date]
    start_date: Optional[date] = None
    end_date: Optional[date] = Field(None, description="Exclusive end of the selected window")
    quote: FeeQuoteResponse
