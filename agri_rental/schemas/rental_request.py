"""
Pydantic schemas for the rental request API.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from agri_rental.schemas.pagination import PaginatedResponse


class RentalRequestCreate(BaseModel):
    """Schema for submitting a rental request.

    ``end_date`` is exclusive. ``selected_dates``, when given, are the days
    actually billed and must fall inside ``[start_date, end_date)``.
    """

    equipment_id: int
    start_date: date
    end_date: date
    selected_dates: Optional[list[date]] = None

    # Delivery
    receiver_name: str = Field(..., min_length=1, max_length=150)
    receiver_phone: str = Field(..., min_length=7, max_length=20)
    delivery_address: str = Field(..., min_length=1)
    delivery_latitude: Optional[float] = Field(None, ge=-90, le=90)
    delivery_longitude: Optional[float] = Field(None, ge=-180, le=180)

    notes: Optional[str] = None


class RentalRequestAction(BaseModel):
    """Status change requested through PATCH."""

    action: Literal["approve", "reject", "cancel"]
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None


class CredentialScan(BaseModel):
    """Token read from the farmer's QR code."""

    credential: str = Field(..., min_length=1)


class RentalRequestResponse(BaseModel):
    """Schema for rental request response."""

    id: int
    farmer_id: int
    equipment_id: int
    equipment_name: Optional[str] = None

    start_date: date
    end_date: date
    rental_duration_days: int

    machine_fee: Decimal
    delivery_fee: Decimal
    security_deposit: Decimal
    total_amount: Decimal

    receiver_name: str
    receiver_phone: str
    delivery_address: str
    delivery_latitude: Optional[float] = None
    delivery_longitude: Optional[float] = None
    additional_notes: Optional[str] = None

    status: str
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    pickup_confirmed_at: Optional[datetime] = None
    return_confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_model(cls, request) -> "RentalRequestResponse":
        response = cls.model_validate(request)
        if request.equipment is not None:
            response.equipment_name = request.equipment.name
        return response


RentalRequestListResponse = PaginatedResponse[RentalRequestResponse]


class CredentialResponse(BaseModel):
    """The credential the farmer shows at the depot."""

    request_id: int
    purpose: Literal["pickup", "return"]
    credential: str
    qr_code: str = Field(description="PNG data URI of the credential")
    verification_url: str
    issued_at: datetime
