"""Equipment and category schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from agri_rental.schemas.pagination import PaginatedResponse

EquipmentStatus = Literal["available", "rented", "maintenance", "out_of_service"]

Money = Decimal


class EquipmentCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class EquipmentCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class EquipmentCategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EquipmentBase(BaseModel):
    """Base equipment schema."""

    name: str = Field(..., min_length=1, max_length=150)
    category_id: int
    description: Optional[str] = None
    daily_rate: Money = Field(..., gt=0, max_digits=10, decimal_places=2)
    weekly_rate: Money = Field(..., gt=0, max_digits=10, decimal_places=2)
    monthly_rate: Optional[Money] = Field(None, gt=0, max_digits=10, decimal_places=2)
    delivery_fee: Money = Field(Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)
    security_deposit: Money = Field(Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)
    contact_number: Optional[str] = Field(None, max_length=20)
    specifications: Optional[dict[str, Any]] = None
    maintenance_notes: Optional[str] = None
    is_available: bool = True
    current_status: EquipmentStatus = "available"


class EquipmentCreate(EquipmentBase):
    """Schema for creating equipment."""

    pass


class EquipmentUpdate(BaseModel):
    """Schema for updating equipment (all fields optional)."""

    name: Optional[str] = Field(None, min_length=1, max_length=150)
    category_id: Optional[int] = None
    description: Optional[str] = None
    daily_rate: Optional[Money] = Field(None, gt=0, max_digits=10, decimal_places=2)
    weekly_rate: Optional[Money] = Field(None, gt=0, max_digits=10, decimal_places=2)
    monthly_rate: Optional[Money] = Field(None, gt=0, max_digits=10, decimal_places=2)
    delivery_fee: Optional[Money] = Field(None, ge=0, max_digits=10, decimal_places=2)
    security_deposit: Optional[Money] = Field(None, ge=0, max_digits=10, decimal_places=2)
    contact_number: Optional[str] = Field(None, max_length=20)
    specifications: Optional[dict[str, Any]] = None
    maintenance_notes: Optional[str] = None
    is_available: Optional[bool] = None
    current_status: Optional[EquipmentStatus] = None


class EquipmentResponse(BaseModel):
    """Schema for equipment response."""

    id: int
    name: str
    category_id: int
    description: Optional[str] = None
    daily_rate: Money
    weekly_rate: Money
    monthly_rate: Optional[Money] = None
    delivery_fee: Money
    security_deposit: Money
    contact_number: Optional[str] = None
    specifications: Optional[dict[str, Any]] = None
    maintenance_notes: Optional[str] = None
    is_available: bool
    current_status: str
    category_name: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_model(cls, equipment) -> "EquipmentResponse":
        response = cls.model_validate(equipment)
        if equipment.category is not None:
            response.category_name = equipment.category.name
        return response


EquipmentListResponse = PaginatedResponse[EquipmentResponse]
