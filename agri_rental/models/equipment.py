"""Rentable farm machinery and its categories."""
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, Numeric, ForeignKey, JSON, UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from agri_rental.database import Base

EQUIPMENT_STATUSES = ("available", "rented", "maintenance", "out_of_service")


class EquipmentCategory(Base):
    """Grouping used by the catalogue screens (tractors, harvesters, ...)."""

    __tablename__ = "equipment_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    equipment = relationship("Equipment", back_populates="category")

    def __repr__(self):
        return f"<EquipmentCategory {self.name}>"


class Equipment(Base):
    """A single physical machine; booked whole, one day at a time."""

    __tablename__ = "equipment"
    __table_args__ = (
        UniqueConstraint("category_id", "name", name="uq_equipment_category_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False)
    category_id = Column(Integer, ForeignKey("equipment_categories.id"), nullable=False, index=True)
    description = Column(Text, nullable=True)

    # Rate card
    daily_rate = Column(Numeric(10, 2), nullable=False)
    weekly_rate = Column(Numeric(10, 2), nullable=False)
    monthly_rate = Column(Numeric(10, 2), nullable=True)

    # Fixed per-booking charges
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    security_deposit = Column(Numeric(10, 2), nullable=False, default=0)

    contact_number = Column(String(20), nullable=True)
    specifications = Column(JSON, nullable=True)
    maintenance_notes = Column(Text, nullable=True)

    # Master kill-switch: when false no date is bookable
    is_available = Column(Boolean, default=True, nullable=False)
    # Soft delete
    is_active = Column(Boolean, default=True, nullable=False)
    current_status = Column(String(20), default="available", nullable=False)  # see EQUIPMENT_STATUSES

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    category = relationship("EquipmentCategory", back_populates="equipment", lazy="joined")

    def __repr__(self):
        return f"<Equipment {self.id} - {self.name}>"
