"""Per-date availability data: admin overrides and booking occupancy."""
from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from agri_rental.database import Base


class AvailabilityOverride(Base):
    """Admin-authored exception to calendar-derived availability for one date.

    One row per (equipment, date); setting the same date again replaces it.
    """

    __tablename__ = "equipment_availability"
    __table_args__ = (
        UniqueConstraint("equipment_id", "date", name="uq_equipment_availability_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    is_available = Column(Boolean, nullable=False)
    reason = Column(String(255), nullable=True)
    created_by = Column(Integer, ForeignKey("api_users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        state = "open" if self.is_available else "blocked"
        return f"<AvailabilityOverride equipment={self.equipment_id} {self.date} {state}>"


class EquipmentOccupancy(Base):
    """One row per day a pending/approved/active request holds the machine.

    The unique key on (equipment_id, day) makes a second claim on the same
    day fail at insert time, whatever the isolation level.
    """

    __tablename__ = "equipment_occupancy"
    __table_args__ = (
        UniqueConstraint("equipment_id", "day", name="uq_equipment_occupancy_day"),
    )

    id = Column(Integer, primary_key=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False)
    day = Column(Date, nullable=False)
    request_id = Column(
        Integer, ForeignKey("equipment_rental_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
