"""
Equipment rental request and the pickup/return credentials bound to it.
"""
import enum

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, Float, Text, ForeignKey, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from agri_rental.database import Base


class RentalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    ACTIVE = "active"
    COMPLETED = "completed"
    RETURNED = "returned"


# Statuses that hold the machine's calendar days
BLOCKING_STATUSES = frozenset({RentalStatus.PENDING, RentalStatus.APPROVED, RentalStatus.ACTIVE})


class CredentialPurpose(str, enum.Enum):
    PICKUP = "pickup"
    RETURN = "return"


class RentalRequest(Base):
    """A farmer's request to hold one machine over ``[start_date, end_date)``.

    ``end_date`` is exclusive: a one-day rental stores ``start_date + 1``.
    ``rental_duration_days`` is the billed day count and comes from the
    farmer's selected days, not from the width of the window.
    """

    __tablename__ = "equipment_rental_requests"
    __table_args__ = (
        UniqueConstraint("farmer_id", "idempotency_key", name="uq_rental_request_idempotency"),
        CheckConstraint("end_date > start_date", name="ck_rental_request_window"),
    )

    id = Column(Integer, primary_key=True, index=True)
    farmer_id = Column(Integer, ForeignKey("api_users.id"), nullable=False, index=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=False, index=True)

    # Window (half-open)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    # Commercials
    rental_duration_days = Column(Integer, nullable=False)
    machine_fee = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False)
    security_deposit = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    # Delivery
    receiver_name = Column(String(150), nullable=False)
    receiver_phone = Column(String(20), nullable=False)
    delivery_address = Column(Text, nullable=False)
    delivery_latitude = Column(Float, nullable=True)
    delivery_longitude = Column(Float, nullable=True)
    additional_notes = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=RentalStatus.PENDING.value, index=True)

    # Audit
    admin_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    approved_by = Column(Integer, ForeignKey("api_users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    pickup_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    return_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    idempotency_key = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    equipment = relationship("Equipment", lazy="joined")
    credentials = relationship(
        "RentalCredential",
        back_populates="request",
        order_by="RentalCredential.issued_at",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<RentalRequest {self.id} equipment={self.equipment_id} {self.start_date}..{self.end_date} {self.status}>"

    def credential_for(self, purpose: CredentialPurpose) -> "RentalCredential | None":
        """Latest credential issued for ``purpose``, if any."""
        matches = [c for c in self.credentials if c.purpose == purpose.value]
        return matches[-1] if matches else None


class RentalCredential(Base):
    """Single-use pickup or return token issued for a rental request.

    Only a hash of the token is stored; ``id`` is the token's ``jti``.
    """

    __tablename__ = "rental_credentials"

    id = Column(String(64), primary_key=True)
    request_id = Column(
        Integer, ForeignKey("equipment_rental_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=False)
    purpose = Column(String(10), nullable=False)  # pickup, return
    token_hash = Column(String(64), nullable=False)
    # Fernet ciphertext so the owner can fetch the QR code again
    token_encrypted = Column(Text, nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    consumed_at = Column(DateTime(timezone=True), nullable=True)

    request = relationship("RentalRequest", back_populates="credentials")

    @property
    def is_consumed(self) -> bool:
        return self.consumed_at is not None

    def __repr__(self):
        return f"<RentalCredential {self.purpose} request={self.request_id}>"
