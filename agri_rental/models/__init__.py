# Import every model so Base.metadata is complete before create_all()
from agri_rental.models.user import User
from agri_rental.models.equipment import Equipment, EquipmentCategory, EQUIPMENT_STATUSES
from agri_rental.models.availability import AvailabilityOverride, EquipmentOccupancy
from agri_rental.models.rental_request import (
    RentalRequest,
    RentalCredential,
    RentalStatus,
    CredentialPurpose,
    BLOCKING_STATUSES,
)

__all__ = [
    "User",
    "Equipment",
    "EquipmentCategory",
    "EQUIPMENT_STATUSES",
    "AvailabilityOverride",
    "EquipmentOccupancy",
    "RentalRequest",
    "RentalCredential",
    "RentalStatus",
    "CredentialPurpose",
    "BLOCKING_STATUSES",
]
