"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation. Factories build plain
dicts of column values; fixtures turn them into ORM rows.
"""

from .user import UserFactory, AdminUserFactory, InactiveUserFactory
from .equipment import EquipmentCategoryFactory, EquipmentFactory, UnavailableEquipmentFactory
from .rental_request import RentalRequestPayloadFactory

__all__ = [
    "UserFactory",
    "AdminUserFactory",
    "InactiveUserFactory",
    "EquipmentCategoryFactory",
    "EquipmentFactory",
    "UnavailableEquipmentFactory",
    "RentalRequestPayloadFactory",
]
