"""
Role-Based Access Control (RBAC) Module

Farmers browse equipment and manage their own rental requests; operators
(admins) maintain the catalogue, edit availability and drive the rental
lifecycle.
"""

from enum import Enum
from typing import Set
import logging

from agri_rental.exceptions import ForbiddenError
from agri_rental.models.user import User

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """User roles."""
    FARMER = "farmer"
    ADMIN = "admin"
    SUPERUSER = "superuser"


class Permission(str, Enum):
    """Fine-grained permissions."""
    VIEW_EQUIPMENT = "view_equipment"
    MANAGE_EQUIPMENT = "manage_equipment"
    MANAGE_AVAILABILITY = "manage_availability"
    REQUEST_RENTAL = "request_rental"
    REVIEW_RENTALS = "review_rentals"
    VERIFY_CREDENTIALS = "verify_credentials"


# Role-to-permissions mapping
ROLE_PERMISSIONS: dict[Role, Set[Permission]] = {
    Role.FARMER: {
        Permission.VIEW_EQUIPMENT,
        Permission.REQUEST_RENTAL,
    },
    Role.ADMIN: {
        Permission.VIEW_EQUIPMENT,
        Permission.MANAGE_EQUIPMENT,
        Permission.MANAGE_AVAILABILITY,
        Permission.REVIEW_RENTALS,
        Permission.VERIFY_CREDENTIALS,
    },
    Role.SUPERUSER: set(Permission),  # All permissions
}


def get_user_role(user: User) -> Role:
    """Determine user's role from database flags."""
    if user.is_superuser:
        return Role.SUPERUSER
    if user.role == Role.ADMIN.value:
        return Role.ADMIN
    return Role.FARMER


def get_user_permissions(user: User) -> Set[Permission]:
    """Get all permissions for a user based on their role."""
    return ROLE_PERMISSIONS.get(get_user_role(user), set())


def has_permission(user: User, permission: Permission) -> bool:
    """Check if user has a specific permission."""
    return permission in get_user_permissions(user)


def is_operator(user: User) -> bool:
    return get_user_role(user) in (Role.ADMIN, Role.SUPERUSER)


def require_permission(user: User, permission: Permission) -> None:
    """Raise 403 unless ``user`` holds ``permission``."""
    if not has_permission(user, permission):
        logger.warning(
            f"Permission denied: user {user.id} lacks {permission.value}",
            extra={"user_id": user.id, "permission": permission.value},
        )
        raise ForbiddenError(f"Permission denied: requires {permission.value}")


def require_farmer(current_user: User) -> None:
    """Only farmer accounts may submit rental requests."""
    if not has_permission(current_user, Permission.REQUEST_RENTAL):
        logger.warning(
            f"Rental request denied for non-farmer user {current_user.id}",
            extra={"user_id": current_user.id},
        )
        raise ForbiddenError("Only farmers can request equipment rentals")
