# Security module
from agri_rental.security.rbac import Permission, require_farmer, require_permission, is_operator

__all__ = [
    "Permission",
    "require_farmer",
    "require_permission",
    "is_operator",
]
