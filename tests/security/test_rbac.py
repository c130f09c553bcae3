"""
Tests for the RBAC (Role-Based Access Control) module.
"""
import pytest
from unittest.mock import MagicMock

from agri_rental.exceptions import ForbiddenError
from agri_rental.security.rbac import (
    Role, Permission, ROLE_PERMISSIONS,
    get_user_role, get_user_permissions, has_permission, is_operator,
    require_permission, require_farmer,
)


def create_mock_user(role="farmer", is_superuser=False, user_id=1):
    user = MagicMock()
    user.id = user_id
    user.role = role
    user.is_superuser = is_superuser
    return user


class TestRolePermissions:
    """Test role-to-permissions mapping."""

    def test_farmer_can_request_but_not_review(self):
        perms = ROLE_PERMISSIONS[Role.FARMER]
        assert Permission.REQUEST_RENTAL in perms
        assert Permission.VIEW_EQUIPMENT in perms
        assert Permission.REVIEW_RENTALS not in perms
        assert Permission.MANAGE_AVAILABILITY not in perms

    def test_admin_runs_the_lifecycle(self):
        perms = ROLE_PERMISSIONS[Role.ADMIN]
        assert Permission.REVIEW_RENTALS in perms
        assert Permission.VERIFY_CREDENTIALS in perms
        assert Permission.REQUEST_RENTAL not in perms

    def test_superuser_has_everything(self):
        assert ROLE_PERMISSIONS[Role.SUPERUSER] == set(Permission)


class TestGetUserRole:
    def test_farmer(self):
        assert get_user_role(create_mock_user()) == Role.FARMER

    def test_admin(self):
        assert get_user_role(create_mock_user(role="admin")) == Role.ADMIN

    def test_superuser_flag_wins(self):
        assert get_user_role(create_mock_user(role="farmer", is_superuser=True)) == Role.SUPERUSER

    def test_unknown_role_is_farmer(self):
        assert get_user_role(create_mock_user(role="auditor")) == Role.FARMER


class TestChecks:
    def test_permissions_follow_role(self):
        assert get_user_permissions(create_mock_user(role="admin")) == ROLE_PERMISSIONS[Role.ADMIN]

    def test_has_permission(self):
        farmer = create_mock_user()
        assert has_permission(farmer, Permission.REQUEST_RENTAL)
        assert not has_permission(farmer, Permission.VERIFY_CREDENTIALS)

    def test_is_operator(self):
        assert is_operator(create_mock_user(role="admin"))
        assert is_operator(create_mock_user(is_superuser=True))
        assert not is_operator(create_mock_user())

    def test_require_permission_raises_forbidden(self):
        with pytest.raises(ForbiddenError) as exc_info:
            require_permission(create_mock_user(), Permission.MANAGE_EQUIPMENT)
        assert exc_info.value.status_code == 403
        assert "manage_equipment" in exc_info.value.detail

    @pytest.mark.parametrize("permission", [
        Permission.MANAGE_EQUIPMENT,
        Permission.MANAGE_AVAILABILITY,
        Permission.REVIEW_RENTALS,
        Permission.VERIFY_CREDENTIALS,
    ])
    def test_operator_permissions(self, permission):
        require_permission(create_mock_user(role="admin"), permission)
        require_permission(create_mock_user(is_superuser=True), permission)
        with pytest.raises(ForbiddenError):
            require_permission(create_mock_user(), permission)

    def test_require_farmer(self):
        require_farmer(create_mock_user())
        with pytest.raises(ForbiddenError):
            require_farmer(create_mock_user(role="admin"))
