"""
Role-Based Access Control (RBAC) Tests

Tests for the manager gate used by voids, large discounts, walkouts
and stock corrections.
"""
import pytest
from unittest.mock import patch

from core_backend.exceptions import AuthorizationError
from users.models import User
from users.permissions import IsManagerOrHigher
from users.services import UserService


def request_for(user):
    return type('obj', (object,), {'user': user})


@pytest.mark.django_db
class TestRoleBasedAccessControl:

    @pytest.mark.parametrize('role,allowed', [
        (User.Role.OWNER, True),
        (User.Role.ADMIN, True),
        (User.Role.MANAGER, True),
        (User.Role.CASHIER, False),
    ])
    def test_manager_gate_by_role(self, role, allowed):
        user = User.objects.create_user(email=f'{role.lower()}@bar.test', password='password123', role=role)

        assert UserService.is_manager_or_higher(user) is allowed
        assert user.is_manager_or_higher is allowed
        assert IsManagerOrHigher().has_permission(request_for(user), None) is allowed

    def test_inactive_manager_is_refused(self, manager):
        manager.is_active = False
        manager.save()

        assert UserService.is_manager_or_higher(manager) is False

    def test_require_manager_raises_with_action(self, cashier):
        with patch('users.services.logger') as mock_logger:
            with pytest.raises(AuthorizationError) as exc_info:
                UserService.require_manager(cashier, 'void an order')

        assert exc_info.value.details == {'action': 'void an order', 'role': User.Role.CASHIER}
        assert exc_info.value.status_code == 403
        mock_logger.warning.assert_called_once()

    def test_require_manager_without_actor(self):
        with pytest.raises(AuthorizationError):
            UserService.require_manager(None, 'abandon a tab')

    def test_require_manager_passes_for_manager(self, manager):
        UserService.require_manager(manager, 'void an order')

    def test_superuser_defaults_to_owner(self):
        owner = User.objects.create_superuser(email='owner@bar.test', password='password123')

        assert owner.role == User.Role.OWNER
        assert owner.is_staff and owner.is_superuser

    def test_anonymous_request_is_refused(self):
        from django.contrib.auth.models import AnonymousUser

        assert IsManagerOrHigher().has_permission(request_for(AnonymousUser()), None) is False
