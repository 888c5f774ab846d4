from rest_framework import permissions
from .models import User


class IsManagerOrHigher(permissions.BasePermission):
    """Owners, admins and managers. Used for voids, walkouts and stock corrections."""

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user and user.is_authenticated and getattr(user, "role", None) in User.MANAGER_ROLES
        )
