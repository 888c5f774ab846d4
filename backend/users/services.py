import logging

from core_backend.exceptions import AuthorizationError
from .models import User

logger = logging.getLogger(__name__)


class UserService:
    """
    Resolves actor permissions for manager-gated lifecycle actions
    (voids, large discounts, walkouts, stock adjustments).
    """

    @staticmethod
    def is_manager_or_higher(user) -> bool:
        return bool(user) and getattr(user, "is_active", False) and user.role in User.MANAGER_ROLES

    @staticmethod
    def require_manager(user, action: str) -> None:
        """Raises AuthorizationError unless the actor is a manager, admin or owner."""
        if not UserService.is_manager_or_higher(user):
            logger.warning(
                f"Denied '{action}' for {getattr(user, 'email', 'anonymous')} "
                f"(role={getattr(user, 'role', None)})"
            )
            raise AuthorizationError(
                f"Manager approval is required to {action}",
                {"action": action, "role": getattr(user, "role", None)},
            )
