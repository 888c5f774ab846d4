import logging

from django.core.exceptions import ValidationError as DjangoValidationError

from core_backend.exceptions import ValidationError
from .models import Customer

logger = logging.getLogger(__name__)


class CustomerService:
    """Resolves optional customer context for pricing decisions."""

    @staticmethod
    def get_pricing_context(customer) -> dict:
        if customer is None:
            return {"customer_id": None, "is_vip": False}
        return {"customer_id": str(customer.pk), "is_vip": customer.is_vip}

    @staticmethod
    def resolve(customer_id):
        """Returns the active customer or None when no id is given."""
        if not customer_id:
            return None

        try:
            return Customer.objects.active().get(pk=customer_id)
        except (Customer.DoesNotExist, DjangoValidationError, ValueError, TypeError):
            raise ValidationError(
                "Customer not found or inactive", {"customer_id": str(customer_id)}
            )
