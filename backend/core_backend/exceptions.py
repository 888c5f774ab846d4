"""
Error taxonomy for the order lifecycle engine, plus the DRF exception handler
that turns it into JSON responses.

Validation and conflict errors propagate synchronously so the caller can
correct or resynchronize. ``DeductionFailure`` never leaves the stock ledger:
the coordinator catches it and records a discrepancy for reconciliation.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class LifecycleError(Exception):
    """Base exception for lifecycle errors. Carries a message and structured details."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "lifecycle_error"

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self):
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(LifecycleError):
    """Malformed input, rejected before any state change."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "validation_error"


class ConflictError(LifecycleError):
    """
    The resource is in a state incompatible with the requested transition.
    ``current_state`` is attached so the caller can resynchronize.
    """

    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"

    def __init__(self, message, current_state=None, details=None):
        details = dict(details or {})
        if current_state is not None:
            details["current_state"] = current_state
        super().__init__(message, details)
        self.current_state = current_state


class InsufficientStock(LifecycleError):
    """A strict-category item lacks quantity. Lists every short item."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "insufficient_stock"

    def __init__(self, shortages):
        self.shortages = list(shortages)
        names = ", ".join(
            f"{s['product_name']} (requested {s['requested']}, available {s['available']})"
            for s in self.shortages
        )
        super().__init__(
            f"Insufficient stock: {names}", {"shortages": self.shortages}
        )


class AuthorizationError(LifecycleError):
    """The actor lacks the role required for a manager-gated action."""

    status_code = status.HTTP_403_FORBIDDEN
    error_code = "not_authorized"


class DeductionFailure(LifecycleError):
    """A ledger update failed after payment capture. Recorded, never surfaced."""

    error_code = "deduction_failure"

    def __init__(self, message, product=None, quantity=None):
        super().__init__(
            message,
            {
                "product_id": str(product.pk) if product is not None else None,
                "quantity": str(quantity) if quantity is not None else None,
            },
        )
        self.product = product
        self.quantity = quantity


def lifecycle_exception_handler(exc, context):
    """
    Maps lifecycle errors to JSON responses, deferring to DRF for everything else.
    """
    if isinstance(exc, LifecycleError):
        request = context.get("request")
        logger.info(
            f"Lifecycle error {exc.error_code}: {exc.message}",
            extra={"path": getattr(request, "path", None)},
        )
        return Response(exc.to_dict(), status=exc.status_code)

    return exception_handler(exc, context)
