from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
import logging

from orders.serializers import (
    ApplyDiscountSerializer,
    OrderSerializer,
    PaymentSerializer,
    VoidOrderSerializer,
)
from orders.services import OrderService

logger = logging.getLogger(__name__)


class StatusActionsMixin:
    """
    Mixin for order status transition actions

    This mixin provides action methods for OrderViewSet. Lifecycle errors
    raised by the services are rendered by the project exception handler.
    """

    def _order_response(self, order, status_code=status.HTTP_200_OK):
        order.refresh_from_db()
        return Response(OrderSerializer(order).data, status=status_code)

    @action(detail=True, methods=["post"])
    def confirm(self, request: Request, pk=None) -> Response:
        """Validate stock, send tickets to the stations and confirm."""
        order = OrderService.confirm_order(self.get_object())
        return self._order_response(order)

    @action(detail=True, methods=["post"])
    def hold(self, request: Request, pk=None) -> Response:
        order = OrderService.hold_order(self.get_object())
        return self._order_response(order)

    @action(detail=True, methods=["post"])
    def resume(self, request: Request, pk=None) -> Response:
        order = OrderService.resume_order(self.get_object())
        return self._order_response(order)

    @action(detail=True, methods=["post"], url_path="void")
    def void(self, request: Request, pk=None) -> Response:
        """Void the order. Manager-gated unless disabled in settings."""
        serializer = VoidOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = OrderService.void_order(
            self.get_object(),
            reason=serializer.validated_data["reason"],
            actor=request.user,
            note=serializer.validated_data["note"],
        )
        return self._order_response(order)

    @action(detail=True, methods=["post"])
    def discount(self, request: Request, pk=None) -> Response:
        serializer = ApplyDiscountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = OrderService.apply_discount(
            self.get_object(),
            amount=serializer.validated_data["amount"],
            actor=request.user,
            reason=serializer.validated_data["reason"],
        )
        return self._order_response(order)

    @action(detail=True, methods=["post"])
    def checkout(self, request: Request, pk=None) -> Response:
        """Express checkout for an order without a tab."""
        serializer = PaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = OrderService.checkout_express(
            self.get_object(), serializer.validated_data, actor=request.user
        )
        return self._order_response(order)
