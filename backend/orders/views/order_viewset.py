from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
import logging

from core_backend.base import BaseViewSet
from customers.services import CustomerService
from orders.models import Order, OrderSession
from orders.serializers import (
    OrderCreateSerializer,
    OrderItemInputSerializer,
    OrderItemSerializer,
    OrderSerializer,
    ReduceItemSerializer,
)
from orders.services import OrderService
from tables.services import TableService
from core_backend.exceptions import ValidationError
from inventory.policy import StockPolicyService
from .status_actions import StatusActionsMixin

logger = logging.getLogger(__name__)


class OrderViewSet(StatusActionsMixin, BaseViewSet):
    """
    Orders. Reads are plain list/detail; every write is a lifecycle
    operation so totals, stock and tickets stay consistent.
    """

    queryset = Order.objects.all()
    serializer_class = OrderSerializer
    http_method_names = ["get", "post", "delete", "head", "options"]
    select_related_fields = ("session", "table", "cashier", "customer")
    prefetch_related_fields = ("items__addons", "items__tickets", "modifications")
    filterset_fields = ["status", "session", "table", "cashier"]
    search_fields = ["order_number"]
    ordering = ["-created_at"]

    def create(self, request: Request, *args, **kwargs) -> Response:
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        session = None
        if data.get("session"):
            try:
                session = OrderSession.objects.get(pk=data["session"])
            except OrderSession.DoesNotExist:
                raise ValidationError("Session not found", {"session": str(data["session"])})

        order = OrderService.create_order(
            cashier=request.user,
            items=data["items"],
            session=session,
            customer=CustomerService.resolve(data.get("customer")),
            table=TableService.resolve(data.get("table")),
            notes=data["notes"],
        )
        return self._order_response(order, status.HTTP_201_CREATED)

    def destroy(self, request: Request, *args, **kwargs) -> Response:
        return Response(
            {"error": "method_not_allowed", "message": "Orders are voided, not deleted."},
            status=status.HTTP_405_METHOD_NOT_ALLOWED,
        )

    @action(detail=True, methods=["post"], url_path="items")
    def add_item(self, request: Request, pk=None) -> Response:
        serializer = OrderItemInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = OrderService.add_item(self.get_object(), serializer.validated_data)
        return Response(OrderItemSerializer(item).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["delete"], url_path=r"items/(?P<item_id>[^/.]+)")
    def remove_item(self, request: Request, pk=None, item_id=None) -> Response:
        """
        Drop a line. On a confirmed order this cancels the line's tickets and
        is recorded as a modification; ``?reason=`` is stored with it.
        """
        order = self.get_object()
        if order.status == Order.OrderStatus.CONFIRMED:
            order = OrderService.remove_confirmed_item(
                order, item_id, actor=request.user, reason=request.query_params.get("reason", "")
            )
        else:
            order = OrderService.remove_item(order, item_id)
        return self._order_response(order)

    @action(detail=True, methods=["post"], url_path=r"items/(?P<item_id>[^/.]+)/reduce")
    def reduce_item(self, request: Request, pk=None, item_id=None) -> Response:
        """Lower a line's quantity on a confirmed order."""
        serializer = ReduceItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = self.get_object()
        OrderService.reduce_item_quantity(
            order,
            item_id,
            serializer.validated_data["quantity"],
            actor=request.user,
            reason=serializer.validated_data["reason"],
        )
        return self._order_response(order)

    @action(detail=True, methods=["get"], url_path="stock-check")
    def stock_check(self, request: Request, pk=None) -> Response:
        """Dry run of the stock policy for this order's current items."""
        result = StockPolicyService.validate_order(self.get_object())
        return Response(
            {"is_valid": result.is_valid, "shortages": result.shortages, "warnings": result.warnings}
        )
