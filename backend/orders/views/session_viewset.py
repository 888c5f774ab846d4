from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
import logging

from core_backend.base import BaseViewSet
from core_backend.exceptions import ValidationError
from customers.services import CustomerService
from orders.models import OrderSession
from orders.serializers import (
    AbandonSessionSerializer,
    MoveTableSerializer,
    OpenSessionSerializer,
    OrderSessionListSerializer,
    OrderSessionSerializer,
    PaymentSerializer,
)
from orders.services import OrderSessionService
from tables.services import TableService

logger = logging.getLogger(__name__)


class OrderSessionViewSet(BaseViewSet):
    """Tabs: open, preview the bill, close with payment, abandon, move table."""

    queryset = OrderSession.objects.all()
    serializer_class = OrderSessionSerializer
    http_method_names = ["get", "post", "head", "options"]
    select_related_fields = ("table", "customer", "opened_by", "closed_by")
    filterset_fields = ["status", "table", "customer"]
    search_fields = ["session_number"]
    ordering = ["-opened_at"]

    def get_serializer_class(self):
        if self.action == "list":
            return OrderSessionListSerializer
        return OrderSessionSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action != "list":
            queryset = queryset.prefetch_related("orders__items__addons", "orders__items__tickets")
        return queryset

    def _session_response(self, session, status_code=status.HTTP_200_OK):
        session = self.get_queryset().get(pk=session.pk)
        return Response(OrderSessionSerializer(session).data, status=status_code)

    def create(self, request: Request, *args, **kwargs) -> Response:
        serializer = OpenSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        session = OrderSessionService.open_session(
            table=TableService.resolve(data.get("table")),
            customer=CustomerService.resolve(data.get("customer")),
            opened_by=request.user,
            guest_count=data["guest_count"],
            notes=data["notes"],
        )
        return self._session_response(session, status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="bill-preview")
    def bill_preview(self, request: Request, pk=None) -> Response:
        return Response(OrderSessionService.get_bill_preview(self.get_object()))

    @action(detail=True, methods=["post"])
    def close(self, request: Request, pk=None) -> Response:
        serializer = PaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        session = OrderSessionService.close_session(
            self.get_object(), serializer.validated_data, actor=request.user
        )
        return self._session_response(session)

    @action(detail=True, methods=["post"])
    def abandon(self, request: Request, pk=None) -> Response:
        serializer = AbandonSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        session = OrderSessionService.abandon_session(
            self.get_object(), actor=request.user, notes=serializer.validated_data["notes"]
        )
        return self._session_response(session)

    @action(detail=True, methods=["post"], url_path="move-table")
    def move_table(self, request: Request, pk=None) -> Response:
        serializer = MoveTableSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        table = TableService.resolve(serializer.validated_data["table"])
        if table is None:
            raise ValidationError("A destination table is required")
        session = OrderSessionService.move_session_to_table(
            self.get_object(), table, actor=request.user
        )
        return self._session_response(session)
