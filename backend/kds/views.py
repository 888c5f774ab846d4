from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response
import logging

from core_backend.base.viewsets import ReadOnlyBaseViewSet
from .models import PreparationTicket, TicketStatus
from .serializers import PreparationTicketSerializer, TicketStatusUpdateSerializer
from .services import TicketService

logger = logging.getLogger(__name__)


class PreparationTicketViewSet(ReadOnlyBaseViewSet):
    """
    Station queue. Without a ``status`` filter only active tickets are
    returned, priority first and then oldest first.
    """

    queryset = PreparationTicket.objects.all()
    serializer_class = PreparationTicketSerializer
    select_related_fields = ("order", "order__table", "order_item")
    filterset_fields = ["destination", "status", "order", "is_priority"]
    search_fields = ["display_name", "order__order_number"]
    ordering = ["-is_priority", "created_at"]

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == "list" and "status" not in self.request.query_params:
            queryset = queryset.filter(
                status__in=[TicketStatus.PENDING, TicketStatus.PREPARING, TicketStatus.READY]
            )
        return queryset

    @action(detail=True, methods=["post"], url_path="status")
    def update_status(self, request, pk=None):
        ticket = self.get_object()
        serializer = TicketStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        ticket = TicketService.update_ticket_status(ticket, serializer.validated_data["status"])
        return Response(PreparationTicketSerializer(ticket).data, status=status.HTTP_200_OK)
