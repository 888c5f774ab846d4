from rest_framework.decorators import action
from rest_framework.response import Response

from core_backend.base.viewsets import BaseViewSet
from users.permissions import IsManagerOrHigher
from .models import Table
from .serializers import TableSerializer
from .services import TableService


class TableViewSet(BaseViewSet):
    queryset = Table.objects.all()
    serializer_class = TableSerializer
    select_related_fields = ("current_session",)
    filterset_fields = ["status", "area", "is_active"]
    search_fields = ["number", "area"]
    ordering = ["area", "number"]

    def get_permissions(self):
        if self.action in ("create", "update", "partial_update", "destroy"):
            return [IsManagerOrHigher()]
        return super().get_permissions()

    @action(detail=False, methods=["get"])
    def summary(self, request):
        return Response(TableService.get_availability_summary())

    @action(detail=True, methods=["post"], url_path="mark-available")
    def mark_available(self, request, pk=None):
        table = TableService.mark_available(self.get_object())
        return Response(TableSerializer(table).data)
