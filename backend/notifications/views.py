from rest_framework.decorators import action
from rest_framework.response import Response

from core_backend.base.viewsets import ReadOnlyBaseViewSet
from .models import Notification
from .serializers import NotificationSerializer


class NotificationViewSet(ReadOnlyBaseViewSet):
    queryset = Notification.objects.all()
    serializer_class = NotificationSerializer
    filterset_fields = ["event_type", "is_read"]
    ordering = ["-created_at"]

    @action(detail=True, methods=["post"], url_path="mark-read")
    def mark_read(self, request, pk=None):
        notification = self.get_object()
        notification.is_read = True
        notification.save(update_fields=["is_read"])
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=["post"], url_path="mark-all-read")
    def mark_all_read(self, request):
        updated = Notification.objects.filter(is_read=False).update(is_read=True)
        return Response({"updated": updated})
