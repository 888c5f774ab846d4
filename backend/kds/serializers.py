from rest_framework import serializers

from .models import PreparationTicket, TicketStatus


class PreparationTicketSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="order.order_number", read_only=True)
    table_number = serializers.CharField(source="order.table.number", read_only=True, default=None)
    is_overdue = serializers.BooleanField(read_only=True)
    total_time_minutes = serializers.IntegerField(read_only=True)

    class Meta:
        model = PreparationTicket
        fields = [
            "id",
            "order",
            "order_number",
            "table_number",
            "order_item",
            "destination",
            "status",
            "routing_source",
            "display_name",
            "quantity",
            "special_instructions",
            "is_priority",
            "is_modified",
            "is_overdue",
            "total_time_minutes",
            "created_at",
            "started_at",
            "ready_at",
            "served_at",
            "cancelled_at",
        ]
        read_only_fields = fields


class TicketStatusUpdateSerializer(serializers.Serializer):
    """Station progress only; tickets are cancelled by voiding or editing the order."""

    status = serializers.ChoiceField(
        choices=[
            (TicketStatus.PREPARING.value, TicketStatus.PREPARING.label),
            (TicketStatus.READY.value, TicketStatus.READY.label),
            (TicketStatus.SERVED.value, TicketStatus.SERVED.label),
        ]
    )
