from rest_framework import serializers
from orders.models import OrderSession
from .order_serializers import OrderSerializer


class OrderSessionListSerializer(serializers.ModelSerializer):
    table_number = serializers.CharField(source="table.number", read_only=True, default=None)
    customer_name = serializers.CharField(source="customer.full_name", read_only=True, default=None)
    duration_minutes = serializers.IntegerField(read_only=True)

    class Meta:
        model = OrderSession
        fields = [
            "id",
            "session_number",
            "table",
            "table_number",
            "customer",
            "customer_name",
            "status",
            "guest_count",
            "subtotal",
            "discount_amount",
            "tax_amount",
            "total_amount",
            "opened_at",
            "closed_at",
            "duration_minutes",
        ]
        read_only_fields = fields


class OrderSessionSerializer(OrderSessionListSerializer):
    orders = OrderSerializer(many=True, read_only=True)

    class Meta(OrderSessionListSerializer.Meta):
        fields = OrderSessionListSerializer.Meta.fields + [
            "payment_method",
            "amount_tendered",
            "change_amount",
            "opened_by",
            "closed_by",
            "notes",
            "orders",
        ]
        read_only_fields = fields
