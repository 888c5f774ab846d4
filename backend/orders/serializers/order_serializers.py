from rest_framework import serializers
from orders.models import Order, OrderItem, OrderItemAddOn, OrderModification


class OrderItemAddOnSerializer(serializers.ModelSerializer):
    total_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItemAddOn
        fields = ["id", "name", "price", "quantity", "total_price"]


class OrderItemSerializer(serializers.ModelSerializer):
    addons = OrderItemAddOnSerializer(many=True, read_only=True)
    destinations = serializers.SerializerMethodField()

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product",
            "package",
            "item_name",
            "quantity",
            "unit_price",
            "subtotal",
            "discount_amount",
            "total",
            "is_vip_price",
            "is_complimentary",
            "notes",
            "addons",
            "destinations",
        ]
        read_only_fields = fields

    def get_destinations(self, obj):
        """Stations this line was sent to, once the order is confirmed."""
        return sorted({ticket.destination for ticket in obj.tickets.all()})


class OrderModificationSerializer(serializers.ModelSerializer):
    modified_by_name = serializers.CharField(source="modified_by.username", read_only=True, default=None)

    class Meta:
        model = OrderModification
        fields = [
            "id",
            "order_item",
            "item_name",
            "modification_type",
            "old_quantity",
            "new_quantity",
            "amount_adjusted",
            "ticket_statuses",
            "reason",
            "modified_by",
            "modified_by_name",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """
    Read representation of an order. All writes go through the lifecycle
    actions on the viewset.
    """

    items = OrderItemSerializer(many=True, read_only=True)
    modifications = OrderModificationSerializer(many=True, read_only=True)
    session_number = serializers.CharField(source="session.session_number", read_only=True, default=None)
    table_number = serializers.CharField(source="table.number", read_only=True, default=None)
    cashier_name = serializers.CharField(source="cashier.username", read_only=True)
    is_express = serializers.BooleanField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "session",
            "session_number",
            "is_express",
            "cashier",
            "cashier_name",
            "customer",
            "table",
            "table_number",
            "status",
            "subtotal",
            "discount_amount",
            "discount_reason",
            "tax_amount",
            "total_amount",
            "payment_method",
            "amount_tendered",
            "change_amount",
            "void_reason",
            "void_note",
            "voided_by",
            "voided_at",
            "stock_warnings",
            "notes",
            "items",
            "modifications",
            "created_at",
            "confirmed_at",
            "completed_at",
        ]
        read_only_fields = fields
