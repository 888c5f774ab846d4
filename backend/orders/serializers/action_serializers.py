from decimal import Decimal
from rest_framework import serializers

from orders.models import Order, PaymentMethod


class AddOnInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"))
    quantity = serializers.IntegerField(min_value=1, default=1)


class OrderItemInputSerializer(serializers.Serializer):
    """One line of a new order: exactly one of product_id or package_id."""

    product_id = serializers.IntegerField(required=False, allow_null=True)
    package_id = serializers.IntegerField(required=False, allow_null=True)
    quantity = serializers.IntegerField(min_value=1, default=1)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    is_complimentary = serializers.BooleanField(required=False, default=False)
    addons = AddOnInputSerializer(many=True, required=False, default=list)

    def validate(self, data):
        if bool(data.get("product_id")) == bool(data.get("package_id")):
            raise serializers.ValidationError("Provide exactly one of product_id or package_id.")
        return data


class OrderCreateSerializer(serializers.Serializer):
    session = serializers.UUIDField(required=False, allow_null=True)
    customer = serializers.UUIDField(required=False, allow_null=True)
    table = serializers.IntegerField(required=False, allow_null=True)
    items = OrderItemInputSerializer(many=True, allow_empty=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    amount_tendered = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"))


class VoidOrderSerializer(serializers.Serializer):
    reason = serializers.ChoiceField(choices=Order.VoidReason.choices)
    note = serializers.CharField(required=False, allow_blank=True, default="")


class ApplyDiscountSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"))
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class OpenSessionSerializer(serializers.Serializer):
    table = serializers.IntegerField(required=False, allow_null=True)
    customer = serializers.UUIDField(required=False, allow_null=True)
    guest_count = serializers.IntegerField(min_value=1, default=1)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class MoveTableSerializer(serializers.Serializer):
    table = serializers.IntegerField()


class AbandonSessionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ReduceItemSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
