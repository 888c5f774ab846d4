from rest_framework import serializers

from .models import InventoryStock, StockDiscrepancy, StockMovement


class InventoryStockSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    available_quantity = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    effective_low_stock_threshold = serializers.ReadOnlyField()
    is_low_stock = serializers.ReadOnlyField()

    class Meta:
        model = InventoryStock
        fields = [
            "id",
            "product",
            "product_name",
            "quantity",
            "reserved_quantity",
            "available_quantity",
            "low_stock_threshold",
            "effective_low_stock_threshold",
            "is_low_stock",
            "updated_at",
        ]
        read_only_fields = fields


class StockMovementSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    order_number = serializers.CharField(source="order.order_number", read_only=True, default=None)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "product",
            "product_name",
            "movement_type",
            "quantity_change",
            "quantity_before",
            "quantity_after",
            "order",
            "order_number",
            "user",
            "reason",
            "created_at",
        ]
        read_only_fields = fields


class StockDiscrepancySerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True, default=None)
    order_number = serializers.CharField(source="order.order_number", read_only=True)

    class Meta:
        model = StockDiscrepancy
        fields = [
            "id",
            "order",
            "order_number",
            "product",
            "product_name",
            "operation",
            "quantity",
            "error_message",
            "status",
            "retry_count",
            "resolution_note",
            "resolved_by",
            "created_at",
            "resolved_at",
        ]
        read_only_fields = fields


class StockAdjustmentSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2)
    reason = serializers.CharField(max_length=255)

    def validate_quantity(self, value):
        if value == 0:
            raise serializers.ValidationError("Quantity cannot be zero.")
        return value


class ResolveDiscrepancySerializer(serializers.Serializer):
    note = serializers.CharField(max_length=1000)


class SellableProductSerializer(serializers.Serializer):
    id = serializers.IntegerField(source="product.id")
    name = serializers.CharField(source="product.name")
    category = serializers.CharField(source="product.category.name", default=None)
    price = serializers.DecimalField(source="product.price", max_digits=10, decimal_places=2)
    vip_price = serializers.DecimalField(source="product.vip_price", max_digits=10, decimal_places=2, allow_null=True)
    available = serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True)
    stock_status = serializers.CharField()
    is_strict = serializers.BooleanField()


class SellablePackageSerializer(serializers.Serializer):
    id = serializers.IntegerField(source="package.id")
    name = serializers.CharField(source="package.name")
    price = serializers.DecimalField(source="package.price", max_digits=10, decimal_places=2)
    vip_price = serializers.DecimalField(source="package.vip_price", max_digits=10, decimal_places=2, allow_null=True)
    max_sellable = serializers.IntegerField(allow_null=True)
    limiting_product_id = serializers.IntegerField(source="limiting_product.id", default=None)
    limiting_product_name = serializers.CharField(source="limiting_product.name", default=None)
    stock_status = serializers.CharField()
