from django.contrib import admin
from .models import InventoryStock, StockDiscrepancy, StockMovement, StockReservation


@admin.register(InventoryStock)
class InventoryStockAdmin(admin.ModelAdmin):
    list_display = ("product", "quantity", "reserved_quantity", "low_stock_threshold", "low_stock_notified")
    search_fields = ("product__name",)


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ("product", "movement_type", "quantity_change", "quantity_after", "order", "user", "created_at")
    list_filter = ("movement_type",)
    search_fields = ("product__name", "order__order_number")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockReservation)
class StockReservationAdmin(admin.ModelAdmin):
    list_display = ("order", "product", "quantity", "status", "created_at", "resolved_at")
    list_filter = ("status",)


@admin.register(StockDiscrepancy)
class StockDiscrepancyAdmin(admin.ModelAdmin):
    list_display = ("order", "product", "operation", "quantity", "status", "retry_count", "created_at")
    list_filter = ("status", "operation")
