from django.contrib import admin
from .models import Order, OrderItem, OrderItemAddOn, OrderModification, OrderSession


class OrderItemAddOnInline(admin.TabularInline):
    model = OrderItemAddOn
    extra = 0
    readonly_fields = ("name", "price", "quantity")
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("item_name", "quantity", "unit_price", "get_line_item_total", "is_complimentary")
    fields = ("item_name", "quantity", "unit_price", "get_line_item_total", "is_complimentary")
    can_delete = False

    def get_line_item_total(self, obj):
        return f"{obj.total:,.2f}"

    get_line_item_total.short_description = "Line Item Total"

    def has_add_permission(self, request, obj=None):
        return False


class OrderModificationInline(admin.TabularInline):
    model = OrderModification
    extra = 0
    fields = ("item_name", "modification_type", "old_quantity", "new_quantity", "amount_adjusted", "reason", "modified_by", "created_at")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Read-mostly admin for orders. Status and money fields only change
    through the lifecycle services.
    """

    list_display = (
        "order_number",
        "session",
        "table",
        "cashier",
        "status",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "payment_method", "created_at")
    search_fields = ("order_number", "session__session_number")
    readonly_fields = (
        "order_number", "status", "subtotal", "discount_amount", "tax_amount", "total_amount",
        "payment_method", "amount_tendered", "change_amount", "void_reason", "voided_by",
        "voided_at", "stock_warnings", "confirmed_at", "completed_at",
    )
    inlines = [OrderItemInline, OrderModificationInline]


@admin.register(OrderItem)
class OrderItemAdmin(admin.ModelAdmin):
    list_display = ("item_name", "order", "quantity", "unit_price", "total")
    search_fields = ("item_name", "order__order_number")
    inlines = [OrderItemAddOnInline]


class SessionOrderInline(admin.TabularInline):
    model = Order
    fk_name = "session"
    extra = 0
    fields = ("order_number", "status", "total_amount")
    readonly_fields = fields
    can_delete = False
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(OrderSession)
class OrderSessionAdmin(admin.ModelAdmin):
    list_display = ("session_number", "table", "customer", "status", "total_amount", "opened_at", "closed_at")
    list_filter = ("status", "opened_at")
    search_fields = ("session_number",)
    readonly_fields = (
        "session_number", "status", "subtotal", "discount_amount", "tax_amount", "total_amount",
        "payment_method", "amount_tendered", "change_amount", "opened_at", "closed_at",
    )
    inlines = [SessionOrderInline]
