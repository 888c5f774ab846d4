from django.contrib import admin
from django.utils.html import format_html

from .models import PreparationTicket, TicketStatus


@admin.register(PreparationTicket)
class PreparationTicketAdmin(admin.ModelAdmin):
    list_display = [
        'display_name',
        'order_number_display',
        'destination',
        'status',
        'routing_source',
        'is_priority',
        'created_at',
        'status_indicator',
    ]
    list_filter = ['destination', 'status', 'routing_source', 'is_priority', 'is_modified']
    search_fields = ['display_name', 'order__order_number']
    readonly_fields = [
        'id', 'order', 'order_item', 'created_at', 'started_at', 'ready_at',
        'served_at', 'cancelled_at', 'prep_time_minutes', 'total_time_minutes',
    ]

    def order_number_display(self, obj):
        return obj.order.order_number
    order_number_display.short_description = 'Order'

    def status_indicator(self, obj):
        if obj.is_overdue:
            return format_html('<span style="color: red;">Overdue</span>')
        if obj.status == TicketStatus.READY:
            return format_html('<span style="color: green;">Ready</span>')
        return obj.get_status_display()
    status_indicator.short_description = 'Indicator'
