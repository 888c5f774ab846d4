from django.contrib import admin
from .models import GlobalSettings


@admin.register(GlobalSettings)
class GlobalSettingsAdmin(admin.ModelAdmin):
    list_display = ("venue_name", "currency", "tax_rate", "manager_discount_threshold", "default_low_stock_threshold")

    def has_add_permission(self, request):
        return not GlobalSettings.objects.exists()
