from django.contrib import admin
from .models import Table


@admin.register(Table)
class TableAdmin(admin.ModelAdmin):
    list_display = ("number", "area", "capacity", "status", "current_session", "is_active")
    list_filter = ("status", "area", "is_active")
    search_fields = ("number",)
