from django.contrib import admin
from .models import Customer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("full_name", "phone_number", "tier", "is_active", "created_at")
    list_filter = ("tier", "is_active")
    search_fields = ("first_name", "last_name", "email", "phone_number")
