from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ["title", "event_type", "is_read", "created_at"]
    list_filter = ["event_type", "is_read"]
    search_fields = ["title", "message"]
    readonly_fields = ["event_type", "title", "message", "payload", "created_at"]
