from django.db import models
from django.utils.translation import gettext_lazy as _


class Notification(models.Model):
    """An event the engine fired for operators: an order is ready, stock is low."""

    class EventType(models.TextChoices):
        ORDER_READY = "order_ready", _("Order Ready")
        LOW_STOCK = "low_stock", _("Low Stock")

    event_type = models.CharField(max_length=30, choices=EventType.choices)
    title = models.CharField(max_length=200)
    message = models.TextField(blank=True)
    payload = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["event_type", "is_read"]),
        ]

    def __str__(self):
        return f"[{self.event_type}] {self.title}"
