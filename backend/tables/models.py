from django.db import models
from django.utils.translation import gettext_lazy as _


class Table(models.Model):
    """
    A physical table. ``current_session`` is its single open-tab slot.
    """

    class TableStatus(models.TextChoices):
        AVAILABLE = "AVAILABLE", _("Available")
        OCCUPIED = "OCCUPIED", _("Occupied")
        RESERVED = "RESERVED", _("Reserved")
        CLEANING = "CLEANING", _("Cleaning")

    number = models.CharField(max_length=20, unique=True)
    capacity = models.PositiveIntegerField(default=4)
    area = models.CharField(max_length=50, blank=True, help_text=_("e.g. 'Main Hall', 'Terrace'"))
    status = models.CharField(
        max_length=20, choices=TableStatus.choices, default=TableStatus.AVAILABLE, db_index=True
    )
    current_session = models.OneToOneField(
        "orders.OrderSession",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="occupied_table",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["area", "number"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(current_session__isnull=True) | models.Q(status="OCCUPIED"),
                name="table_with_session_is_occupied",
            ),
        ]

    def __str__(self):
        return f"Table {self.number}"

    @property
    def is_occupied(self):
        return self.current_session_id is not None
