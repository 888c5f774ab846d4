import uuid

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from orders.models import Order, OrderItem


class Destination(models.TextChoices):
    KITCHEN = "kitchen", _("Kitchen")
    BAR = "bar", _("Bar")


class TicketStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    PREPARING = "preparing", _("Preparing")
    READY = "ready", _("Ready")
    SERVED = "served", _("Served")
    CANCELLED = "cancelled", _("Cancelled")


class PreparationTicket(models.Model):
    """
    The unit of work a station sees: one order item at one destination.
    An item routed to both kitchen and bar has two tickets.
    """

    class RoutingSource(models.TextChoices):
        DECLARED = "declared", _("Declared by category")
        INFERRED = "inferred", _("Inferred from name")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="tickets")
    # Kept (unlinked) when a confirmed item is removed, so the cancellation stays visible
    order_item = models.ForeignKey(
        OrderItem, on_delete=models.SET_NULL, null=True, blank=True, related_name="tickets"
    )
    destination = models.CharField(max_length=10, choices=Destination.choices)
    status = models.CharField(
        max_length=20, choices=TicketStatus.choices, default=TicketStatus.PENDING
    )
    routing_source = models.CharField(
        max_length=10, choices=RoutingSource.choices, default=RoutingSource.DECLARED
    )

    # Snapshot for the station display
    display_name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField(default=1)
    special_instructions = models.TextField(blank=True)
    is_priority = models.BooleanField(default=False)
    is_modified = models.BooleanField(default=False)

    # Timing
    created_at = models.DateTimeField(default=timezone.now)
    started_at = models.DateTimeField(null=True, blank=True)
    ready_at = models.DateTimeField(null=True, blank=True)
    served_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-is_priority', 'created_at']
        indexes = [
            models.Index(fields=['destination', 'status']),
            models.Index(fields=['order', 'status']),
        ]
        constraints = [
            # One ticket per item per destination
            models.UniqueConstraint(
                fields=['order_item', 'destination'], name='unique_ticket_per_item_destination'
            ),
        ]

    def __str__(self):
        return f"{self.order.order_number} - {self.display_name} ({self.destination})"

    @property
    def is_active(self):
        return self.status in (TicketStatus.PENDING, TicketStatus.PREPARING, TicketStatus.READY)

    @property
    def prep_time_minutes(self):
        """Minutes between starting and finishing preparation"""
        if self.started_at and self.ready_at:
            return int((self.ready_at - self.started_at).total_seconds() / 60)
        return 0

    @property
    def total_time_minutes(self):
        """Minutes since the ticket reached the station"""
        end = self.ready_at or timezone.now()
        return int((end - self.created_at).total_seconds() / 60)

    @property
    def is_overdue(self):
        if self.status not in (TicketStatus.PENDING, TicketStatus.PREPARING):
            return False
        return self.total_time_minutes > 20  # Items should be done in 20 minutes

    def to_dict(self):
        """Convert to dictionary for websocket payloads"""
        return {
            'id': str(self.id),
            'order_id': str(self.order_id),
            'order_number': self.order.order_number,
            'table': self.order.table.number if self.order.table_id else None,
            'display_name': self.display_name,
            'quantity': self.quantity,
            'destination': self.destination,
            'status': self.status,
            'routing_source': self.routing_source,
            'special_instructions': self.special_instructions,
            'is_priority': self.is_priority,
            'is_modified': self.is_modified,
            'is_overdue': self.is_overdue,
            'created_at': self.created_at.isoformat(),
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'ready_at': self.ready_at.isoformat() if self.ready_at else None,
        }
