from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from products.models import Product


class InventoryStock(models.Model):
    """
    Materialized stock counter for one product. The StockMovement ledger is
    the source of truth; ``quantity`` is its running fold.

    ``reserved_quantity`` is held by confirmed-but-unpaid orders. What a
    cashier can still sell is ``quantity - reserved_quantity``.
    """

    product = models.OneToOneField(
        Product, on_delete=models.PROTECT, related_name="stock"
    )
    quantity = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Quantity of stock on hand."),
    )
    reserved_quantity = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Quantity held by confirmed orders that have not been paid yet."),
    )
    low_stock_threshold = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Threshold below which stock is considered low. If not set, uses global default."),
    )
    low_stock_notified = models.BooleanField(
        default=False,
        help_text=_("Whether a low stock notification has been sent for this item."),
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Inventory Stock")
        verbose_name_plural = _("Inventory Stocks")
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gte=0), name="stock_quantity_non_negative"),
            models.CheckConstraint(condition=Q(reserved_quantity__gte=0), name="stock_reserved_non_negative"),
        ]
        indexes = [
            models.Index(fields=["quantity"], name="inventory_qty_idx"),
        ]

    def __str__(self):
        return f"{self.product.name}: {self.quantity} ({self.reserved_quantity} reserved)"

    @property
    def available_quantity(self):
        return self.quantity - self.reserved_quantity

    @property
    def effective_low_stock_threshold(self):
        """Item-specific override, else the global default."""
        if self.low_stock_threshold is not None:
            return self.low_stock_threshold

        # Import here to avoid circular imports
        from settings.config import app_settings
        return app_settings.default_low_stock_threshold

    @property
    def is_low_stock(self):
        """Returns True if available stock is at or below the effective low stock threshold."""
        return self.available_quantity <= self.effective_low_stock_threshold


class StockMovement(models.Model):
    """
    Immutable record of one change to a product's on-hand quantity.
    """

    class MovementType(models.TextChoices):
        INITIAL = "INITIAL", _("Opening Stock")
        RESTOCK = "RESTOCK", _("Restock")
        ADJUSTMENT = "ADJUSTMENT", _("Manual Adjustment")
        SALE = "SALE", _("Sale")
        SALE_RETURN = "SALE_RETURN", _("Sale Return")

    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="stock_movements"
    )
    movement_type = models.CharField(max_length=20, choices=MovementType.choices)
    quantity_change = models.DecimalField(max_digits=10, decimal_places=2)
    quantity_before = models.DecimalField(max_digits=10, decimal_places=2)
    quantity_after = models.DecimalField(max_digits=10, decimal_places=2)
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="stock_movements",
    )
    user = models.ForeignKey(
        "users.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stock_movements",
        help_text=_("User who performed the operation"),
    )
    reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        verbose_name = _("Stock Movement")
        verbose_name_plural = _("Stock Movements")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["product", "-created_at"]),
            models.Index(fields=["order", "movement_type"]),
        ]

    def __str__(self):
        sign = "+" if self.quantity_change >= 0 else ""
        return f"{self.get_movement_type_display()} {self.product.name} {sign}{self.quantity_change}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("Stock movements are append-only and cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Stock movements are append-only and cannot be deleted")


class StockReservation(models.Model):
    """
    Quantity of a product held for a confirmed order until it is paid
    (committed into a SALE movement) or voided (released).
    """

    class Status(models.TextChoices):
        ACTIVE = "ACTIVE", _("Active")
        COMMITTED = "COMMITTED", _("Committed")
        RELEASED = "RELEASED", _("Released")

    order = models.ForeignKey(
        "orders.Order", on_delete=models.CASCADE, related_name="stock_reservations"
    )
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="stock_reservations"
    )
    quantity = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["order", "product"],
                condition=Q(status="ACTIVE"),
                name="unique_active_reservation_per_order_product",
            ),
            models.CheckConstraint(condition=Q(quantity__gt=0), name="reservation_quantity_positive"),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.product.name} for {self.order.order_number} ({self.status})"


class StockDiscrepancy(models.Model):
    """
    A ledger update that failed after payment was captured. The paying
    transaction still succeeded; an operator reconciles these by hand
    or retries them.
    """

    class Operation(models.TextChoices):
        DEDUCT = "DEDUCT", _("Deduction")
        RESTORE = "RESTORE", _("Restoration")

    class Status(models.TextChoices):
        OPEN = "OPEN", _("Open")
        RESOLVED = "RESOLVED", _("Resolved")

    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, null=True, blank=True, related_name="stock_discrepancies"
    )
    order = models.ForeignKey(
        "orders.Order", on_delete=models.PROTECT, related_name="stock_discrepancies"
    )
    operation = models.CharField(max_length=10, choices=Operation.choices)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    error_message = models.TextField()
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.OPEN, db_index=True)
    retry_count = models.PositiveIntegerField(default=0)
    resolution_note = models.TextField(blank=True)
    resolved_by = models.ForeignKey(
        "users.User", on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _("Stock Discrepancy")
        verbose_name_plural = _("Stock Discrepancies")
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.get_operation_display()} failure for {self.order.order_number}: {self.error_message}"
