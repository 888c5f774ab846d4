import re
import uuid
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, models, transaction
from django.db.models import F, Q
from django.db.models.functions import Length
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from customers.models import Customer
from products.models import Package, Product


def _next_number(model, field: str, prefix: str, width: int) -> str:
    """
    Next value of a ``<prefix><zero-padded int>`` sequence stored in ``field``.
    Longer values sort first so the sequence keeps counting past the padding
    width (ORD-100000 after ORD-99999).
    Uniqueness is enforced by the column; callers retry on collision.
    """
    last = (
        model.objects.filter(**{f"{field}__startswith": prefix})
        .order_by(Length(field).desc(), f"-{field}")
        .values_list(field, flat=True)
        .first()
    )
    next_number = 1
    if last:
        match = re.match(rf"^{re.escape(prefix)}(\d+)$", last)
        if match:
            next_number = int(match.group(1)) + 1
    return f"{prefix}{next_number:0{width}d}"


def _save_with_generated_number(instance, field: str, generate, save, max_retries: int = 5):
    """
    Saves ``instance`` after assigning ``generate()`` to ``field``, retrying
    when a concurrent writer took the same number. Each attempt runs in a
    savepoint so a collision does not poison the surrounding transaction.
    """
    for _attempt in range(max_retries):
        setattr(instance, field, generate())
        try:
            with transaction.atomic():
                save()
            return
        except IntegrityError as e:
            if field in str(e).lower():
                # Another process might have taken the number, retry
                continue
            raise
    raise IntegrityError(f"Failed to generate a unique {field} after {max_retries} retries.")


class PaymentMethod(models.TextChoices):
    CASH = "CASH", _("Cash")
    CARD = "CARD", _("Card")
    E_WALLET = "E_WALLET", _("E-Wallet")


class OrderSession(models.Model):
    """
    A tab: the dining engagement for one table or customer visit, spanning
    one or more orders and closed by a single payment.

    Monetary fields are derived from the non-voided child orders and are
    only ever written by the calculation service.
    """

    class SessionStatus(models.TextChoices):
        OPEN = "OPEN", _("Open")
        CLOSED = "CLOSED", _("Closed")
        ABANDONED = "ABANDONED", _("Abandoned")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    session_number = models.CharField(max_length=30, unique=True, editable=False)
    table = models.ForeignKey(
        "tables.Table",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sessions",
    )
    customer = models.ForeignKey(
        Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name="sessions"
    )
    status = models.CharField(
        max_length=20, choices=SessionStatus.choices, default=SessionStatus.OPEN, db_index=True
    )

    # --- Derived totals ---
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    # --- Payment (populated at close) ---
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, blank=True)
    amount_tendered = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    change_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    opened_at = models.DateTimeField(default=timezone.now)
    closed_at = models.DateTimeField(null=True, blank=True)
    opened_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="opened_sessions"
    )
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="closed_sessions"
    )
    guest_count = models.PositiveIntegerField(default=1)
    notes = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-opened_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["table"],
                condition=Q(status="OPEN") & Q(table__isnull=False),
                name="unique_open_session_per_table",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "-opened_at"]),
        ]

    def __str__(self):
        return self.session_number

    @property
    def is_open(self):
        return self.status == self.SessionStatus.OPEN

    @property
    def duration_minutes(self):
        end = self.closed_at or timezone.now()
        return int((end - self.opened_at).total_seconds() // 60)

    def save(self, *args, **kwargs):
        if not self.session_number:
            _save_with_generated_number(
                self,
                "session_number",
                self._generate_session_number,
                lambda: super(OrderSession, self).save(*args, **kwargs),
            )
        else:
            super().save(*args, **kwargs)

    def _generate_session_number(self):
        """
        Date-scoped sequence, e.g. TAB-20250114-001, restarting every day.
        """
        date_part = timezone.localdate(self.opened_at).strftime("%Y%m%d")
        return _next_number(OrderSession, "session_number", f"TAB-{date_part}-", 3)


class Order(models.Model):
    # --- Status Fields ---
    class OrderStatus(models.TextChoices):
        DRAFT = "DRAFT", _("Draft")  # Being built by the cashier
        PENDING = "PENDING", _("Pending")  # Resumed from hold, awaiting confirmation
        ON_HOLD = "ON_HOLD", _("On Hold")  # Parked for later
        CONFIRMED = "CONFIRMED", _("Confirmed")  # Stock held, tickets sent to stations
        PREPARING = "PREPARING", _("Preparing")
        READY = "READY", _("Ready")
        SERVED = "SERVED", _("Served")
        COMPLETED = "COMPLETED", _("Completed")  # Paid; stock deducted
        VOIDED = "VOIDED", _("Voided")

    class VoidReason(models.TextChoices):
        CUSTOMER_REQUEST = "customer_request", _("Customer request")
        ORDER_ERROR = "order_error", _("Order error")
        KITCHEN_ERROR = "kitchen_error", _("Kitchen error")
        DUPLICATE_ORDER = "duplicate_order", _("Duplicate order")
        PAYMENT_FAILED = "payment_failed", _("Payment failed")
        WALKOUT = "walkout", _("Walkout")
        OTHER = "other", _("Other")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=20, unique=True, editable=False)
    session = models.ForeignKey(
        OrderSession, on_delete=models.PROTECT, null=True, blank=True, related_name="orders"
    )
    cashier = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="orders"
    )
    customer = models.ForeignKey(
        Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name="orders"
    )
    table = models.ForeignKey(
        "tables.Table", on_delete=models.SET_NULL, null=True, blank=True, related_name="orders"
    )
    status = models.CharField(
        max_length=20, choices=OrderStatus.choices, default=OrderStatus.DRAFT, db_index=True
    )

    # --- Totals ---
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    discount_reason = models.CharField(max_length=255, blank=True)
    discounted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    tax_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Tax embedded in the (tax-inclusive) total."),
    )
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    # --- Payment (populated only at completion) ---
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, blank=True)
    amount_tendered = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    change_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    # --- Void metadata ---
    void_reason = models.CharField(max_length=30, choices=VoidReason.choices, blank=True)
    void_note = models.TextField(blank=True)
    voided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    voided_at = models.DateTimeField(null=True, blank=True)

    # Advisory warnings from confirmation (flexible items short on stock)
    stock_warnings = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["session", "status"]),
            models.Index(fields=["status", "-created_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(total_amount=F("subtotal") - F("discount_amount")),
                name="order_total_is_subtotal_less_discount",
            ),
            models.CheckConstraint(
                condition=Q(discount_amount__lte=F("subtotal")),
                name="order_discount_within_subtotal",
            ),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.get_status_display()})"

    @property
    def is_express(self):
        return self.session_id is None

    @property
    def is_editable(self):
        return self.status in (
            Order.OrderStatus.DRAFT,
            Order.OrderStatus.PENDING,
            Order.OrderStatus.ON_HOLD,
        )

    def save(self, *args, **kwargs):
        # Generate order_number only if it's not already set
        if not self.order_number:
            _save_with_generated_number(
                self,
                "order_number",
                self._generate_sequential_order_number,
                lambda: super(Order, self).save(*args, **kwargs),
            )
        else:
            super().save(*args, **kwargs)

    def _generate_sequential_order_number(self):
        """
        Generates the next sequential order number, e.g. ORD-00001.
        """
        return _next_number(Order, "order_number", "ORD-", 5)


class OrderItem(models.Model):
    """
    One line of an order, backed by exactly one of a product or a package.
    Prices are snapshotted when the line is added.
    """

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, null=True, blank=True, related_name="order_items"
    )
    package = models.ForeignKey(
        Package, on_delete=models.PROTECT, null=True, blank=True, related_name="order_items"
    )
    item_name = models.CharField(max_length=200, help_text=_("Name snapshot at the time of sale."))
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(
        max_digits=10, decimal_places=2, help_text=_("Price of one unit at the time of sale.")
    )
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    is_vip_price = models.BooleanField(default=False)
    is_complimentary = models.BooleanField(default=False)
    notes = models.TextField(blank=True, help_text=_("Customer notes, e.g., 'no onions'"))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    (Q(product__isnull=False) & Q(package__isnull=True))
                    | (Q(product__isnull=True) & Q(package__isnull=False))
                ),
                name="order_item_product_xor_package",
            ),
            models.CheckConstraint(condition=Q(quantity__gt=0), name="order_item_quantity_positive"),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.item_name} on {self.order.order_number}"

    @property
    def is_package(self):
        return self.package_id is not None


class OrderItemAddOn(models.Model):
    order_item = models.ForeignKey(OrderItem, on_delete=models.CASCADE, related_name="addons")
    name = models.CharField(max_length=100)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.PositiveIntegerField(default=1)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gt=0), name="addon_quantity_positive"),
            models.CheckConstraint(condition=Q(price__gte=0), name="addon_price_non_negative"),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.name}"

    @property
    def total_price(self):
        return self.price * self.quantity


class OrderModification(models.Model):
    """
    Audit trail for changes made to an order after it was confirmed
    (a reduced quantity or a removed item).
    """

    class ModificationType(models.TextChoices):
        QUANTITY_REDUCED = "QUANTITY_REDUCED", _("Quantity reduced")
        ITEM_REMOVED = "ITEM_REMOVED", _("Item removed")

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="modifications")
    order_item = models.ForeignKey(
        OrderItem, on_delete=models.SET_NULL, null=True, blank=True, related_name="modifications"
    )
    item_name = models.CharField(max_length=200)
    modification_type = models.CharField(max_length=20, choices=ModificationType.choices)
    old_quantity = models.PositiveIntegerField()
    new_quantity = models.PositiveIntegerField()
    amount_adjusted = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00"),
        help_text=_("How much the order total went down."),
    )
    ticket_statuses = models.CharField(
        max_length=100, blank=True, help_text=_("Station ticket statuses at the time of the change.")
    )
    reason = models.CharField(max_length=255, blank=True)
    modified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["order", "-created_at"]),
            models.Index(fields=["modification_type"]),
        ]

    def __str__(self):
        return (
            f"{self.get_modification_type_display()}: {self.item_name} "
            f"{self.old_quantity} -> {self.new_quantity} on {self.order.order_number}"
        )
