from django.db import models
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)


class GlobalSettings(models.Model):
    """
    Venue-wide business configuration. There is exactly one row; read it
    through ``settings.config.app_settings`` rather than querying directly.
    """

    venue_name = models.CharField(
        max_length=100,
        default="Ajeen POS",
        help_text="The venue's display name, used on bills and displays.",
    )

    # === FINANCIAL RULES ===
    currency = models.CharField(
        max_length=3,
        default="PHP",
        help_text="Three-letter currency code (ISO 4217).",
    )
    tax_rate = models.DecimalField(
        max_digits=6,
        decimal_places=4,
        default=Decimal("0.0000"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("1"))],
        help_text="Tax rate embedded in menu prices (e.g., 0.12 for 12%). Prices are tax-inclusive.",
    )

    # === MANAGER GATES ===
    manager_discount_threshold = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("20.00"),
        help_text="Order discounts above this percentage of the subtotal need a manager.",
    )
    require_manager_for_void = models.BooleanField(
        default=True,
        help_text="Whether voiding an order needs a manager, admin or owner.",
    )
    min_custom_void_reason_length = models.PositiveIntegerField(
        default=10,
        help_text="Minimum length of a free-text void reason.",
    )

    # === INVENTORY DEFAULTS ===
    default_low_stock_threshold = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("10.00"),
        help_text="Low stock threshold for items without their own.",
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Global Settings"

    def clean(self):
        if GlobalSettings.objects.exclude(pk=self.pk).exists():
            raise ValidationError("There can only be one GlobalSettings instance.")

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"Global Settings ({self.venue_name})"
