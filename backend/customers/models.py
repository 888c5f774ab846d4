"""
Customer models. Customers are optional on a tab; they carry the
context used for VIP pricing.
"""
from django.db import models
from django.utils import timezone
import uuid


class CustomerManager(models.Manager):
    """Custom manager for Customer model"""

    def active(self):
        return self.filter(is_active=True)

    def vip(self):
        return self.active().filter(tier=Customer.Tier.VIP)


class Customer(models.Model):
    class Tier(models.TextChoices):
        REGULAR = "REGULAR", "Regular"
        VIP = "VIP", "VIP"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(blank=True, null=True, unique=True)
    phone_number = models.CharField(max_length=20, blank=True)
    tier = models.CharField(max_length=20, choices=Tier.choices, default=Tier.REGULAR)
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CustomerManager()

    class Meta:
        ordering = ["first_name", "last_name"]
        indexes = [
            models.Index(fields=["phone_number"]),
            models.Index(fields=["tier", "is_active"]),
        ]

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_vip(self):
        return self.is_active and self.tier == self.Tier.VIP
