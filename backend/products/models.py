from django.db import models
from django.utils.translation import gettext_lazy as _


class Category(models.Model):
    class Destination(models.TextChoices):
        KITCHEN = "kitchen", _("Kitchen")
        BAR = "bar", _("Bar")
        BOTH = "both", _("Kitchen and Bar")

    class StockPolicy(models.TextChoices):
        # Cannot be sold past zero stock (packaged beverages)
        STRICT = "STRICT", _("Strict")
        # Always sellable; low stock is advisory (cooked food)
        FLEXIBLE = "FLEXIBLE", _("Flexible")

    name = models.CharField(
        max_length=100, unique=True, help_text=_("Name of the product category.")
    )
    description = models.TextField(
        blank=True, help_text=_("Description of the category.")
    )
    destination = models.CharField(
        max_length=10,
        choices=Destination.choices,
        blank=True,
        default="",
        help_text=_(
            "Preparation station for products in this category. "
            "Leave blank to infer it from product names."
        ),
    )
    stock_policy = models.CharField(
        max_length=10,
        choices=StockPolicy.choices,
        default=StockPolicy.FLEXIBLE,
        help_text=_("Whether zero stock blocks a sale (strict) or only warns (flexible)."),
    )
    order = models.IntegerField(
        default=0,
        help_text=_("Display order for this category. Lower numbers appear first."),
    )
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        verbose_name = _("Category")
        verbose_name_plural = _("Categories")
        ordering = ["order", "name"]

    def __str__(self):
        return self.name

    @property
    def is_strict(self):
        return self.stock_policy == self.StockPolicy.STRICT


class Product(models.Model):
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    sku = models.CharField(max_length=50, blank=True, null=True, unique=True)
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="products",
    )
    price = models.DecimalField(max_digits=10, decimal_places=2)
    vip_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Price charged to VIP customers. Falls back to the regular price."),
    )
    track_inventory = models.BooleanField(
        default=True,
        help_text=_("Untracked products never block a sale and never deduct stock."),
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Product")
        verbose_name_plural = _("Products")
        ordering = ["name"]
        indexes = [
            models.Index(fields=["category", "is_active"]),
        ]

    def __str__(self):
        return self.name

    @property
    def is_strict(self):
        return self.category is not None and self.category.is_strict

    def get_price(self, is_vip=False):
        if is_vip and self.vip_price is not None:
            return self.vip_price
        return self.price


class Package(models.Model):
    """
    A bundle of products sold at one price (e.g. a bucket of beer with pulutan).
    Stock and routing are driven by its constituent products.
    """

    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    vip_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    products = models.ManyToManyField(Product, through="PackageItem", related_name="packages")
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    def get_price(self, is_vip=False):
        if is_vip and self.vip_price is not None:
            return self.vip_price
        return self.price


class PackageItem(models.Model):
    package = models.ForeignKey(Package, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="package_items")
    quantity = models.PositiveIntegerField(default=1)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["package", "product"], name="unique_product_per_package"),
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name="package_item_quantity_positive"),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.product.name} in {self.package.name}"
