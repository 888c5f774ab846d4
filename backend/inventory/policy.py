"""
Stock policy evaluation.

Categories are either STRICT (cannot be sold past zero; hidden from the
sellable listing when out) or FLEXIBLE (always listed; low stock is only an
advisory flag and the station confirms availability by hand). The policy
is consulted when listing sellable items, when checking an order before
confirmation and when the ledger reserves stock.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from products.models import Package, Product
from .models import InventoryStock


class StockStatus:
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    UNTRACKED = "untracked"


# A package that can be sold this many times or fewer is flagged low
PACKAGE_LOW_STOCK_COUNT = 20


@dataclass
class StockValidationResult:
    shortages: List[dict] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self):
        return not self.shortages


class StockPolicyService:

    @staticmethod
    def is_strict(product: Product) -> bool:
        return product.track_inventory and product.is_strict

    @staticmethod
    def _available(product: Product, stocks=None) -> Decimal:
        if stocks is not None:
            stock = stocks.get(product.pk)
            return stock.available_quantity if stock else Decimal("0.00")
        try:
            return product.stock.available_quantity
        except InventoryStock.DoesNotExist:
            return Decimal("0.00")

    @staticmethod
    def get_stock_status(product: Product, stocks=None) -> str:
        if not product.track_inventory:
            return StockStatus.UNTRACKED
        stock = stocks.get(product.pk) if stocks is not None else InventoryStock.objects.filter(product=product).first()
        if stock is None or stock.available_quantity <= 0:
            return StockStatus.OUT_OF_STOCK
        if stock.is_low_stock:
            return StockStatus.LOW_STOCK
        return StockStatus.IN_STOCK

    @staticmethod
    def shortage_entry(product: Product, requested, available) -> dict:
        """One line of an InsufficientStock error."""
        return {
            "product_id": product.pk,
            "product_name": product.name,
            "requested": str(requested),
            "available": str(max(available, Decimal("0.00"))),
        }

    @staticmethod
    def oversell_warning(product: Product, requested, available) -> str:
        """Advisory text stored on an order that oversells a flexible product."""
        return (
            f"{product.name}: requested {requested}, only "
            f"{max(available, Decimal('0.00'))} in stock. Confirm availability with the station."
        )

    @staticmethod
    def validate_order(order) -> StockValidationResult:
        """
        Read-only pre-check of an order against current available stock,
        used by the order stock-check endpoint before confirming. The ledger
        re-checks atomically when it reserves.
        """
        from .services import InventoryService

        result = StockValidationResult()
        for product, quantity in InventoryService.get_order_requirements(order).items():
            if not product.track_inventory:
                continue
            available = StockPolicyService._available(product)
            if available >= quantity:
                continue

            if StockPolicyService.is_strict(product):
                result.shortages.append(StockPolicyService.shortage_entry(product, quantity, available))
            else:
                result.warnings.append(StockPolicyService.oversell_warning(product, quantity, available))
        return result

    @staticmethod
    def should_display_product(product: Product, stocks=None) -> bool:
        """Strict products with nothing available are hidden; everything else shows."""
        if not product.is_active:
            return False
        if not StockPolicyService.is_strict(product):
            return True
        return StockPolicyService._available(product, stocks) > 0

    @staticmethod
    def list_sellable_products() -> List[dict]:
        products = list(
            Product.objects.filter(is_active=True).select_related("category").order_by("name")
        )
        stocks = {
            stock.product_id: stock
            for stock in InventoryStock.objects.filter(product__in=products)
        }
        return [
            {
                "product": product,
                "available": StockPolicyService._available(product, stocks) if product.track_inventory else None,
                "stock_status": StockPolicyService.get_stock_status(product, stocks),
                "is_strict": StockPolicyService.is_strict(product),
            }
            for product in products
            if StockPolicyService.should_display_product(product, stocks)
        ]

    @staticmethod
    def get_package_availability(package: Package, stocks=None) -> dict:
        """
        How many of a package can still be sold, and which component limits it.

        Only strict constituents bound the count. ``max_sellable`` is None when
        nothing strict is inside, since flexible items never block a sale.
        """
        components = []
        for item in package.items.all():
            product = item.product
            if not StockPolicyService.is_strict(product):
                continue
            available = max(StockPolicyService._available(product, stocks), Decimal("0"))
            components.append(
                {
                    "product": product,
                    "available": available,
                    "required_per_package": item.quantity,
                    "max_packages": int(available // item.quantity),
                }
            )

        if not components:
            return {
                "package": package,
                "max_sellable": None,
                "limiting_product": None,
                "stock_status": StockStatus.UNTRACKED,
                "components": [],
            }

        limiting = min(components, key=lambda c: (c["max_packages"], c["product"].pk))
        max_sellable = limiting["max_packages"]
        if max_sellable == 0:
            status = StockStatus.OUT_OF_STOCK
        elif max_sellable <= PACKAGE_LOW_STOCK_COUNT:
            status = StockStatus.LOW_STOCK
        else:
            status = StockStatus.IN_STOCK

        return {
            "package": package,
            "max_sellable": max_sellable,
            "limiting_product": limiting["product"],
            "stock_status": status,
            "components": components,
        }

    @staticmethod
    def list_sellable_packages() -> List[dict]:
        """Availability of every active package that can cover at least one more sale."""
        packages = list(
            Package.objects.filter(is_active=True)
            .prefetch_related("items__product__category")
            .order_by("name")
        )
        product_ids = {item.product_id for package in packages for item in package.items.all()}
        stocks = {
            stock.product_id: stock
            for stock in InventoryStock.objects.filter(product_id__in=product_ids)
        }

        sellable = []
        for package in packages:
            if not package.items.all():
                continue
            availability = StockPolicyService.get_package_availability(package, stocks)
            if availability["max_sellable"] is None or availability["max_sellable"] > 0:
                sellable.append(availability)
        return sellable
