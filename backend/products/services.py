from decimal import Decimal
from typing import List, Tuple

from django.db import transaction

from core_backend.exceptions import ValidationError
from .models import Category, Package, PackageItem, Product


class ProductService:
    """
    Catalog collaborator: resolves products and packages to their category,
    destination and price for the lifecycle engine.
    """

    @staticmethod
    @transaction.atomic
    def create_product(category_id=None, initial_stock=0, created_by=None, **kwargs):
        """
        Creates a new product, optionally with an opening stock movement.

        Raises:
            ValidationError: If the category does not exist
        """
        if category_id:
            try:
                kwargs["category"] = Category.objects.get(id=category_id)
            except Category.DoesNotExist:
                raise ValidationError(f"Category with ID {category_id} not found")

        product = Product.objects.create(**kwargs)

        if product.track_inventory:
            from inventory.services import InventoryService

            InventoryService.receive_stock(
                product,
                Decimal(str(initial_stock)),
                user=created_by,
                reason="Opening stock",
                initial=True,
            )
        return product

    @staticmethod
    @transaction.atomic
    def create_package(name, price, components, vip_price=None, description=""):
        """
        Creates a package from ``components``, a list of (product, quantity) pairs.
        """
        if not components:
            raise ValidationError("A package needs at least one product")

        package = Package.objects.create(
            name=name, price=price, vip_price=vip_price, description=description
        )
        for product, quantity in components:
            if quantity <= 0:
                raise ValidationError(
                    f"Package quantity for {product.name} must be positive"
                )
            PackageItem.objects.create(package=package, product=product, quantity=quantity)
        return package

    @staticmethod
    def resolve_product(product_id) -> Product:
        try:
            return Product.objects.select_related("category").get(pk=product_id, is_active=True)
        except (Product.DoesNotExist, ValueError, TypeError):
            raise ValidationError(
                f"Product {product_id} does not exist or is inactive",
                {"product_id": str(product_id)},
            )

    @staticmethod
    def resolve_package(package_id) -> Package:
        try:
            return Package.objects.get(pk=package_id, is_active=True)
        except (Package.DoesNotExist, ValueError, TypeError):
            raise ValidationError(
                f"Package {package_id} does not exist or is inactive",
                {"package_id": str(package_id)},
            )

    @staticmethod
    def get_package_components(package) -> List[Tuple[Product, int]]:
        """Constituent (product, quantity) pairs of a package."""
        return [
            (item.product, item.quantity)
            for item in package.items.select_related("product__category").order_by("id")
        ]

    @staticmethod
    def get_unit_price(product=None, package=None, is_vip=False) -> Decimal:
        target = product if product is not None else package
        return target.get_price(is_vip=is_vip)

