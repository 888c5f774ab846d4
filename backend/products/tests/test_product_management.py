"""
Product Management Tests

Tests for catalog creation with opening stock, packages and the lookups
the order engine relies on.
"""
import pytest
from decimal import Decimal

from core_backend.exceptions import ValidationError
from inventory.models import InventoryStock, StockMovement
from products.models import Category, Package, Product
from products.services import ProductService


@pytest.mark.django_db
class TestProductManagement:

    def test_create_product_with_opening_stock(self, beer_category, manager):
        product = ProductService.create_product(
            name='Tanduay Ice',
            category_id=beer_category.id,
            price=Decimal('85.00'),
            initial_stock=24,
            created_by=manager,
        )

        assert product.category == beer_category
        assert product.is_strict
        assert InventoryStock.objects.get(product=product).quantity == Decimal('24.00')
        movement = StockMovement.objects.get(product=product)
        assert movement.movement_type == StockMovement.MovementType.INITIAL
        assert movement.user == manager

    def test_untracked_product_has_no_stock_row(self, food_category):
        product = ProductService.create_product(
            name='Plain Rice', category_id=food_category.id, price=Decimal('25.00'), track_inventory=False
        )

        assert not InventoryStock.objects.filter(product=product).exists()

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError):
            ProductService.create_product(name='Ghost', category_id=999999, price=Decimal('1.00'))

    def test_uncategorized_product_is_flexible(self):
        product = ProductService.create_product(name='Peanuts', price=Decimal('40.00'))

        assert product.category is None
        assert product.is_strict is False

    def test_vip_price_falls_back_to_list_price(self, strict_product, food_product):
        assert strict_product.get_price(is_vip=True) == Decimal('90.00')
        assert food_product.get_price(is_vip=True) == Decimal('150.00')
        assert ProductService.get_unit_price(product=strict_product) == Decimal('100.00')

    def test_resolve_product_ignores_inactive(self, food_product):
        assert ProductService.resolve_product(food_product.pk) == food_product

        food_product.is_active = False
        food_product.save()
        with pytest.raises(ValidationError):
            ProductService.resolve_product(food_product.pk)

    def test_category_strictness(self, beer_category, food_category):
        assert beer_category.is_strict is True
        assert food_category.is_strict is False
        assert Category.objects.filter(stock_policy=Category.StockPolicy.STRICT).count() == 1


@pytest.mark.django_db
class TestPackages:

    def test_package_components(self, bucket_package, strict_product, food_product):
        components = ProductService.get_package_components(bucket_package)

        assert components == [(strict_product, 2), (food_product, 1)]
        assert set(bucket_package.products.all()) == {strict_product, food_product}

    def test_package_needs_components(self):
        with pytest.raises(ValidationError):
            ProductService.create_package(name='Empty Bucket', price=Decimal('100.00'), components=[])

    def test_package_rejects_non_positive_quantity(self, strict_product):
        with pytest.raises(ValidationError):
            ProductService.create_package(
                name='Broken Bucket', price=Decimal('100.00'), components=[(strict_product, 0)]
            )

        assert not Package.objects.filter(name='Broken Bucket').exists()

    def test_resolve_package(self, bucket_package):
        assert ProductService.resolve_package(bucket_package.pk) == bucket_package
        assert ProductService.get_unit_price(package=bucket_package) == Decimal('320.00')

        with pytest.raises(ValidationError):
            ProductService.resolve_package('abc')

    def test_product_in_package_cannot_be_deleted(self, bucket_package, strict_product):
        from django.db.models import ProtectedError

        with pytest.raises(ProtectedError):
            Product.objects.filter(pk=strict_product.pk).delete()
