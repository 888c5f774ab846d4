"""
Stock Policy and Inventory API Tests

Strict categories disappear from the sellable listing once nothing is
available; flexible categories always show with an advisory status.
"""
import pytest
from decimal import Decimal

from inventory.models import InventoryStock, StockDiscrepancy
from inventory.policy import StockPolicyService, StockStatus
from inventory.services import InventoryService
from orders.services import OrderService


def sellable_names():
    return {entry["product"].name for entry in StockPolicyService.list_sellable_products()}


def sellable_packages():
    return [entry["package"] for entry in StockPolicyService.list_sellable_packages()]


@pytest.mark.django_db
class TestStockPolicy:

    def test_strictness_follows_category(self, strict_product, food_product):
        assert StockPolicyService.is_strict(strict_product) is True
        assert StockPolicyService.is_strict(food_product) is False

    def test_untracked_product_is_never_strict(self, beer_category):
        from products.services import ProductService

        keg = ProductService.create_product(
            name="House Draft", category_id=beer_category.id, price=Decimal("80.00"), track_inventory=False
        )
        assert StockPolicyService.is_strict(keg) is False
        assert StockPolicyService.get_stock_status(keg) == StockStatus.UNTRACKED

    def test_stock_status(self, strict_product, food_product, manager):
        # Default threshold is 10
        assert StockPolicyService.get_stock_status(food_product) == StockStatus.IN_STOCK
        assert StockPolicyService.get_stock_status(strict_product) == StockStatus.LOW_STOCK

        InventoryService.adjust_stock(strict_product, -5, user=manager, reason="Count")
        assert StockPolicyService.get_stock_status(strict_product) == StockStatus.OUT_OF_STOCK

    def test_strict_item_hidden_once_reserved_out(self, order_factory, scarce_product, strict_product):
        assert "Red Horse Stallion" in sellable_names()

        OrderService.confirm_order(order_factory([(scarce_product, 1)]))

        names = sellable_names()
        assert "Red Horse Stallion" not in names
        assert "San Miguel Pale Pilsen" in names

    def test_flexible_item_listed_when_out(self, food_product, manager):
        InventoryService.adjust_stock(food_product, -20, user=manager, reason="Spoilage")

        entry = next(
            e for e in StockPolicyService.list_sellable_products() if e["product"] == food_product
        )
        assert entry["stock_status"] == StockStatus.OUT_OF_STOCK
        assert entry["available"] == Decimal("0.00")
        assert entry["is_strict"] is False

    def test_inactive_products_are_hidden(self, food_product):
        food_product.is_active = False
        food_product.save()

        assert "Pork Sisig" not in sellable_names()

    def test_package_hidden_when_strict_component_short(self, bucket_package, strict_product, manager):
        assert bucket_package in sellable_packages()

        InventoryService.adjust_stock(strict_product, -4, user=manager, reason="Count")

        assert bucket_package not in sellable_packages()

    def test_package_count_limited_by_strict_component(self, bucket_package, strict_product):
        availability = StockPolicyService.get_package_availability(bucket_package)

        # 5 beers at 2 per bucket; the sisig is flexible and never limits
        assert availability["max_sellable"] == 2
        assert availability["limiting_product"] == strict_product
        assert availability["stock_status"] == StockStatus.LOW_STOCK
        assert [c["product"] for c in availability["components"]] == [strict_product]

    def test_package_count_follows_reservations(self, order_factory, bucket_package):
        OrderService.confirm_order(order_factory([(bucket_package, 1)]))

        entry = next(e for e in StockPolicyService.list_sellable_packages() if e["package"] == bucket_package)
        assert entry["max_sellable"] == 1

    def test_scarcest_component_is_the_limit(self, strict_product, scarce_product):
        from products.services import ProductService

        tower = ProductService.create_package(
            name="Beer Tower",
            price=Decimal("250.00"),
            components=[(strict_product, 1), (scarce_product, 1)],
        )

        availability = StockPolicyService.get_package_availability(tower)
        assert availability["max_sellable"] == 1
        assert availability["limiting_product"] == scarce_product

    def test_flexible_only_package_is_unbounded(self, food_product, manager):
        from products.services import ProductService

        platter = ProductService.create_package(
            name="Sisig Platter", price=Decimal("400.00"), components=[(food_product, 3)]
        )
        InventoryService.adjust_stock(food_product, -20, user=manager, reason="Spoilage")

        availability = StockPolicyService.get_package_availability(platter)
        assert availability["max_sellable"] is None
        assert availability["limiting_product"] is None
        assert platter in sellable_packages()

    def test_validate_order_separates_shortages_from_warnings(
        self, order_factory, strict_product, food_product
    ):
        order = order_factory([(strict_product, 7), (food_product, 30)])

        result = StockPolicyService.validate_order(order)

        assert result.is_valid is False
        assert [s["product_name"] for s in result.shortages] == ["San Miguel Pale Pilsen"]
        assert result.shortages[0]["available"] == "5.00"
        assert len(result.warnings) == 1
        assert "Pork Sisig" in result.warnings[0]

    def test_validate_order_passes_when_covered(self, order_factory, strict_product):
        result = StockPolicyService.validate_order(order_factory([(strict_product, 5)]))

        assert result.is_valid
        assert result.warnings == []

    def test_precheck_warns_as_confirm_does(self, order_factory, food_product):
        order = order_factory([(food_product, 25)])

        precheck = StockPolicyService.validate_order(order)
        order = OrderService.confirm_order(order)

        assert precheck.is_valid
        assert order.stock_warnings == precheck.warnings


@pytest.mark.django_db
class TestInventoryAPI:

    def test_sellable_endpoint(self, cashier_client, strict_product, food_product, bucket_package):
        response = cashier_client.get("/api/inventory/sellable/")

        assert response.status_code == 200
        products = {p["name"]: p for p in response.data["products"]}
        assert products["San Miguel Pale Pilsen"]["is_strict"] is True
        assert products["Pork Sisig"]["stock_status"] == StockStatus.IN_STOCK
        assert [p["name"] for p in response.data["packages"]] == ["Beer Bucket Combo"]
        bucket = response.data["packages"][0]
        assert bucket["max_sellable"] == 2
        assert bucket["limiting_product_id"] == strict_product.id
        assert bucket["limiting_product_name"] == "San Miguel Pale Pilsen"

    def test_sellable_requires_authentication(self, api_client, strict_product):
        response = api_client.get("/api/inventory/sellable/")

        assert response.status_code in (401, 403)

    def test_adjust_as_manager(self, manager_client, strict_product):
        response = manager_client.post(
            "/api/inventory/adjust/",
            {"product_id": strict_product.id, "quantity": "-2", "reason": "Broken bottles"},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["quantity_after"] == "3.00"
        assert InventoryStock.objects.get(product=strict_product).quantity == Decimal("3.00")

    def test_adjust_below_zero_is_rejected(self, manager_client, strict_product):
        response = manager_client.post(
            "/api/inventory/adjust/",
            {"product_id": strict_product.id, "quantity": "-9", "reason": "Count"},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error"] == "validation_error"

    def test_adjust_forbidden_for_cashier(self, cashier_client, strict_product):
        response = cashier_client.post(
            "/api/inventory/adjust/",
            {"product_id": strict_product.id, "quantity": "5", "reason": "Delivery"},
            format="json",
        )

        assert response.status_code == 403

    def test_stock_listing_shows_reserved(self, cashier_client, order_factory, strict_product):
        OrderService.confirm_order(order_factory([(strict_product, 2)]))

        response = cashier_client.get("/api/inventory/stock/", {"product": strict_product.id})

        assert response.status_code == 200
        rows = response.data["results"] if isinstance(response.data, dict) else response.data
        assert rows[0]["reserved_quantity"] == "2.00"
        assert rows[0]["available_quantity"] == "3.00"

    def test_discrepancy_retry_and_resolve(self, manager_client, order_factory, food_product):
        order = order_factory([(food_product, 25)])
        OrderService.confirm_order(order)
        OrderService.complete_order(order, payment_method="CASH")
        discrepancy = StockDiscrepancy.objects.get(order=order)

        listing = manager_client.get("/api/inventory/discrepancies/", {"status": "OPEN"})
        assert listing.status_code == 200

        retry = manager_client.post(f"/api/inventory/discrepancies/{discrepancy.pk}/retry/")
        assert retry.status_code == 200
        assert retry.data["resolved"] is False

        resolve = manager_client.post(
            f"/api/inventory/discrepancies/{discrepancy.pk}/resolve/",
            {"note": "Recounted, kitchen had extra in the walk-in"},
            format="json",
        )
        assert resolve.status_code == 200
        assert resolve.data["status"] == StockDiscrepancy.Status.RESOLVED

        again = manager_client.post(f"/api/inventory/discrepancies/{discrepancy.pk}/retry/")
        assert again.status_code == 409

    def test_discrepancies_hidden_from_cashier(self, cashier_client):
        response = cashier_client.get("/api/inventory/discrepancies/")

        assert response.status_code == 403
