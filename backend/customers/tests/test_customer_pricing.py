"""
Customer Pricing Context Tests

Customers are optional on a tab. VIP customers get VIP prices where the
product or package defines one.
"""
import pytest
from decimal import Decimal

from core_backend.exceptions import ValidationError
from customers.models import Customer
from customers.services import CustomerService


@pytest.mark.django_db
class TestCustomerPricingContext:

    def test_walk_in_has_no_pricing_context(self):
        assert CustomerService.get_pricing_context(None) == {"customer_id": None, "is_vip": False}

    def test_vip_context(self, vip_customer):
        context = CustomerService.get_pricing_context(vip_customer)

        assert context["is_vip"] is True
        assert context["customer_id"] == str(vip_customer.pk)

    def test_inactive_vip_pays_regular_price(self, vip_customer):
        vip_customer.is_active = False
        vip_customer.save()

        assert CustomerService.get_pricing_context(vip_customer)["is_vip"] is False

    def test_vip_manager_only_lists_active_vips(self, vip_customer):
        Customer.objects.create(first_name="Juan", tier=Customer.Tier.REGULAR)
        Customer.objects.create(first_name="Ana", tier=Customer.Tier.VIP, is_active=False)

        assert list(Customer.objects.vip()) == [vip_customer]

    def test_vip_price_is_snapshotted_on_items(self, order_factory, strict_product, vip_customer):
        order = order_factory([(strict_product, 2)], customer=vip_customer)
        item = order.items.get()

        assert item.unit_price == Decimal("90.00")
        assert order.subtotal == Decimal("180.00")

    def test_regular_customer_pays_list_price(self, order_factory, strict_product):
        regular = Customer.objects.create(first_name="Juan")
        order = order_factory([(strict_product, 1)], customer=regular)

        assert order.items.get().unit_price == Decimal("100.00")


@pytest.mark.django_db
class TestCustomerResolution:

    def test_resolve_blank_is_none(self):
        assert CustomerService.resolve(None) is None
        assert CustomerService.resolve("") is None

    def test_resolve_active_customer(self, vip_customer):
        assert CustomerService.resolve(str(vip_customer.pk)) == vip_customer

    @pytest.mark.parametrize("customer_id", ["not-a-uuid", "3f1c1f3e-0000-4000-8000-000000000000"])
    def test_resolve_unknown_customer(self, customer_id):
        with pytest.raises(ValidationError):
            CustomerService.resolve(customer_id)
