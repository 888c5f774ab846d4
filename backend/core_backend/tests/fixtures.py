"""
Shared test fixtures for all backend tests.

This module provides reusable pytest fixtures for common test objects
like users, catalog items with stock, tables and customers.
"""
import pytest
from decimal import Decimal

from customers.models import Customer
from products.models import Category
from products.services import ProductService
from tables.models import Table
from users.models import User


# ============================================================================
# USER FIXTURES
# ============================================================================

@pytest.fixture
def cashier(db):
    """Create a cashier (cannot approve voids or large discounts)"""
    return User.objects.create_user(
        email='cashier@bar.test',
        username='cashier',
        password='password123',
        role=User.Role.CASHIER,
    )


@pytest.fixture
def manager(db):
    """Create a manager"""
    return User.objects.create_user(
        email='manager@bar.test',
        username='manager',
        password='password123',
        role=User.Role.MANAGER,
    )


# ============================================================================
# CATALOG FIXTURES
# ============================================================================

@pytest.fixture
def beer_category(db):
    """Strict bar category: cannot be sold past zero"""
    return Category.objects.create(
        name='Beer',
        destination=Category.Destination.BAR,
        stock_policy=Category.StockPolicy.STRICT,
    )


@pytest.fixture
def food_category(db):
    """Flexible kitchen category: sold regardless of stock"""
    return Category.objects.create(
        name='Food',
        destination=Category.Destination.KITCHEN,
        stock_policy=Category.StockPolicy.FLEXIBLE,
    )


@pytest.fixture
def combo_category(db):
    """Category prepared at both stations"""
    return Category.objects.create(
        name='Sizzling Combos',
        destination=Category.Destination.BOTH,
        stock_policy=Category.StockPolicy.FLEXIBLE,
    )


@pytest.fixture
def undeclared_category(db):
    """Category without a destination; routing falls back to the product name"""
    return Category.objects.create(name='Specials', destination='')


@pytest.fixture
def strict_product(beer_category):
    """Strict product with 5 in stock, 100.00 each"""
    return ProductService.create_product(
        name='San Miguel Pale Pilsen',
        category_id=beer_category.id,
        price=Decimal('100.00'),
        vip_price=Decimal('90.00'),
        initial_stock=5,
    )


@pytest.fixture
def scarce_product(beer_category):
    """Strict product with a single unit left"""
    return ProductService.create_product(
        name='Red Horse Stallion',
        category_id=beer_category.id,
        price=Decimal('120.00'),
        initial_stock=1,
    )


@pytest.fixture
def food_product(food_category):
    """Flexible product with 20 in stock, 150.00 each"""
    return ProductService.create_product(
        name='Pork Sisig',
        category_id=food_category.id,
        price=Decimal('150.00'),
        initial_stock=20,
    )


@pytest.fixture
def bucket_package(strict_product, food_product):
    """Package spanning bar and kitchen: 2 beers and 1 sisig"""
    return ProductService.create_package(
        name='Beer Bucket Combo',
        price=Decimal('320.00'),
        components=[(strict_product, 2), (food_product, 1)],
    )


# ============================================================================
# TABLE / CUSTOMER FIXTURES
# ============================================================================

@pytest.fixture
def table(db):
    return Table.objects.create(number='A1', capacity=4, area='Main Hall')


@pytest.fixture
def other_table(db):
    return Table.objects.create(number='B2', capacity=6, area='Terrace')


@pytest.fixture
def vip_customer(db):
    return Customer.objects.create(first_name='Maria', last_name='Santos', tier=Customer.Tier.VIP)


# ============================================================================
# SHORTCUTS
# ============================================================================

@pytest.fixture
def open_session(table, cashier):
    """An open tab at table A1"""
    from orders.services import OrderSessionService

    return OrderSessionService.open_session(table=table, opened_by=cashier)


@pytest.fixture
def order_factory(cashier):
    """
    Build a draft order from (product_or_package, quantity) pairs.

    Usage:
        order = order_factory([(strict_product, 2)], session=open_session)
    """
    from orders.services import OrderService
    from products.models import Package

    def _make(lines, session=None, customer=None, **kwargs):
        items = []
        for target, quantity in lines:
            key = 'package_id' if isinstance(target, Package) else 'product_id'
            items.append({key: target.pk, 'quantity': quantity, **kwargs})
        return OrderService.create_order(cashier=cashier, items=items, session=session, customer=customer)

    return _make


@pytest.fixture
def global_settings(db):
    """The GlobalSettings row. Saving it reloads app_settings."""
    from settings.models import GlobalSettings

    return GlobalSettings.objects.order_by('pk').first() or GlobalSettings.objects.create()
