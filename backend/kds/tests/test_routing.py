"""
Routing engine tests: declared category destinations, package
decomposition and the name heuristic fallback.
"""
import pytest
from unittest.mock import patch

from kds.models import Destination
from kds.services import Declared, Inferred, RoutingService
from products.models import Category, Product


class TestNameHeuristic:

    @pytest.mark.parametrize('name, expected, keyword', [
        ('San Miguel Light', Destination.BAR, 'san miguel'),
        ('Mango Shake', Destination.BAR, 'shake'),
        ('Iced Tea', Destination.BAR, 'tea'),
        ('Buffalo Wings', Destination.KITCHEN, 'wings'),
        ('Garlic Rice', Destination.KITCHEN, 'rice'),
        ('Beef Steak', Destination.KITCHEN, 'beef'),
    ])
    def test_keyword_match(self, name, expected, keyword):
        decision = RoutingService.infer_from_name(name)

        assert isinstance(decision, Inferred)
        assert decision.destinations == frozenset({expected})
        assert decision.matched_keyword == keyword

    def test_match_is_whole_word(self):
        # "steak" contains "tea", "ginger" contains "gin"
        assert RoutingService.infer_from_name('Steak Tips').destinations == frozenset({Destination.KITCHEN})
        assert RoutingService.infer_from_name('Ginger Chicken').matched_keyword == 'chicken'

    def test_plural_keyword(self):
        assert RoutingService.infer_from_name('Two Beers').matched_keyword == 'beer'

    def test_unknown_name_defaults_to_kitchen(self):
        decision = RoutingService.infer_from_name('Chef Special')
        assert decision.destinations == frozenset({Destination.KITCHEN})
        assert decision.matched_keyword is None


class TestDeclaredRouting:

    def test_declared_destination_wins_over_name(self):
        category = Category(name='Bar Snacks', destination=Category.Destination.BAR)
        product = Product(name='Chicken Skin', category=category)

        decision = RoutingService.route_product(product)

        assert decision == Declared(frozenset({Destination.BAR}))

    def test_both_expands_to_two_destinations(self):
        category = Category(name='Combos', destination=Category.Destination.BOTH)
        product = Product(name='Sizzling Platter', category=category)

        assert RoutingService.route_product(product).destinations == frozenset(
            {Destination.KITCHEN, Destination.BAR}
        )

    def test_blank_destination_is_inferred(self):
        category = Category(name='Specials', destination='')
        product = Product(name='Frozen Margarita', category=category)

        decision = RoutingService.route_product(product)
        assert isinstance(decision, Inferred)
        assert decision.destinations == frozenset({Destination.BAR})

    def test_uncategorized_product_is_inferred(self):
        assert isinstance(RoutingService.route_product(Product(name='Lumpia')), Inferred)


@pytest.mark.django_db
class TestItemRouting:

    def test_package_spans_both_stations(self, order_factory, bucket_package):
        order = order_factory([(bucket_package, 1)])
        item = order.items.get()

        route = RoutingService.route_item(item)

        assert set(route.destinations) == {Destination.KITCHEN, Destination.BAR}
        assert [p.name for p, _ in route.destinations[Destination.BAR]] == ['San Miguel Pale Pilsen']
        assert not route.inferred

    def test_inferred_routing_is_logged(self, order_factory, undeclared_category):
        from products.services import ProductService

        product = ProductService.create_product(
            name='Calamares', category_id=undeclared_category.id, price='180.00', track_inventory=False
        )
        item = order_factory([(product, 1)]).items.get()

        with patch('kds.services.routing_service.logger') as logger:
            route = RoutingService.route_item(item)

        assert route.inferred
        assert set(route.destinations) == {Destination.KITCHEN}
        assert 'Inferred routing' in logger.warning.call_args[0][0]
