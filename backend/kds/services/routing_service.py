"""
Routing engine: which preparation station(s) an order item goes to.

Routing is a pure function of the item and its category metadata. A
category either declares its destination (kitchen, bar or both) or leaves
it blank, in which case the product name is matched against keyword lists.
Name matching is a last resort: results come back as ``Inferred`` so callers
can log them for catalog clean-up.
"""
from dataclasses import dataclass
import re
from typing import Dict, FrozenSet, List, Optional, Tuple, Union
import logging

from products.models import Category, Product
from ..models import Destination

logger = logging.getLogger(__name__)


BAR_KEYWORDS = (
    "beer", "wine", "whiskey", "vodka", "rum", "gin", "tequila", "cocktail",
    "mojito", "margarita", "juice", "soda", "water", "shake", "smoothie",
    "coffee", "tea", "latte", "cappuccino", "pale", "pilsen", "red horse",
    "san miguel", "bottle", "draft",
)

KITCHEN_KEYWORDS = (
    "sisig", "wings", "fries", "burger", "pizza", "pasta", "rice", "chicken",
    "pork", "beef", "fish", "seafood", "salad", "soup", "sandwich", "pulutan",
    "calamares", "lumpia", "adobo", "sinigang", "lechon", "barbecue", "grilled",
)


def _matches(keyword: str, text: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}s?\b", text) is not None


_BOTH = frozenset({Destination.KITCHEN, Destination.BAR})


@dataclass(frozen=True)
class Declared:
    """Destinations taken from the product's category."""

    destinations: FrozenSet[str]


@dataclass(frozen=True)
class Inferred:
    """Destination guessed from the product name; treat as provisional."""

    destinations: FrozenSet[str]
    matched_keyword: Optional[str] = None


RoutingDecision = Union[Declared, Inferred]


@dataclass
class ItemRoute:
    """Where one order item goes, and which constituents each station makes."""

    destinations: Dict[str, List[Tuple[Product, int]]]
    inferred: bool


class RoutingService:

    @classmethod
    def infer_from_name(cls, name: str) -> Inferred:
        """
        Whole-word keyword match against the product name (so "steak" is not
        "tea"). Bar keywords are checked before kitchen keywords; anything
        unmatched goes to the kitchen.
        """
        lowered = (name or "").lower()
        for keyword in BAR_KEYWORDS:
            if _matches(keyword, lowered):
                return Inferred(frozenset({Destination.BAR}), keyword)
        for keyword in KITCHEN_KEYWORDS:
            if _matches(keyword, lowered):
                return Inferred(frozenset({Destination.KITCHEN}), keyword)
        return Inferred(frozenset({Destination.KITCHEN}), None)

    @classmethod
    def route_product(cls, product: Product) -> RoutingDecision:
        category = product.category
        if category is not None and category.destination:
            if category.destination == Category.Destination.BOTH:
                return Declared(_BOTH)
            return Declared(frozenset({category.destination}))
        return cls.infer_from_name(product.name)

    @classmethod
    def route_item(cls, order_item) -> ItemRoute:
        """
        Resolve an order item to ``{destination: [(product, quantity per unit), ...]}``.
        A package is decomposed; its destinations are the union of its
        constituents' destinations.
        """
        if order_item.product_id:
            components = [(order_item.product, 1)]
        else:
            from products.services import ProductService

            components = ProductService.get_package_components(order_item.package)

        destinations: Dict[str, List[Tuple[Product, int]]] = {}
        inferred = False
        for product, quantity in components:
            decision = cls.route_product(product)
            if isinstance(decision, Inferred):
                inferred = True
                logger.warning(
                    f"Inferred routing for '{product.name}' -> {sorted(decision.destinations)} "
                    f"(keyword: {decision.matched_keyword or 'none, default'}). "
                    f"Set a destination on its category."
                )
            for destination in sorted(decision.destinations):
                destinations.setdefault(destination, []).append((product, quantity))

        return ItemRoute(destinations=destinations, inferred=inferred)

    @classmethod
    def destinations_for_item(cls, order_item) -> FrozenSet[str]:
        return frozenset(cls.route_item(order_item).destinations)
