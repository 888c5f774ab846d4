from decimal import Decimal
from django.db import transaction
from django.db.models import Sum
import logging

from core_backend.utils.money import ZERO, inclusive_tax_portion, quantize, sum_money
from settings.config import app_settings

logger = logging.getLogger(__name__)


class OrderCalculationService:
    """
    Derived money fields. Orders and sessions never have their totals set
    directly; every mutation ends by calling one of these.

    Prices are tax-inclusive, so tax is the embedded portion of the total
    and ``order.total == sum(item.total) - order discount`` holds exactly.
    """

    @staticmethod
    def calculate_item_totals(item, currency=None):
        """
        subtotal = unit price x quantity + add-ons. A complimentary item is
        discounted in full.
        """
        currency = currency or app_settings.currency
        addons_total = sum(
            (addon.total_price for addon in item.addons.all()), Decimal("0")
        ) if item.pk else Decimal("0")

        item.subtotal = quantize(item.unit_price * item.quantity + addons_total, currency)
        if item.is_complimentary:
            item.discount_amount = item.subtotal
        else:
            item.discount_amount = min(item.discount_amount or ZERO, item.subtotal)
        item.total = quantize(item.subtotal - item.discount_amount, currency)
        return item

    @staticmethod
    @transaction.atomic
    def recalculate_order_totals(order):
        """
        Recompute an order from its current items, then its session.
        An order-level discount larger than the new subtotal is capped.
        """
        currency = app_settings.currency
        items = list(order.items.prefetch_related("addons"))

        for item in items:
            OrderCalculationService.calculate_item_totals(item, currency)
        if items:
            from orders.models import OrderItem
            OrderItem.objects.bulk_update(items, ["subtotal", "discount_amount", "total"])

        order.subtotal = sum_money((item.total for item in items), currency)
        order.discount_amount = quantize(min(order.discount_amount or ZERO, order.subtotal), currency)
        order.total_amount = quantize(order.subtotal - order.discount_amount, currency)
        order.tax_amount = inclusive_tax_portion(order.total_amount, app_settings.tax_rate, currency)
        order.save(
            update_fields=["subtotal", "discount_amount", "total_amount", "tax_amount", "updated_at"]
        )

        if order.session_id:
            OrderCalculationService.recalculate_session_totals(order.session)
        return order

    @staticmethod
    @transaction.atomic
    def recalculate_session_totals(session):
        """
        Session totals are the SQL sum over non-voided child orders, taken
        while holding the session row lock.
        """
        from orders.models import Order, OrderSession

        locked = OrderSession.objects.select_for_update().get(pk=session.pk)
        aggregates = Order.objects.filter(session=locked).exclude(
            status=Order.OrderStatus.VOIDED
        ).aggregate(
            subtotal=Sum("subtotal"),
            discount=Sum("discount_amount"),
            tax=Sum("tax_amount"),
            total=Sum("total_amount"),
        )

        locked.subtotal = aggregates["subtotal"] or ZERO
        locked.discount_amount = aggregates["discount"] or ZERO
        locked.tax_amount = aggregates["tax"] or ZERO
        locked.total_amount = aggregates["total"] or ZERO
        locked.save(
            update_fields=["subtotal", "discount_amount", "tax_amount", "total_amount", "updated_at"]
        )

        for field in ("subtotal", "discount_amount", "tax_amount", "total_amount"):
            setattr(session, field, getattr(locked, field))

        logger.debug(f"Session {locked.session_number} total recomputed: {locked.total_amount}")
        return session
