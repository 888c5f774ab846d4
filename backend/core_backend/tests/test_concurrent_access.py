"""
Concurrent Access Tests

Tests for race conditions that could cause:
- Strict stock being reserved twice
- Two open tabs on one table
- Lost order status updates when stations finish at the same time

The threaded tests need row locks, so they only run against PostgreSQL.
"""
import pytest
from decimal import Decimal
from threading import Thread, Barrier

from django.conf import settings
from django.db import connection

from core_backend.exceptions import ConflictError, InsufficientStock
from inventory.models import InventoryStock, StockReservation
from kds.models import TicketStatus
from kds.services import TicketService
from notifications.models import Notification
from orders.models import Order, OrderSession
from orders.services import OrderService, OrderSessionService
from tables.models import Table


requires_row_locks = pytest.mark.skipif(
    "sqlite" in settings.DATABASES["default"]["ENGINE"],
    reason="SQLite has no row-level locking",
)


def run_concurrently(target, count):
    """Run ``target(index)`` on ``count`` threads released together."""
    barrier = Barrier(count)
    results = []
    errors = []

    def worker(index):
        try:
            barrier.wait()
            results.append(target(index))
        except Exception as e:
            errors.append(e)
        finally:
            connection.close()

    threads = [Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results, errors


@requires_row_locks
@pytest.mark.django_db(transaction=True)
class TestConcurrentConfirmation:

    def test_last_unit_reserved_once(self, order_factory, scarce_product):
        """
        Two cashiers confirm orders for the last bottle at the same moment.
        Exactly one confirmation succeeds; the other gets InsufficientStock.
        """
        orders = [order_factory([(scarce_product, 1)]) for _ in range(2)]

        results, errors = run_concurrently(lambda i: OrderService.confirm_order(orders[i]), 2)

        assert len(results) == 1, f"Expected one confirmation, got {len(results)}. Errors: {errors}"
        assert len(errors) == 1
        assert isinstance(errors[0], InsufficientStock)

        stock = InventoryStock.objects.get(product=scarce_product)
        assert stock.reserved_quantity == Decimal("1.00")
        assert stock.available_quantity == Decimal("0.00")
        assert StockReservation.objects.filter(product=scarce_product).count() == 1

        statuses = sorted(Order.objects.filter(pk__in=[o.pk for o in orders]).values_list("status", flat=True))
        assert statuses == [Order.OrderStatus.CONFIRMED, Order.OrderStatus.DRAFT]


@requires_row_locks
@pytest.mark.django_db(transaction=True)
class TestConcurrentSessions:

    def test_one_open_tab_per_table(self, table, cashier):
        results, errors = run_concurrently(
            lambda i: OrderSessionService.open_session(table=table, opened_by=cashier), 3
        )

        assert len(results) == 1, f"Expected one open tab, got {len(results)}. Errors: {errors}"
        assert all(isinstance(e, ConflictError) for e in errors)
        assert OrderSession.objects.filter(table=table, status=OrderSession.SessionStatus.OPEN).count() == 1

        table.refresh_from_db()
        assert table.current_session_id == results[0].pk
        assert table.status == Table.TableStatus.OCCUPIED


@requires_row_locks
@pytest.mark.django_db(transaction=True)
class TestConcurrentTicketUpdates:

    def test_stations_finishing_together_bubble_to_ready(
        self, order_factory, strict_product, food_product, table, cashier
    ):
        """
        Bar and kitchen mark their tickets ready at the same time. Updates
        serialize on the order row, so the order lands on READY and the
        ready notification fires once.
        """
        session = OrderSessionService.open_session(table=table, opened_by=cashier)
        order = OrderService.confirm_order(
            order_factory([(strict_product, 1), (food_product, 1)], session=session)
        )
        tickets = list(order.tickets.order_by("destination"))
        for ticket in tickets:
            TicketService.mark_preparing(ticket)

        results, errors = run_concurrently(lambda i: TicketService.mark_ready(tickets[i]), 2)

        assert not errors, errors
        order.refresh_from_db()
        assert order.status == Order.OrderStatus.READY
        assert set(order.tickets.values_list("status", flat=True)) == {TicketStatus.READY}
        assert Notification.objects.filter(event_type=Notification.EventType.ORDER_READY).count() == 1


@pytest.mark.django_db
class TestSequentialContention:
    """Same guarantees without threads; runs on every backend"""

    def test_sequential_confirms_exhaust_strict_stock(self, order_factory, scarce_product):
        first = order_factory([(scarce_product, 1)])
        second = order_factory([(scarce_product, 1)])

        OrderService.confirm_order(first)
        with pytest.raises(InsufficientStock):
            OrderService.confirm_order(second)

        second.refresh_from_db()
        assert second.status == Order.OrderStatus.DRAFT
        assert not second.tickets.exists()

    def test_second_tab_on_table_conflicts(self, open_session, table, cashier):
        with pytest.raises(ConflictError):
            OrderSessionService.open_session(table=table, opened_by=cashier)

        assert OrderSession.objects.filter(table=table, status=OrderSession.SessionStatus.OPEN).count() == 1
