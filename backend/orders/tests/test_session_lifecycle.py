"""
Session (tab) lifecycle tests: open, add rounds, preview, close, abandon
and move. Session totals must equal the sum of non-voided orders after
every mutation.
"""
import pytest
from decimal import Decimal

from django.db.models import Sum

from core_backend.exceptions import AuthorizationError, ConflictError, ValidationError
from inventory.services import InventoryService
from kds.models import PreparationTicket
from orders.models import Order, OrderSession
from orders.services import OrderService, OrderSessionService
from tables.models import Table


def assert_session_total_consistent(session):
    session.refresh_from_db()
    expected = session.orders.exclude(status=Order.OrderStatus.VOIDED).aggregate(
        total=Sum('total_amount')
    )['total'] or Decimal('0.00')
    assert session.total_amount == expected


@pytest.mark.django_db
class TestOpenSession:

    def test_open_occupies_table(self, table, cashier):
        session = OrderSessionService.open_session(table=table, opened_by=cashier)

        table.refresh_from_db()
        assert session.is_open
        assert session.session_number.startswith('TAB-')
        assert table.current_session == session
        assert table.status == Table.TableStatus.OCCUPIED

    def test_second_open_on_same_table_conflicts(self, table, cashier, open_session):
        table.refresh_from_db()

        with pytest.raises(ConflictError) as exc_info:
            OrderSessionService.open_session(table=table, opened_by=cashier)

        assert 'already has an open tab' in exc_info.value.message
        assert OrderSession.objects.filter(table=table).count() == 1

    def test_stale_table_instance_still_conflicts(self, cashier, open_session):
        stale = Table.objects.get(number='A1')
        stale.current_session_id = None  # caller read the table before the tab opened

        with pytest.raises(ConflictError):
            OrderSessionService.open_session(table=stale, opened_by=cashier)
        assert OrderSession.objects.count() == 1

    def test_session_without_table(self, vip_customer, cashier):
        session = OrderSessionService.open_session(customer=vip_customer, opened_by=cashier)
        assert session.table is None
        assert session.customer == vip_customer

    def test_session_numbers_are_date_scoped_sequence(self, table, other_table, cashier):
        first = OrderSessionService.open_session(table=table, opened_by=cashier)
        second = OrderSessionService.open_session(table=other_table, opened_by=cashier)

        prefix = first.session_number.rsplit('-', 1)[0]
        assert second.session_number == f'{prefix}-{int(first.session_number[-3:]) + 1:03d}'


@pytest.mark.django_db
class TestSessionTotals:

    def test_simple_tab(self, open_session, order_factory, strict_product):
        order = order_factory([(strict_product, 2)], session=open_session)
        order = OrderService.confirm_order(order)

        assert order.status == Order.OrderStatus.CONFIRMED
        assert InventoryService.get_available_quantity(strict_product) == Decimal('3.00')
        assert PreparationTicket.objects.filter(order=order, destination='bar').count() == 1
        assert order.table == open_session.table
        assert_session_total_consistent(open_session)

    def test_multi_round_totals(self, open_session, order_factory, strict_product, food_product):
        OrderService.confirm_order(order_factory([(strict_product, 2)], session=open_session))
        OrderService.confirm_order(order_factory([(food_product, 1)], session=open_session))

        open_session.refresh_from_db()
        assert open_session.total_amount == Decimal('350.00')
        assert_session_total_consistent(open_session)

    def test_void_excludes_order_from_total(self, open_session, order_factory, strict_product, food_product, manager):
        first = OrderService.confirm_order(order_factory([(strict_product, 2)], session=open_session))
        OrderService.confirm_order(order_factory([(food_product, 1)], session=open_session))

        OrderService.void_order(first, Order.VoidReason.KITCHEN_ERROR, manager)

        open_session.refresh_from_db()
        assert open_session.total_amount == Decimal('150.00')
        assert_session_total_consistent(open_session)

    def test_item_edits_update_session(self, open_session, order_factory, strict_product, food_product):
        order = order_factory([(strict_product, 1)], session=open_session)
        item = OrderService.add_item(order, {'product_id': food_product.pk, 'quantity': 1})
        assert_session_total_consistent(open_session)

        OrderService.remove_item(order, item.pk)
        assert_session_total_consistent(open_session)

    def test_order_on_closed_session_rejected(self, open_session, order_factory, strict_product):
        OrderSessionService.close_session(open_session, {'method': 'CASH', 'amount_tendered': '0'})

        with pytest.raises(ConflictError):
            order_factory([(strict_product, 1)], session=open_session)

    def test_add_express_order_to_session(self, open_session, order_factory, strict_product):
        order = order_factory([(strict_product, 1)])

        OrderSessionService.add_order_to_session(open_session, order)

        order.refresh_from_db()
        assert order.session == open_session
        assert order.table == open_session.table
        assert_session_total_consistent(open_session)

    def test_session_customer_vip_pricing_applies(self, table, vip_customer, cashier, order_factory, strict_product):
        session = OrderSessionService.open_session(table=table, customer=vip_customer, opened_by=cashier)

        order = order_factory([(strict_product, 1)], session=session)

        assert order.customer == vip_customer
        assert order.total_amount == Decimal('90.00')


@pytest.mark.django_db
class TestBillPreview:

    def test_preview_is_read_only(self, open_session, order_factory, strict_product, food_product):
        OrderService.confirm_order(order_factory([(strict_product, 2)], session=open_session))
        order_factory([(food_product, 1)], session=open_session)
        open_session.refresh_from_db()
        before = OrderSession.objects.filter(pk=open_session.pk).values().get()

        preview = OrderSessionService.get_bill_preview(open_session)

        assert preview['total_amount'] == '350.00'
        assert preview['order_count'] == 2
        assert preview['orders_by_status'] == {'CONFIRMED': 1, 'DRAFT': 1}
        assert preview['table'] == 'A1'
        assert OrderSession.objects.filter(pk=open_session.pk).values().get() == before


@pytest.mark.django_db
class TestCloseSession:

    def test_multi_round_close(self, open_session, order_factory, strict_product, food_product, cashier):
        first = OrderService.confirm_order(order_factory([(strict_product, 2)], session=open_session))
        second = OrderService.confirm_order(order_factory([(food_product, 1)], session=open_session))

        session = OrderSessionService.close_session(
            open_session, {'method': 'CASH', 'amount_tendered': '400.00'}, actor=cashier
        )

        assert session.status == OrderSession.SessionStatus.CLOSED
        assert session.change_amount == Decimal('50.00')
        assert session.closed_by == cashier
        for order in (first, second):
            order.refresh_from_db()
            assert order.status == Order.OrderStatus.COMPLETED
            assert order.payment_method == 'CASH'
        assert InventoryService.get_stock_level(strict_product) == Decimal('3.00')
        assert InventoryService.get_stock_level(food_product) == Decimal('19.00')

        table = Table.objects.get(pk=open_session.table_id)
        assert table.current_session is None
        assert table.status == Table.TableStatus.AVAILABLE

    def test_underpayment_rejected(self, open_session, order_factory, strict_product):
        OrderService.confirm_order(order_factory([(strict_product, 2)], session=open_session))

        with pytest.raises(ValidationError):
            OrderSessionService.close_session(open_session, {'method': 'CASH', 'amount_tendered': '199.99'})

        open_session.refresh_from_db()
        assert open_session.is_open

    def test_unconfirmed_orders_block_close(self, open_session, order_factory, strict_product):
        draft = order_factory([(strict_product, 1)], session=open_session)

        with pytest.raises(ConflictError) as exc_info:
            OrderSessionService.close_session(open_session, {'method': 'CASH', 'amount_tendered': '500'})

        assert exc_info.value.details['unconfirmed_orders'] == [draft.order_number]

    def test_voided_orders_are_not_completed(self, open_session, order_factory, strict_product, manager):
        order = OrderService.confirm_order(order_factory([(strict_product, 1)], session=open_session))
        OrderService.void_order(order, Order.VoidReason.CUSTOMER_REQUEST, manager)

        OrderSessionService.close_session(open_session, {'method': 'CARD', 'amount_tendered': '0'})

        order.refresh_from_db()
        assert order.status == Order.OrderStatus.VOIDED
        assert InventoryService.get_stock_level(strict_product) == Decimal('5.00')

    def test_close_twice_conflicts(self, open_session):
        OrderSessionService.close_session(open_session, {'method': 'CASH', 'amount_tendered': '0'})

        with pytest.raises(ConflictError) as exc_info:
            OrderSessionService.close_session(open_session, {'method': 'CASH', 'amount_tendered': '0'})
        assert exc_info.value.current_state == OrderSession.SessionStatus.CLOSED

    def test_table_can_be_reopened_after_close(self, open_session, table, cashier):
        OrderSessionService.close_session(open_session, {'method': 'CASH', 'amount_tendered': '0'})
        table.refresh_from_db()

        session = OrderSessionService.open_session(table=table, opened_by=cashier)
        assert session.is_open


@pytest.mark.django_db
class TestAbandonSession:

    def test_abandon_needs_manager(self, open_session, cashier):
        with pytest.raises(AuthorizationError):
            OrderSessionService.abandon_session(open_session, cashier)

    def test_walkout_voids_orders_and_frees_table(self, open_session, order_factory, strict_product, manager):
        order = OrderService.confirm_order(order_factory([(strict_product, 2)], session=open_session))

        session = OrderSessionService.abandon_session(open_session, manager, notes='Left without paying')

        order.refresh_from_db()
        assert session.status == OrderSession.SessionStatus.ABANDONED
        assert order.status == Order.OrderStatus.VOIDED
        assert order.void_reason == Order.VoidReason.WALKOUT
        assert InventoryService.get_available_quantity(strict_product) == Decimal('5.00')
        assert session.total_amount == Decimal('0.00')
        assert Table.objects.get(pk=open_session.table_id).current_session is None


@pytest.mark.django_db
class TestMoveSession:

    def test_move_to_free_table(self, open_session, other_table, order_factory, strict_product):
        order = order_factory([(strict_product, 1)], session=open_session)
        old_table_id = open_session.table_id

        session = OrderSessionService.move_session_to_table(open_session, other_table)

        other_table.refresh_from_db()
        order.refresh_from_db()
        assert session.table == other_table
        assert other_table.current_session == session
        assert order.table == other_table
        assert Table.objects.get(pk=old_table_id).current_session is None

    def test_move_to_occupied_table_changes_nothing(self, open_session, other_table, cashier):
        OrderSessionService.open_session(table=other_table, opened_by=cashier)

        with pytest.raises(ConflictError):
            OrderSessionService.move_session_to_table(open_session, other_table)

        assert Table.objects.get(number='A1').current_session_id == open_session.pk

    def test_active_session_lookup(self, open_session, table):
        assert OrderSessionService.get_active_session_for_table(table) == open_session
        OrderSessionService.close_session(open_session, {'method': 'CASH', 'amount_tendered': '0'})
        assert OrderSessionService.get_active_session_for_table(table) is None
