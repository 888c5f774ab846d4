from django.db import IntegrityError, transaction
from django.utils import timezone
import logging

from core_backend.exceptions import ConflictError, ValidationError
from orders.models import Order, OrderSession
from tables.services import TableService
from users.services import UserService
from .calculation_service import OrderCalculationService
from .order_service import OrderService

logger = logging.getLogger(__name__)


UNCONFIRMED_STATUSES = (
    Order.OrderStatus.DRAFT,
    Order.OrderStatus.PENDING,
    Order.OrderStatus.ON_HOLD,
)


class OrderSessionService:
    """
    Tabs. Every mutation locks the session row first, so a session is only
    ever written by one request at a time.
    """

    @staticmethod
    def _lock_open(session: OrderSession) -> OrderSession:
        locked = OrderSession.objects.select_for_update().get(pk=session.pk)
        if not locked.is_open:
            raise ConflictError(
                f"Session {locked.session_number} is already {locked.status.lower()}",
                current_state=locked.status,
            )
        return locked

    @staticmethod
    @transaction.atomic
    def open_session(table=None, customer=None, opened_by=None, guest_count=1, notes="") -> OrderSession:
        """
        Start a tab and occupy the table. A table that already has an open
        tab is rejected and no second session is left behind.
        """
        if table is not None and table.current_session_id:
            raise ConflictError(
                f"Table {table.number} already has an open tab",
                current_state=table.status,
                details={"session_id": str(table.current_session_id)},
            )

        try:
            with transaction.atomic():
                session = OrderSession.objects.create(
                    table=table,
                    customer=customer,
                    opened_by=opened_by,
                    guest_count=guest_count,
                    notes=notes,
                )
        except IntegrityError:
            if table is None:
                raise
            # Lost the race to the partial unique index on open sessions
            table.refresh_from_db()
            raise ConflictError(
                f"Table {table.number} already has an open tab", current_state=table.status
            )

        if table is not None:
            TableService.occupy(table, session)

        logger.info(
            f"Opened session {session.session_number}"
            + (f" at table {table.number}" if table is not None else "")
        )
        return session

    @staticmethod
    @transaction.atomic
    def add_order_to_session(session: OrderSession, order: Order) -> OrderSession:
        """Link an existing express order to a tab and recompute the tab."""
        session = OrderSessionService._lock_open(session)
        order = Order.objects.select_for_update().get(pk=order.pk)

        if order.session_id:
            raise ConflictError(
                f"Order {order.order_number} already belongs to a session",
                current_state=order.status,
            )
        if order.status in (Order.OrderStatus.COMPLETED, Order.OrderStatus.VOIDED):
            raise ConflictError(
                f"Order {order.order_number} is {order.status.lower()}", current_state=order.status
            )

        order.session = session
        order.table = session.table
        if order.customer_id is None:
            order.customer = session.customer
        order.save(update_fields=["session", "table", "customer", "updated_at"])

        OrderCalculationService.recalculate_session_totals(session)
        logger.info(f"Order {order.order_number} added to session {session.session_number}")
        return session

    @staticmethod
    def get_bill_preview(session: OrderSession) -> dict:
        """Read-only view of the running tab. Never writes."""
        orders = list(
            session.orders.prefetch_related("items__addons").order_by("created_at")
        )
        status_counts = {}
        order_lines = []
        for order in orders:
            status_counts[order.status] = status_counts.get(order.status, 0) + 1
            order_lines.append({
                "id": str(order.pk),
                "order_number": order.order_number,
                "status": order.status,
                "is_voided": order.status == Order.OrderStatus.VOIDED,
                "subtotal": str(order.subtotal),
                "discount_amount": str(order.discount_amount),
                "tax_amount": str(order.tax_amount),
                "total_amount": str(order.total_amount),
                "items": [
                    {
                        "id": item.pk,
                        "name": item.item_name,
                        "quantity": item.quantity,
                        "unit_price": str(item.unit_price),
                        "addons": [
                            {"name": a.name, "quantity": a.quantity, "price": str(a.price)}
                            for a in item.addons.all()
                        ],
                        "is_complimentary": item.is_complimentary,
                        "total": str(item.total),
                    }
                    for item in order.items.all()
                ],
            })

        return {
            "session_id": str(session.pk),
            "session_number": session.session_number,
            "status": session.status,
            "table": session.table.number if session.table_id else None,
            "customer": session.customer.full_name if session.customer_id else None,
            "duration_minutes": session.duration_minutes,
            "subtotal": str(session.subtotal),
            "discount_amount": str(session.discount_amount),
            "tax_amount": str(session.tax_amount),
            "total_amount": str(session.total_amount),
            "order_count": len(orders),
            "orders_by_status": status_counts,
            "orders": order_lines,
        }

    @staticmethod
    @transaction.atomic
    def close_session(session: OrderSession, payment: dict, actor=None) -> OrderSession:
        """
        Take payment for the whole tab: complete every non-voided order
        (each deducting its stock), close the session and release the table.
        """
        session = OrderSessionService._lock_open(session)

        unconfirmed = list(
            session.orders.filter(status__in=UNCONFIRMED_STATUSES).values_list("order_number", flat=True)
        )
        if unconfirmed:
            raise ConflictError(
                f"Session {session.session_number} still has unconfirmed orders: {', '.join(unconfirmed)}",
                current_state=session.status,
                details={"unconfirmed_orders": unconfirmed},
            )

        OrderCalculationService.recalculate_session_totals(session)
        method, tendered, change = OrderService.validate_payment(payment, session.total_amount)

        payable = session.orders.exclude(
            status__in=[Order.OrderStatus.VOIDED, Order.OrderStatus.COMPLETED]
        ).order_by("created_at")
        for order in payable:
            # Each order records its own share; the session holds the tender
            OrderService.complete_order(
                order,
                payment_method=method,
                amount_tendered=order.total_amount,
                change_amount=0,
                actor=actor,
            )

        session.status = OrderSession.SessionStatus.CLOSED
        session.payment_method = method
        session.amount_tendered = tendered
        session.change_amount = change
        session.closed_at = timezone.now()
        session.closed_by = actor
        session.save(update_fields=[
            "status", "payment_method", "amount_tendered", "change_amount",
            "closed_at", "closed_by", "updated_at",
        ])

        if session.table_id:
            TableService.release(session.table, session=session)

        logger.info(
            f"Closed session {session.session_number}: total {session.total_amount}, "
            f"tendered {tendered}, change {change}"
        )
        return session

    @staticmethod
    @transaction.atomic
    def abandon_session(session: OrderSession, actor, notes="") -> OrderSession:
        """
        Walkout. Unpaid orders are voided (their reservations released and
        tickets cancelled), the session is marked abandoned and the table freed.
        """
        UserService.require_manager(actor, "abandon a tab")
        session = OrderSessionService._lock_open(session)

        open_orders = session.orders.exclude(
            status__in=[Order.OrderStatus.VOIDED, Order.OrderStatus.COMPLETED]
        )
        for order in open_orders:
            OrderService.void_order(
                order, Order.VoidReason.WALKOUT, actor, note=notes or "Tab abandoned"
            )

        session.status = OrderSession.SessionStatus.ABANDONED
        session.closed_at = timezone.now()
        session.closed_by = actor
        if notes:
            session.notes = f"{session.notes}\n{notes}".strip()
        session.save(update_fields=["status", "closed_at", "closed_by", "notes", "updated_at"])
        OrderCalculationService.recalculate_session_totals(session)

        if session.table_id:
            TableService.release(session.table, session=session)

        logger.warning(f"Session {session.session_number} abandoned by {actor}")
        return session

    @staticmethod
    @transaction.atomic
    def move_session_to_table(session: OrderSession, new_table, actor=None) -> OrderSession:
        """
        Move a tab to another table. The old table is released and the new
        one occupied in one transaction; if the new table is taken nothing
        changes.
        """
        session = OrderSessionService._lock_open(session)
        if session.table_id == new_table.pk:
            raise ValidationError(f"Session is already at table {new_table.number}")

        old_table = session.table
        if old_table is not None:
            TableService.release(old_table, session=session)
        TableService.occupy(new_table, session)

        session.table = new_table
        session.save(update_fields=["table", "updated_at"])
        session.orders.exclude(
            status__in=[Order.OrderStatus.VOIDED, Order.OrderStatus.COMPLETED]
        ).update(table=new_table)

        logger.info(
            f"Session {session.session_number} moved from table "
            f"{old_table.number if old_table else '-'} to {new_table.number} by {actor}"
        )
        return session

    @staticmethod
    def get_active_session_for_table(table):
        return (
            OrderSession.objects.filter(table=table, status=OrderSession.SessionStatus.OPEN)
            .select_related("customer")
            .first()
        )
