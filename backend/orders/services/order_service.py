from decimal import Decimal, InvalidOperation
from django.db import transaction
from django.utils import timezone
import logging

from core_backend.exceptions import ConflictError, ValidationError
from core_backend.utils.money import quantize, to_decimal
from customers.services import CustomerService
from orders.models import Order, OrderItem, OrderItemAddOn, OrderModification, OrderSession, PaymentMethod
from products.services import ProductService
from settings.config import app_settings
from users.services import UserService
from .calculation_service import OrderCalculationService

logger = logging.getLogger(__name__)


# Progress rank for ticket-driven bubbling; bubbling only ever moves forward
_PROGRESS = {
    Order.OrderStatus.CONFIRMED: 0,
    Order.OrderStatus.PREPARING: 1,
    Order.OrderStatus.READY: 2,
    Order.OrderStatus.SERVED: 3,
}


class OrderService:
    """Core service for the order lifecycle: draft, confirm, prepare, complete, void."""

    # Valid status transitions for order state machine
    VALID_STATUS_TRANSITIONS = {
        Order.OrderStatus.DRAFT: [
            Order.OrderStatus.ON_HOLD,
            Order.OrderStatus.CONFIRMED,
            Order.OrderStatus.VOIDED,
        ],
        Order.OrderStatus.PENDING: [
            Order.OrderStatus.ON_HOLD,
            Order.OrderStatus.CONFIRMED,
            Order.OrderStatus.VOIDED,
        ],
        Order.OrderStatus.ON_HOLD: [
            Order.OrderStatus.PENDING,
            Order.OrderStatus.VOIDED,
        ],
        Order.OrderStatus.CONFIRMED: [
            Order.OrderStatus.PREPARING,
            Order.OrderStatus.READY,
            Order.OrderStatus.SERVED,
            Order.OrderStatus.COMPLETED,
            Order.OrderStatus.VOIDED,
        ],
        Order.OrderStatus.PREPARING: [
            Order.OrderStatus.READY,
            Order.OrderStatus.SERVED,
            Order.OrderStatus.COMPLETED,
            Order.OrderStatus.VOIDED,
        ],
        Order.OrderStatus.READY: [
            Order.OrderStatus.SERVED,
            Order.OrderStatus.COMPLETED,
            Order.OrderStatus.VOIDED,
        ],
        Order.OrderStatus.SERVED: [
            Order.OrderStatus.COMPLETED,
            Order.OrderStatus.VOIDED,
        ],
        Order.OrderStatus.COMPLETED: [
            Order.OrderStatus.VOIDED,  # Reversal; stock is restored
        ],
        Order.OrderStatus.VOIDED: [],
    }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def lock_for_update(order: Order) -> Order:
        """
        Lock the parent session first (if any), then the order. Every writer
        takes the locks in this order, so one session has one writer at a time.
        """
        if order.session_id:
            OrderSession.objects.select_for_update().get(pk=order.session_id)
        return Order.objects.select_for_update().get(pk=order.pk)

    @staticmethod
    def _check_transition(order: Order, new_status: str):
        if new_status not in OrderService.VALID_STATUS_TRANSITIONS.get(order.status, []):
            raise ConflictError(
                f"Order {order.order_number} is {order.get_status_display().lower()} "
                f"and cannot move to {Order.OrderStatus(new_status).label.lower()}",
                current_state=order.status,
            )

    @staticmethod
    def _set_status(order: Order, new_status: str, extra_fields=()):
        OrderService._check_transition(order, new_status)
        old_status = order.status
        order.status = new_status
        order.save(update_fields=["status", "updated_at", *extra_fields])
        logger.info(f"Order {order.order_number}: {old_status} -> {new_status}")
        return order

    @staticmethod
    def _require_editable(order: Order):
        if not order.is_editable:
            raise ConflictError(
                f"Order {order.order_number} can no longer be edited",
                current_state=order.status,
            )

    @staticmethod
    def _parse_quantity(value, label="Quantity") -> int:
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise ValidationError(f"{label} must be a whole number", {"quantity": value})
        try:
            quantity = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{label} must be a whole number", {"quantity": value})
        if quantity <= 0:
            raise ValidationError(f"{label} must be positive", {"quantity": value})
        return quantity

    @staticmethod
    def _resolve_item(data: dict) -> dict:
        """
        Turn one raw item payload into resolved catalog objects. Nothing is
        written here, so a bad item rejects the whole request up front.
        """
        product_id = data.get("product_id")
        package_id = data.get("package_id")
        if bool(product_id) == bool(package_id):
            raise ValidationError(
                "Each item needs exactly one of product_id or package_id", {"item": data}
            )

        resolved = {
            "product": ProductService.resolve_product(product_id) if product_id else None,
            "package": ProductService.resolve_package(package_id) if package_id else None,
            "quantity": OrderService._parse_quantity(data.get("quantity", 1)),
            "notes": data.get("notes", "") or "",
            "is_complimentary": bool(data.get("is_complimentary", False)),
            "addons": [],
        }

        for addon in data.get("addons") or []:
            name = (addon.get("name") or "").strip()
            if not name:
                raise ValidationError("Add-on name is required", {"addon": addon})
            try:
                price = to_decimal(addon.get("price", 0))
            except (InvalidOperation, TypeError):
                raise ValidationError("Add-on price must be a number", {"addon": addon})
            if price < 0:
                raise ValidationError("Add-on price cannot be negative", {"addon": addon})
            resolved["addons"].append({
                "name": name,
                "price": quantize(price),
                "quantity": OrderService._parse_quantity(addon.get("quantity", 1), "Add-on quantity"),
            })
        return resolved

    @staticmethod
    def _create_item(order: Order, resolved: dict, is_vip: bool) -> OrderItem:
        target = resolved["product"] or resolved["package"]
        item = OrderItem.objects.create(
            order=order,
            product=resolved["product"],
            package=resolved["package"],
            item_name=target.name,
            quantity=resolved["quantity"],
            unit_price=ProductService.get_unit_price(
                product=resolved["product"], package=resolved["package"], is_vip=is_vip
            ),
            is_vip_price=is_vip and target.vip_price is not None,
            is_complimentary=resolved["is_complimentary"],
            notes=resolved["notes"],
        )
        for addon in resolved["addons"]:
            OrderItemAddOn.objects.create(order_item=item, **addon)
        return item

    @staticmethod
    def validate_payment(payment: dict, amount_due: Decimal):
        """
        Returns ``(method, tendered, change)``. Tendered must cover the amount due.
        """
        payment = payment or {}
        method = payment.get("method") or payment.get("payment_method")
        if method not in PaymentMethod.values:
            raise ValidationError(
                f"Unsupported payment method '{method}'",
                {"allowed": list(PaymentMethod.values)},
            )
        try:
            tendered = quantize(to_decimal(payment.get("amount_tendered")))
        except (InvalidOperation, TypeError):
            raise ValidationError("Amount tendered must be a number")
        if tendered < amount_due:
            raise ValidationError(
                f"Payment of {tendered} does not cover the amount due of {amount_due}",
                {"amount_due": str(amount_due), "amount_tendered": str(tendered)},
            )
        return method, tendered, quantize(tendered - amount_due)

    # ------------------------------------------------------------------
    # Drafting
    # ------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def create_order(cashier, items, session=None, customer=None, table=None, notes="") -> Order:
        """
        Creates an order in DRAFT. Without a session it is an express sale.
        """
        if not items:
            raise ValidationError("An order needs at least one item")
        resolved_items = [OrderService._resolve_item(data) for data in items]

        if session is not None:
            session = OrderSession.objects.select_for_update().get(pk=session.pk)
            if not session.is_open:
                raise ConflictError(
                    f"Session {session.session_number} is {session.status.lower()}",
                    current_state=session.status,
                )
            customer = customer or session.customer
            table = session.table

        is_vip = CustomerService.get_pricing_context(customer)["is_vip"]
        order = Order.objects.create(
            session=session, cashier=cashier, customer=customer, table=table, notes=notes
        )
        for resolved in resolved_items:
            OrderService._create_item(order, resolved, is_vip)

        OrderCalculationService.recalculate_order_totals(order)
        logger.info(
            f"Created order {order.order_number} with {len(resolved_items)} item(s)"
            + (f" on session {session.session_number}" if session else " (express)")
        )
        return order

    @staticmethod
    @transaction.atomic
    def add_item(order: Order, item_data: dict) -> OrderItem:
        order = OrderService.lock_for_update(order)
        OrderService._require_editable(order)
        resolved = OrderService._resolve_item(item_data)

        is_vip = CustomerService.get_pricing_context(order.customer)["is_vip"]
        item = OrderService._create_item(order, resolved, is_vip)
        OrderCalculationService.recalculate_order_totals(order)
        item.refresh_from_db()
        logger.info(f"Added {item.quantity} x {item.item_name} to order {order.order_number}")
        return item

    @staticmethod
    @transaction.atomic
    def remove_item(order: Order, item_id) -> Order:
        order = OrderService.lock_for_update(order)
        OrderService._require_editable(order)
        item = OrderService._get_item(order, item_id)
        item.delete()
        OrderCalculationService.recalculate_order_totals(order)
        logger.info(f"Removed {item.item_name} from order {order.order_number}")
        return order

    @staticmethod
    @transaction.atomic
    def hold_order(order: Order) -> Order:
        """Park an unconfirmed order."""
        order = OrderService.lock_for_update(order)
        return OrderService._set_status(order, Order.OrderStatus.ON_HOLD)

    @staticmethod
    @transaction.atomic
    def resume_order(order: Order) -> Order:
        """Bring a held order back as PENDING."""
        order = OrderService.lock_for_update(order)
        return OrderService._set_status(order, Order.OrderStatus.PENDING)

    @staticmethod
    @transaction.atomic
    def apply_discount(order: Order, amount, actor, reason="") -> Order:
        """
        Order-level fixed discount. Above the configured percentage of the
        subtotal the actor must be a manager or higher.
        """
        order = OrderService.lock_for_update(order)
        if order.status in (Order.OrderStatus.COMPLETED, Order.OrderStatus.VOIDED):
            raise ConflictError(
                f"Order {order.order_number} is {order.status.lower()} and cannot be discounted",
                current_state=order.status,
            )

        try:
            amount = quantize(to_decimal(amount))
        except (InvalidOperation, TypeError):
            raise ValidationError("Discount amount must be a number")
        if amount < 0:
            raise ValidationError("Discount amount cannot be negative")
        if amount > order.subtotal:
            raise ValidationError(
                f"Discount of {amount} exceeds the order subtotal of {order.subtotal}",
                {"subtotal": str(order.subtotal)},
            )

        if order.subtotal > 0:
            percentage = amount / order.subtotal * 100
            if percentage > app_settings.manager_discount_threshold:
                UserService.require_manager(actor, f"apply a {percentage:.0f}% discount")

        # Totals are saved together with the discount so the row stays consistent
        order.discount_amount = amount
        OrderCalculationService.recalculate_order_totals(order)
        order.discount_reason = reason
        order.discounted_by = actor if amount else None
        order.save(update_fields=["discount_reason", "discounted_by", "updated_at"])

        logger.info(f"Discount of {amount} applied to order {order.order_number} by {actor}")
        return order

    # ------------------------------------------------------------------
    # Confirmation and preparation
    # ------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def confirm_order(order: Order) -> Order:
        """
        DRAFT/PENDING -> CONFIRMED. Stock is reserved and tickets are created
        in the same transaction as the status change: an InsufficientStock
        or a routing failure leaves the order exactly as it was.
        """
        from inventory.services import InventoryService
        from kds.services import TicketService

        order = OrderService.lock_for_update(order)
        OrderService._check_transition(order, Order.OrderStatus.CONFIRMED)
        if not order.items.exists():
            raise ValidationError(f"Order {order.order_number} has no items")

        warnings = InventoryService.reserve_for_order(order)
        TicketService.create_tickets_for_order(order)

        order.stock_warnings = warnings
        order.confirmed_at = timezone.now()
        OrderService._set_status(
            order, Order.OrderStatus.CONFIRMED, extra_fields=["stock_warnings", "confirmed_at"]
        )
        return order

    @staticmethod
    @transaction.atomic
    def update_status_from_tickets(order: Order, target_status: str) -> Order:
        """
        Best-effort bubbling from station tickets. Only moves forward, and
        only while the order is between confirmation and payment.
        """
        order = OrderService.lock_for_update(order)
        if order.status not in _PROGRESS or target_status not in _PROGRESS:
            return order
        if _PROGRESS[target_status] <= _PROGRESS[order.status]:
            return order

        reached_ready = (
            _PROGRESS[order.status] < _PROGRESS[Order.OrderStatus.READY] <= _PROGRESS[target_status]
        )
        OrderService._set_status(order, target_status)

        if reached_ready:
            from notifications.services import NotificationService
            NotificationService.order_ready(order)
        return order

    # ------------------------------------------------------------------
    # Changes after confirmation
    # ------------------------------------------------------------------

    @staticmethod
    def _require_modifiable(order: Order):
        """Only while no station has started on the order."""
        if order.status != Order.OrderStatus.CONFIRMED:
            raise ConflictError(
                f"Order {order.order_number} is {order.get_status_display().lower()}; "
                f"only confirmed orders can be modified",
                current_state=order.status,
            )

    @staticmethod
    def _get_item(order: Order, item_id) -> OrderItem:
        try:
            return order.items.get(pk=item_id)
        except (OrderItem.DoesNotExist, ValueError, TypeError):
            raise ValidationError(
                f"Item {item_id} is not on order {order.order_number}", {"item_id": str(item_id)}
            )

    @staticmethod
    def _ticket_statuses(item: OrderItem) -> str:
        return ",".join(sorted(set(item.tickets.values_list("status", flat=True))))

    @staticmethod
    @transaction.atomic
    def reduce_item_quantity(order: Order, item_id, new_quantity, actor, reason="") -> OrderItem:
        """
        Lower the quantity of a line on a confirmed order. The surplus stock
        reservation is released, the item's tickets carry the new count and
        order and session totals are recomputed.
        """
        from inventory.services import InventoryService
        from kds.services import TicketService

        order = OrderService.lock_for_update(order)
        OrderService._require_modifiable(order)
        item = OrderService._get_item(order, item_id)

        new_quantity = OrderService._parse_quantity(new_quantity)
        if new_quantity >= item.quantity:
            raise ValidationError(
                f"New quantity must be below the current {item.quantity}; "
                f"add a new line to order more",
                {"quantity": item.quantity},
            )

        old_quantity, old_total = item.quantity, item.total
        ticket_statuses = OrderService._ticket_statuses(item)

        item.quantity = new_quantity
        item.save(update_fields=["quantity"])
        OrderCalculationService.recalculate_order_totals(order)
        item.refresh_from_db()

        InventoryService.shrink_reservations(order)
        TicketService.resize_tickets_for_item(item)

        OrderModification.objects.create(
            order=order,
            order_item=item,
            item_name=item.item_name,
            modification_type=OrderModification.ModificationType.QUANTITY_REDUCED,
            old_quantity=old_quantity,
            new_quantity=new_quantity,
            amount_adjusted=old_total - item.total,
            ticket_statuses=ticket_statuses,
            reason=reason or "Customer request",
            modified_by=actor,
        )
        logger.info(
            f"Reduced {item.item_name} on order {order.order_number} from {old_quantity} "
            f"to {new_quantity} by {actor}"
        )
        return item

    @staticmethod
    @transaction.atomic
    def remove_confirmed_item(order: Order, item_id, actor, reason="") -> Order:
        """
        Take a line off a confirmed order. Its tickets are cancelled and its
        stock reservation released. The last line cannot be removed; the
        order is voided instead.
        """
        from inventory.services import InventoryService
        from kds.services import TicketService

        order = OrderService.lock_for_update(order)
        OrderService._require_modifiable(order)
        item = OrderService._get_item(order, item_id)
        if order.items.count() == 1:
            raise ValidationError(
                f"Cannot remove the last item of order {order.order_number}; void the order instead"
            )

        ticket_statuses = OrderService._ticket_statuses(item)
        TicketService.cancel_tickets_for_item(item)

        OrderModification.objects.create(
            order=order,
            order_item=item,
            item_name=item.item_name,
            modification_type=OrderModification.ModificationType.ITEM_REMOVED,
            old_quantity=item.quantity,
            new_quantity=0,
            amount_adjusted=item.total,
            ticket_statuses=ticket_statuses,
            reason=reason or "Customer request",
            modified_by=actor,
        )
        item.delete()

        OrderCalculationService.recalculate_order_totals(order)
        InventoryService.shrink_reservations(order)
        logger.info(f"Removed {item.item_name} from confirmed order {order.order_number} by {actor}")
        return order

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def complete_order(order: Order, payment_method="", amount_tendered=None, change_amount=None, actor=None) -> Order:
        """
        Mark a paid order COMPLETED and deduct its stock. Deduction problems
        are recorded as discrepancies and never undo the completion.
        """
        from inventory.services import InventoryService

        order = OrderService.lock_for_update(order)
        OrderService._check_transition(order, Order.OrderStatus.COMPLETED)

        order.payment_method = payment_method
        order.amount_tendered = amount_tendered
        order.change_amount = change_amount
        order.completed_at = timezone.now()
        OrderService._set_status(
            order,
            Order.OrderStatus.COMPLETED,
            extra_fields=["payment_method", "amount_tendered", "change_amount", "completed_at"],
        )

        try:
            InventoryService.deduct_for_order(order, user=actor)
        except Exception as e:
            # Customer has paid; reconciliation picks this up
            logger.error(
                f"Stock deduction crashed for order {order.order_number}: {e}", exc_info=True
            )
        return order

    @staticmethod
    @transaction.atomic
    def checkout_express(order: Order, payment: dict, actor=None) -> Order:
        """
        Session-less quick sale: confirm if needed, take payment and complete
        in one pass.
        """
        if order.session_id:
            raise ConflictError(
                f"Order {order.order_number} belongs to a tab; close the session instead",
                current_state=order.status,
            )

        order = OrderService.lock_for_update(order)
        method, tendered, change = OrderService.validate_payment(payment, order.total_amount)

        if order.status in (Order.OrderStatus.DRAFT, Order.OrderStatus.PENDING):
            order = OrderService.confirm_order(order)

        return OrderService.complete_order(
            order,
            payment_method=method,
            amount_tendered=tendered,
            change_amount=change,
            actor=actor or order.cashier,
        )

    # ------------------------------------------------------------------
    # Voids
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_void_reason(reason: str, note: str):
        if reason not in Order.VoidReason.values:
            raise ValidationError(
                f"Unknown void reason '{reason}'", {"allowed": list(Order.VoidReason.values)}
            )
        if reason == Order.VoidReason.OTHER:
            minimum = app_settings.min_custom_void_reason_length
            if len((note or "").strip()) < minimum:
                raise ValidationError(
                    f"Describe the reason in at least {minimum} characters",
                    {"min_length": minimum},
                )

    @staticmethod
    @transaction.atomic
    def void_order(order: Order, reason: str, actor, note="") -> Order:
        """
        Void from any state but VOIDED. Tickets are cancelled. Stock held by
        an unpaid order is released; a completed order has its deduction
        reversed with SALE_RETURN movements.
        """
        from inventory.services import InventoryService
        from kds.services import TicketService

        OrderService._validate_void_reason(reason, note)
        if app_settings.require_manager_for_void:
            UserService.require_manager(actor, "void an order")

        order = OrderService.lock_for_update(order)
        OrderService._check_transition(order, Order.OrderStatus.VOIDED)
        was_completed = order.status == Order.OrderStatus.COMPLETED

        TicketService.cancel_tickets_for_order(order)

        if was_completed:
            try:
                InventoryService.restore_for_order(order, user=actor)
            except Exception as e:
                logger.error(
                    f"Stock restore crashed for voided order {order.order_number}: {e}", exc_info=True
                )
        else:
            InventoryService.release_for_order(order)

        order.void_reason = reason
        order.void_note = note or ""
        order.voided_by = actor
        order.voided_at = timezone.now()
        OrderService._set_status(
            order,
            Order.OrderStatus.VOIDED,
            extra_fields=["void_reason", "void_note", "voided_by", "voided_at"],
        )

        if order.session_id:
            OrderCalculationService.recalculate_session_totals(order.session)
        return order
