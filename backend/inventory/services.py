from collections import OrderedDict
from decimal import Decimal
from typing import Dict, List
import logging

from django.db import DatabaseError, transaction
from django.db.models import F, Sum
from django.utils import timezone

from core_backend.exceptions import (
    ConflictError,
    DeductionFailure,
    InsufficientStock,
    ValidationError,
)
from products.models import Product
from .models import InventoryStock, StockDiscrepancy, StockMovement, StockReservation

logger = logging.getLogger(__name__)


class InventoryService:
    """
    The stock ledger. Every on-hand change goes through ``_apply_movement``,
    which updates the counter with a conditional UPDATE and appends a
    StockMovement. Reservations hold stock for confirmed orders until
    payment commits them into SALE movements.
    """

    # ------------------------------------------------------------------
    # Counter helpers
    # ------------------------------------------------------------------

    @staticmethod
    def get_stock_record(product: Product) -> InventoryStock:
        stock, _ = InventoryStock.objects.get_or_create(product=product)
        return stock

    @staticmethod
    def get_stock_level(product: Product) -> Decimal:
        """On-hand quantity. Returns 0 if no stock record exists."""
        try:
            return InventoryStock.objects.get(product=product).quantity
        except InventoryStock.DoesNotExist:
            return Decimal("0.00")

    @staticmethod
    def get_available_quantity(product: Product) -> Decimal:
        """On-hand quantity minus what confirmed orders are holding."""
        try:
            return InventoryStock.objects.get(product=product).available_quantity
        except InventoryStock.DoesNotExist:
            return Decimal("0.00")

    @staticmethod
    def _apply_movement(
        product: Product,
        quantity_change: Decimal,
        movement_type: str,
        user=None,
        order=None,
        reason: str = "",
        keep_reserved: bool = False,
    ) -> StockMovement:
        """
        Apply a signed change to on-hand stock and record it.

        Decrements only succeed if the result stays non-negative; with
        ``keep_reserved`` the result must also still cover what confirmed
        orders hold. Otherwise DeductionFailure is raised and nothing is written.
        """
        stock = InventoryService.get_stock_record(product)
        previous_available = stock.available_quantity

        queryset = InventoryStock.objects.filter(pk=stock.pk)
        if quantity_change < 0:
            queryset = queryset.filter(quantity__gte=-quantity_change)
            if keep_reserved:
                queryset = queryset.filter(quantity__gte=F("reserved_quantity") - quantity_change)

        updated = queryset.update(quantity=F("quantity") + quantity_change)
        stock.refresh_from_db()

        if not updated and keep_reserved and stock.quantity >= -quantity_change:
            raise DeductionFailure(
                f"Cannot remove {-quantity_change} of {product.name}: {stock.reserved_quantity} "
                f"of the {stock.quantity} on hand is reserved by confirmed orders",
                product=product,
                quantity=-quantity_change,
            )
        if not updated:
            raise DeductionFailure(
                f"Cannot remove {-quantity_change} of {product.name}: only {stock.quantity} on hand",
                product=product,
                quantity=-quantity_change,
            )

        movement = StockMovement.objects.create(
            product=product,
            movement_type=movement_type,
            quantity_change=quantity_change,
            quantity_before=stock.quantity - quantity_change,
            quantity_after=stock.quantity,
            order=order,
            user=user,
            reason=reason[:255],
        )
        InventoryService._check_low_stock_crossing(stock, previous_available)
        return movement

    @staticmethod
    def _check_low_stock_crossing(stock: InventoryStock, previous_available: Decimal):
        """
        Fires the low-stock notification once when available stock falls to or
        below the threshold, and re-arms it once stock climbs back above.
        """
        threshold = stock.effective_low_stock_threshold
        current = stock.available_quantity

        if previous_available > threshold >= current:
            claimed = InventoryStock.objects.filter(
                pk=stock.pk, low_stock_notified=False
            ).update(low_stock_notified=True)
            if claimed:
                stock.low_stock_notified = True
                InventoryService._send_low_stock_notification(stock)
        elif current > threshold and stock.low_stock_notified:
            InventoryStock.objects.filter(pk=stock.pk).update(low_stock_notified=False)
            stock.low_stock_notified = False

    @staticmethod
    def _send_low_stock_notification(stock: InventoryStock):
        from notifications.services import NotificationService

        logger.warning(
            f"Low stock: {stock.product.name} at {stock.available_quantity} available "
            f"(threshold {stock.effective_low_stock_threshold})"
        )
        NotificationService.low_stock(stock)

    # ------------------------------------------------------------------
    # Manual movements
    # ------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def receive_stock(product: Product, quantity, user=None, reason="", initial=False) -> InventoryStock:
        """
        Adds a delivery (or opening balance) to a product's stock.
        """
        quantity = Decimal(str(quantity))
        if quantity < 0:
            raise ValidationError("Cannot receive a negative quantity. Use adjust_stock() instead.")

        stock = InventoryService.get_stock_record(product)
        if quantity == 0:
            return stock

        movement_type = StockMovement.MovementType.INITIAL if initial else StockMovement.MovementType.RESTOCK
        InventoryService._apply_movement(product, quantity, movement_type, user=user, reason=reason)
        stock.refresh_from_db()
        logger.info(f"Received {quantity} of {product.name}; on hand now {stock.quantity}")
        return stock

    @staticmethod
    @transaction.atomic
    def adjust_stock(product: Product, quantity_change, user=None, reason="") -> StockMovement:
        """
        Manual correction (count, breakage, spoilage). Cannot take stock below
        zero, and for strict products cannot take it below what confirmed
        orders have reserved.
        """
        from .policy import StockPolicyService

        quantity_change = Decimal(str(quantity_change))
        if quantity_change == 0:
            raise ValidationError("Adjustment quantity cannot be zero")
        if not reason:
            raise ValidationError("A reason is required for manual stock adjustments")

        try:
            movement = InventoryService._apply_movement(
                product,
                quantity_change,
                StockMovement.MovementType.ADJUSTMENT,
                user=user,
                reason=reason,
                keep_reserved=StockPolicyService.is_strict(product),
            )
        except DeductionFailure as exc:
            stock = InventoryService.get_stock_record(product)
            raise ValidationError(
                exc.message,
                {**exc.details, "on_hand": str(stock.quantity), "reserved": str(stock.reserved_quantity)},
            )

        logger.info(
            f"Manual adjustment of {product.name} by {quantity_change} "
            f"({movement.quantity_before} -> {movement.quantity_after}): {reason}"
        )
        return movement

    # ------------------------------------------------------------------
    # Order requirements
    # ------------------------------------------------------------------

    @staticmethod
    def get_order_requirements(order) -> Dict[Product, Decimal]:
        """
        Quantity of each stocked product an order consumes, with packages
        decomposed into their constituents. Ordered by product id so
        concurrent orders always touch counters in the same order.
        """
        from products.services import ProductService

        totals: Dict[int, Decimal] = {}
        products: Dict[int, Product] = {}

        items = order.items.select_related("product__category", "package")
        for item in items:
            if item.product_id:
                components = [(item.product, 1)]
            else:
                components = ProductService.get_package_components(item.package)

            for product, per_unit in components:
                products[product.pk] = product
                totals[product.pk] = totals.get(product.pk, Decimal("0")) + Decimal(per_unit) * item.quantity

        return OrderedDict((products[pk], totals[pk]) for pk in sorted(totals))

    # ------------------------------------------------------------------
    # Reservations (confirm / void before payment)
    # ------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def reserve_for_order(order) -> List[str]:
        """
        Hold stock for every product the order consumes.

        Strict products reserve only if ``quantity - reserved_quantity`` covers
        the request; otherwise InsufficientStock is raised naming every short
        item and no reservation from this call survives. Flexible products
        always reserve and return advisory warnings when oversold.
        """
        from .policy import StockPolicyService

        shortages = []
        warnings = []

        for product, quantity in InventoryService.get_order_requirements(order).items():
            if not product.track_inventory:
                continue

            stock = InventoryService.get_stock_record(product)
            previous_available = stock.available_quantity
            strict = StockPolicyService.is_strict(product)

            queryset = InventoryStock.objects.filter(pk=stock.pk)
            if strict:
                queryset = queryset.filter(quantity__gte=F("reserved_quantity") + quantity)
            updated = queryset.update(reserved_quantity=F("reserved_quantity") + quantity)
            stock.refresh_from_db()

            if not updated:
                shortages.append(
                    StockPolicyService.shortage_entry(product, quantity, stock.available_quantity)
                )
                continue

            StockReservation.objects.create(order=order, product=product, quantity=quantity)

            if not strict and stock.available_quantity < 0:
                warnings.append(
                    StockPolicyService.oversell_warning(product, quantity, previous_available)
                )

            InventoryService._check_low_stock_crossing(stock, previous_available)

        if shortages:
            logger.info(f"Reservation refused for order {order.order_number}: {shortages}")
            raise InsufficientStock(shortages)

        for warning in warnings:
            logger.warning(f"Order {order.order_number}: {warning}")
        return warnings

    @staticmethod
    def _settle_reservation(reservation: StockReservation, new_status: str) -> bool:
        """Moves an ACTIVE reservation to COMMITTED or RELEASED and frees the hold."""
        claimed = StockReservation.objects.filter(
            pk=reservation.pk, status=StockReservation.Status.ACTIVE
        ).update(status=new_status, resolved_at=timezone.now())
        if not claimed:
            return False

        InventoryStock.objects.filter(product_id=reservation.product_id).update(
            reserved_quantity=F("reserved_quantity") - reservation.quantity
        )
        return True

    @staticmethod
    @transaction.atomic
    def release_for_order(order) -> int:
        """Frees every active reservation of an order. Writes no movement."""
        released = 0
        reservations = StockReservation.objects.filter(
            order=order, status=StockReservation.Status.ACTIVE
        ).select_related("product")

        for reservation in reservations:
            if InventoryService._settle_reservation(reservation, StockReservation.Status.RELEASED):
                released += 1
                stock = InventoryService.get_stock_record(reservation.product)
                InventoryService._check_low_stock_crossing(
                    stock, stock.available_quantity - reservation.quantity
                )

        if released:
            logger.info(f"Released {released} stock reservation(s) for order {order.order_number}")
        return released

    @staticmethod
    @transaction.atomic
    def shrink_reservations(order) -> Dict[int, Decimal]:
        """
        Give back the part of an order's active reservations that its current
        items no longer need, after a confirmed item was reduced or removed.
        Returns the released quantity per product id.
        """
        required = {
            product.pk: quantity
            for product, quantity in InventoryService.get_order_requirements(order).items()
        }
        reservations = (
            StockReservation.objects.select_for_update()
            .filter(order=order, status=StockReservation.Status.ACTIVE)
            .select_related("product")
            .order_by("product_id")
        )

        released = {}
        for reservation in reservations:
            excess = reservation.quantity - required.get(reservation.product_id, Decimal("0"))
            if excess <= 0:
                continue

            stock = InventoryService.get_stock_record(reservation.product)
            previous_available = stock.available_quantity
            if excess >= reservation.quantity:
                InventoryService._settle_reservation(reservation, StockReservation.Status.RELEASED)
            else:
                StockReservation.objects.filter(pk=reservation.pk).update(quantity=F("quantity") - excess)
                InventoryStock.objects.filter(pk=stock.pk).update(
                    reserved_quantity=F("reserved_quantity") - excess
                )
            stock.refresh_from_db()
            InventoryService._check_low_stock_crossing(stock, previous_available)
            released[reservation.product_id] = excess

        if released:
            logger.info(f"Released part of the stock held by order {order.order_number}: {released}")
        return released

    # ------------------------------------------------------------------
    # Deduction / restoration (payment captured / void after payment)
    # ------------------------------------------------------------------

    @staticmethod
    def has_deducted(order) -> bool:
        return (
            StockMovement.objects.filter(
                order=order, movement_type=StockMovement.MovementType.SALE
            ).exists()
            or StockDiscrepancy.objects.filter(
                order=order, operation=StockDiscrepancy.Operation.DEDUCT
            ).exists()
        )

    @staticmethod
    def has_restored(order) -> bool:
        return StockMovement.objects.filter(
            order=order, movement_type=StockMovement.MovementType.SALE_RETURN
        ).exists()

    @staticmethod
    @transaction.atomic
    def deduct_for_order(order, user=None) -> dict:
        """
        Commit an order's stock usage. Idempotent per order: if a SALE
        movement (or a recorded deduction failure) already references the
        order, nothing happens.

        A failure on one product never stops the others. It is recorded as a
        StockDiscrepancy, because payment has already been captured.
        """
        if InventoryService.has_deducted(order):
            logger.info(f"Stock already deducted for order {order.order_number}; skipping")
            return {"skipped": True, "deducted": [], "failed": []}

        reservations = {
            reservation.product_id: reservation
            for reservation in StockReservation.objects.filter(
                order=order, status=StockReservation.Status.ACTIVE
            )
        }
        deducted = []
        failed = []

        for product, quantity in InventoryService.get_order_requirements(order).items():
            reservation = reservations.pop(product.pk, None)
            if reservation is not None:
                InventoryService._settle_reservation(reservation, StockReservation.Status.COMMITTED)

            if not product.track_inventory:
                continue

            try:
                with transaction.atomic():
                    InventoryService._apply_movement(
                        product,
                        -quantity,
                        StockMovement.MovementType.SALE,
                        user=user,
                        order=order,
                        reason=f"Order {order.order_number} completed",
                    )
                deducted.append(product.pk)
            except (DeductionFailure, DatabaseError) as exc:
                InventoryService._record_discrepancy(
                    order, product, StockDiscrepancy.Operation.DEDUCT, quantity, exc
                )
                failed.append(product.pk)

        # Anything still held belongs to items that are no longer on the order
        for reservation in reservations.values():
            InventoryService._settle_reservation(reservation, StockReservation.Status.RELEASED)

        logger.info(
            f"Stock deduction for order {order.order_number}: "
            f"{len(deducted)} deducted, {len(failed)} failed"
        )
        return {"skipped": False, "deducted": deducted, "failed": failed}

    @staticmethod
    @transaction.atomic
    def restore_for_order(order, user=None) -> dict:
        """
        Reverse what an order's deduction actually removed, with SALE_RETURN
        movements. Idempotent per order. Open deduction discrepancies for the
        order are resolved, since there is no longer anything to deduct.
        """
        if InventoryService.has_restored(order):
            logger.info(f"Stock already restored for order {order.order_number}; skipping")
            return {"skipped": True, "restored": [], "failed": []}

        sold = (
            StockMovement.objects.filter(order=order, movement_type=StockMovement.MovementType.SALE)
            .values("product")
            .annotate(total=Sum("quantity_change"))
            .order_by("product")
        )
        restored = []
        failed = []

        for row in sold:
            product = Product.objects.get(pk=row["product"])
            quantity = -row["total"]
            if quantity <= 0:
                continue
            try:
                with transaction.atomic():
                    InventoryService._apply_movement(
                        product,
                        quantity,
                        StockMovement.MovementType.SALE_RETURN,
                        user=user,
                        order=order,
                        reason=f"Order {order.order_number} voided",
                    )
                restored.append(product.pk)
            except DatabaseError as exc:
                InventoryService._record_discrepancy(
                    order, product, StockDiscrepancy.Operation.RESTORE, quantity, exc
                )
                failed.append(product.pk)

        StockDiscrepancy.objects.filter(
            order=order,
            operation=StockDiscrepancy.Operation.DEDUCT,
            status=StockDiscrepancy.Status.OPEN,
        ).update(
            status=StockDiscrepancy.Status.RESOLVED,
            resolution_note="Order voided before the deduction was reconciled",
            resolved_by=user,
            resolved_at=timezone.now(),
        )

        logger.info(
            f"Stock restoration for order {order.order_number}: "
            f"{len(restored)} restored, {len(failed)} failed"
        )
        return {"skipped": False, "restored": restored, "failed": failed}

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    @staticmethod
    def _record_discrepancy(order, product, operation, quantity, exc) -> StockDiscrepancy:
        message = getattr(exc, "message", None) or str(exc)
        logger.error(
            f"Stock {operation.lower()} failed for order {order.order_number}, "
            f"product {product.name} x{quantity}: {message}",
            exc_info=not isinstance(exc, DeductionFailure),
        )
        return StockDiscrepancy.objects.create(
            order=order,
            product=product,
            operation=operation,
            quantity=quantity,
            error_message=message,
        )

    @staticmethod
    @transaction.atomic
    def retry_discrepancy(discrepancy_id, user=None) -> bool:
        """
        Re-attempt a failed deduction or restoration. Returns True and resolves
        the discrepancy when the ledger accepts it this time.
        """
        discrepancy = (
            StockDiscrepancy.objects.select_for_update()
            .select_related("order", "product")
            .get(pk=discrepancy_id)
        )
        if discrepancy.status != StockDiscrepancy.Status.OPEN:
            raise ConflictError(
                "Discrepancy is already resolved", current_state=discrepancy.status
            )

        if discrepancy.operation == StockDiscrepancy.Operation.DEDUCT:
            quantity_change = -discrepancy.quantity
            movement_type = StockMovement.MovementType.SALE
        else:
            quantity_change = discrepancy.quantity
            movement_type = StockMovement.MovementType.SALE_RETURN

        try:
            with transaction.atomic():
                InventoryService._apply_movement(
                    discrepancy.product,
                    quantity_change,
                    movement_type,
                    user=user,
                    order=discrepancy.order,
                    reason=f"Reconciliation of discrepancy #{discrepancy.pk}",
                )
        except (DeductionFailure, DatabaseError) as exc:
            discrepancy.retry_count += 1
            discrepancy.error_message = getattr(exc, "message", None) or str(exc)
            discrepancy.save(update_fields=["retry_count", "error_message"])
            logger.warning(f"Retry of stock discrepancy #{discrepancy.pk} failed: {discrepancy.error_message}")
            return False

        discrepancy.status = StockDiscrepancy.Status.RESOLVED
        discrepancy.retry_count += 1
        discrepancy.resolution_note = "Applied on retry"
        discrepancy.resolved_by = user
        discrepancy.resolved_at = timezone.now()
        discrepancy.save()
        logger.info(f"Stock discrepancy #{discrepancy.pk} resolved on retry")
        return True

    @staticmethod
    @transaction.atomic
    def resolve_discrepancy(discrepancy_id, user=None, note="") -> StockDiscrepancy:
        """Mark a discrepancy as handled by hand (e.g. after a physical count)."""
        discrepancy = StockDiscrepancy.objects.select_for_update().get(pk=discrepancy_id)
        if discrepancy.status != StockDiscrepancy.Status.OPEN:
            raise ConflictError(
                "Discrepancy is already resolved", current_state=discrepancy.status
            )
        if not note:
            raise ValidationError("A resolution note is required")

        discrepancy.status = StockDiscrepancy.Status.RESOLVED
        discrepancy.resolution_note = note
        discrepancy.resolved_by = user
        discrepancy.resolved_at = timezone.now()
        discrepancy.save()
        return discrepancy

    # ------------------------------------------------------------------
    # Low stock
    # ------------------------------------------------------------------

    @staticmethod
    def get_low_stock_items() -> List[InventoryStock]:
        stocks = InventoryStock.objects.select_related("product").filter(
            product__is_active=True, product__track_inventory=True
        )
        return [stock for stock in stocks if stock.is_low_stock]

    @staticmethod
    def notify_missed_low_stock() -> int:
        """
        Sweep for items below threshold that never produced a notification
        (e.g. the threshold was raised). Returns how many were notified.
        """
        notified = 0
        for stock in InventoryService.get_low_stock_items():
            if stock.low_stock_notified:
                continue
            claimed = InventoryStock.objects.filter(
                pk=stock.pk, low_stock_notified=False
            ).update(low_stock_notified=True)
            if claimed:
                InventoryService._send_low_stock_notification(stock)
                notified += 1
        return notified
