from typing import Dict, List, Optional
from django.db import transaction
from django.utils import timezone
import logging

from core_backend.exceptions import ConflictError, ValidationError
from orders.models import Order
from ..models import PreparationTicket, TicketStatus, Destination
from .routing_service import RoutingService

logger = logging.getLogger(__name__)


# Status rank used for bubbling; cancelled tickets are excluded before ranking
_RANK = {
    TicketStatus.PENDING: 0,
    TicketStatus.PREPARING: 1,
    TicketStatus.READY: 2,
    TicketStatus.SERVED: 3,
}


class TicketService:
    """Preparation tickets: creation from routing, station transitions, bubbling to the order"""

    # Station transitions. Cancellation only comes from the order side
    # (void, item removal), never from a station
    VALID_TRANSITIONS = {
        TicketStatus.PENDING: [TicketStatus.PREPARING],
        TicketStatus.PREPARING: [TicketStatus.READY],
        TicketStatus.READY: [TicketStatus.SERVED],
        TicketStatus.SERVED: [],
        TicketStatus.CANCELLED: [],
    }

    @classmethod
    def _special_instructions(cls, order_item, components, is_package: bool) -> str:
        lines = []
        if is_package:
            for product, quantity in components:
                lines.append(f"{quantity * order_item.quantity}x {product.name}")
        for addon in order_item.addons.all():
            lines.append(f"+ {addon.quantity}x {addon.name}")
        if order_item.notes:
            lines.append(order_item.notes)
        return "\n".join(lines)

    @classmethod
    @transaction.atomic
    def create_tickets_for_order(cls, order: Order) -> List[PreparationTicket]:
        """
        Route every item and create one ticket per (item, destination).
        All-or-nothing: any failure propagates and rolls back the caller's
        transaction, so a confirm never leaves an order half-routed.
        """
        items = list(
            order.items.select_related("product__category", "package").prefetch_related("addons")
        )
        if not items:
            raise ValidationError(f"Order {order.order_number} has no items to route")

        tickets = []
        for item in items:
            route = RoutingService.route_item(item)
            if not route.destinations:
                raise ValidationError(f"Item '{item.item_name}' could not be routed to any station")

            source = (
                PreparationTicket.RoutingSource.INFERRED if route.inferred
                else PreparationTicket.RoutingSource.DECLARED
            )
            for destination, components in route.destinations.items():
                tickets.append(PreparationTicket(
                    order=order,
                    order_item=item,
                    destination=destination,
                    routing_source=source,
                    display_name=item.item_name,
                    quantity=item.quantity,
                    special_instructions=cls._special_instructions(
                        item, components, is_package=bool(item.package_id)
                    ),
                ))

        created = PreparationTicket.objects.bulk_create(tickets)
        logger.info(f"Created {len(created)} tickets for order {order.order_number}")

        from ..events.publishers import KDSEventPublisher
        KDSEventPublisher.tickets_created(order, created)
        return created

    @classmethod
    @transaction.atomic
    def update_ticket_status(cls, ticket: PreparationTicket, new_status: str) -> PreparationTicket:
        """Advance one ticket, then bubble the aggregate status onto its order"""
        from orders.services import OrderService

        # Same lock order as every order writer: session, order, then ticket
        OrderService.lock_for_update(ticket.order)
        ticket = PreparationTicket.objects.select_for_update().select_related("order").get(pk=ticket.pk)

        if new_status not in TicketStatus.values:
            raise ValidationError(f"Unknown ticket status '{new_status}'")
        if new_status == TicketStatus.CANCELLED:
            raise ValidationError(
                "Stations cannot cancel tickets; void the order or remove the item instead",
                {"ticket_id": str(ticket.pk)},
            )
        if new_status not in cls.VALID_TRANSITIONS.get(ticket.status, []):
            raise ConflictError(
                f"Ticket cannot move from {ticket.status} to {new_status}",
                current_state=ticket.status,
            )

        old_status = ticket.status
        ticket.status = new_status

        now = timezone.now()
        if new_status == TicketStatus.PREPARING:
            ticket.started_at = now
        elif new_status == TicketStatus.READY:
            ticket.ready_at = now
            if not ticket.started_at:
                ticket.started_at = now
        elif new_status == TicketStatus.SERVED:
            ticket.served_at = now
        ticket.save()

        logger.info(
            f"Ticket {ticket.id} ({ticket.destination}) for {ticket.order.order_number}: "
            f"{old_status} -> {new_status}"
        )

        from ..events.publishers import KDSEventPublisher
        KDSEventPublisher.ticket_status_changed(ticket, old_status, new_status)

        cls.bubble_order_status(ticket.order)
        return ticket

    @classmethod
    def mark_preparing(cls, ticket):
        return cls.update_ticket_status(ticket, TicketStatus.PREPARING)

    @classmethod
    def mark_ready(cls, ticket):
        return cls.update_ticket_status(ticket, TicketStatus.READY)

    @classmethod
    def mark_served(cls, ticket):
        return cls.update_ticket_status(ticket, TicketStatus.SERVED)

    @classmethod
    def derive_order_status(cls, order: Order) -> Optional[str]:
        """
        The order status implied by its live tickets, or None when nothing
        has started yet (or every ticket was cancelled).
        """
        statuses = [
            status for status in order.tickets.values_list("status", flat=True)
            if status != TicketStatus.CANCELLED
        ]
        if not statuses:
            return None

        lowest = min(_RANK[status] for status in statuses)
        highest = max(_RANK[status] for status in statuses)
        if lowest >= _RANK[TicketStatus.SERVED]:
            return Order.OrderStatus.SERVED
        if lowest >= _RANK[TicketStatus.READY]:
            return Order.OrderStatus.READY
        if highest >= _RANK[TicketStatus.PREPARING]:
            return Order.OrderStatus.PREPARING
        return None

    @classmethod
    def bubble_order_status(cls, order: Order):
        """Best effort: hand the derived status to the order coordinator"""
        target = cls.derive_order_status(order)
        if target is None:
            return order

        from orders.services import OrderService
        return OrderService.update_status_from_tickets(order, target)

    @classmethod
    def _cancel(cls, order: Order, queryset) -> List[PreparationTicket]:
        tickets = list(
            queryset.select_for_update().exclude(
                status__in=[TicketStatus.SERVED, TicketStatus.CANCELLED]
            )
        )
        if not tickets:
            return []

        now = timezone.now()
        for ticket in tickets:
            ticket.status = TicketStatus.CANCELLED
            ticket.cancelled_at = now
        PreparationTicket.objects.bulk_update(tickets, ["status", "cancelled_at"])

        from ..events.publishers import KDSEventPublisher
        KDSEventPublisher.tickets_cancelled(order, tickets)
        return tickets

    @classmethod
    @transaction.atomic
    def cancel_tickets_for_order(cls, order: Order) -> int:
        """Cancel every ticket that has not been served yet"""
        tickets = cls._cancel(order, order.tickets.all())
        if tickets:
            logger.info(f"Cancelled {len(tickets)} tickets for order {order.order_number}")
        return len(tickets)

    @classmethod
    @transaction.atomic
    def cancel_tickets_for_item(cls, order_item) -> List[PreparationTicket]:
        """Cancel the unserved tickets of one item that is leaving the order"""
        tickets = cls._cancel(order_item.order, order_item.tickets.all())
        if tickets:
            logger.info(
                f"Cancelled {len(tickets)} tickets for {order_item.item_name} "
                f"on order {order_item.order.order_number}"
            )
        return tickets

    @classmethod
    @transaction.atomic
    def resize_tickets_for_item(cls, order_item) -> List[PreparationTicket]:
        """
        Carry a reduced item quantity onto its live tickets and flag them as
        modified, so the station sees the new count on the same ticket.
        """
        route = RoutingService.route_item(order_item)
        tickets = list(
            order_item.tickets.select_for_update().filter(
                status__in=[TicketStatus.PENDING, TicketStatus.PREPARING, TicketStatus.READY]
            )
        )
        for ticket in tickets:
            ticket.quantity = order_item.quantity
            ticket.is_modified = True
            ticket.special_instructions = cls._special_instructions(
                order_item,
                route.destinations.get(ticket.destination, []),
                is_package=bool(order_item.package_id),
            )
        PreparationTicket.objects.bulk_update(
            tickets, ["quantity", "is_modified", "special_instructions"]
        )

        if tickets:
            logger.info(
                f"Resized {len(tickets)} tickets for {order_item.item_name} to "
                f"{order_item.quantity} on order {order_item.order.order_number}"
            )
            from ..events.publishers import KDSEventPublisher
            KDSEventPublisher.tickets_modified(order_item.order, tickets)
        return tickets

    @classmethod
    @transaction.atomic
    def mark_order_urgent(cls, order: Order) -> int:
        tickets = list(
            order.tickets.select_for_update().filter(
                status__in=[TicketStatus.PENDING, TicketStatus.PREPARING, TicketStatus.READY]
            )
        )
        for ticket in tickets:
            ticket.is_priority = True
        PreparationTicket.objects.bulk_update(tickets, ["is_priority"])

        logger.info(f"Marked {len(tickets)} tickets urgent for order {order.order_number}")

        from ..events.publishers import KDSEventPublisher
        KDSEventPublisher.tickets_prioritized(order, tickets)
        return len(tickets)

    @classmethod
    def get_station_queue(cls, destination: str, include_ready: bool = True):
        """Active tickets for a station, priority first, then oldest first"""
        if destination not in Destination.values:
            raise ValidationError(f"Unknown destination '{destination}'")

        statuses = [TicketStatus.PENDING, TicketStatus.PREPARING]
        if include_ready:
            statuses.append(TicketStatus.READY)

        return (
            PreparationTicket.objects.filter(destination=destination, status__in=statuses)
            .select_related("order", "order__table", "order_item")
            .order_by("-is_priority", "created_at")
        )

    @classmethod
    def get_station_summary(cls, destination: str) -> Dict[str, int]:
        queue = list(cls.get_station_queue(destination))
        return {
            "pending": sum(1 for t in queue if t.status == TicketStatus.PENDING),
            "preparing": sum(1 for t in queue if t.status == TicketStatus.PREPARING),
            "ready": sum(1 for t in queue if t.status == TicketStatus.READY),
            "overdue": sum(1 for t in queue if t.is_overdue),
        }
