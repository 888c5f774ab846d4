import logging
from django.db import transaction
from ..services.notification_service import notification_service

logger = logging.getLogger(__name__)


def _after_commit(callback):
    """Run ``callback`` once the surrounding transaction commits, or now if there is none."""
    if transaction.get_connection().in_atomic_block:
        transaction.on_commit(callback)
    else:
        callback()


class KDSEventPublisher:
    """
    Centralized event publishing for KDS events. Everything is sent after
    commit so a station never sees a ticket from a rolled-back confirm.
    """

    @staticmethod
    def tickets_created(order, tickets):
        """Publish ticket creation for a freshly confirmed order"""
        tickets = list(tickets)
        logger.info(f"Publishing tickets_created for {order.order_number} ({len(tickets)} tickets)")
        _after_commit(lambda: KDSEventPublisher._send_each(
            tickets, notification_service.ticket_created_notification
        ))

    @staticmethod
    def ticket_status_changed(ticket, old_status: str, new_status: str):
        """Publish ticket status change event"""
        logger.info(f"Publishing ticket_status_changed for ticket {ticket.id}: {old_status} -> {new_status}")
        _after_commit(lambda: KDSEventPublisher._send_safely(
            notification_service.ticket_status_changed_notification, ticket, old_status, new_status
        ))

    @staticmethod
    def tickets_cancelled(order, tickets):
        """Publish cancellation so stations drop the tickets"""
        tickets = list(tickets)
        logger.info(f"Publishing tickets_cancelled for {order.order_number} ({len(tickets)} tickets)")
        _after_commit(lambda: KDSEventPublisher._send_each(
            tickets, notification_service.ticket_cancelled_notification
        ))

    @staticmethod
    def tickets_modified(order, tickets):
        """Publish new quantities after a confirmed item was reduced"""
        tickets = list(tickets)
        logger.info(f"Publishing tickets_modified for {order.order_number} ({len(tickets)} tickets)")
        _after_commit(lambda: KDSEventPublisher._send_each(
            tickets, notification_service.ticket_modified_notification
        ))

    @staticmethod
    def tickets_prioritized(order, tickets):
        tickets = list(tickets)
        _after_commit(lambda: KDSEventPublisher._send_each(
            tickets, notification_service.ticket_priority_changed_notification
        ))

    @staticmethod
    def _send_each(tickets, send):
        for ticket in tickets:
            KDSEventPublisher._send_safely(send, ticket)

    @staticmethod
    def _send_safely(send, *args):
        try:
            send(*args)
        except Exception as e:
            logger.error(f"Error publishing KDS event: {e}")
