from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
import logging

from .models import Notification

logger = logging.getLogger(__name__)

NOTIFICATIONS_GROUP = "notifications"


class NotificationService:
    """
    Fire-and-forget sink. Events are stored and broadcast once the caller's
    transaction commits; delivery problems are logged and never reach the
    code that fired the event.
    """

    @staticmethod
    def fire(event_type, title, message="", payload=None):
        payload = payload or {}

        def _deliver():
            try:
                notification = Notification.objects.create(
                    event_type=event_type, title=title, message=message, payload=payload
                )
            except Exception as e:
                logger.error(f"Failed to store {event_type} notification '{title}': {e}", exc_info=True)
                return
            NotificationService._broadcast(notification)

        transaction.on_commit(_deliver)

    @staticmethod
    def _broadcast(notification):
        channel_layer = get_channel_layer()
        if not channel_layer:
            logger.warning("No channel layer available for notifications")
            return
        try:
            async_to_sync(channel_layer.group_send)(
                NOTIFICATIONS_GROUP,
                {
                    "type": "notification_message",
                    "notification": {
                        "id": notification.pk,
                        "event_type": notification.event_type,
                        "title": notification.title,
                        "message": notification.message,
                        "payload": notification.payload,
                        "created_at": notification.created_at.isoformat(),
                    },
                },
            )
        except Exception as e:
            logger.error(f"Failed to broadcast notification {notification.pk}: {e}")

    @staticmethod
    def order_ready(order):
        NotificationService.fire(
            Notification.EventType.ORDER_READY,
            title=f"Order {order.order_number} is ready",
            message=f"Table {order.table.number}" if order.table_id else "Express order",
            payload={
                "order_id": str(order.pk),
                "order_number": order.order_number,
                "session_id": str(order.session_id) if order.session_id else None,
            },
        )

    @staticmethod
    def low_stock(stock):
        NotificationService.fire(
            Notification.EventType.LOW_STOCK,
            title=f"Low stock: {stock.product.name}",
            message=(
                f"{stock.available_quantity} available, "
                f"threshold {stock.effective_low_stock_threshold}"
            ),
            payload={
                "product_id": stock.product_id,
                "available": str(stock.available_quantity),
                "threshold": str(stock.effective_low_stock_threshold),
            },
        )
