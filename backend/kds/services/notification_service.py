from typing import Dict, Any
import logging
from channels.layers import get_channel_layer
from asgiref.sync import async_to_sync

logger = logging.getLogger(__name__)


def station_group_name(destination: str) -> str:
    """Channels group for one station. Only ASCII alphanumerics, hyphens, underscores, periods."""
    sanitized = ''.join(c if c.isalnum() or c in '-_.' else '_' for c in destination)
    return f'kds_station_{sanitized}'


class KDSNotificationService:
    """Service for handling KDS WebSocket notifications"""

    def __init__(self):
        self.channel_layer = get_channel_layer()

    def notify_station(self, destination: str, message_type: str, data: Dict[str, Any]):
        """Send notification to a specific station"""
        if not self.channel_layer:
            logger.warning("No channel layer available for notifications")
            return

        try:
            group_name = station_group_name(destination)
            logger.debug(f"Sending {message_type} to station {destination} (group: {group_name})")

            async_to_sync(self.channel_layer.group_send)(
                group_name,
                {
                    'type': 'kds_notification',
                    'message_type': message_type,
                    'data': data,
                    'destination': destination,
                }
            )

        except Exception as e:
            # Observers never block or fail the write path
            logger.error(f"Error sending notification to station {destination}: {e}")

    def ticket_created_notification(self, ticket):
        self.notify_station(ticket.destination, 'ticket_created', ticket.to_dict())

    def ticket_status_changed_notification(self, ticket, old_status: str, new_status: str):
        data = ticket.to_dict()
        data['old_status'] = old_status
        self.notify_station(ticket.destination, 'ticket_status_changed', data)

    def ticket_cancelled_notification(self, ticket):
        self.notify_station(ticket.destination, 'ticket_cancelled', ticket.to_dict())

    def ticket_modified_notification(self, ticket):
        self.notify_station(ticket.destination, 'ticket_modified', ticket.to_dict())

    def ticket_priority_changed_notification(self, ticket):
        self.notify_station(ticket.destination, 'ticket_priority_changed', ticket.to_dict())


# Global instance
notification_service = KDSNotificationService()
