from channels.generic.websocket import AsyncWebsocketConsumer
from channels.db import database_sync_to_async
import json
import logging

from .models import Destination
from .services.notification_service import station_group_name

logger = logging.getLogger(__name__)


class StationConsumer(AsyncWebsocketConsumer):
    """
    Read-only WebSocket feed for one preparation station. Ticket changes are
    made over HTTP; the socket only receives broadcasts and can ask for a
    fresh snapshot of the queue.
    """

    async def connect(self):
        """Handle WebSocket connection"""
        self.destination = self.scope['url_route']['kwargs'].get('destination')

        if self.destination not in Destination.values:
            logger.error(f"Rejected KDS WebSocket for unknown destination '{self.destination}'")
            await self.close()
            return

        self.group_name = station_group_name(self.destination)

        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send_initial_data()

        logger.info(f"KDS WebSocket connected: destination={self.destination}")

    async def disconnect(self, close_code):
        """Handle WebSocket disconnection"""
        if hasattr(self, 'group_name'):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
        logger.info(f"KDS WebSocket disconnected: destination={getattr(self, 'destination', None)}, code={close_code}")

    async def receive(self, text_data):
        """Only snapshot requests are accepted; stations never write through the socket"""
        try:
            data = json.loads(text_data)
        except json.JSONDecodeError:
            await self.send_error("Invalid JSON data")
            return

        action = data.get('action')
        if action in ('get_queue', 'refresh'):
            await self.send_initial_data()
        elif action == 'ping':
            await self.send(text_data=json.dumps({'type': 'pong'}))
        else:
            await self.send_error(f"Unsupported action: {action}")

    async def send_initial_data(self):
        tickets = await self.get_queue()
        await self.send(text_data=json.dumps({
            'type': 'initial_data',
            'destination': self.destination,
            'tickets': tickets,
        }))

    async def send_error(self, message):
        await self.send(text_data=json.dumps({'type': 'error', 'message': message}))

    @database_sync_to_async
    def get_queue(self):
        from .services import TicketService
        return [ticket.to_dict() for ticket in TicketService.get_station_queue(self.destination)]

    async def kds_notification(self, event):
        """Relay a broadcast from KDSNotificationService to the station"""
        await self.send(text_data=json.dumps({
            'type': event['message_type'],
            'data': event['data'],
        }))
