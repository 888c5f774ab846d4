import json
import logging
from channels.generic.websocket import AsyncWebsocketConsumer

from .services import NOTIFICATIONS_GROUP

logger = logging.getLogger(__name__)


class NotificationConsumer(AsyncWebsocketConsumer):
    """
    Venue-wide feed for waiter and manager displays. Receives order-ready
    and low-stock events; sends nothing back except pongs.
    """

    async def connect(self):
        await self.channel_layer.group_add(NOTIFICATIONS_GROUP, self.channel_name)
        await self.accept()
        logger.info(f"Notification WebSocket connected: {self.channel_name}")

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(NOTIFICATIONS_GROUP, self.channel_name)
        logger.info(f"Notification WebSocket disconnected: code={close_code}")

    async def receive(self, text_data):
        try:
            data = json.loads(text_data)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed notification message: {text_data!r}")
            return
        if data.get("type") == "ping":
            await self.send(text_data=json.dumps({"type": "pong"}))

    async def notification_message(self, event):
        await self.send(text_data=json.dumps({
            "type": "notification",
            "notification": event["notification"],
        }))
