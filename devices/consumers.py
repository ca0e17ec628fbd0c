import json
import logging

from channels.generic.websocket import AsyncWebsocketConsumer

from .services import group_name_for

logger = logging.getLogger(__name__)


class NutrientConsumer(AsyncWebsocketConsumer):

    async def connect(self):
        self.user = self.scope.get("user")

        # Anonymous connections are refused.
        if self.user is None or not self.user.is_authenticated:
            await self.close()
            logger.info("Unauthenticated websocket connection refused.")
            return

        self.group_name = group_name_for(self.user.id)
        await self.channel_layer.group_add(
            self.group_name,
            self.channel_name
        )
        await self.accept()
        logger.info("User %s joined %s", self.user.id, self.group_name)

    async def disconnect(self, close_code):
        if hasattr(self, 'group_name'):
            await self.channel_layer.group_discard(
                self.group_name,
                self.channel_name
            )
            logger.info("User %s left %s", self.user.id, self.group_name)

    async def device_update(self, event):
        await self.send(text_data=json.dumps({"event": "device_update", **event["data"]}))

    async def gate_changed(self, event):
        await self.send(text_data=json.dumps({"event": "gate_changed", **event["data"]}))

    async def threshold_alert(self, event):
        await self.send(text_data=json.dumps({"event": "threshold_alert", **event["data"]}))
