import json

from channels.generic.websocket import AsyncWebsocketConsumer

from clinic.services.events import DASHBOARD_GROUP


class DashboardConsumer(AsyncWebsocketConsumer):
    """Pushes ``dashboard.refresh`` events to signed-in staff."""

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            await self.close(code=4001)
            return
        await self.channel_layer.group_add(DASHBOARD_GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(DASHBOARD_GROUP, self.channel_name)

    async def dashboard_refresh(self, event):
        # event: {"type": "dashboard.refresh", "reason": "...", "ts": "...", ...}
        await self.send(json.dumps(event))
