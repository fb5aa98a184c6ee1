"""
ORDERS App - WebSocket Consumer for the live order feed

Clients connect to: ws://host/ws/orders/

Groups joined on connect:
- actor_<uuid>: personal events (orders the user created or claimed)
- orders_feed: every lifecycle event, loaders only

Events sent to the client:
- order_event: {event: {...}, sound?, vibration?}
- role_changed: {role, groups}, after the user switched role; the
  connection is re-subscribed in place
"""

import logging

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from orders.events import ORDERS_FEED_GROUP

logger = logging.getLogger(__name__)


class OrderFeedConsumer(AsyncJsonWebsocketConsumer):

    groups_joined = ()

    async def connect(self):
        user = self.scope.get('user')

        if not user or user.is_anonymous:
            await self.close(code=4001)
            return

        await self._subscribe(self._groups_for(user))

        await self.accept()

        await self.send_json({
            'type': 'connection_established',
            'role': user.role,
            'groups': list(self.groups_joined),
        })

        logger.info(f"[WS] {user.role} {str(user.pk)[:8]} connected")

    async def disconnect(self, close_code):
        for group in self.groups_joined:
            await self.channel_layer.group_discard(group, self.channel_name)

    @staticmethod
    def _groups_for(user):
        groups = [user.notification_group]
        if user.is_loader:
            groups.append(ORDERS_FEED_GROUP)
        return groups

    async def _subscribe(self, groups):
        """Join `groups` and leave any joined group not in it."""
        for group in groups:
            if group not in self.groups_joined:
                await self.channel_layer.group_add(group, self.channel_name)
        for group in self.groups_joined:
            if group not in groups:
                await self.channel_layer.group_discard(group, self.channel_name)
        self.groups_joined = tuple(groups)

    async def receive_json(self, content):
        """Handle incoming WebSocket messages from clients."""
        if content.get('type') == 'ping':
            await self.send_json({'type': 'pong'})

    # ============================================
    # Event Handlers (called via channel_layer.group_send)
    # ============================================

    async def order_event(self, event):
        """Forward an order lifecycle event to the client."""
        message = {
            'type': 'order_event',
            'event': event['event'],
        }
        if 'sound' in event:
            message['sound'] = event['sound']
            message['vibration'] = event['vibration']

        await self.send_json(message)

    async def role_changed(self, event):
        """The user switched between loader and dispatcher mode."""
        user = self.scope['user']
        user.role = event['role']
        await self._subscribe(self._groups_for(user))

        await self.send_json({
            'type': 'role_changed',
            'role': user.role,
            'groups': list(self.groups_joined),
        })

        logger.info(f"[WS] {str(user.pk)[:8]} re-subscribed as {user.role}")
