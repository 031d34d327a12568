"""
WebSocket consumers for the chat application.

One connection per client carries every conversation the user is in. The
connection's channel name is the handle the delivery core pushes to.

Consumers:
    ChatConsumer: Presence registration, sending and real-time delivery

Authentication:
    JWTAuthMiddleware attaches the user to self.scope["user"]. Anonymous
    connections are closed with code 4001.

Lifecycle:
    connect: register channel name in the presence registry, accept, then
             schedule delivery of messages missed while offline
    heartbeat: refresh the registry TTL
    disconnect: unregister, only if the entry still points at this channel

Message Types (from client):
    - heartbeat: {"type": "heartbeat"}
    - message: {"type": "message", "conversation_id": 1, "text": "Hi",
                "image": "...", "file": {...}}

Message Types (to client):
    - new_message: Message pushed by the delivery core
    - message_sent: Acknowledgement of a message sent over this socket
    - heartbeat_ack: Reply to heartbeat
    - error: {"type": "error", "error": "...", "error_code": ..., "errors": ...}
      Failures while sending are reported here; the connection stays open.
"""

from __future__ import annotations

import logging

from asgiref.sync import sync_to_async
from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from chat.constants import DELIVERY_CONFIG
from chat.middleware import JWT_SUBPROTOCOL
from chat.presence import get_presence_directory
from chat.serializers import MessageCreateSerializer, MessageSerializer
from chat.services import DeliveryOrchestrator

logger = logging.getLogger(__name__)

CLOSE_UNAUTHENTICATED = 4001


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for a user's real-time connection.

    Attributes:
        user: Authenticated user (after connect)
        presence: Registry the channel name is recorded in
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.presence = get_presence_directory()
        self.registered = False

    async def connect(self):
        user = self.scope.get("user")

        if not user or isinstance(user, AnonymousUser):
            logger.warning("Rejected unauthenticated WebSocket connection")
            await self.close(code=CLOSE_UNAUTHENTICATED)
            return

        self.user = user
        await sync_to_async(self.presence.register)(user.pk, self.channel_name)
        self.registered = True

        subprotocols = self.scope.get("subprotocols", [])
        await self.accept(
            subprotocol=JWT_SUBPROTOCOL if JWT_SUBPROTOCOL in subprotocols else None
        )
        logger.info(f"User {user.pk} connected as {self.channel_name}")

        await sync_to_async(self._schedule_catch_up)(str(user.pk))

    async def disconnect(self, close_code):
        if not self.registered:
            return
        await sync_to_async(self.presence.unregister)(self.user.pk, self.channel_name)
        logger.info(f"User {self.user.pk} disconnected ({close_code})")

    async def receive_json(self, content, **kwargs):
        message_type = content.get("type")

        if message_type == "heartbeat":
            await sync_to_async(self.presence.refresh)(self.user.pk, self.channel_name)
            await self.send_json({"type": "heartbeat_ack"})
        elif message_type == "message":
            await self._handle_message(content)
        else:
            await self.send_json(
                {
                    "type": "error",
                    "error": f"Unknown message type: {message_type}",
                }
            )

    async def _handle_message(self, content):
        """Send a message through the same path as the HTTP API."""
        reply = await self._send_message(content)
        await self.send_json(reply)

    async def chat_new_message(self, event):
        """
        Handle chat.new_message events from the channel layer.

        Sends the pushed message to the WebSocket client.
        """
        await self.send_json(
            {
                "type": DELIVERY_CONFIG.CLIENT_EVENT_TYPE,
                "message": event["message"],
            }
        )

    @staticmethod
    def _schedule_catch_up(user_id: str) -> None:
        from chat.tasks import deliver_pending_messages

        deliver_pending_messages.delay(user_id)

    @database_sync_to_async
    def _send_message(self, content: dict) -> dict:
        conversation_id = content.get("conversation_id")
        if conversation_id is None:
            return {"type": "error", "error": "conversation_id is required"}

        serializer = MessageCreateSerializer(data=content)
        if not serializer.is_valid():
            return {"type": "error", "error": "Invalid message", "errors": serializer.errors}

        try:
            result = DeliveryOrchestrator.send_message(
                conversation_id=conversation_id,
                sender=self.user,
                content=serializer.to_content(),
            )
        except Exception:
            logger.exception(
                f"Sending to conversation {conversation_id} failed for user {self.user.pk}"
            )
            return {"type": "error", "error": "Internal server error"}
        if not result.success:
            return {"type": "error", **result.to_response()}

        return {
            "type": "message_sent",
            "message": dict(MessageSerializer(result.data).data),
        }
