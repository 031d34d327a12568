"""
Real-time push to a single live connection.

A connection handle is the Channels channel name of a recipient's
WebSocket (see chat.presence). The pusher sends one channel layer event
to that channel; ChatConsumer.chat_new_message turns it into a
``new_message`` frame for the client.

Failure semantics:
    A push that raises or times out means the recipient is treated as
    unreachable. The caller decides what that means for the ledger.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from channels.layers import get_channel_layer

from chat.constants import DELIVERY_CONFIG

logger = logging.getLogger(__name__)


@runtime_checkable
class Pusher(Protocol):
    async def push(self, handle: str, payload: dict[str, Any]) -> None:
        """Deliver payload to the connection identified by handle."""
        ...


class ChannelLayerPusher:
    """Pusher backed by the configured Channels layer."""

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    async def push(self, handle: str, payload: dict[str, Any]) -> None:
        await self.channel_layer.send(
            handle,
            {
                "type": DELIVERY_CONFIG.PUSH_EVENT_TYPE,
                "message": payload,
            },
        )
        logger.debug(f"Pushed message {payload.get('id')} to {handle}")


def get_pusher() -> ChannelLayerPusher:
    """Pusher used when callers do not inject one."""
    return ChannelLayerPusher()
