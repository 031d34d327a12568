"""
Chat delivery service layer.

DeliveryOrchestrator sequences one send from authorization to response:

    authorizing -> persisting -> publishing-event -> fanning-out
        -> recomputing -> responding

Services:
    DeliveryOrchestrator: send_message, deliver_pending

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures (unknown conversation, non-participant) return
      ServiceResult.failure()
    - Unexpected failures raise and surface as a generic 500
    - Presence, push and analytics are collaborators passed in as keyword
      arguments; the configured implementations are used when omitted
    - Per-recipient problems never fail the send: an unreachable recipient
      keeps a "sent" entry and is caught up on reconnect

Concurrency:
    Recipients are handled concurrently on one event loop. Each recipient's
    presence lookup and push together are bounded by
    DELIVERY_CONFIG.PUSH_TIMEOUT_SECONDS, so a slow registry or connection
    only affects that recipient. Within one recipient the push completes
    before the entry is marked delivered. Message status is
    recomputed once, after every recipient has been attempted.

Usage:
    from chat.services import DeliveryOrchestrator

    result = DeliveryOrchestrator.send_message(
        conversation_id=conversation.id,
        sender=request.user,
        content=MessageContent(text="Hello everyone!"),
    )
    if result.success:
        message = result.data
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from asgiref.sync import async_to_sync, sync_to_async
from django.utils import timezone

from core.services import BaseService, ServiceResult

from chat.authorization import ChatAuthorizationService
from chat.constants import DELIVERY_CONFIG
from chat.events import MessageSentEvent, get_event_publisher
from chat.ledger import MessageLedger
from chat.models import Conversation
from chat.presence import get_presence_directory
from chat.push import get_pusher
from chat.serializers import MessageSerializer

if TYPE_CHECKING:
    from datetime import datetime

    from authentication.models import User
    from chat.events import EventPublisher
    from chat.ledger import MessageContent
    from chat.models import Message
    from chat.presence import PresenceDirectory
    from chat.push import Pusher


def serialize_for_push(message: Message) -> dict[str, Any]:
    """JSON-safe representation pushed to recipients."""
    return dict(MessageSerializer(message).data)


class DeliveryOrchestrator(BaseService):
    """
    Service for sending messages and delivering them to live connections.

    Methods:
        send_message: Authorize, persist, publish, fan out, recompute
        deliver_pending: Push a reconnecting user's undelivered messages
    """

    @classmethod
    def send_message(
        cls,
        conversation_id,
        sender: User,
        content: MessageContent,
        *,
        presence: PresenceDirectory | None = None,
        pusher: Pusher | None = None,
        publisher: EventPublisher | None = None,
    ) -> ServiceResult[Message]:
        """
        Send a message to every other participant of a conversation.

        Args:
            conversation_id: Target conversation
            sender: Authenticated user sending the message
            content: Text, image and/or file descriptor
            presence: Presence directory (defaults to Redis registry)
            pusher: Real-time pusher (defaults to the channel layer)
            publisher: Analytics publisher (defaults to a queued Celery task)

        Returns:
            ServiceResult with the persisted message, its final status and
            delivery entries

        Error codes:
            NOT_FOUND: Conversation does not exist
            NOT_PARTICIPANT: Sender is not a participant
        """
        logger = cls.get_logger()

        gate = ChatAuthorizationService.authorize(conversation_id, sender)
        if not gate.success:
            return gate
        conversation = gate.data

        recipient_ids = [
            user_id
            for user_id in dict.fromkeys(conversation.participant_ids())
            if user_id != sender.pk
        ]

        message = MessageLedger.create(conversation, sender, content, recipient_ids)

        cls._publish_event(message, publisher)

        Conversation.objects.filter(pk=conversation.pk).update(
            last_message=message,
            last_message_at=message.created_at,
            updated_at=timezone.now(),
        )

        delivered = cls._fan_out(
            message,
            recipient_ids,
            presence=presence or get_presence_directory(),
            pusher=pusher or get_pusher(),
        )

        status = MessageLedger.recompute_status(message.pk)
        logger.info(
            f"Message {message.pk} in conversation {conversation.pk}: "
            f"delivered to {len(delivered)}/{len(recipient_ids)} recipients, "
            f"status={status}"
        )

        return ServiceResult.success(MessageLedger.get_materialized(message.pk))

    @classmethod
    def deliver_pending(
        cls,
        user_id,
        *,
        presence: PresenceDirectory | None = None,
        pusher: Pusher | None = None,
    ) -> ServiceResult[int]:
        """
        Push every message still "sent" for a user who just connected.

        Messages are pushed oldest first and one at a time so the client
        receives them in order. Delivery stops at the first failed push;
        the remaining entries stay "sent" for the next connection.

        Returns:
            ServiceResult with the number of messages delivered
        """
        logger = cls.get_logger()
        presence = presence or get_presence_directory()
        pusher = pusher or get_pusher()

        handle = cls._lookup(presence, user_id)
        if handle is None:
            return ServiceResult.success(0)

        pending = MessageLedger.pending_for_recipient(
            user_id, limit=DELIVERY_CONFIG.MAX_PENDING_PER_CATCHUP
        )
        if not pending:
            return ServiceResult.success(0)

        payloads = [(message.pk, serialize_for_push(message)) for message in pending]
        results = async_to_sync(cls._push_in_order)(pusher, handle, payloads)

        for message_id, delivered_at in results:
            MessageLedger.mark_delivered(message_id, user_id, delivered_at)
            MessageLedger.recompute_status(message_id)

        logger.info(
            f"Caught up user {user_id}: delivered {len(results)}/{len(pending)} "
            f"pending messages"
        )
        return ServiceResult.success(len(results))

    # =========================================================================
    # Steps
    # =========================================================================

    @classmethod
    def _publish_event(cls, message: Message, publisher: EventPublisher | None) -> None:
        try:
            publisher = publisher or get_event_publisher()
            publisher.publish(MessageSentEvent.from_message(message))
        except Exception:
            cls.get_logger().exception(
                f"Analytics event for message {message.pk} was not published"
            )

    @classmethod
    def _lookup(cls, presence: PresenceDirectory, user_id) -> str | None:
        try:
            return presence.lookup(user_id)
        except Exception as exc:
            cls.get_logger().warning(
                f"Presence lookup failed for user {user_id}; treating as offline: {exc}"
            )
            return None

    @classmethod
    def _fan_out(
        cls,
        message: Message,
        recipient_ids: list,
        *,
        presence: PresenceDirectory,
        pusher: Pusher,
    ) -> list:
        """
        Look up and push to every recipient, then mark the reached ones delivered.

        Returns:
            Ids of the recipients whose push succeeded
        """
        if not recipient_ids:
            return []

        payload = serialize_for_push(message)
        outcomes = async_to_sync(cls._deliver_all)(presence, pusher, recipient_ids, payload)

        delivered = []
        for recipient_id, outcome in zip(recipient_ids, outcomes):
            if outcome is None:
                cls.get_logger().debug(
                    f"Recipient {recipient_id} offline for message {message.pk}"
                )
                continue
            if isinstance(outcome, BaseException):
                cls.get_logger().warning(
                    f"Delivery of message {message.pk} to {recipient_id} "
                    f"failed: {outcome!r}"
                )
                continue
            MessageLedger.mark_delivered(message.pk, recipient_id, outcome)
            delivered.append(recipient_id)

        return delivered

    # =========================================================================
    # Async helpers
    # =========================================================================

    @classmethod
    async def _deliver_one(
        cls, presence: PresenceDirectory, pusher: Pusher, recipient_id, payload: dict
    ) -> datetime | None:
        """Lookup then push; None when the recipient has no live connection."""
        handle = await sync_to_async(cls._lookup, thread_sensitive=False)(
            presence, recipient_id
        )
        if handle is None:
            return None
        await pusher.push(handle, payload)
        return timezone.now()

    @classmethod
    async def _deliver_all(
        cls, presence: PresenceDirectory, pusher: Pusher, recipient_ids: list, payload: dict
    ) -> list:
        """
        Handle every recipient concurrently.

        Each result is a delivery time, None (offline) or the exception that
        ended that recipient's attempt, including asyncio.TimeoutError.
        """
        return await asyncio.gather(
            *(
                asyncio.wait_for(
                    cls._deliver_one(presence, pusher, recipient_id, payload),
                    timeout=DELIVERY_CONFIG.PUSH_TIMEOUT_SECONDS,
                )
                for recipient_id in recipient_ids
            ),
            return_exceptions=True,
        )

    @staticmethod
    async def _push_one(pusher: Pusher, handle: str, payload: dict) -> datetime:
        await asyncio.wait_for(
            pusher.push(handle, payload),
            timeout=DELIVERY_CONFIG.PUSH_TIMEOUT_SECONDS,
        )
        return timezone.now()

    @classmethod
    async def _push_in_order(cls, pusher: Pusher, handle: str, payloads: list) -> list:
        delivered = []
        for message_id, payload in payloads:
            try:
                delivered_at = await cls._push_one(pusher, handle, payload)
            except Exception as exc:
                cls.get_logger().warning(
                    f"Catch-up push of message {message_id} to {handle} failed: {exc!r}"
                )
                break
            delivered.append((message_id, delivered_at))
        return delivered
