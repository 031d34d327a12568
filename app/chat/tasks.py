"""
Celery tasks for chat app.

This module defines async tasks for:
- Delivering messages a user missed while offline
- Appending analytics records for sent messages

Related files:
    - services.py: DeliveryOrchestrator.deliver_pending
    - consumers.py: Schedules catch-up when a connection opens
    - events.py: QueuedEventPublisher enqueues publish_message_event

Usage:
    from chat.tasks import deliver_pending_messages

    deliver_pending_messages.delay(str(user.id))
"""

import logging

from celery import shared_task

from core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(ConnectionError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def deliver_pending_messages(self, user_id: str) -> int:
    """
    Push messages still marked "sent" for a user who just connected.

    Args:
        user_id: UUID of the user, as a string

    Returns:
        Number of messages delivered
    """
    from chat.services import DeliveryOrchestrator

    result = DeliveryOrchestrator.deliver_pending(user_id)
    delivered = result.data or 0

    if delivered:
        logger.info(f"Delivered {delivered} pending messages to user {user_id}")

    return delivered


@shared_task(
    bind=True,
    autoretry_for=(ExternalServiceError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
    soft_time_limit=30,
    time_limit=60,
)
def publish_message_event(self, fields: dict) -> str:
    """
    Append one analytics record to the message stream.

    Args:
        fields: Stream record built by MessageSentEvent.to_stream_fields()

    Returns:
        Stream entry id
    """
    from chat.events import RedisStreamEventPublisher

    return RedisStreamEventPublisher().append(fields)
