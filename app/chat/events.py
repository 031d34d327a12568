"""
Analytics events for sent messages.

Every successful send appends one record to a Redis stream read by an
analytics consumer outside this service. Publishing is best effort and
stays off the send path: QueuedEventPublisher enqueues the record after
commit, and the publish_message_event task appends it with
RedisStreamEventPublisher, retrying while Redis is unavailable.

Publishers:
    QueuedEventPublisher: Default; hands records to Celery on commit
    RedisStreamEventPublisher: Direct XADD, used by the task

Stream record (all values are strings):
    messageId       Message id
    conversationId  Conversation id
    senderId        Sender user id
    timestamp       Message creation time, ISO 8601
    hasImage        "true" / "false"
    hasFile         "true" / "false"
    fileType        MIME type of the attached file, or "none"

Usage:
    from chat.events import MessageSentEvent, get_event_publisher

    get_event_publisher().publish(MessageSentEvent.from_message(message))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from django.conf import settings
from django.db import transaction
from redis.exceptions import RedisError

from core.exceptions import ExternalServiceError

from chat.constants import ANALYTICS_CONFIG

if TYPE_CHECKING:
    from datetime import datetime

    from chat.models import Message

logger = logging.getLogger(__name__)


def _flag(value: bool) -> str:
    return ANALYTICS_CONFIG.TRUE if value else ANALYTICS_CONFIG.FALSE


@dataclass(frozen=True)
class MessageSentEvent:
    """Analytics view of one persisted message."""

    message_id: str
    conversation_id: str
    sender_id: str
    timestamp: datetime
    has_image: bool
    has_file: bool
    file_type: str | None = None

    @classmethod
    def from_message(cls, message: Message) -> MessageSentEvent:
        return cls(
            message_id=str(message.pk),
            conversation_id=str(message.conversation_id),
            sender_id=str(message.sender_id),
            timestamp=message.created_at,
            has_image=message.has_image,
            has_file=message.has_file,
            file_type=message.file_type or None,
        )

    def to_stream_fields(self) -> dict[str, str]:
        return {
            "messageId": self.message_id,
            "conversationId": self.conversation_id,
            "senderId": self.sender_id,
            "timestamp": self.timestamp.isoformat(),
            "hasImage": _flag(self.has_image),
            "hasFile": _flag(self.has_file),
            "fileType": self.file_type or ANALYTICS_CONFIG.NO_FILE_TYPE,
        }


@runtime_checkable
class EventPublisher(Protocol):
    def publish(self, event: MessageSentEvent) -> None:
        ...


class RedisStreamEventPublisher:
    """
    Appends events to a Redis stream with XADD.

    The stream is trimmed approximately to ``maxlen`` entries on every add
    so it cannot grow without bound when no consumer is reading.
    """

    def __init__(self, redis_client=None, stream: str | None = None, maxlen: int | None = None):
        self._redis = redis_client
        self.stream = stream or getattr(
            settings, "CHAT_ANALYTICS_STREAM", ANALYTICS_CONFIG.DEFAULT_STREAM
        )
        self.maxlen = maxlen or getattr(
            settings, "CHAT_ANALYTICS_STREAM_MAXLEN", ANALYTICS_CONFIG.DEFAULT_MAXLEN
        )

    @property
    def redis(self):
        if self._redis is None:
            from django_redis import get_redis_connection

            self._redis = get_redis_connection("default")
        return self._redis

    def publish(self, event: MessageSentEvent) -> None:
        self.append(event.to_stream_fields())

    def append(self, fields: dict[str, str]) -> str:
        """
        Append one stream record.

        Returns:
            The stream entry id assigned by Redis

        Raises:
            ExternalServiceError: If Redis rejects the write or times out
        """
        message_id = fields.get("messageId")
        try:
            entry_id = self.redis.xadd(
                self.stream,
                fields,
                maxlen=self.maxlen,
                approximate=True,
            )
        except RedisError as exc:
            raise ExternalServiceError(
                f"Could not append message {message_id} to {self.stream}",
                error_code="ANALYTICS_UNAVAILABLE",
            ) from exc
        if isinstance(entry_id, bytes):
            entry_id = entry_id.decode()
        logger.debug(f"Published message {message_id} to {self.stream} as {entry_id}")
        return entry_id


class QueuedEventPublisher:
    """
    Hands events to a Celery task once the surrounding transaction commits.

    The send path only pays for building the stream fields and one broker
    write. The task appends the record with RedisStreamEventPublisher and
    retries on its own when Redis is unavailable. A broker failure while
    enqueueing is logged and dropped.
    """

    def publish(self, event: MessageSentEvent) -> None:
        transaction.on_commit(partial(self._enqueue, event.to_stream_fields()))

    @staticmethod
    def _enqueue(fields: dict[str, str]) -> None:
        from chat.tasks import publish_message_event

        try:
            publish_message_event.apply_async(args=[fields], retry=False)
        except Exception:
            logger.exception(
                f"Could not queue analytics event for message {fields.get('messageId')}"
            )


def get_event_publisher() -> QueuedEventPublisher:
    """Event publisher used when callers do not inject one."""
    return QueuedEventPublisher()
