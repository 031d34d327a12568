"""
Message ledger: durable record of messages and their per-recipient delivery.

The ledger owns every write to Message and DeliveryEntry rows. Delivery
state is tracked as one row per (message, recipient), so marking a
recipient delivered is a single conditional UPDATE that cannot interfere
with updates for other recipients or other messages.

Operations:
    create: Persist a message with one "sent" entry per recipient
    mark_delivered: Move one entry from sent to delivered (idempotent)
    recompute_status: Derive Message.status from its entries
    list_for_conversation: Read-side history for a conversation
    get_materialized: Message with sender identity and entries loaded

Design Decisions:
    - Message and entries are written in one transaction
    - Entry status is monotonic; the UPDATE is filtered on status=sent so a
      second mark never rewrites delivered_at
    - Message.status is recomputed from the entries after a delivery wave
      instead of being patched per recipient

Usage:
    from chat.ledger import MessageContent, MessageLedger

    message = MessageLedger.create(
        conversation, sender, MessageContent(text="hi"), recipient_ids
    )
    MessageLedger.mark_delivered(message.id, recipient_id, timezone.now())
    MessageLedger.recompute_status(message.id)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db.models import Prefetch
from django.utils import timezone

from core.exceptions import NotFoundError
from core.services import BaseService

from chat.constants import MESSAGE_CONFIG
from chat.models import DeliveryEntry, DeliveryStatus, Message

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from django.db.models import QuerySet

    from authentication.models import User
    from chat.models import Conversation


@dataclass(frozen=True)
class FileDescriptor:
    """Metadata of a file held by external object storage."""

    url: str
    name: str = ""
    size: int | None = None
    type: str = ""
    storage: str = MESSAGE_CONFIG.DEFAULT_FILE_STORAGE


@dataclass(frozen=True)
class MessageContent:
    """
    Content of a message being sent.

    At least one of text, image or file is expected; the API layer rejects
    empty content before it reaches the ledger.
    """

    text: str = ""
    image: str = ""
    file: FileDescriptor | None = None


class MessageLedger(BaseService):
    """
    Stateless service for message and delivery entry persistence.

    Methods:
        create: Persist message and entries atomically
        mark_delivered: Conditional single-row update of one entry
        recompute_status: Aggregate entry status onto the message
        list_for_conversation: Ordered history with identity and entries
        get_materialized: Single message with identity and entries
    """

    @staticmethod
    def _materialized_queryset() -> QuerySet[Message]:
        return Message.objects.select_related(
            "sender__profile",
        ).prefetch_related(
            Prefetch(
                "delivery_entries",
                queryset=DeliveryEntry.objects.order_by("id"),
            )
        )

    @classmethod
    def create(
        cls,
        conversation: Conversation,
        sender: User,
        content: MessageContent,
        recipient_ids: Iterable,
    ) -> Message:
        """
        Persist a message and one "sent" delivery entry per recipient.

        Duplicate recipient ids collapse to one entry. An empty recipient
        set is allowed and produces a message with no entries.

        Args:
            conversation: Conversation the message belongs to
            sender: Authenticated sender (already authorized)
            content: Text, image and/or file descriptor
            recipient_ids: User ids of the recipients

        Returns:
            The message with sender identity and entries loaded
        """
        unique_recipients = list(dict.fromkeys(recipient_ids))
        file = content.file

        with cls.atomic():
            message = Message.objects.create(
                conversation=conversation,
                sender=sender,
                text=content.text,
                image=content.image,
                file_url=file.url if file else "",
                file_name=file.name if file else "",
                file_size=file.size if file else None,
                file_type=file.type if file else "",
                file_storage=file.storage if file else "",
                status=DeliveryStatus.SENT,
            )
            DeliveryEntry.objects.bulk_create(
                [
                    DeliveryEntry(
                        message=message,
                        recipient_id=recipient_id,
                        status=DeliveryStatus.SENT,
                    )
                    for recipient_id in unique_recipients
                ]
            )

        cls.get_logger().info(
            f"Created message {message.id} in conversation {conversation.id} "
            f"with {len(unique_recipients)} delivery entries"
        )
        return cls.get_materialized(message.id)

    @classmethod
    def mark_delivered(cls, message_id, recipient_id, at: datetime) -> None:
        """
        Mark one recipient's entry as delivered.

        Applying this to an already delivered entry is a no-op and keeps the
        original delivered_at.

        Raises:
            NotFoundError: If the message or the recipient's entry is missing
        """
        updated = DeliveryEntry.objects.filter(
            message_id=message_id,
            recipient_id=recipient_id,
            status=DeliveryStatus.SENT,
        ).update(status=DeliveryStatus.DELIVERED, delivered_at=at)

        if updated:
            cls.get_logger().debug(
                f"Message {message_id} delivered to {recipient_id}"
            )
            return

        if not DeliveryEntry.objects.filter(
            message_id=message_id,
            recipient_id=recipient_id,
        ).exists():
            raise NotFoundError(
                f"No delivery entry for recipient {recipient_id} on message {message_id}",
                error_code="DELIVERY_ENTRY_NOT_FOUND",
                details={"message_id": str(message_id), "recipient_id": str(recipient_id)},
            )

    @classmethod
    def recompute_status(cls, message_id) -> str:
        """
        Set Message.status to delivered iff any entry is delivered.

        Writes only when the value changes.

        Returns:
            The resulting status value

        Raises:
            NotFoundError: If the message does not exist
        """
        if not Message.objects.filter(pk=message_id).exists():
            raise NotFoundError(
                f"Message {message_id} not found",
                error_code="MESSAGE_NOT_FOUND",
            )

        any_delivered = DeliveryEntry.objects.filter(
            message_id=message_id,
            status=DeliveryStatus.DELIVERED,
        ).exists()
        new_status = DeliveryStatus.DELIVERED if any_delivered else DeliveryStatus.SENT

        changed = (
            Message.objects.filter(pk=message_id)
            .exclude(status=new_status)
            .update(status=new_status, updated_at=timezone.now())
        )
        if changed:
            cls.get_logger().debug(f"Message {message_id} status -> {new_status}")

        return new_status

    @classmethod
    def list_for_conversation(cls, conversation: Conversation) -> QuerySet[Message]:
        """Messages of a conversation, oldest first, identity and entries loaded."""
        return cls._materialized_queryset().filter(
            conversation=conversation,
        ).order_by("created_at", "id")

    @classmethod
    def get_materialized(cls, message_id) -> Message:
        """
        Load a message with its sender identity and delivery entries.

        Raises:
            NotFoundError: If the message does not exist
        """
        try:
            return cls._materialized_queryset().get(pk=message_id)
        except Message.DoesNotExist:
            raise NotFoundError(
                f"Message {message_id} not found",
                error_code="MESSAGE_NOT_FOUND",
            )

    @classmethod
    def pending_for_recipient(cls, recipient_id, limit: int | None = None) -> list[Message]:
        """
        Messages still "sent" for one recipient, oldest first.

        Used to catch a user up when they reconnect.
        """
        message_ids = (
            DeliveryEntry.objects.filter(
                recipient_id=recipient_id,
                status=DeliveryStatus.SENT,
            )
            .order_by("message__created_at", "message_id")
            .values_list("message_id", flat=True)
        )
        if limit is not None:
            message_ids = message_ids[:limit]

        return list(
            cls._materialized_queryset()
            .filter(pk__in=list(message_ids))
            .order_by("created_at", "id")
        )
