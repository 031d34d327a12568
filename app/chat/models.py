"""
Chat system models.

This module defines the data the delivery core reads and writes:

Models:
    Conversation: Container for messages between participants
    Participant: Membership of a user in a conversation
    Message: Individual message with optional text, image and file
    DeliveryEntry: Per-recipient delivery state of one message

Design Decisions:
    - Membership is managed outside this service; the chat core only reads it
    - Delivery state is one row per (message, recipient) so each status
      change is a point update of a single row
    - Entries are created together with their message and never added or
      removed afterwards
    - Message.status is derived from the entries (delivered when any entry
      is delivered) and recomputed, never patched per recipient
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class DeliveryStatus(models.TextChoices):
    """
    Delivery state shared by messages and their entries.

    SENT: Persisted, not yet pushed to the recipient
    DELIVERED: Pushed to a live connection of the recipient

    Transitions are monotonic: SENT -> DELIVERED, never reversed.
    """

    SENT = "sent", "Sent"
    DELIVERED = "delivered", "Delivered"


class Conversation(BaseModel):
    """
    A conversation between two or more users.

    Fields:
        last_message: Most recent message (null until the first send)
        last_message_at: Timestamp of most recent message (for sorting)

    Relationships:
        participants: All Participant records for this conversation
        messages: All Message records for this conversation
    """

    last_message = models.ForeignKey(
        "chat.Message",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Most recent message in this conversation",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of most recent message (for sorting conversation lists)",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]

    def __str__(self) -> str:
        return f"Conversation({self.pk})"

    def participant_ids(self) -> list:
        """
        Return the user ids of all participants in join order.

        Uses the prefetched ``participants`` when available.
        """
        return [participant.user_id for participant in self.participants.all()]


class Participant(BaseModel):
    """
    Membership of a user in a conversation.

    Fields:
        conversation: Conversation this participation belongs to
        user: User participating in the conversation
        joined_at: When the user joined

    Constraints:
        - UniqueConstraint(conversation, user): one membership per user
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
        help_text="Conversation this participation belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_participations",
        help_text="User participating in the conversation",
    )

    joined_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user joined this conversation",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["joined_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_participation",
            ),
        ]

    def __str__(self) -> str:
        return f"Participant: {self.user_id} in {self.conversation_id}"


class Message(BaseModel):
    """
    A message within a conversation.

    Content:
        A message carries at least one of text, image or file. ``image`` is
        the single-image path kept for older clients; new clients send a
        file descriptor instead. Binary objects live in external storage;
        only their URLs and metadata are stored here.

    Fields:
        conversation: Conversation this message belongs to
        sender: User who sent the message
        text: Optional message text
        image: Optional image URL
        file_url, file_name, file_size, file_type, file_storage:
            Optional file descriptor (file_storage tags the backend, "s3"
            unless the client says otherwise)
        status: Aggregate delivery status derived from delivery entries

    Relationships:
        delivery_entries: One DeliveryEntry per recipient
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
        help_text="User who sent this message",
    )

    text = models.TextField(
        blank=True,
        default="",
        help_text="Message text",
    )

    image = models.URLField(
        max_length=1000,
        blank=True,
        default="",
        help_text="URL of an attached image",
    )

    # File descriptor
    file_url = models.URLField(max_length=1000, blank=True, default="")
    file_name = models.CharField(max_length=255, blank=True, default="")
    file_size = models.PositiveBigIntegerField(null=True, blank=True)
    file_type = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="MIME type of the attached file",
    )
    file_storage = models.CharField(
        max_length=20,
        blank=True,
        default="",
        help_text="Storage backend holding the file (e.g. s3)",
    )

    status = models.CharField(
        max_length=10,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.SENT,
        help_text="delivered when at least one recipient received the message",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["conversation", "created_at", "id"],
                name="chat_msg_conv_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Message({self.pk}) in {self.conversation_id}"

    @property
    def has_image(self) -> bool:
        return bool(self.image)

    @property
    def has_file(self) -> bool:
        return bool(self.file_url)


class DeliveryEntry(models.Model):
    """
    Delivery state of one message for one recipient.

    Fields:
        message: Message being delivered
        recipient: Participant other than the sender
        status: sent or delivered
        delivered_at: Set exactly once, on the sent -> delivered transition

    Constraints:
        - UniqueConstraint(message, recipient)
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="delivery_entries",
    )

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="delivery_entries",
    )

    status = models.CharField(
        max_length=10,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.SENT,
    )

    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "chat_delivery_entry"
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "recipient"],
                name="unique_delivery_entry",
            ),
        ]
        indexes = [
            # Pending deliveries for a reconnecting user
            models.Index(
                fields=["recipient", "status"],
                name="chat_delivery_pending_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"DeliveryEntry({self.message_id} -> {self.recipient_id}: {self.status})"
