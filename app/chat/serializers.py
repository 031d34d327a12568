"""
Serializers for chat API.

This module provides serializers for the chat system:
- Message serializers (read, create)
- Delivery entry serializer (per-recipient status)

Serializer Hierarchy:
    MessageSerializer: Message with sender identity, file and delivery entries
    DeliveryEntrySerializer: One recipient's delivery state
    FileDescriptorSerializer: Attached file metadata (read and write)
    MessageCreateSerializer: Send new message

Design Decisions:
    - Read and write serializers are separate for clarity
    - MessageSerializer output is also the real-time push payload, so every
      value it produces is JSON-safe (ids and timestamps are strings)
    - The file descriptor is nested as one object and null when absent
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSerializer
from chat.constants import MESSAGE_CONFIG
from chat.ledger import FileDescriptor, MessageContent
from chat.models import DeliveryEntry, Message


# =============================================================================
# File Descriptor
# =============================================================================


class FileDescriptorSerializer(serializers.Serializer):
    """Metadata of a file already stored in external object storage."""

    url = serializers.URLField(max_length=1000)
    name = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_FILE_NAME_LENGTH,
        required=False,
        allow_blank=True,
        default="",
    )
    size = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    type = serializers.CharField(
        max_length=100,
        required=False,
        allow_blank=True,
        default="",
        help_text="MIME type, e.g. application/pdf",
    )
    storage = serializers.CharField(
        max_length=20,
        required=False,
        default=MESSAGE_CONFIG.DEFAULT_FILE_STORAGE,
        help_text="Storage backend tag",
    )


# =============================================================================
# Message Serializers
# =============================================================================


class DeliveryEntrySerializer(serializers.ModelSerializer):
    """Delivery state of a message for one recipient."""

    recipient_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = DeliveryEntry
        fields = ["recipient_id", "status", "delivered_at"]
        read_only_fields = fields


class MessageSerializer(serializers.ModelSerializer):
    """
    Full message serializer for history, send responses and pushes.

    Expects the message to come from MessageLedger so sender__profile is
    joined and delivery_entries are prefetched.
    """

    conversation_id = serializers.IntegerField(read_only=True)
    sender = UserSerializer(read_only=True)
    file = serializers.SerializerMethodField(
        help_text="Attached file descriptor, null when absent"
    )
    delivery_status = DeliveryEntrySerializer(
        source="delivery_entries",
        many=True,
        read_only=True,
    )

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender",
            "text",
            "image",
            "file",
            "status",
            "delivery_status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_file(self, obj: Message) -> dict | None:
        if not obj.has_file:
            return None
        return {
            "url": obj.file_url,
            "name": obj.file_name,
            "size": obj.file_size,
            "type": obj.file_type,
            "storage": obj.file_storage,
        }


class MessageCreateSerializer(serializers.Serializer):
    """
    Serializer for sending messages.

    At least one of text, image or file must be present.
    """

    text = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_TEXT_LENGTH,
        required=False,
        allow_blank=True,
        default="",
        trim_whitespace=False,
        help_text="Message text (max 10,000 characters)",
    )
    image = serializers.URLField(
        max_length=1000,
        required=False,
        allow_blank=True,
        default="",
        help_text="URL of an image already uploaded to object storage",
    )
    file = FileDescriptorSerializer(required=False, allow_null=True, default=None)

    def validate(self, attrs: dict) -> dict:
        if not (attrs.get("text", "").strip() or attrs.get("image") or attrs.get("file")):
            raise serializers.ValidationError(
                "A message needs text, an image or a file"
            )
        return attrs

    def to_content(self) -> MessageContent:
        """Build the ledger content object from validated data."""
        data = self.validated_data
        file_data = data.get("file")
        return MessageContent(
            text=data.get("text", ""),
            image=data.get("image", ""),
            file=FileDescriptor(**file_data) if file_data else None,
        )
