"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation and membership management
- Message inspection with per-recipient delivery state
"""

from django.contrib import admin

from chat.models import Conversation, DeliveryEntry, Message, Participant


class ParticipantInline(admin.TabularInline):
    """Inline display of participants in conversation admin."""

    model = Participant
    extra = 0
    readonly_fields = ["joined_at"]
    raw_id_fields = ["user"]


class DeliveryEntryInline(admin.TabularInline):
    """Delivery entries are written by the delivery core only."""

    model = DeliveryEntry
    extra = 0
    can_delete = False
    readonly_fields = ["recipient", "status", "delivered_at"]

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = ["id", "last_message_at", "created_at"]
    readonly_fields = ["created_at", "updated_at", "last_message", "last_message_at"]
    inlines = [ParticipantInline]
    ordering = ["-created_at"]


@admin.register(Participant)
class ParticipantAdmin(admin.ModelAdmin):
    """Admin interface for Participant model."""

    list_display = ["id", "conversation", "user", "joined_at"]
    search_fields = ["user__email"]
    readonly_fields = ["created_at", "updated_at", "joined_at"]
    raw_id_fields = ["conversation", "user"]
    ordering = ["-joined_at"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "conversation",
        "sender",
        "text_preview",
        "status",
        "created_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["text", "sender__email"]
    readonly_fields = ["created_at", "updated_at", "status"]
    raw_id_fields = ["conversation", "sender"]
    inlines = [DeliveryEntryInline]
    ordering = ["-created_at"]

    @admin.display(description="Text Preview")
    def text_preview(self, obj: Message) -> str:
        """Return truncated text for list display."""
        max_length = 50
        if len(obj.text) > max_length:
            return obj.text[:max_length] + "..."
        return obj.text
