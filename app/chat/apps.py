"""
Chat application configuration.

This app provides the message delivery core:
- Membership authorization for senders
- Message ledger with per-recipient delivery entries
- Real-time fan-out to connected recipients
- Best-effort analytics events
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
