"""
Chat app for real-time messaging.

This app handles:
- Message sending and history for existing conversations
- Delivery tracking per recipient (sent / delivered)
- WebSocket real-time delivery and presence registration
- Analytics events on a Redis stream

Related apps:
    - authentication: User model for senders and recipients

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See routing.py for WebSocket URL patterns.

Usage:
    from chat.services import DeliveryOrchestrator

    result = DeliveryOrchestrator.send_message(
        conversation_id=conversation.id,
        sender=user,
        content=MessageContent(text="Hello!"),
    )
    if result.success:
        message = result.data
"""
