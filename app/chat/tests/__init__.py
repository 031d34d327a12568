"""
Tests for chat app.

This package contains test modules for:
- test_ledger.py: MessageLedger persistence and delivery entries
- test_services.py: DeliveryOrchestrator send and catch-up
- test_authorization.py: Membership gate
- test_presence.py, test_push.py, test_events.py: Redis and channel layer adapters
- test_consumers.py: WebSocket consumer lifecycle
- test_views.py: REST API endpoint tests

Usage:
    pytest app/chat/tests/
    pytest app/chat/tests/test_services.py
"""
