"""
Test configuration and fixtures for chat tests.

This module provides:
- Users and a three-person conversation (alice sends, bob is online,
  carol is offline)
- In-memory fakes for presence, push and analytics
- API client helpers for authenticated requests

The fakes are installed for every chat test, so nothing here ever talks
to Redis or a channel layer unless a test builds the real implementation
itself.

Usage:
    def test_example(conversation, alice, presence, pusher):
        presence.connect(bob)
        result = DeliveryOrchestrator.send_message(conversation.id, alice, content)
"""

import pytest
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat.tests.factories import ConversationFactory
from chat.tests.fakes import FakeEventPublisher, FakePresenceDirectory, FakePusher


# =============================================================================
# Fakes
# =============================================================================


@pytest.fixture
def presence():
    return FakePresenceDirectory()


@pytest.fixture
def pusher():
    return FakePusher()


@pytest.fixture
def publisher():
    return FakeEventPublisher()


@pytest.fixture(autouse=True)
def fake_collaborators(monkeypatch, presence, pusher, publisher):
    """Route the orchestrator's default collaborators to the fakes."""
    monkeypatch.setattr("chat.services.get_presence_directory", lambda: presence)
    monkeypatch.setattr("chat.services.get_pusher", lambda: pusher)
    monkeypatch.setattr("chat.services.get_event_publisher", lambda: publisher)


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    """The sender in most scenarios."""
    return UserFactory(
        first_name="Alice",
        last_name="Sender",
        profile_picture="https://cdn.example.com/avatars/alice.png",
    )


@pytest.fixture
def bob(db):
    """A recipient who is usually online."""
    return UserFactory(first_name="Bob", last_name="Online")


@pytest.fixture
def carol(db):
    """A recipient who is usually offline."""
    return UserFactory(first_name="Carol", last_name="Offline")


@pytest.fixture
def outsider(db):
    """A user who is not a participant in any test conversation."""
    return UserFactory()


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def conversation(db, alice, bob, carol):
    """Conversation with alice, bob and carol, in that join order."""
    return ConversationFactory(members=[alice, bob, carol])


@pytest.fixture
def solo_conversation(db, alice):
    """Conversation whose only participant is alice."""
    return ConversationFactory(members=[alice])


@pytest.fixture
def frozen_now(monkeypatch):
    """Fix timezone.now() used by the delivery core."""
    now = timezone.now().replace(microsecond=0)
    monkeypatch.setattr("chat.services.timezone.now", lambda: now)
    return now


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def client_for(db):
    """
    Factory to create JWT-authenticated clients for any user.

    Usage:
        def test_example(client_for, alice):
            response = client_for(alice).get(url)
    """

    def _make_client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make_client


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()
