"""
Tests for DeliveryOrchestrator.

Scenarios use alice as the sender and bob/carol as recipients. The
presence directory, pusher and event publisher are in-memory fakes (see
fakes.py), so reachability and failures are set up explicitly per test.

Test Organization:
    - TestSendMessageAuthorization: gate failures stop everything
    - TestSendMessageFanOut: reachability, push failures, status
    - TestSendMessageAnalytics: best-effort event publishing
    - TestSendMessageConcurrency: pushes run concurrently and in order per recipient
    - TestDeliverPending: catch-up on reconnect
"""

import asyncio
import threading

from chat.constants import DELIVERY_CONFIG
from chat.ledger import MessageContent, MessageLedger
from chat.models import Conversation, DeliveryEntry, DeliveryStatus, Message
from chat.services import DeliveryOrchestrator
from chat.tests.fakes import FakeEventPublisher, FakePresenceDirectory, FakePusher


def send(conversation, sender, text="hello"):
    return DeliveryOrchestrator.send_message(
        conversation_id=conversation.pk,
        sender=sender,
        content=MessageContent(text=text),
    )


def entries_by_recipient(message):
    return {
        entry.recipient_id: entry
        for entry in DeliveryEntry.objects.filter(message_id=message.pk)
    }


# =============================================================================
# TestSendMessageAuthorization
# =============================================================================


class TestSendMessageAuthorization:
    """Gate failures return early without side effects."""

    def test_unknown_conversation_returns_not_found(self, alice, pusher, publisher):
        result = DeliveryOrchestrator.send_message(
            conversation_id=987654,
            sender=alice,
            content=MessageContent(text="hi"),
        )

        assert result.success is False
        assert result.error_code == "NOT_FOUND"
        assert Message.objects.count() == 0
        assert pusher.pushed == []
        assert publisher.events == []

    def test_non_participant_returns_not_participant(
        self, conversation, outsider, presence, pusher, publisher, bob
    ):
        """
        Why it matters: a stranger must not be able to write into a chat
        or learn who in it is online.
        """
        presence.connect(bob)

        result = send(conversation, outsider)

        assert result.success is False
        assert result.error_code == "NOT_PARTICIPANT"
        assert Message.objects.count() == 0
        assert pusher.pushed == []
        assert publisher.events == []
        assert presence.lookups == []


# =============================================================================
# TestSendMessageFanOut
# =============================================================================


class TestSendMessageFanOut:
    """Per-recipient delivery and aggregate status."""

    def test_online_and_offline_recipients(
        self, conversation, alice, bob, carol, presence, pusher, frozen_now
    ):
        """
        Why it matters: this is the core contract. bob is reachable and
        gets the message now; carol keeps a "sent" entry for later.
        """
        bob_handle = presence.connect(bob)

        result = send(conversation, alice, "Hello")

        assert result.success is True
        message = result.data
        entries = [
            (e.recipient_id, e.status, e.delivered_at)
            for e in message.delivery_entries.all()
        ]
        assert entries == [
            (bob.pk, DeliveryStatus.DELIVERED, frozen_now),
            (carol.pk, DeliveryStatus.SENT, None),
        ]
        assert message.status == DeliveryStatus.DELIVERED
        assert pusher.handles() == [bob_handle]

    def test_sender_never_gets_an_entry(self, conversation, alice):
        result = send(conversation, alice)

        assert alice.pk not in entries_by_recipient(result.data)

    def test_nobody_online_leaves_message_sent(self, conversation, alice, pusher):
        result = send(conversation, alice)

        assert result.data.status == DeliveryStatus.SENT
        assert {e.status for e in result.data.delivery_entries.all()} == {
            DeliveryStatus.SENT
        }
        assert pusher.pushed == []

    def test_everyone_online_marks_all_delivered(
        self, conversation, alice, bob, carol, presence, pusher
    ):
        presence.connect(bob)
        presence.connect(carol)

        result = send(conversation, alice)

        assert {e.status for e in result.data.delivery_entries.all()} == {
            DeliveryStatus.DELIVERED
        }
        assert len(pusher.pushed) == 2

    def test_sole_participant_gets_no_entries(self, solo_conversation, alice, pusher):
        result = send(solo_conversation, alice)

        assert result.success is True
        assert result.data.delivery_entries.count() == 0
        assert result.data.status == DeliveryStatus.SENT
        assert pusher.pushed == []

    def test_failed_push_keeps_entry_sent(
        self, conversation, alice, bob, carol, presence, pusher
    ):
        """
        Why it matters: a push that fails must not be recorded as delivered,
        and must not stop delivery to other recipients.
        """
        bob_handle = presence.connect(bob)
        presence.connect(carol)
        pusher.failing.add(bob_handle)

        result = send(conversation, alice)

        entries = entries_by_recipient(result.data)
        assert entries[bob.pk].status == DeliveryStatus.SENT
        assert entries[carol.pk].status == DeliveryStatus.DELIVERED
        assert result.data.status == DeliveryStatus.DELIVERED

    def test_all_pushes_failing_leaves_message_sent(
        self, conversation, alice, bob, presence, pusher
    ):
        pusher.failing.add(presence.connect(bob))

        result = send(conversation, alice)

        assert result.success is True
        assert result.data.status == DeliveryStatus.SENT

    def test_push_timeout_counts_as_unreachable(
        self, conversation, alice, bob, carol, presence, pusher, monkeypatch
    ):
        monkeypatch.setattr(DELIVERY_CONFIG, "PUSH_TIMEOUT_SECONDS", 0.3)
        pusher.hanging.add(presence.connect(bob))
        presence.connect(carol)

        result = send(conversation, alice)

        entries = entries_by_recipient(result.data)
        assert entries[bob.pk].status == DeliveryStatus.SENT
        assert entries[carol.pk].status == DeliveryStatus.DELIVERED

    def test_presence_failure_counts_as_offline(
        self, conversation, alice, bob, carol, presence, pusher
    ):
        presence.connect(bob)
        presence.connect(carol)
        presence.fail_for(bob)

        result = send(conversation, alice)

        entries = entries_by_recipient(result.data)
        assert entries[bob.pk].status == DeliveryStatus.SENT
        assert entries[carol.pk].status == DeliveryStatus.DELIVERED

    def test_pushed_payload_is_the_serialized_message(
        self, conversation, alice, bob, presence, pusher
    ):
        presence.connect(bob)

        result = send(conversation, alice, "payload check")

        _, payload = pusher.pushed[0]
        assert payload["id"] == result.data.pk
        assert payload["text"] == "payload check"
        assert payload["sender"]["full_name"] == "Alice Sender"
        assert payload["sender"]["id"] == str(alice.pk)

    def test_updates_conversation_last_message(self, conversation, alice):
        result = send(conversation, alice)

        conversation = Conversation.objects.get(pk=conversation.pk)
        assert conversation.last_message_id == result.data.pk
        assert conversation.last_message_at == result.data.created_at

    def test_injected_collaborators_take_precedence(
        self, conversation, alice, bob, presence
    ):
        own_presence = FakePresenceDirectory()
        own_pusher = FakePusher()
        own_publisher = FakeEventPublisher()
        handle = own_presence.connect(bob)

        DeliveryOrchestrator.send_message(
            conversation.pk,
            alice,
            MessageContent(text="hi"),
            presence=own_presence,
            pusher=own_pusher,
            publisher=own_publisher,
        )

        assert own_pusher.handles() == [handle]
        assert len(own_publisher.events) == 1
        assert presence.lookups == []


# =============================================================================
# TestSendMessageAnalytics
# =============================================================================


class TestSendMessageAnalytics:
    """The analytics event is best effort."""

    def test_publishes_one_event_per_send(self, conversation, alice, publisher):
        result = send(conversation, alice)

        assert len(publisher.events) == 1
        event = publisher.events[0]
        assert event.message_id == str(result.data.pk)
        assert event.conversation_id == str(conversation.pk)
        assert event.sender_id == str(alice.pk)
        assert event.has_image is False
        assert event.has_file is False

    def test_publisher_failure_does_not_fail_send(
        self, conversation, alice, bob, presence, publisher, caplog
    ):
        """
        Why it matters: analytics is advisory; an outage of the stream must
        never cost a user their message.
        """
        publisher.fail = True
        presence.connect(bob)

        result = send(conversation, alice)

        assert result.success is True
        assert Message.objects.filter(pk=result.data.pk).exists()
        assert result.data.status == DeliveryStatus.DELIVERED
        assert "was not published" in caplog.text


# =============================================================================
# TestSendMessageConcurrency
# =============================================================================


class TestSendMessageConcurrency:
    """Ordering and concurrency of the fan-out."""

    def test_pushes_run_concurrently(
        self, conversation, alice, bob, carol, presence, monkeypatch
    ):
        """
        Why it matters: one slow recipient must not hold up the others.
        bob's push only completes once carol's push has started, which can
        only happen if both are in flight at the same time.
        """
        monkeypatch.setattr(DELIVERY_CONFIG, "PUSH_TIMEOUT_SECONDS", 1.0)
        bob_handle = presence.connect(bob)
        carol_handle = presence.connect(carol)

        class RendezvousPusher:
            def __init__(self):
                self.carol_started = None

            async def push(self, handle, payload):
                if self.carol_started is None:
                    self.carol_started = asyncio.Event()
                if handle == carol_handle:
                    self.carol_started.set()
                elif handle == bob_handle:
                    await self.carol_started.wait()

        result = DeliveryOrchestrator.send_message(
            conversation.pk, alice, MessageContent(text="hi"), pusher=RendezvousPusher()
        )

        entries = entries_by_recipient(result.data)
        assert entries[bob.pk].status == DeliveryStatus.DELIVERED
        assert entries[carol.pk].status == DeliveryStatus.DELIVERED

    def test_presence_lookups_run_concurrently(
        self, conversation, alice, bob, carol, pusher, monkeypatch
    ):
        """
        Why it matters: a slow registry answer for one recipient must not
        delay the lookup for the next. bob's lookup only returns promptly
        if carol's lookup starts while bob's is still in flight.
        """
        monkeypatch.setattr(DELIVERY_CONFIG, "PUSH_TIMEOUT_SECONDS", 2.0)
        carol_started = threading.Event()

        class RendezvousPresence(FakePresenceDirectory):
            bob_saw_carol = False

            def lookup(self, user_id):
                if str(user_id) == str(carol.pk):
                    carol_started.set()
                elif str(user_id) == str(bob.pk):
                    self.bob_saw_carol = carol_started.wait(timeout=1.0)
                return super().lookup(user_id)

        presence = RendezvousPresence()
        presence.connect(bob)
        presence.connect(carol)

        result = DeliveryOrchestrator.send_message(
            conversation.pk, alice, MessageContent(text="hi"), presence=presence
        )

        assert presence.bob_saw_carol is True
        entries = entries_by_recipient(result.data)
        assert entries[bob.pk].status == DeliveryStatus.DELIVERED
        assert entries[carol.pk].status == DeliveryStatus.DELIVERED

    def test_slow_lookup_times_out_without_holding_up_others(
        self, conversation, alice, bob, carol, pusher, monkeypatch
    ):
        monkeypatch.setattr(DELIVERY_CONFIG, "PUSH_TIMEOUT_SECONDS", 0.2)
        release = threading.Event()

        class StalledPresence(FakePresenceDirectory):
            def lookup(self, user_id):
                if str(user_id) == str(bob.pk):
                    release.wait(timeout=2.0)
                return super().lookup(user_id)

        presence = StalledPresence()
        presence.connect(bob)
        carol_handle = presence.connect(carol)

        try:
            result = DeliveryOrchestrator.send_message(
                conversation.pk, alice, MessageContent(text="hi"), presence=presence
            )
        finally:
            release.set()

        entries = entries_by_recipient(result.data)
        assert entries[bob.pk].status == DeliveryStatus.SENT
        assert entries[bob.pk].delivered_at is None
        assert entries[carol.pk].status == DeliveryStatus.DELIVERED
        assert pusher.handles() == [carol_handle]
        assert result.data.status == DeliveryStatus.DELIVERED

    def test_push_completes_before_entry_is_marked(
        self, conversation, alice, bob, presence, pusher, monkeypatch
    ):
        log = []
        pusher.log = log
        handle = presence.connect(bob)
        original = MessageLedger.mark_delivered.__func__

        def spy(cls, message_id, recipient_id, at):
            log.append(("mark", recipient_id))
            return original(cls, message_id, recipient_id, at)

        monkeypatch.setattr(MessageLedger, "mark_delivered", classmethod(spy))

        send(conversation, alice)

        assert log == [("push", handle), ("mark", bob.pk)]

    def test_status_recomputed_once_after_all_recipients(
        self, conversation, alice, bob, carol, presence, monkeypatch
    ):
        presence.connect(bob)
        presence.connect(carol)
        calls = []
        original = MessageLedger.recompute_status.__func__

        def spy(cls, message_id):
            calls.append(
                DeliveryEntry.objects.filter(
                    message_id=message_id, status=DeliveryStatus.DELIVERED
                ).count()
            )
            return original(cls, message_id)

        monkeypatch.setattr(MessageLedger, "recompute_status", classmethod(spy))

        send(conversation, alice)

        assert calls == [2]


# =============================================================================
# TestDeliverPending
# =============================================================================


class TestDeliverPending:
    """Catch-up for recipients who were offline at send time."""

    def test_delivers_missed_messages_on_reconnect(
        self, conversation, alice, carol, presence, pusher
    ):
        first = send(conversation, alice, "one").data
        second = send(conversation, alice, "two").data
        handle = presence.connect(carol)

        result = DeliveryOrchestrator.deliver_pending(carol.pk)

        assert result.success is True
        assert result.data == 2
        assert [payload["id"] for _, payload in pusher.pushed] == [first.pk, second.pk]
        assert pusher.handles() == [handle, handle]
        for message in (first, second):
            assert entries_by_recipient(message)[carol.pk].status == DeliveryStatus.DELIVERED
            assert Message.objects.get(pk=message.pk).status == DeliveryStatus.DELIVERED

    def test_offline_user_gets_nothing(self, conversation, alice, carol, pusher):
        send(conversation, alice)

        result = DeliveryOrchestrator.deliver_pending(carol.pk)

        assert result.data == 0
        assert pusher.pushed == []

    def test_nothing_pending(self, conversation, carol, presence, pusher):
        presence.connect(carol)

        assert DeliveryOrchestrator.deliver_pending(carol.pk).data == 0
        assert pusher.pushed == []

    def test_stops_at_first_failed_push(
        self, conversation, alice, carol, presence, pusher, monkeypatch
    ):
        """
        Why it matters: messages must arrive in order; after a failure the
        rest wait for the next connection instead of arriving out of order.
        """
        send(conversation, alice, "one")
        send(conversation, alice, "two")
        handle = presence.connect(carol)
        pusher.failing.add(handle)

        result = DeliveryOrchestrator.deliver_pending(carol.pk)

        assert result.data == 0
        assert DeliveryEntry.objects.filter(
            recipient=carol, status=DeliveryStatus.SENT
        ).count() == 2

    def test_already_delivered_messages_are_not_repushed(
        self, conversation, alice, bob, presence, pusher
    ):
        presence.connect(bob)
        send(conversation, alice)
        pusher.pushed.clear()

        assert DeliveryOrchestrator.deliver_pending(bob.pk).data == 0
        assert pusher.pushed == []
