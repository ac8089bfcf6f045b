"""Tests for routing inbound events to the subscription registries."""

from __future__ import annotations

import pytest

from conftest import NOW, make_dialog_subscribe, make_subscribe
from sipevents import (
    DiagnosticQuery,
    DialogSubscription,
    DialogUpdateEvent,
    MailboxSubscription,
    MailboxUpdateEvent,
    MessageResult,
    TimerTick,
    UnsupportedEventError,
)

CDR = {
    "external": "200",
    "chan": "sip/5",
    "operation": "update",
    "status": "ringing",
    "direction": "outgoing",
}


class TestSubscribe:
    def test_mailbox_subscribe_sends_initial_notify(self, router, sent, store) -> None:
        store.set("123", total=5, unread=2)

        subscription = router.on_subscribe(make_subscribe())

        assert isinstance(subscription, MailboxSubscription)
        assert subscription.index in router.mailboxes
        assert len(sent) == 1
        assert sent[0].subscription_state == "active"
        assert sent[0].body == "Messages-Waiting: yes\r\nVoice-Message: 2/5\r\n"
        assert not subscription.pending

    def test_dialog_subscribe_sends_initial_notify(self, router, sent) -> None:
        subscription = router.on_subscribe(make_dialog_subscribe())

        assert isinstance(subscription, DialogSubscription)
        assert subscription.index in router.dialogs
        assert len(sent) == 1
        assert 'version="0"' in sent[0].body
        assert "<dialog " not in sent[0].body

    @pytest.mark.parametrize(
        ("event", "accept"),
        [
            ("presence", "application/pidf+xml"),
            ("message-summary", "application/dialog-info+xml"),
            ("dialog", None),
        ],
    )
    def test_unsupported_pair_is_rejected(self, router, sent, event, accept) -> None:
        assert router.on_subscribe(make_subscribe(event=event, accept=accept)) is None
        assert len(router.mailboxes) == 0
        assert len(router.dialogs) == 0
        assert sent == []

    def test_create_subscription_raises_for_unsupported(self, router) -> None:
        with pytest.raises(UnsupportedEventError):
            router.create_subscription(make_subscribe(accept="text/plain"))

    def test_uri_without_resource_is_discarded(self, router, sent) -> None:
        assert router.on_subscribe(make_subscribe(uri="sip:pbx.example.com")) is None
        assert len(router.mailboxes) == 0
        assert sent == []

    def test_unsubscribe(self, router, sent) -> None:
        router.on_subscribe(make_subscribe())

        subscription = router.on_subscribe(make_subscribe(expires="0"))

        assert subscription.is_terminated
        assert sent[-1].subscription_state == "terminated"
        assert len(router.mailboxes) == 0

    def test_refresh_replaces_subscription(self, router, clock) -> None:
        first = router.on_subscribe(make_subscribe())
        clock.advance(300)

        second = router.on_subscribe(make_subscribe())

        assert len(router.mailboxes) == 1
        assert router.mailboxes.get(first.index) is second
        assert second.expires_at == NOW + 900


class TestUpdates:
    def test_mailbox_update_waits_for_timer(self, router, sent, store) -> None:
        router.on_subscribe(make_subscribe())
        store.set("123", total=1, unread=1)

        assert router.on_mailbox_update(MailboxUpdateEvent("123")) == 1
        assert len(sent) == 1

        assert router.on_timer(TimerTick(NOW))
        assert len(sent) == 2
        assert sent[1].body == "Messages-Waiting: yes\r\nVoice-Message: 1/1\r\n"

    def test_mailbox_update_for_other_mailbox(self, router) -> None:
        router.on_subscribe(make_subscribe())

        assert router.on_mailbox_update(MailboxUpdateEvent("999")) == 0

    def test_dialog_update_notifies_immediately(self, router, sent) -> None:
        router.on_subscribe(make_dialog_subscribe())

        assert router.on_dialog_update(DialogUpdateEvent.from_cdr(CDR)) == 1
        assert len(sent) == 2
        assert "<state>early</state>" in sent[1].body
        assert 'direction="recipient"' in sent[1].body


class TestTimer:
    def test_throttled(self, router) -> None:
        assert router.on_timer(TimerTick(NOW))
        assert not router.on_timer(TimerTick(NOW + 10))
        assert router.on_timer(TimerTick(NOW + 15))

    def test_expires_and_flushes(self, router, sent) -> None:
        router.on_subscribe(make_subscribe(expires="60"))
        router.on_subscribe(make_dialog_subscribe(expires="600"))
        router.on_dialog_update(DialogUpdateEvent("200", status="on-hold"))
        assert len(sent) == 2

        assert router.on_timer(TimerTick(NOW + 60))

        states = [(n.event, n.subscription_state) for n in sent[2:]]
        assert states == [
            ("message-summary", "terminated;reason=timeout"),
            ("dialog", "active"),
        ]
        assert len(router.mailboxes) == 0
        assert len(router.dialogs) == 1


class TestDiagnostics:
    def test_dump(self, router, clock) -> None:
        router.on_subscribe(make_subscribe())
        router.on_subscribe(make_dialog_subscribe(expires="120"))
        clock.advance(20)

        assert router.on_command(DiagnosticQuery("sippbx list")) == (
            "Subscriptions:\r\n"
            "message-summary:123:10.0.0.5:5062 expires in 580\r\n"
            "dialog:200:10.0.0.5:5062 expires in 100\r\n"
        )

    def test_empty_dump(self, router) -> None:
        assert router.dump() == "Subscriptions:\r\n"

    def test_other_command(self, router) -> None:
        assert router.on_command(DiagnosticQuery("status")) is None


class TestHandle:
    def test_dispatch_by_type(self, router) -> None:
        assert router.handle(TimerTick(NOW)) is True

    def test_unknown_type(self, router) -> None:
        with pytest.raises(TypeError):
            router.handle("sippbx list")


class TestHandleMessage:
    def test_subscribe(self, router, sent) -> None:
        result = router.handle_message(
            "sip.subscribe",
            {
                "sip_event": "message-summary",
                "sip_accept": "application/simple-message-summary",
                "sip_uri": "sip:vm-123@pbx.example.com",
                "sip_from": "<sip:alice@example.com>;tag=1",
                "sip_to": "<sip:vm-123@pbx.example.com>",
                "sip_callid": "abc",
                "sip_contact": "<sip:alice@10.0.0.5>",
                "sip_expires": "600",
                "ip_host": "10.0.0.5",
                "ip_port": "5060",
            },
        )

        assert result == MessageResult(handled=True)
        assert len(sent) == 1

    def test_rejected_subscribe_is_not_handled(self, router) -> None:
        result = router.handle_message(
            "sip.subscribe",
            {
                "sip_event": "presence",
                "sip_uri": "sip:200@pbx",
                "sip_from": "<sip:alice@example.com>",
                "sip_to": "<sip:200@pbx>",
                "sip_callid": "abc",
                "sip_contact": "<sip:alice@10.0.0.5>",
                "ip_host": "10.0.0.5",
                "ip_port": "5060",
            },
        )

        assert result == MessageResult(handled=False)

    def test_updates_are_never_handled(self, router, sent) -> None:
        router.on_subscribe(make_subscribe())
        router.on_subscribe(make_dialog_subscribe())

        assert router.handle_message("user.update", {"user": "123"}) == MessageResult()
        assert router.handle_message("call.cdr", CDR) == MessageResult()
        assert router.handle_message("chan.update", {"id": "200"}) == MessageResult()
        assert len(sent) == 3
        assert router.mailboxes.get("message-summary:123:10.0.0.5:5062").pending

    def test_timer(self, router) -> None:
        assert router.handle_message("engine.timer", {"time": str(NOW)}) == MessageResult()
        assert not router.on_timer(TimerTick(NOW + 1))

    def test_list_command(self, router) -> None:
        result = router.handle_message("engine.command", {"line": "sippbx list"})

        assert result.handled
        assert result.retval == "Subscriptions:\r\n"

    def test_other_command_is_not_handled(self, router) -> None:
        assert router.handle_message("engine.command", {"line": "status"}) == MessageResult()

    def test_malformed_message(self, router) -> None:
        assert router.handle_message("user.update", {}) == MessageResult()

    def test_unknown_message(self, router) -> None:
        assert router.handle_message("call.route", {"called": "200"}) == MessageResult()


class TestNotifySequence:
    def test_numbered_per_dialog(self, router, sent, store) -> None:
        router.on_subscribe(make_subscribe())
        router.on_subscribe(make_subscribe(call_id="call-2@example.com", port=5064))
        store.set("123", total=1, unread=1)
        router.on_mailbox_update(MailboxUpdateEvent("123"))
        router.on_timer(TimerTick(NOW))

        assert [(n.call_id, n.cseq) for n in sent] == [
            ("call-1@example.com", 1),
            ("call-2@example.com", 1),
            ("call-1@example.com", 2),
            ("call-2@example.com", 2),
        ]

    def test_replaced_subscription_releases_its_dialog(self, router) -> None:
        for n in range(50):
            router.on_subscribe(make_subscribe(call_id=f"c{n}"))

        assert len(router.mailboxes) == 1
        assert list(router._cseq) == ["c49"]

    def test_shared_dialog_keeps_counting(self, router, sent) -> None:
        router.on_subscribe(make_subscribe(call_id="shared"))
        router.on_subscribe(make_dialog_subscribe(call_id="shared"))
        router.on_subscribe(make_subscribe(call_id="shared", expires="0"))
        router.on_subscribe(make_dialog_subscribe(call_id="shared"))

        assert [n.cseq for n in sent] == [1, 2, 3, 4]

    def test_released_after_unsubscribe(self, router) -> None:
        router.on_subscribe(make_subscribe())
        router.on_subscribe(make_subscribe(expires="0"))

        assert router._cseq == {}

    def test_released_after_expiry(self, router, sent) -> None:
        router.on_subscribe(make_subscribe(expires="60"))

        router.on_timer(TimerTick(NOW + 60))

        assert sent[-1].cseq == 2
        assert router._cseq == {}
