"""Tests for the UDP subscription server."""

from __future__ import annotations

import pytest

from conftest import NOW, FakeVoicemailStore
from sipevents import (
    MailboxUpdateEvent,
    MessageParser,
    NotifyEvent,
    Request,
    SubscribeEvent,
    SubscriptionServer,
    TransportConfig,
    UDPTransport,
)


def subscribe_request(source, **headers) -> Request:
    fields = {
        "Via": f"SIP/2.0/UDP {source.host}:{source.port};branch=z9hG4bKtest",
        "From": "<sip:alice@example.com>;tag=from1",
        "To": "<sip:vm-123@pbx.example.com>",
        "Call-ID": "call-1@example.com",
        "CSeq": "1 SUBSCRIBE",
        "Contact": f"<sip:alice@{source.host}:{source.port}>",
        "Event": "message-summary",
        "Accept": "application/simple-message-summary",
        "Expires": "600",
    }
    uri = headers.pop("uri", "sip:vm-123@pbx.example.com")
    fields.update(headers)
    return Request(
        "SUBSCRIBE",
        uri,
        headers={name: value for name, value in fields.items() if value is not None},
    )


@pytest.fixture
def server():
    store = FakeVoicemailStore()
    store.set("123", total=3, unread=1)
    server = SubscriptionServer("127.0.0.1", 0, store=store, show_messages=False)
    try:
        yield server
    finally:
        server.stop()


@pytest.fixture
def subscriber():
    transport = UDPTransport(TransportConfig(local_host="127.0.0.1", local_port=0))
    try:
        yield transport
    finally:
        transport.close()


def receive(transport):
    data, _ = transport.receive(timeout=2.0)
    return MessageParser.parse(data)


class TestSubscribe:
    def test_accepted(self, server, subscriber) -> None:
        source = subscriber.local_address

        response = server.handle_request(subscribe_request(source), source)

        assert response.status_code == 200
        assert response.headers["Expires"] == "600"
        assert response.headers["Contact"] == "<sip:vm-123@pbx.example.com>"
        assert response.headers["CSeq"] == "1 SUBSCRIBE"
        assert ";tag=" in response.to_header

    def test_granted_expires_is_clamped(self, server, subscriber) -> None:
        source = subscriber.local_address

        short = server.handle_request(subscribe_request(source, Expires="30"), source)
        absent = server.handle_request(subscribe_request(source, Expires=None), source)
        cancel = server.handle_request(subscribe_request(source, Expires="0"), source)

        assert short.headers["Expires"] == "60"
        assert absent.headers["Expires"] == "3600"
        assert cancel.headers["Expires"] == "0"

    def test_existing_to_tag_is_reused(self, server, subscriber) -> None:
        source = subscriber.local_address
        request = subscribe_request(source, To="<sip:vm-123@pbx.example.com>;tag=abc")

        response = server.handle_request(request, source)

        assert response.to_header == "<sip:vm-123@pbx.example.com>;tag=abc"
        event = server._events.get_nowait()
        assert isinstance(event, SubscribeEvent)
        assert event.dialog_tag == "abc"

    def test_bad_event(self, server, subscriber) -> None:
        source = subscriber.local_address

        response = server.handle_request(
            subscribe_request(source, Event="presence", Accept="application/pidf+xml"),
            source,
        )

        assert response.status_code == 489
        assert response.headers["Allow-Events"] == "message-summary,dialog"
        assert server.process_pending() == 0

    def test_no_resource(self, server, subscriber) -> None:
        source = subscriber.local_address

        response = server.handle_request(
            subscribe_request(source, uri="sip:pbx.example.com"), source
        )

        assert response.status_code == 404

    def test_missing_contact(self, server, subscriber) -> None:
        source = subscriber.local_address

        response = server.handle_request(subscribe_request(source, Contact=None), source)

        assert response.status_code == 400
        assert server.process_pending() == 0

    def test_notify_delivered(self, server, subscriber) -> None:
        source = subscriber.local_address
        server.handle_request(subscribe_request(source), source)

        assert server.process_pending() == 1

        notify = receive(subscriber)
        assert isinstance(notify, Request)
        assert notify.method == "NOTIFY"
        assert notify.uri == f"sip:alice@{source.host}:{source.port}"
        assert notify.cseq == "1 NOTIFY"
        assert notify.call_id == "call-1@example.com"
        assert notify.headers["Event"] == "message-summary"
        assert notify.headers["Subscription-State"] == "active"
        assert notify.content_text == "Messages-Waiting: yes\r\nVoice-Message: 1/3\r\n"
        assert notify.to_header == "<sip:alice@example.com>;tag=from1"
        assert notify.from_header.startswith("<sip:vm-123@pbx.example.com>;tag=")


class TestDatagrams:
    def test_subscribe_datagram_is_answered(self, server, subscriber) -> None:
        source = subscriber.local_address

        server.handle_datagram(subscribe_request(source).to_bytes(), source)

        response = receive(subscriber)
        assert response.status_code == 200
        assert server.process_pending() == 1
        assert receive(subscriber).method == "NOTIFY"

    def test_ack_is_not_answered(self, server, subscriber) -> None:
        request = Request("ACK", "sip:vm-123@pbx.example.com")

        assert server.handle_request(request, subscriber.local_address) is None

    def test_options(self, server, subscriber) -> None:
        request = subscribe_request(subscriber.local_address)
        request.method = "OPTIONS"

        response = server.handle_request(request, subscriber.local_address)

        assert response.status_code == 200
        assert "SUBSCRIBE" in response.headers["Allow"]

    def test_unknown_method(self, server, subscriber) -> None:
        request = subscribe_request(subscriber.local_address)
        request.method = "INFO"

        response = server.handle_request(request, subscriber.local_address)

        assert response.status_code == 501

    def test_garbage_is_ignored(self, server, subscriber) -> None:
        server.handle_datagram(b"", subscriber.local_address)
        server.handle_datagram(b"SIP/2.0 200 OK\r\n\r\n", subscriber.local_address)


class TestNotifyDelivery:
    def test_sends_sequence_number(self, server, subscriber) -> None:
        source = subscriber.local_address
        notify = NotifyEvent(
            uri=f"sip:alice@{source.host}:{source.port}",
            host=source.host,
            port=source.port,
            call_id="call-9",
            from_header="<sip:vm-1@pbx>;tag=a",
            to_header="<sip:alice@example.com>;tag=b",
            contact="<sip:vm-1@pbx>",
            event="message-summary",
            subscription_state="active",
            content_type="application/simple-message-summary",
            body="Messages-Waiting: no\r\n",
            cseq=7,
        )

        server.send_notify(notify)

        assert receive(subscriber).cseq == "7 NOTIFY"

    def test_shared_dialog_is_numbered_in_order(self, server, subscriber) -> None:
        source = subscriber.local_address
        dialog = dict(
            Event="dialog",
            Accept="application/dialog-info+xml",
            To="<sip:200@pbx.example.com>;tag=local1",
            uri="sip:200@pbx.example.com",
        )
        for request in (
            subscribe_request(source),
            subscribe_request(source, **dialog),
            subscribe_request(source, Expires="0"),
            subscribe_request(source, **dialog),
        ):
            server.handle_request(request, source)
        server.process_pending()

        assert [receive(subscriber).cseq for _ in range(4)] == [
            "1 NOTIFY",
            "2 NOTIFY",
            "3 NOTIFY",
            "4 NOTIFY",
        ]


class TestEventLoop:
    def test_errors_are_contained(self, server) -> None:
        server.post("bogus")
        server.post(MailboxUpdateEvent("123"))

        assert server.process_pending() == 2

    def test_tick_is_throttled(self, server) -> None:
        assert server.tick(NOW)
        assert not server.tick(NOW + 5)
        assert server.tick(NOW + 15)

    def test_start_and_stop(self, subscriber) -> None:
        with SubscriptionServer(
            "127.0.0.1", 0, store=FakeVoicemailStore(), show_messages=False
        ) as server:
            source = subscriber.local_address
            subscriber.send(subscribe_request(source).to_bytes(), server.local_address)

            assert receive(subscriber).status_code == 200
            assert receive(subscriber).method == "NOTIFY"

        assert server._transport.is_closed


class TestQuery:
    def test_without_server_thread(self, server, subscriber) -> None:
        source = subscriber.local_address
        server.handle_request(subscribe_request(source), source)

        listing = server.query()

        assert listing.startswith("Subscriptions:\r\nmessage-summary:123:127.0.0.1:")
        assert server.query("status") is None

    def test_answered_by_server_thread(self, subscriber) -> None:
        with SubscriptionServer(
            "127.0.0.1", 0, store=FakeVoicemailStore(), show_messages=False
        ) as server:
            source = subscriber.local_address
            subscriber.send(subscribe_request(source).to_bytes(), server.local_address)
            assert receive(subscriber).status_code == 200
            assert receive(subscriber).method == "NOTIFY"

            listing = server.query()

        assert listing.startswith("Subscriptions:\r\nmessage-summary:123:127.0.0.1:")
        assert listing.endswith(" expires in 600\r\n") or listing.endswith(
            " expires in 599\r\n"
        )
