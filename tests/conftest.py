"""Shared fixtures for the subscription service tests."""

from __future__ import annotations

import pytest

from sipevents import EventRouter, MailboxStats, SubscribeEvent, SubscriptionConfig

NOW = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeVoicemailStore:
    """Voicemail store answering from a dict."""

    def __init__(self) -> None:
        self.mailboxes: dict[str, MailboxStats] = {}
        self.queries: list[str] = []

    def set(self, mailbox: str, total: int, unread: int) -> None:
        self.mailboxes[mailbox] = MailboxStats(total=total, unread=unread)

    def stat(self, mailbox: str) -> MailboxStats:
        self.queries.append(mailbox)
        return self.mailboxes.get(mailbox, MailboxStats())


def make_subscribe(**overrides) -> SubscribeEvent:
    fields = dict(
        event="message-summary",
        accept="application/simple-message-summary",
        uri="sip:vm-123@pbx.example.com",
        from_header='"Alice" <sip:alice@example.com>;tag=from1',
        to_header="<sip:vm-123@pbx.example.com>",
        call_id="call-1@example.com",
        contact="<sip:alice@10.0.0.5:5062>",
        expires="600",
        host="10.0.0.5",
        port=5062,
        dialog_tag="local1",
    )
    fields.update(overrides)
    return SubscribeEvent(**fields)


def make_dialog_subscribe(**overrides) -> SubscribeEvent:
    fields = dict(
        event="dialog",
        accept="application/dialog-info+xml",
        uri="sip:200@pbx.example.com",
    )
    fields.update(overrides)
    return make_subscribe(**fields)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sent() -> list:
    """NOTIFY events handed to the sink."""
    return []


@pytest.fixture
def store() -> FakeVoicemailStore:
    return FakeVoicemailStore()


@pytest.fixture
def config() -> SubscriptionConfig:
    return SubscriptionConfig()


@pytest.fixture
def router(sent, store, clock, config) -> EventRouter:
    return EventRouter(sent.append, store, config=config, clock=clock)
