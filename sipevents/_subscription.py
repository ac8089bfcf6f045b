"""
Event package subscriptions.

A subscription is created from an accepted SUBSCRIBE and lives until it is
refreshed, cancelled or expires. The base class owns the NOTIFY lifecycle
shared by every package:

    render() -> body changed, pending
    flush()  -> NOTIFY sent if pending and the body is not empty
    check_expiry(now) -> final "terminated;reason=timeout" NOTIFY

Subclasses only know how to turn the current state of their resource into a
body.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Optional

from ._events import DialogUpdateEvent, NotifyEvent, SubscribeEvent
from ._models._body import DialogElement, DialogInfoBody, SimpleMsgSummaryBody
from ._types import Clock, NotifySink, SubscriptionConfig, TransportAddress
from ._uri import extract_uri, resource_key
from ._utils import (
    DIALOG,
    DIALOG_INFO_TYPE,
    MESSAGE_SUMMARY,
    MESSAGE_SUMMARY_TYPE,
    logger,
)
from ._voicemail import VoicemailStore

ACTIVE = "active"
TERMINATED = "terminated"
TIMEOUT = "terminated;reason=timeout"


class Subscription(ABC):
    """
    Common state of an event package subscription.

    Attributes:
        event: Event package name
        media_type: Content-Type of the rendered body
        resource_key: Subscribed resource, None when the request URI has none
        index: Registry key, unique per event, resource and subscriber address
        contact: URI the NOTIFY requests are sent to
        state: Subscription-State value of the next NOTIFY
        expires_at: Absolute expiry time, 0 once terminated
        body: Rendered body, empty until the first render
        pending: True when the body changed since the last NOTIFY
    """

    def __init__(
        self,
        request: SubscribeEvent,
        event: str,
        media_type: str,
        sink: NotifySink,
        *,
        clock: Clock = time.time,
        config: Optional[SubscriptionConfig] = None,
    ) -> None:
        self.event = event
        self.media_type = media_type
        self._sink = sink
        self._clock = clock
        config = config or SubscriptionConfig()

        self.host = request.host
        self.port = request.port
        self.uri = request.uri
        self.resource_key = resource_key(request.uri)
        self.index = f"{event}:{self.resource_key}:{self.host}:{self.port}"
        logger.debug(f"Will match: {self.resource_key} index {self.index}")

        self.from_header = request.from_header
        self.to_header = request.to_header
        if "tag=" not in self.to_header and request.dialog_tag:
            self.to_header += f";tag={request.dialog_tag}"
        self.call_id = request.call_id
        self.contact = extract_uri(request.contact)

        granted = config.clamp_expires(request.expires)
        if granted == 0:
            # Unsubscribe
            self.expires_at: float = 0
            self.state = TERMINATED
        else:
            self.expires_at = clock() + granted
            self.state = ACTIVE

        self.body = ""
        self.pending = True

    @property
    def endpoint(self) -> TransportAddress:
        return TransportAddress(host=self.host, port=self.port)

    @property
    def is_valid(self) -> bool:
        """False when no resource could be read from the request URI."""
        return bool(self.resource_key)

    @property
    def is_terminated(self) -> bool:
        return self.state.startswith(TERMINATED)

    def remaining(self, now: Optional[float] = None) -> int:
        """Seconds left before expiry, 0 for a terminated subscription."""
        if self.expires_at == 0:
            return 0
        if now is None:
            now = self._clock()
        return int(self.expires_at - now)

    @abstractmethod
    def render(
        self,
        update: Optional[DialogUpdateEvent] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """Recompute ``body`` from the current state of the resource."""
        ...

    def to_notify(self) -> NotifyEvent:
        """Build the NOTIFY for the current state and body.

        The subscriber is the remote party of the dialog, so the From and
        To of the SUBSCRIBE are swapped.
        """
        return NotifyEvent(
            uri=self.contact,
            host=self.host,
            port=self.port,
            call_id=self.call_id,
            from_header=self.to_header,
            to_header=self.from_header,
            contact=f"<{self.uri}>",
            event=self.event,
            subscription_state=self.state,
            content_type=self.media_type,
            body=self.body,
        )

    def notify(self, state: Optional[str] = None) -> bool:
        """
        Send a NOTIFY, optionally switching the subscription state first.

        Returns:
            True if a NOTIFY was handed to the sink. An empty body sends
            nothing and leaves the subscription pending.
        """
        logger.debug(f"Notifying event {self.event} for {self.resource_key}")
        if state is not None:
            self.state = state
            self.pending = True
        if not self.body:
            logger.warning(f"Empty body in event {self.event} for {self.resource_key}")
            return False
        self._sink(self.to_notify())
        self.pending = False
        return True

    def flush(self) -> bool:
        """Send a NOTIFY if one is pending."""
        if self.pending:
            return self.notify()
        return False

    def check_expiry(self, now: float) -> bool:
        """
        Expire the subscription if its lifetime is over.

        Returns:
            True if the subscription expired now and should be dropped
        """
        if self.expires_at == 0:
            return False
        if self.expires_at > now:
            return False
        logger.debug(f"Expired event {self.event} for {self.resource_key}")
        self.expires_at = 0
        self.notify(TIMEOUT)
        return True

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.index} {self.state}>"


class MailboxSubscription(Subscription):
    """Voice mail status (message-summary) subscription."""

    def __init__(
        self,
        request: SubscribeEvent,
        sink: NotifySink,
        store: VoicemailStore,
        **kwargs,
    ) -> None:
        super().__init__(request, MESSAGE_SUMMARY, MESSAGE_SUMMARY_TYPE, sink, **kwargs)
        self.store = store

    def render(
        self,
        update: Optional[DialogUpdateEvent] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        stats = self.store.stat(self.resource_key)
        logger.debug(f"Messages: {stats.unread}/{stats.total} for {self.resource_key}")
        self.body = SimpleMsgSummaryBody(total=stats.total, unread=stats.unread).to_string()
        self.pending = True


# Call operation -> dialog state
DIALOG_OPERATIONS = {
    "initialize": "trying",
    "finalize": "terminated",
}

# Call status -> dialog state
DIALOG_STATES = {
    "connected": "confirmed",
    "answered": "confirmed",
    "incoming": "early",
    "outgoing": "early",
    "calling": "early",
    "ringing": "early",
    "progressing": "early",
    "redirected": "rejected",
    "destroyed": "terminated",
}

# The document describes the remote end, so the call leg direction is reversed
DIALOG_DIRECTIONS = {
    "incoming": "initiator",
    "outgoing": "recipient",
}


def dialog_state(update: Optional[DialogUpdateEvent]) -> Optional[str]:
    """Map a call status update to a dialog state, None if unrecognized."""
    if update is None:
        return None
    if update.operation in DIALOG_OPERATIONS:
        return DIALOG_OPERATIONS[update.operation]
    return DIALOG_STATES.get(update.status or "")


class DialogSubscription(Subscription):
    """Call dialog state (dialog) subscription."""

    def __init__(self, request: SubscribeEvent, sink: NotifySink, **kwargs) -> None:
        super().__init__(request, DIALOG, DIALOG_INFO_TYPE, sink, **kwargs)
        self.version = 0

    def render(
        self,
        update: Optional[DialogUpdateEvent] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """
        Render a dialog-info document for a call status update.

        A ``<dialog>`` element is included only if the update maps to a
        dialog state and a correlation id names the dialog; only then is the
        NOTIFY sent right away. The version advances on every render.
        """
        if correlation_id is None and update is not None:
            correlation_id = update.correlation_id

        state = dialog_state(update)
        direction = None
        if state:
            direction = DIALOG_DIRECTIONS.get(update.direction or "")
        else:
            correlation_id = None
        logger.debug(f"Dialog updated, st: {state!r} id: {correlation_id!r}")

        element = None
        if correlation_id:
            element = DialogElement(
                id=correlation_id,
                state=state,
                # Separate tags are not tracked, both carry the resource key
                local_tag=self.resource_key,
                remote_tag=self.resource_key,
                target=extract_uri(self.uri),
                direction=direction,
            )
        self.body = DialogInfoBody(
            version=self.version, entity=self.uri, dialog=element
        ).to_string()
        self.version += 1
        self.pending = True
        if element is not None:
            self.flush()


__all__ = [
    "ACTIVE",
    "TERMINATED",
    "TIMEOUT",
    "Subscription",
    "MailboxSubscription",
    "DialogSubscription",
    "dialog_state",
]
