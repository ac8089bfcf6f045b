"""
Event routing.

The router owns the two subscription registries and maps every inbound
event to registry operations. It is not thread safe: all events must be
handled from a single thread, one at a time (see ``SubscriptionServer``).
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from ._events import (
    DiagnosticQuery,
    DialogUpdateEvent,
    InboundEvent,
    MailboxUpdateEvent,
    NotifyEvent,
    SubscribeEvent,
    TimerTick,
)
from ._registry import SubscriptionRegistry
from ._subscription import DialogSubscription, MailboxSubscription, Subscription
from ._types import (
    Clock,
    InvalidEventError,
    NotifySink,
    SubscriptionConfig,
    UnsupportedEventError,
)
from ._utils import (
    DIALOG,
    DIALOG_INFO_TYPE,
    EOL,
    MESSAGE_SUMMARY,
    MESSAGE_SUMMARY_TYPE,
    logger,
)
from ._voicemail import VoicemailStore

LIST_COMMAND = "sippbx list"

# Bus message name -> record reader
MESSAGE_READERS: dict[str, Callable[[Mapping[str, Any]], InboundEvent]] = {
    "sip.subscribe": SubscribeEvent.from_params,
    "user.update": MailboxUpdateEvent.from_params,
    "chan.update": DialogUpdateEvent.from_channel_update,
    "call.cdr": DialogUpdateEvent.from_cdr,
    "engine.timer": TimerTick.from_params,
    "engine.command": DiagnosticQuery.from_params,
}


@dataclass
class MessageResult:
    """Outcome of a bus message: whether it was consumed and a reply text."""

    handled: bool = False
    retval: str = ""


class EventRouter:
    """
    Dispatches inbound events to the mailbox and dialog registries.

    Args:
        sink: Delivers outbound NOTIFY events
        store: Voicemail store queried by mailbox subscriptions
        config: Subscription lifetime and timer settings
        clock: Returns the current time in epoch seconds

    Example:
        >>> router = EventRouter(sent.append, SpoolVoicemailStore("/tmp/vm"))
        >>> router.handle_message("user.update", {"user": "123"})
        MessageResult(handled=False, retval='')
    """

    def __init__(
        self,
        sink: NotifySink,
        store: VoicemailStore,
        *,
        config: Optional[SubscriptionConfig] = None,
        clock: Clock = time.time,
    ) -> None:
        self.config = config or SubscriptionConfig()
        self.sink = sink
        self.store = store
        self.clock = clock

        self.mailboxes = SubscriptionRegistry(MESSAGE_SUMMARY)
        self.dialogs = SubscriptionRegistry(DIALOG)

        # Next time the timer tick is acted upon
        self._next = 0.0
        # Call-ID -> last NOTIFY CSeq, shared by all subscriptions of a dialog
        self._cseq: dict[str, int] = {}

        self._handlers: dict[type, Callable[[Any], Any]] = {
            SubscribeEvent: self.on_subscribe,
            MailboxUpdateEvent: self.on_mailbox_update,
            DialogUpdateEvent: self.on_dialog_update,
            TimerTick: self.on_timer,
            DiagnosticQuery: self.on_command,
        }

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    @staticmethod
    def is_supported(event: Optional[str], accept: Optional[str]) -> bool:
        """True if SUBSCRIBEs for ``event`` with body type ``accept`` are served."""
        return (event, accept) in (
            (MESSAGE_SUMMARY, MESSAGE_SUMMARY_TYPE),
            (DIALOG, DIALOG_INFO_TYPE),
        )

    def _send(self, notify: NotifyEvent) -> None:
        """Number a NOTIFY within its dialog and hand it to the sink."""
        notify.cseq = self._cseq.get(notify.call_id, 0) + 1
        self._cseq[notify.call_id] = notify.cseq
        self.sink(notify)

    def _release_sequences(self) -> None:
        """Forget the CSeq of dialogs no live subscription uses anymore."""
        live = {item.call_id for item in self.mailboxes}
        live.update(item.call_id for item in self.dialogs)
        for call_id in [key for key in self._cseq if key not in live]:
            del self._cseq[call_id]

    def registry_for(self, event: str) -> SubscriptionRegistry:
        if event == MESSAGE_SUMMARY:
            return self.mailboxes
        if event == DIALOG:
            return self.dialogs
        raise UnsupportedEventError(event, None)

    def create_subscription(self, request: SubscribeEvent) -> Subscription:
        """
        Build the subscription variant matching the request.

        Raises:
            UnsupportedEventError: For an unknown event / accept pair
        """
        if not self.is_supported(request.event, request.accept):
            raise UnsupportedEventError(request.event, request.accept)
        options = dict(clock=self.clock, config=self.config)
        if request.event == MESSAGE_SUMMARY:
            return MailboxSubscription(request, self._send, self.store, **options)
        return DialogSubscription(request, self._send, **options)

    def on_subscribe(self, request: SubscribeEvent) -> Optional[Subscription]:
        """
        Accept a SUBSCRIBE and send the initial NOTIFY.

        Returns:
            The new subscription, or None if the request was rejected or
            names no resource
        """
        try:
            subscription = self.create_subscription(request)
        except UnsupportedEventError as e:
            logger.warning(f"Rejected SUBSCRIBE from {request.source}: {e}")
            return None

        if not subscription.is_valid:
            logger.debug(f"No resource in {request.uri!r}, SUBSCRIBE discarded")
            return None

        registry = self.registry_for(subscription.event)
        registry.upsert(subscription)
        logger.debug(
            f"New {subscription.event} subscription for {subscription.resource_key}"
        )
        subscription.render()
        subscription.flush()

        if subscription.is_terminated and not subscription.pending:
            # Unsubscribe: the final NOTIFY went out, nothing left to watch
            registry.remove(subscription.index)
        self._release_sequences()
        return subscription

    # ------------------------------------------------------------------
    # Resource updates
    # ------------------------------------------------------------------

    def on_mailbox_update(self, update: MailboxUpdateEvent) -> int:
        """Re-render the subscriptions of a mailbox; NOTIFYs wait for the timer."""
        return self.mailboxes.update_all(update.mailbox)

    def on_dialog_update(self, update: DialogUpdateEvent) -> int:
        """Re-render the subscriptions of a call; resolved states notify at once."""
        return self.dialogs.update_all(
            update.resource_key, update, update.correlation_id
        )

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def on_timer(self, tick: TimerTick) -> bool:
        """
        Expire stale subscriptions and flush pending NOTIFYs.

        Ticks arriving before the next due time are ignored.

        Returns:
            True if the sweep ran
        """
        if tick.time < self._next:
            return False
        self._next = tick.time + self.config.timer_interval
        self.mailboxes.expire_sweep(tick.time)
        self.dialogs.expire_sweep(tick.time)
        self.mailboxes.flush_all()
        self.dialogs.flush_all()
        self._release_sequences()
        return True

    def dump(self, now: Optional[float] = None) -> str:
        """List all subscriptions with their remaining lifetime."""
        if now is None:
            now = self.clock()
        return (
            f"Subscriptions:{EOL}"
            + self.mailboxes.dump(now)
            + self.dialogs.dump(now)
        )

    def on_command(self, query: DiagnosticQuery) -> Optional[str]:
        """Answer the subscription listing command, None for other commands."""
        if query.line != LIST_COMMAND:
            return None
        return self.dump()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def handle(self, event: InboundEvent) -> Any:
        """
        Handle one inbound event record.

        Returns:
            Whatever the matching ``on_*`` method returns
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported event type {type(event).__name__}")
        return handler(event)

    def handle_message(self, name: str, params: Mapping[str, Any]) -> MessageResult:
        """
        Handle a bus message given as a name and a parameter bag.

        Resource updates are never reported as handled so other listeners
        still see them.
        """
        reader = MESSAGE_READERS.get(name)
        if reader is None:
            return MessageResult()
        try:
            event = reader(params)
        except InvalidEventError as e:
            logger.warning(f"Ignoring malformed {name}: {e}")
            return MessageResult()

        result = self.handle(event)
        if isinstance(event, SubscribeEvent):
            return MessageResult(handled=result is not None)
        if isinstance(event, DiagnosticQuery) and result is not None:
            return MessageResult(handled=True, retval=result)
        return MessageResult()


__all__ = ["EventRouter", "MessageResult", "MESSAGE_READERS", "LIST_COMMAND"]
