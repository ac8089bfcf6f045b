"""sipevents - SIP SUBSCRIBE/NOTIFY service for voicemail and dialog state."""

from __future__ import annotations

# Core
from ._subscription import (
    ACTIVE,
    TERMINATED,
    TIMEOUT,
    DialogSubscription,
    MailboxSubscription,
    Subscription,
    dialog_state,
)
from ._registry import SubscriptionRegistry
from ._router import LIST_COMMAND, MESSAGE_READERS, EventRouter, MessageResult

# Server
from ._server import SubscriptionServer

# Events
from ._events import (
    DiagnosticQuery,
    DialogUpdateEvent,
    InboundEvent,
    MailboxUpdateEvent,
    NotifyEvent,
    SubscribeEvent,
    TimerTick,
)

# Voicemail store
from ._voicemail import MailboxStats, SpoolVoicemailStore, VoicemailStore

# Message models
from ._models import (
    DialogElement,
    DialogInfoBody,
    HeaderParser,
    Headers,
    MessageBody,
    MessageParser,
    Request,
    Response,
    SimpleMsgSummaryBody,
    SIPMessage,
)

# URI helpers
from ._uri import SipURI, extract_uri, resource_key

# Transport
from ._transport import UDPTransport

# Types
from ._types import (
    InvalidEventError,
    NotifySink,
    ReadError,
    SubscriptionConfig,
    SubscriptionError,
    TimeoutError,
    TransportAddress,
    TransportConfig,
    TransportError,
    UnsupportedEventError,
    WriteError,
)

# Utilities
from ._utils import (
    DEFAULT_EXPIRES,
    DIALOG,
    DIALOG_INFO_TYPE,
    EOL,
    EVENT_PACKAGES,
    MAX_EXPIRES,
    MESSAGE_SUMMARY,
    MESSAGE_SUMMARY_TYPE,
    MIN_EXPIRES,
    TIMER_INTERVAL,
    console,
    logger,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "Subscription",
    "MailboxSubscription",
    "DialogSubscription",
    "dialog_state",
    "ACTIVE",
    "TERMINATED",
    "TIMEOUT",
    "SubscriptionRegistry",
    "EventRouter",
    "MessageResult",
    "MESSAGE_READERS",
    "LIST_COMMAND",
    # Server
    "SubscriptionServer",
    # Events
    "SubscribeEvent",
    "MailboxUpdateEvent",
    "DialogUpdateEvent",
    "TimerTick",
    "DiagnosticQuery",
    "InboundEvent",
    "NotifyEvent",
    # Voicemail
    "MailboxStats",
    "VoicemailStore",
    "SpoolVoicemailStore",
    # Models
    "Headers",
    "HeaderParser",
    "SIPMessage",
    "Request",
    "Response",
    "MessageParser",
    "MessageBody",
    "SimpleMsgSummaryBody",
    "DialogElement",
    "DialogInfoBody",
    # URI
    "SipURI",
    "extract_uri",
    "resource_key",
    # Transport
    "UDPTransport",
    # Types
    "TransportConfig",
    "TransportAddress",
    "SubscriptionConfig",
    "NotifySink",
    "SubscriptionError",
    "UnsupportedEventError",
    "InvalidEventError",
    "TransportError",
    "ReadError",
    "WriteError",
    "TimeoutError",
    # Constants
    "EOL",
    "MESSAGE_SUMMARY",
    "MESSAGE_SUMMARY_TYPE",
    "DIALOG",
    "DIALOG_INFO_TYPE",
    "EVENT_PACKAGES",
    "MIN_EXPIRES",
    "MAX_EXPIRES",
    "DEFAULT_EXPIRES",
    "TIMER_INTERVAL",
    # Utilities
    "console",
    "logger",
    # Metadata
    "__version__",
]
