"""
Type definitions for the subscription service.

This module centralizes configuration dataclasses, transport addresses and
the exception hierarchy used throughout the package.
"""

from __future__ import annotations

import re
import typing
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

from ._utils import DEFAULT_EXPIRES, MAX_EXPIRES, MIN_EXPIRES, TIMER_INTERVAL

_LEADING_NUMBER = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)")

if typing.TYPE_CHECKING:
    from ._models._header import Headers
    from ._events import NotifyEvent


# =============================================================================
# Header Types
# =============================================================================

HeaderTypes = typing.Union[
    "Headers",
    Mapping[str, str],
]


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class TransportConfig:
    """Configuration for the SIP transport."""

    # Network settings
    local_host: str = "0.0.0.0"
    local_port: int = 5060

    # Receive timeout (seconds)
    read_timeout: float = 1.0

    # Max SIP message size
    buffer_size: int = 65535


@dataclass
class SubscriptionConfig:
    """Lifetime and housekeeping settings for subscriptions."""

    min_expires: int = MIN_EXPIRES
    max_expires: int = MAX_EXPIRES
    default_expires: int = DEFAULT_EXPIRES

    # Expiry sweep cadence (seconds)
    timer_interval: float = TIMER_INTERVAL

    # Voicemail spool, one directory per mailbox
    voicemail_dir: str = "/var/spool/voicemail"

    def clamp_expires(self, requested: Optional[str]) -> int:
        """
        Turn a requested Expires value into a granted lifetime.

        Returns 0 for an explicit unsubscribe, the default for an absent,
        non-numeric or negative value, and the value clamped into
        [min_expires, max_expires] otherwise.
        """
        if requested is None:
            return self.default_expires
        text = str(requested).strip()
        if text == "0":
            return 0
        # Leading number only: "1.5" reads 1.5, "3600abc" reads 3600
        match = _LEADING_NUMBER.match(text)
        seconds = float(match.group()) if match else 0.0
        if seconds <= 0:
            return self.default_expires
        return int(max(self.min_expires, min(seconds, self.max_expires)))


@dataclass
class TransportAddress:
    """Represents a transport address (host, port, protocol)."""

    host: str
    port: int = 5060
    protocol: str = "UDP"

    def __str__(self) -> str:
        return f"{self.protocol.upper()}:{self.host}:{self.port}"


# =============================================================================
# Exceptions
# =============================================================================


class SubscriptionError(Exception):
    """Base exception for subscription handling errors."""

    pass


class UnsupportedEventError(SubscriptionError):
    """Raised for an event package / accepted type pair that is not served."""

    def __init__(self, event: Optional[str], accept: Optional[str]) -> None:
        super().__init__(f"Unsupported event {event!r} with accept {accept!r}")
        self.event = event
        self.accept = accept


class InvalidEventError(SubscriptionError, ValueError):
    """Raised when an inbound event misses a required field."""

    pass


class TransportError(Exception):
    """Base exception for transport errors."""

    pass


class WriteError(TransportError):
    """Raised when writing to transport fails."""

    pass


class ReadError(TransportError):
    """Raised when reading from transport fails."""

    pass


class TimeoutError(TransportError):
    """Raised when operation times out."""

    pass


# =============================================================================
# Type Aliases
# =============================================================================

# Outbound delivery of NOTIFY events
NotifySink = typing.Callable[["NotifyEvent"], None]

# Wall clock returning epoch seconds
Clock = typing.Callable[[], float]


__all__ = [
    "HeaderTypes",
    "TransportConfig",
    "SubscriptionConfig",
    "TransportAddress",
    "SubscriptionError",
    "UnsupportedEventError",
    "InvalidEventError",
    "TransportError",
    "WriteError",
    "ReadError",
    "TimeoutError",
    "NotifySink",
    "Clock",
]
