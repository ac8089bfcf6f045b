"""
Inbound and outbound event records.

Messages arrive from the bus as loose parameter bags. Each kind the service
understands is read into a fixed record here: unknown fields are ignored and
missing required fields raise ``InvalidEventError``.
"""

from __future__ import annotations

import uuid
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from ._models._header import Headers
from ._models._message import Request
from ._types import InvalidEventError, TransportAddress
from ._utils import BRANCH


def _require(params: Mapping[str, Any], name: str) -> str:
    value = params.get(name)
    if value is None or str(value) == "":
        raise InvalidEventError(f"Missing required field {name!r}")
    return str(value)


def _optional(params: Mapping[str, Any], name: str) -> Optional[str]:
    value = params.get(name)
    if value is None or str(value) == "":
        return None
    return str(value)


def _port(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidEventError(f"Invalid port {value!r}") from e


# ============================================================================
# Inbound Events
# ============================================================================


@dataclass
class SubscribeEvent:
    """A SUBSCRIBE request as seen by the subscription service."""

    event: str
    accept: Optional[str]
    uri: str
    from_header: str
    to_header: str
    call_id: str
    contact: str
    expires: Optional[str]
    host: str
    port: int
    dialog_tag: Optional[str] = None

    @property
    def source(self) -> TransportAddress:
        return TransportAddress(host=self.host, port=self.port)

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> SubscribeEvent:
        """Read a ``sip.subscribe`` bus message."""
        return cls(
            event=_require(params, "sip_event"),
            accept=_optional(params, "sip_accept"),
            uri=_require(params, "sip_uri"),
            from_header=_require(params, "sip_from"),
            to_header=_require(params, "sip_to"),
            call_id=_require(params, "sip_callid"),
            contact=_require(params, "sip_contact"),
            expires=_optional(params, "sip_expires"),
            host=_require(params, "ip_host"),
            port=_port(_require(params, "ip_port")),
            dialog_tag=_optional(params, "xsip_dlgtag"),
        )

    @classmethod
    def from_request(
        cls,
        request: Request,
        source: TransportAddress,
        dialog_tag: Optional[str] = None,
    ) -> SubscribeEvent:
        """Read a parsed SUBSCRIBE request received from ``source``."""
        if request.method != "SUBSCRIBE":
            raise InvalidEventError(f"Expected SUBSCRIBE, got {request.method}")
        headers = request.headers
        return cls.from_params(
            {
                "sip_event": request.event,
                "sip_accept": headers.get("Accept"),
                "sip_uri": request.uri,
                "sip_from": request.from_header,
                "sip_to": request.to_header,
                "sip_callid": request.call_id,
                "sip_contact": request.contact,
                "sip_expires": request.expires,
                "ip_host": source.host,
                "ip_port": source.port,
                "xsip_dlgtag": dialog_tag,
            }
        )


@dataclass
class MailboxUpdateEvent:
    """The content of a mailbox changed."""

    mailbox: str

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> MailboxUpdateEvent:
        """Read a ``user.update`` bus message."""
        return cls(mailbox=_require(params, "user"))


@dataclass
class DialogUpdateEvent:
    """
    Status change of a call watched through the dialog package.

    ``resource_key`` selects the subscriptions, ``correlation_id`` names the
    dialog in the rendered document. Without a correlation id no
    ``<dialog>`` element can be produced.
    """

    resource_key: str
    operation: Optional[str] = None
    status: Optional[str] = None
    direction: Optional[str] = None
    correlation_id: Optional[str] = None

    @classmethod
    def from_cdr(cls, params: Mapping[str, Any]) -> DialogUpdateEvent:
        """Read a ``call.cdr`` bus message."""
        return cls(
            resource_key=_require(params, "external"),
            operation=_optional(params, "operation"),
            status=_optional(params, "status"),
            direction=_optional(params, "direction"),
            correlation_id=_optional(params, "chan"),
        )

    @classmethod
    def from_channel_update(cls, params: Mapping[str, Any]) -> DialogUpdateEvent:
        """Read a ``chan.update`` bus message."""
        return cls(
            resource_key=_require(params, "id"),
            operation=_optional(params, "operation"),
            status=_optional(params, "status"),
            direction=_optional(params, "direction"),
        )


@dataclass
class TimerTick:
    """Periodic housekeeping tick."""

    time: float

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> TimerTick:
        """Read an ``engine.timer`` bus message."""
        value = _require(params, "time")
        try:
            return cls(time=float(value))
        except ValueError as e:
            raise InvalidEventError(f"Invalid timer value {value!r}") from e


@dataclass
class DiagnosticQuery:
    """Request for a listing of all subscriptions.

    ``reply``, when set, receives the answer once the query was handled on
    the server thread.
    """

    line: str = "sippbx list"
    reply: Optional[Future] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> DiagnosticQuery:
        """Read an ``engine.command`` bus message."""
        return cls(line=_require(params, "line").strip())


InboundEvent = Union[
    SubscribeEvent,
    MailboxUpdateEvent,
    DialogUpdateEvent,
    TimerTick,
    DiagnosticQuery,
]


# ============================================================================
# Outbound Events
# ============================================================================


@dataclass
class NotifyEvent:
    """A NOTIFY to deliver to a subscriber."""

    uri: str
    host: str
    port: int
    call_id: str
    from_header: str
    to_header: str
    contact: str
    event: str
    subscription_state: str
    content_type: str
    body: str
    # Sequence number within the SIP dialog, set by the router
    cseq: int = 1
    method: str = "NOTIFY"

    @property
    def destination(self) -> TransportAddress:
        return TransportAddress(host=self.host, port=self.port)

    def to_request(
        self,
        cseq: Optional[int] = None,
        local: Optional[TransportAddress] = None,
    ) -> Request:
        """
        Render the NOTIFY as a SIP request.

        Args:
            cseq: Sequence number, ``self.cseq`` if None
            local: Local transport address placed in the Via header
        """
        if cseq is None:
            cseq = self.cseq
        sent_by = f"{local.host}:{local.port}" if local else "0.0.0.0"
        protocol = local.protocol.upper() if local else "UDP"
        branch = f"{BRANCH}{uuid.uuid4().hex[:16]}"
        headers = Headers(
            {
                "Via": f"SIP/2.0/{protocol} {sent_by};branch={branch};rport",
                "From": self.from_header,
                "To": self.to_header,
                "Call-ID": self.call_id,
                "CSeq": f"{cseq} {self.method}",
                "Contact": self.contact,
                "Event": self.event,
                "Subscription-State": self.subscription_state,
                "Content-Type": self.content_type,
            }
        )
        return Request(self.method, self.uri, headers=headers, content=self.body)


__all__ = [
    "SubscribeEvent",
    "MailboxUpdateEvent",
    "DialogUpdateEvent",
    "TimerTick",
    "DiagnosticQuery",
    "InboundEvent",
    "NotifyEvent",
]
