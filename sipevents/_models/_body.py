"""
NOTIFY body models.

Supports the two event package payloads served by this package:
message summaries (RFC 3842) and dialog information (RFC 4235).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from xml.sax.saxutils import escape, quoteattr

from .._utils import DIALOG_INFO_TYPE, EOL, MESSAGE_SUMMARY_TYPE


# ============================================================================
# Base Classes
# ============================================================================


class MessageBody(ABC):
    """Base class for SIP message bodies."""

    @abstractmethod
    def to_string(self) -> str:
        """Serialize body to string."""
        pass

    def to_bytes(self) -> bytes:
        return self.to_string().encode("utf-8")

    def __str__(self) -> str:
        return self.to_string()

    @property
    @abstractmethod
    def content_type(self) -> str:
        """Return the Content-Type header value for this body."""
        pass


# ============================================================================
# Message Summary - RFC 3842
# ============================================================================


@dataclass
class SimpleMsgSummaryBody(MessageBody):
    """
    Simple message summary body (application/simple-message-summary).

    Used for voice mail message waiting indication. ``unread``/``total``
    are rendered as ``Voice-Message: unread/total``; the line is left out
    for an empty mailbox.
    """

    total: int = 0
    unread: int = 0

    @property
    def messages_waiting(self) -> bool:
        return self.total > 0 and self.unread > 0

    def to_string(self) -> str:
        waiting = "yes" if self.messages_waiting else "no"
        lines = [f"Messages-Waiting: {waiting}"]
        if self.total > 0:
            lines.append(f"Voice-Message: {self.unread}/{self.total}")
        return EOL.join(lines) + EOL

    @property
    def content_type(self) -> str:
        return MESSAGE_SUMMARY_TYPE


# ============================================================================
# Dialog Information - RFC 4235
# ============================================================================


@dataclass
class DialogElement:
    """A single ``<dialog>`` entry of a dialog-info document."""

    id: str
    state: str
    local_tag: str
    remote_tag: str
    target: str
    direction: Optional[str] = None

    def to_lines(self) -> list[str]:
        attrs = (
            f"id={quoteattr(self.id)} call-id={quoteattr(self.id)}"
            f" local-tag={quoteattr(self.local_tag)}"
            f" remote-tag={quoteattr(self.remote_tag)}"
        )
        if self.direction:
            attrs += f" direction={quoteattr(self.direction)}"
        return [
            f"  <dialog {attrs}>",
            f"    <state>{escape(self.state)}</state>",
            f"    <remote><target uri={quoteattr(self.target)}/></remote>",
            "  </dialog>",
        ]


@dataclass
class DialogInfoBody(MessageBody):
    """
    Dialog information body (application/dialog-info+xml).

    Always a full-state document holding at most one dialog.

    Example:
        >>> body = DialogInfoBody(version=0, entity="sip:100@pbx")
        >>> body.to_string().splitlines()[1]
        '<dialog-info xmlns="urn:ietf:params:xml:ns:dialog-info" version="0" entity="sip:100@pbx" notify-state="full">'
    """

    version: int
    entity: str
    dialog: Optional[DialogElement] = None

    NAMESPACE = "urn:ietf:params:xml:ns:dialog-info"

    def to_string(self) -> str:
        lines = [
            '<?xml version="1.0"?>',
            f'<dialog-info xmlns="{self.NAMESPACE}" version="{self.version}"'
            f' entity={quoteattr(self.entity)} notify-state="full">',
        ]
        if self.dialog is not None:
            lines.extend(self.dialog.to_lines())
        lines.append("</dialog-info>")
        return EOL.join(lines) + EOL

    @property
    def content_type(self) -> str:
        return DIALOG_INFO_TYPE


__all__ = [
    "MessageBody",
    "SimpleMsgSummaryBody",
    "DialogElement",
    "DialogInfoBody",
]
