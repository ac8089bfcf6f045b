"""
SIP Models Package.

This package contains models for SIP messages, headers, and NOTIFY bodies.
"""

from ._body import DialogElement, DialogInfoBody, MessageBody, SimpleMsgSummaryBody
from ._header import HeaderParser, Headers
from ._message import MessageParser, Request, Response, SIPMessage

__all__ = [
    # Headers
    "Headers",
    "HeaderParser",
    # Messages
    "SIPMessage",
    "Request",
    "Response",
    "MessageParser",
    # Body types
    "MessageBody",
    "SimpleMsgSummaryBody",
    "DialogElement",
    "DialogInfoBody",
]
