"""Utilities and constants for the subscription service."""

import logging
from rich.console import Console
from rich.logging import RichHandler

# Rich Console for pretty printing
console = Console()

# Configure logging with RichHandler
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
)

# Get logger for the package
logger = logging.getLogger("sipevents")

EOL = "\r\n"
SCHEME = "SIP"
VERSION = "2.0"
BRANCH = "z9hG4bK"

# Event packages and the body types they are served with
MESSAGE_SUMMARY = "message-summary"
DIALOG = "dialog"
MESSAGE_SUMMARY_TYPE = "application/simple-message-summary"
DIALOG_INFO_TYPE = "application/dialog-info+xml"

EVENT_PACKAGES = {
    MESSAGE_SUMMARY: MESSAGE_SUMMARY_TYPE,
    DIALOG: DIALOG_INFO_TYPE,
}

# Subscription lifetime bounds (seconds)
MIN_EXPIRES = 60
MAX_EXPIRES = 86400
DEFAULT_EXPIRES = 3600

# Cadence of the expiry sweep (seconds)
TIMER_INTERVAL = 15

# Compact header forms (RFC 3261 Section 7.3.3) used by subscribers
HEADERS_COMPACT = {
    "v": "via",
    "f": "from",
    "t": "to",
    "m": "contact",
    "i": "call-id",
    "l": "content-length",
    "c": "content-type",
    "o": "event",
    "u": "allow-events",
}

# Canonical casing of the headers this service reads or writes
HEADERS = {
    "call-id": "Call-ID",
    "cseq": "CSeq",
    "via": "Via",
    "from": "From",
    "to": "To",
    "max-forwards": "Max-Forwards",
    "contact": "Contact",
    "content-type": "Content-Type",
    "content-length": "Content-Length",
    "expires": "Expires",
    "user-agent": "User-Agent",
    "server": "Server",
    "allow": "Allow",
    "accept": "Accept",
    "event": "Event",
    "allow-events": "Allow-Events",
    "subscription-state": "Subscription-State",
}

REASON_PHRASES = {
    200: "OK",
    202: "Accepted",
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    481: "Call/Transaction Does Not Exist",
    489: "Bad Event",
    500: "Server Internal Error",
    501: "Not Implemented",
}
