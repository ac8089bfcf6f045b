"""
SIP requests and responses.

Inbound SUBSCRIBE/OPTIONS requests are read with ``MessageParser``; the
server answers them with ``Response.for_request`` and sends NOTIFY requests
built by ``NotifyEvent.to_request``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .._types import HeaderTypes
from .._utils import EOL, REASON_PHRASES, SCHEME, VERSION
from ._body import MessageBody
from ._header import HeaderParser, Headers


class SIPMessage(ABC):
    """Start line, headers and body shared by requests and responses.

    A ``MessageBody`` content also sets Content-Type. Content-Length is
    always filled in unless given.
    """

    def __init__(
        self,
        *,
        headers: HeaderTypes | None = None,
        content: str | bytes | MessageBody | None = None,
        version: str | None = None,
    ) -> None:
        self.version = version or f"{SCHEME}/{VERSION}"
        self.headers = headers if isinstance(headers, Headers) else Headers(headers)

        if isinstance(content, MessageBody):
            self.headers.setdefault("Content-Type", content.content_type)
            content = content.to_bytes()
        elif isinstance(content, str):
            content = content.encode("utf-8")
        self.content: bytes = content or b""

        self.headers.setdefault("Content-Length", str(len(self.content)))

    @abstractmethod
    def start_line(self) -> str: ...

    @property
    def content_text(self) -> str:
        return self.content.decode("utf-8")

    @property
    def content_type(self) -> str | None:
        return self.headers.get("Content-Type")

    @property
    def via(self) -> str | None:
        return self.headers.get("Via")

    @property
    def from_header(self) -> str | None:
        return self.headers.get("From")

    @property
    def to_header(self) -> str | None:
        return self.headers.get("To")

    @property
    def call_id(self) -> str | None:
        return self.headers.get("Call-ID")

    @property
    def cseq(self) -> str | None:
        return self.headers.get("CSeq")

    @property
    def contact(self) -> str | None:
        return self.headers.get("Contact")

    def to_bytes(self) -> bytes:
        """Wire format: start line, headers, blank line, body."""
        encoding = self.headers.encoding
        return (
            (self.start_line() + EOL).encode(encoding)
            + self.headers.raw(encoding)
            + EOL.encode(encoding)
            + self.content
        )

    def to_string(self) -> str:
        return self.to_bytes().decode("utf-8", errors="replace")

    def __str__(self) -> str:
        return self.to_string()


class Request(SIPMessage):
    """A SIP request. Max-Forwards defaults to 70."""

    def __init__(
        self,
        method: str,
        uri: str,
        *,
        headers: HeaderTypes | None = None,
        content: str | bytes | MessageBody | None = None,
        version: str | None = None,
    ) -> None:
        self.method = method.upper()
        self.uri = uri
        super().__init__(headers=headers, content=content, version=version)
        self.headers.setdefault("Max-Forwards", "70")

    def start_line(self) -> str:
        return f"{self.method} {self.uri} {self.version}"

    @property
    def event(self) -> str | None:
        """Event package name, without ``;id=`` or other parameters."""
        value = self.headers.get("Event")
        return value.split(";", 1)[0].strip() if value is not None else None

    @property
    def expires(self) -> str | None:
        return self.headers.get("Expires")

    def __repr__(self) -> str:
        return f"<Request({self.method!r}, {self.uri!r})>"


class Response(SIPMessage):
    """A SIP response; the reason phrase defaults from the status code."""

    def __init__(
        self,
        status_code: int,
        *,
        reason_phrase: str | None = None,
        headers: HeaderTypes | None = None,
        content: str | bytes | MessageBody | None = None,
        version: str | None = None,
    ) -> None:
        self.status_code = status_code
        if reason_phrase is None:
            reason_phrase = REASON_PHRASES.get(status_code, "Unknown")
        self.reason_phrase = reason_phrase
        super().__init__(headers=headers, content=content, version=version)

    def start_line(self) -> str:
        return f"{self.version} {self.status_code} {self.reason_phrase}"

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @classmethod
    def for_request(
        cls,
        request: Request,
        status_code: int,
        *,
        to_header: str | None = None,
        extra: HeaderTypes | None = None,
    ) -> Response:
        """
        Answer ``request``, echoing its Via, From, To, Call-ID and CSeq.

        Args:
            request: Request being answered
            status_code: Response status code
            to_header: To header to send instead, e.g. with a local tag
            extra: Additional headers
        """
        headers = Headers()
        for name in ("Via", "From", "To", "Call-ID", "CSeq"):
            headers[name] = request.headers.get(name, "")
        if to_header:
            headers["To"] = to_header
        for name, value in (extra or {}).items():
            headers[name] = value
        headers["Content-Length"] = "0"
        return cls(status_code, headers=headers)

    def __repr__(self) -> str:
        return f"<Response [{self.status_code} {self.reason_phrase}]>"


class MessageParser:
    """Reads requests and responses from datagrams."""

    @staticmethod
    def parse(data: bytes | str) -> Request | Response:
        """
        Parse one SIP message. Bare LF line endings are accepted.

        Raises:
            ValueError: If the start line is missing or malformed

        Example:
            >>> data = b"SUBSCRIBE sip:vm-123@pbx SIP/2.0\\r\\nEvent: message-summary\\r\\n\\r\\n"
            >>> MessageParser.parse(data).event
            'message-summary'
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        head, sep, body = data.partition(b"\r\n\r\n")
        if not sep:
            head, _, body = data.partition(b"\n\n")
        lines = head.replace(b"\r\n", b"\n").split(b"\n")
        if not lines[0]:
            raise ValueError("Empty SIP message")

        start_line = lines[0].decode("utf-8")
        headers = HeaderParser.parse_lines(lines[1:])
        parts = start_line.split(None, 2)

        if start_line.startswith(f"{SCHEME}/"):
            if len(parts) < 2 or not parts[1].isdigit():
                raise ValueError(f"Invalid status line: {start_line!r}")
            return Response(
                int(parts[1]),
                reason_phrase=parts[2] if len(parts) > 2 else "",
                version=parts[0],
                headers=headers,
                content=body,
            )

        if len(parts) != 3:
            raise ValueError(f"Invalid request line: {start_line!r}")
        method, uri, version = parts
        return Request(method, uri, version=version, headers=headers, content=body)


__all__ = ["SIPMessage", "Request", "Response", "MessageParser"]
