"""
SIP Headers implementation.

Provides a case-insensitive, order-preserving headers container and the
parser used to read inbound SUBSCRIBE requests.
"""

from __future__ import annotations

import typing
from collections.abc import Mapping

from .._utils import HEADERS, HEADERS_COMPACT, EOL
from .._types import HeaderTypes


class Headers(typing.MutableMapping[str, str]):
    """Case-insensitive SIP headers preserving insertion order.

    Header names are stored in canonical form, compact forms are expanded.

    Examples:
        >>> h = Headers({"o": "dialog", "call-id": "a84b4c76e66710"})
        >>> h["Event"]
        'dialog'
        >>> list(h.keys())
        ['Event', 'Call-ID']
    """

    __slots__ = ("_store", "_encoding")

    @staticmethod
    def _canonical(name: str) -> str:
        """
        Convert header name to canonical form.

        - 'o' -> 'Event' (compact form)
        - 'subscription-state' -> 'Subscription-State' (mapped header)
        - 'x-custom' -> 'X-Custom' (title-case fallback)
        - 'X-Custom' -> 'X-Custom' (already capitalized, kept)
        """
        name = name.strip()
        lower = name.lower()

        if len(name) == 1 and lower in HEADERS_COMPACT:
            expanded = HEADERS_COMPACT[lower]
            return HEADERS.get(expanded, expanded)

        if lower in HEADERS:
            return HEADERS[lower]

        if name.islower():
            return "-".join(part.capitalize() for part in name.split("-"))
        return name

    def __init__(
        self,
        headers: HeaderTypes | None = None,
        encoding: str = "utf-8",
    ) -> None:
        # canonical name -> value, dict order is insertion order
        self._store: dict[str, str] = {}
        self._encoding = encoding

        if isinstance(headers, Headers):
            self._store = headers._store.copy()
            self._encoding = headers._encoding
        elif isinstance(headers, Mapping):
            for key, value in headers.items():
                self[key] = value
        elif headers is not None:
            raise TypeError("headers must be Headers or Mapping")

    def __getitem__(self, key: str) -> str:
        return self._store[self._canonical(key)]

    def __setitem__(self, key: str, value: str) -> None:
        self._store[self._canonical(key)] = str(value)

    def __delitem__(self, key: str) -> None:
        del self._store[self._canonical(key)]

    def __iter__(self) -> typing.Iterator[str]:
        return iter(self._store)

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self._canonical(key) in self._store

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {v!r}" for k, v in self._store.items())
        return f"Headers({{{items}}})"

    @property
    def encoding(self) -> str:
        return self._encoding

    def add(self, key: str, value: str) -> None:
        """Add a header, joining repeated ones into one comma-separated value."""
        if key in self:
            value = f"{self[key]}, {value}"
        self[key] = value

    def raw(self, encoding: str | None = None) -> bytes:
        """
        Serialize headers to wire format, one ``Name: value`` line each,
        every line terminated by CRLF.
        """
        enc = encoding or self._encoding
        if not self._store:
            return b""
        lines = [f"{name}: {value}" for name, value in self._store.items()]
        return (EOL.join(lines) + EOL).encode(enc)


class HeaderParser:
    """
    Parser for SIP headers.

    Handles line folding (RFC 3261 Section 7.3.1) and compact header forms.
    """

    @staticmethod
    def parse_lines(header_lines: list[bytes], encoding: str = "utf-8") -> Headers:
        """Parse headers from raw header lines; repeated headers are joined."""
        headers = Headers(encoding=encoding)
        current_name: str | None = None
        current_value = ""

        for line in header_lines:
            if not line:
                continue

            # Folded continuation line
            if line[0:1] in (b" ", b"\t"):
                if current_name is not None:
                    current_value += " " + line.decode(encoding).strip()
                continue

            if current_name is not None:
                headers.add(current_name, current_value)
                current_name = None

            if b":" not in line:
                continue

            name, _, value = line.partition(b":")
            current_name = name.decode(encoding).strip()
            current_value = value.decode(encoding).strip()

        if current_name is not None:
            headers.add(current_name, current_value)

        return headers

    @staticmethod
    def parse_params(value: str) -> dict[str, str]:
        """
        Split a header value into its main value and parameters.

        Example:
            >>> HeaderParser.parse_params("<sip:bob@biloxi.com>;tag=a6c85cf")
            {'value': '<sip:bob@biloxi.com>', 'tag': 'a6c85cf'}
        """
        result: dict[str, str] = {}
        # Parameters inside <...> belong to the URI, not the header
        if ">" in value:
            main, rest = value.rsplit(">", 1)
            parts = [main + ">"] + rest.split(";")[1:]
        else:
            parts = value.split(";")
        result["value"] = parts[0].strip()
        for part in parts[1:]:
            if "=" in part:
                key, val = part.split("=", 1)
                result[key.strip().lower()] = val.strip().strip('"')
            elif part.strip():
                result[part.strip().lower()] = ""
        return result


__all__ = ["Headers", "HeaderParser"]
