"""
SIP URI parsing for subscription targets.

Only what the subscription service needs: splitting a SIP URI into its
parts, unwrapping name-addr values and pulling the resource key out of a
request URI.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_URI_RE = re.compile(
    r"^(?P<scheme>[a-zA-Z][a-zA-Z0-9+\-.]*):"
    r"(?:(?P<user>[^:@;]+)(?::(?P<password>[^@;]*))?@)?"
    r"(?P<host>\[[^\]]+\]|[^;?:]+)"
    r"(?::(?P<port>\d+))?"
    r"(?:;(?P<params>[^?]*))?"
    r"(?:\?(?P<headers>.*))?$"
)

# Mailboxes may be addressed as vm-NUMBER (or anything-NUMBER)
_TAG_PREFIX_RE = re.compile(r"^[a-z]*-")

_NAME_ADDR_RE = re.compile(r"<([^<>]+)>")


@dataclass
class SipURI:
    """A parsed SIP URI."""

    scheme: str
    user: Optional[str]
    host: str
    port: Optional[int] = None
    params: Optional[str] = None
    headers: Optional[str] = None

    @classmethod
    def parse(cls, uri: str) -> SipURI:
        """
        Parse a SIP URI such as ``sip:vm-123@pbx.example.com:5060;transport=udp``.

        Angle brackets around the URI are accepted and removed.

        Raises:
            ValueError: If the text is not a URI
        """
        m = _URI_RE.match(extract_uri(uri))
        if not m:
            raise ValueError(f"Invalid SIP URI: {uri!r}")
        gd = m.groupdict()
        return cls(
            scheme=gd["scheme"].lower(),
            user=gd["user"],
            host=gd["host"],
            port=int(gd["port"]) if gd["port"] else None,
            params=gd["params"],
            headers=gd["headers"],
        )

    @property
    def resource_key(self) -> Optional[str]:
        """User part with an optional ``tag-`` prefix removed."""
        if not self.user:
            return None
        key = _TAG_PREFIX_RE.sub("", self.user, count=1)
        return key or self.user

    def __str__(self) -> str:
        text = f"{self.scheme}:"
        if self.user:
            text += f"{self.user}@"
        text += self.host
        if self.port:
            text += f":{self.port}"
        if self.params:
            text += f";{self.params}"
        if self.headers:
            text += f"?{self.headers}"
        return text


def extract_uri(value: str) -> str:
    """
    Return the URI inside a name-addr, or the value itself.

    Example:
        >>> extract_uri('"Bob" <sip:bob@biloxi.com>;tag=1928')
        'sip:bob@biloxi.com'
        >>> extract_uri("sip:bob@biloxi.com")
        'sip:bob@biloxi.com'
    """
    value = value.strip()
    m = _NAME_ADDR_RE.search(value)
    if m:
        return m.group(1).strip()
    return value


def resource_key(uri: Optional[str]) -> Optional[str]:
    """
    Extract the subscribed resource from a request URI.

    The key is the identifier before ``@``, after an optional lowercase
    ``tag-`` prefix. Returns None when the URI carries no user part.

    Example:
        >>> resource_key("sip:vm-123@pbx.local")
        '123'
        >>> resource_key("sip:pbx.local") is None
        True
    """
    if not uri:
        return None
    try:
        return SipURI.parse(uri).resource_key
    except ValueError:
        return None


__all__ = ["SipURI", "extract_uri", "resource_key"]
