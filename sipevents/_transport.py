"""
Datagram transport for the subscription server.

Subscribers reach the service over UDP: a SUBSCRIBE arrives as one datagram
and every answer or NOTIFY leaves as one datagram. Nothing is retransmitted.
"""

from __future__ import annotations

import socket
from typing import Optional, Tuple

from ._types import (
    ReadError,
    TimeoutError,
    TransportAddress,
    TransportConfig,
    TransportError,
    WriteError,
)


class UDPTransport:
    """
    UDP socket bound to ``config.local_host:config.local_port``.

    Binding to port 0 picks a free port; ``config.local_port`` and
    ``local_address`` report it afterwards.

    Example:
        >>> with UDPTransport(TransportConfig("127.0.0.1", 0)) as transport:
        ...     transport.send(b"OPTIONS ...", TransportAddress("127.0.0.1", 5060))
    """

    protocol = "UDP"

    def __init__(self, config: Optional[TransportConfig] = None) -> None:
        self.config = config or TransportConfig()
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.settimeout(self.config.read_timeout)
            sock.bind((self.config.local_host, self.config.local_port))
        except OSError as e:
            raise TransportError(
                f"Cannot bind {self.config.local_host}:{self.config.local_port}: {e}"
            ) from e
        self.config.local_port = sock.getsockname()[1]
        self._socket: Optional[socket.socket] = sock

    @property
    def is_closed(self) -> bool:
        return self._socket is None

    @property
    def local_address(self) -> TransportAddress:
        return TransportAddress(
            host=self.config.local_host,
            port=self.config.local_port,
            protocol=self.protocol,
        )

    def _require_socket(self) -> socket.socket:
        if self._socket is None:
            raise TransportError("Transport is closed")
        return self._socket

    def send(self, data: bytes, destination: TransportAddress) -> None:
        """
        Send one datagram to ``destination``.

        Raises:
            WriteError: If the datagram could not be sent whole
        """
        sock = self._require_socket()
        try:
            sent = sock.sendto(data, (destination.host, destination.port))
        except OSError as e:
            raise WriteError(f"Cannot send to {destination}: {e}") from e
        if sent != len(data):
            raise WriteError(f"Short send to {destination}: {sent} of {len(data)} bytes")

    def receive(
        self, timeout: Optional[float] = None
    ) -> Tuple[bytes, TransportAddress]:
        """
        Wait for one datagram.

        Args:
            timeout: Seconds to wait, the configured read timeout if None

        Raises:
            TimeoutError: If nothing arrived in time
            ReadError: If the socket failed
        """
        sock = self._require_socket()
        sock.settimeout(self.config.read_timeout if timeout is None else timeout)
        try:
            data, (host, port) = sock.recvfrom(self.config.buffer_size)
        except socket.timeout as e:
            raise TimeoutError("No datagram received") from e
        except OSError as e:
            raise ReadError(f"Cannot receive: {e}") from e
        return data, TransportAddress(host=host, port=port, protocol=self.protocol)

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    def __enter__(self) -> UDPTransport:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        status = "closed" if self.is_closed else "open"
        return f"<UDPTransport({self.local_address}, {status})>"


__all__ = ["UDPTransport"]
