"""
SIP subscription server.

Binds the event router to a UDP socket: SUBSCRIBE requests are answered and
turned into subscriptions, NOTIFY events are sent back to the subscribers,
and the expiry sweep is driven from the same loop.
"""

from __future__ import annotations

import queue
import threading
import time
import uuid
from concurrent.futures import Future
from typing import Callable, Dict, Optional

from ._events import (
    DiagnosticQuery,
    InboundEvent,
    NotifyEvent,
    SubscribeEvent,
    TimerTick,
)
from ._models._header import HeaderParser
from ._models._message import MessageParser, Request, Response
from ._router import LIST_COMMAND, EventRouter
from ._transport import UDPTransport
from ._types import (
    InvalidEventError,
    SubscriptionConfig,
    TimeoutError,
    TransportAddress,
    TransportConfig,
    TransportError,
)
from ._uri import resource_key
from ._utils import EVENT_PACKAGES, console, logger
from ._voicemail import SpoolVoicemailStore, VoicemailStore

ALLOW = "SUBSCRIBE,NOTIFY,OPTIONS"


class SubscriptionServer:
    """
    UDP endpoint serving message-summary and dialog subscriptions.

    A single background thread receives requests, handles events posted by
    other threads through ``post()`` and emits timer ticks, so the router is
    only ever touched from that thread.

    Example:
        >>> with SubscriptionServer(local_port=5060) as server:
        ...     server.post(MailboxUpdateEvent("123"))
    """

    def __init__(
        self,
        local_host: str = "0.0.0.0",
        local_port: int = 5060,
        *,
        store: Optional[VoicemailStore] = None,
        config: Optional[TransportConfig] = None,
        subscription_config: Optional[SubscriptionConfig] = None,
        show_messages: bool = True,
    ):
        self.config = config or TransportConfig(
            local_host=local_host,
            local_port=local_port,
        )
        self.subscription_config = subscription_config or SubscriptionConfig()
        self.show_messages = show_messages

        self._transport = UDPTransport(self.config)
        self.router = EventRouter(
            self.send_notify,
            store or SpoolVoicemailStore(self.subscription_config.voicemail_dir),
            config=self.subscription_config,
        )

        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._events: queue.Queue[InboundEvent] = queue.Queue()
        self._handlers: Dict[str, Callable[[Request, TransportAddress], Response]] = {}

        self._register_default_handlers()

    def _register_default_handlers(self) -> None:
        self.register_handler("SUBSCRIBE", self._handle_subscribe)
        self.register_handler("OPTIONS", self._handle_options)

    def register_handler(
        self,
        method: str,
        handler: Callable[[Request, TransportAddress], Response],
    ) -> None:
        """Register a handler returning the response for a SIP method."""
        self._handlers[method.upper()] = handler

    @property
    def local_address(self) -> TransportAddress:
        return self._transport.local_address

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    def _handle_subscribe(self, request: Request, source: TransportAddress) -> Response:
        """Answer a SUBSCRIBE and queue it for the router."""
        accept = request.headers.get("Accept")
        if not self.router.is_supported(request.event, accept):
            logger.info(f"Bad event {request.event!r} ({accept}) from {source.host}")
            return Response.for_request(
                request,
                489,
                extra={
                    "Allow-Events": ",".join(EVENT_PACKAGES),
                    "Accept": ",".join(EVENT_PACKAGES.values()),
                },
            )

        if not resource_key(request.uri):
            return Response.for_request(request, 404)

        to_header = request.to_header or ""
        tag = HeaderParser.parse_params(to_header).get("tag")
        if not tag:
            tag = uuid.uuid4().hex[:8]
            to_header = f"{to_header};tag={tag}"

        try:
            event = SubscribeEvent.from_request(request, source, dialog_tag=tag)
        except InvalidEventError as e:
            logger.info(f"Bad SUBSCRIBE from {source.host}: {e}")
            return Response.for_request(request, 400)

        granted = self.subscription_config.clamp_expires(request.expires)
        self.post(event)
        return Response.for_request(
            request,
            200,
            to_header=to_header,
            extra={
                "Contact": f"<{request.uri}>",
                "Expires": str(granted),
            },
        )

    def _handle_options(self, request: Request, source: TransportAddress) -> Response:
        return Response.for_request(
            request,
            200,
            extra={
                "Allow": ALLOW,
                "Allow-Events": ",".join(EVENT_PACKAGES),
            },
        )

    def handle_request(
        self, request: Request, source: TransportAddress
    ) -> Optional[Response]:
        """Return the response for ``request``, None for ACK."""
        if request.method == "ACK":
            return None
        handler = self._handlers.get(request.method)
        if handler is None:
            return Response.for_request(request, 501)
        return handler(request, source)

    def handle_datagram(self, data: bytes, source: TransportAddress) -> None:
        """Parse one datagram, answer requests and log responses."""
        try:
            message = MessageParser.parse(data)
        except ValueError as e:
            logger.debug(f"Unparsable datagram from {source}: {e}")
            return

        if isinstance(message, Response):
            # Answers to our NOTIFYs, nothing to retransmit
            logger.debug(
                f"NOTIFY answered {message.status_code} {message.reason_phrase} "
                f"by {source.host}:{source.port}"
            )
            return

        if self.show_messages:
            console.print(
                f"\n[bold cyan]<<< RECEIVED {message.method} from {source.host}:{source.port}[/bold cyan]"
            )
            console.print(message.to_string())

        response = self.handle_request(message, source)
        if response is None:
            return

        if self.show_messages:
            console.print(
                f"\n[bold green]>>> SENDING {response.status_code} {response.reason_phrase} to {source.host}:{source.port}[/bold green]"
            )
        try:
            self._transport.send(response.to_bytes(), source)
        except TransportError as e:
            logger.error(f"Failed to answer {message.method}: {e}")

    # ------------------------------------------------------------------
    # NOTIFY delivery
    # ------------------------------------------------------------------

    def send_notify(self, notify: NotifyEvent) -> None:
        """Send a NOTIFY; failures are logged and not retried."""
        request = notify.to_request(local=self.local_address)
        if self.show_messages:
            console.print(
                f"\n[bold magenta]>>> SENDING NOTIFY ({notify.event}, {notify.subscription_state}) to {notify.host}:{notify.port}[/bold magenta]"
            )
            console.print(request.to_string())
        try:
            self._transport.send(request.to_bytes(), notify.destination)
        except TransportError as e:
            logger.error(f"Failed to send NOTIFY to {notify.destination}: {e}")

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    def post(self, event: InboundEvent) -> None:
        """Queue an event for the server thread. Safe from any thread."""
        self._events.put(event)

    def process_pending(self) -> int:
        """Handle all queued events, returns how many were handled."""
        count = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return count
            reply = event.reply if isinstance(event, DiagnosticQuery) else None
            try:
                result = self.router.handle(event)
            except Exception as e:
                logger.exception(f"Error handling {type(event).__name__}")
                if reply is not None:
                    reply.set_exception(e)
            else:
                if reply is not None:
                    reply.set_result(result)
            count += 1

    def query(self, line: str = LIST_COMMAND, timeout: float = 5.0) -> Optional[str]:
        """
        Run a diagnostic command on the server thread and wait for the answer.

        Without a running server thread the queue is drained here instead.

        Raises:
            concurrent.futures.TimeoutError: If no answer came in ``timeout``
        """
        query = DiagnosticQuery(line, reply=Future())
        self.post(query)
        if not self._running:
            self.process_pending()
        return query.reply.result(timeout)

    def tick(self, now: Optional[float] = None) -> bool:
        """Run the expiry sweep if it is due."""
        return self.router.on_timer(TimerTick(time.time() if now is None else now))

    def start(self) -> None:
        """Start the server in a background thread."""
        if self._running:
            logger.warning("Server already running")
            return

        self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        logger.info(f"Subscription server started on {self.local_address}")

    def stop(self) -> None:
        """Stop the server."""
        if not self._running:
            self._transport.close()
            return

        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)

        self._transport.close()
        logger.info("Subscription server stopped")

    def _run(self) -> None:
        """Main server loop - runs in background thread."""
        while self._running:
            try:
                data, source = self._transport.receive(timeout=self.config.read_timeout)
                self.handle_datagram(data, source)
            except TimeoutError:
                pass
            except TransportError as e:
                if self._running:
                    logger.debug(f"Server loop error: {e}")
            except Exception:
                logger.exception("Error handling datagram")

            self.process_pending()
            self.tick()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False


__all__ = ["SubscriptionServer"]
