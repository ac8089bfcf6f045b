"""Command-line entry point running the subscription server.

Binds a UDP socket, serves message-summary and dialog subscriptions and reads
operator commands from stdin:

    list            show all subscriptions and their remaining lifetime
    mwi MAILBOX     re-read a mailbox, watchers are notified on the next sweep
    quit            stop the server
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from ._events import MailboxUpdateEvent
from ._router import LIST_COMMAND
from ._server import SubscriptionServer
from ._types import SubscriptionConfig, TransportConfig, TransportError
from ._utils import DEFAULT_EXPIRES, MAX_EXPIRES, MIN_EXPIRES, TIMER_INTERVAL

CONSOLE = Console()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sipevents",
        description="Serve SIP message-summary and dialog subscriptions",
    )
    parser.add_argument("host", nargs="?", default="0.0.0.0", help="Local address to bind")
    parser.add_argument("port", nargs="?", type=int, default=5060, help="Local UDP port")
    parser.add_argument(
        "--voicemail-dir",
        default="/var/spool/voicemail",
        help="Voicemail spool holding one folder per mailbox",
    )
    parser.add_argument("--min-expires", type=int, default=MIN_EXPIRES)
    parser.add_argument("--max-expires", type=int, default=MAX_EXPIRES)
    parser.add_argument("--default-expires", type=int, default=DEFAULT_EXPIRES)
    parser.add_argument(
        "--timer-interval",
        type=float,
        default=TIMER_INTERVAL,
        help="Seconds between expiry sweeps",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices={"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"},
        help="Logging verbosity",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Shortcut for --log-level=DEBUG",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Do not print SIP messages on the console",
    )
    return parser


def _configure_logging(level: str, debug: bool) -> None:
    effective_level = "DEBUG" if debug else level
    logging.basicConfig(
        level=getattr(logging, effective_level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[
            RichHandler(
                console=CONSOLE,
                rich_tracebacks=True,
                show_path=False,
            )
        ],
        force=True,
    )


def run_command(server: SubscriptionServer, line: str) -> Optional[str]:
    """
    Execute one operator command.

    Returns:
        Text to show, or None for an unknown command
    """
    words = line.split()
    if not words:
        return ""
    if words[0] == "list" or line.strip() == LIST_COMMAND:
        return server.query(LIST_COMMAND)
    if words[0] == "mwi" and len(words) == 2:
        server.post(MailboxUpdateEvent(words[1]))
        return f"Queued update for mailbox {words[1]}"
    return None


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _configure_logging(args.log_level, args.debug)

    subscription_config = SubscriptionConfig(
        min_expires=args.min_expires,
        max_expires=args.max_expires,
        default_expires=args.default_expires,
        timer_interval=args.timer_interval,
        voicemail_dir=args.voicemail_dir,
    )
    try:
        server = SubscriptionServer(
            config=TransportConfig(local_host=args.host, local_port=args.port),
            subscription_config=subscription_config,
            show_messages=not args.quiet,
        )
    except TransportError as exc:
        logging.error(f"Cannot start server: {exc}")
        return 1

    with server:
        CONSOLE.print(
            Panel.fit(
                f"Listening on [bold]{server.local_address}[/]\n"
                f"Voicemail spool: {args.voicemail_dir}\n"
                "Commands: list, mwi MAILBOX, quit",
                title="sipevents",
                border_style="green",
            )
        )
        try:
            for line in sys.stdin:
                line = line.strip()
                if line in ("quit", "exit"):
                    break
                output = run_command(server, line)
                if output is None:
                    CONSOLE.print(f"[red]Unknown command:[/] {line}")
                elif output:
                    CONSOLE.print(output.rstrip())
        except KeyboardInterrupt:
            pass

    logging.info("Server finished")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
