"""
Voicemail store access.

The mailbox subscription only needs message counts. ``SpoolVoicemailStore``
reads them from a spool directory holding one folder per mailbox, where
unread messages are stored as ``nvm-*`` files and read ones as ``vm-*``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Union

from ._utils import logger


@dataclass(frozen=True)
class MailboxStats:
    """Message counts of one mailbox."""

    total: int = 0
    unread: int = 0


class VoicemailStore(Protocol):
    """Anything able to report message counts for a mailbox."""

    def stat(self, mailbox: str) -> MailboxStats: ...


class SpoolVoicemailStore:
    """Voicemail store backed by a spool directory."""

    NEW_PREFIX = "nvm-"
    OLD_PREFIX = "vm-"

    def __init__(self, base: Union[str, Path] = "/var/spool/voicemail") -> None:
        self.base = Path(base)

    def directory_for(self, mailbox: str) -> Path:
        """Return the folder holding ``mailbox``; override for other layouts."""
        return self.base / mailbox

    def stat(self, mailbox: str) -> MailboxStats:
        """
        Count messages in a mailbox.

        A missing or unreadable folder counts as an empty mailbox.
        """
        folder = self.directory_for(mailbox)
        new = old = 0
        try:
            for entry in folder.iterdir():
                if entry.name.startswith(self.NEW_PREFIX):
                    new += 1
                elif entry.name.startswith(self.OLD_PREFIX):
                    old += 1
        except FileNotFoundError:
            logger.debug(f"No voicemail folder for {mailbox} at {folder}")
        except OSError as e:
            logger.warning(f"Cannot read voicemail folder {folder}: {e}")
        return MailboxStats(total=new + old, unread=new)


__all__ = ["MailboxStats", "VoicemailStore", "SpoolVoicemailStore"]
