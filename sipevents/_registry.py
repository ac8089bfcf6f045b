"""
Subscription registry.

One registry holds the subscriptions of one event package, indexed by
``Subscription.index``. Updates are matched on the resource key instead, so
every watcher of a mailbox or call receives the same update.
"""

from __future__ import annotations

from typing import Iterator, Optional

from ._events import DialogUpdateEvent
from ._subscription import Subscription
from ._utils import EOL, logger


class SubscriptionRegistry:
    """In-memory store of the active subscriptions of an event package."""

    def __init__(self, event: str) -> None:
        self.event = event
        self._items: dict[str, Subscription] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Subscription]:
        return iter(list(self._items.values()))

    def __contains__(self, index: object) -> bool:
        return index in self._items

    def get(self, index: str) -> Optional[Subscription]:
        return self._items.get(index)

    def upsert(self, subscription: Subscription) -> None:
        """Store a subscription, replacing any previous one with the same index."""
        if subscription.index in self._items:
            logger.debug(f"Replacing subscription {subscription.index}")
        self._items[subscription.index] = subscription

    def remove(self, index: str) -> Optional[Subscription]:
        return self._items.pop(index, None)

    def find(self, key: str) -> list[Subscription]:
        """Return all subscriptions watching the resource ``key``."""
        return [item for item in self._items.values() if item.resource_key == key]

    def update_all(
        self,
        key: Optional[str],
        update: Optional[DialogUpdateEvent] = None,
        correlation_id: Optional[str] = None,
    ) -> int:
        """
        Re-render every subscription watching ``key``.

        Returns:
            Number of subscriptions updated
        """
        if not key:
            return 0
        count = 0
        for item in self.find(key):
            item.render(update, correlation_id)
            count += 1
        logger.debug(f"Updated {count} subscriptions for {key!r}")
        return count

    def flush_all(self) -> int:
        """Send all pending NOTIFYs, returns how many were sent."""
        return sum(1 for item in list(self._items.values()) if item.flush())

    def expire_sweep(self, now: float) -> list[Subscription]:
        """
        Expire subscriptions whose lifetime is over.

        Each expired subscription sends its final NOTIFY and is removed.

        Returns:
            The removed subscriptions
        """
        expired = [item for item in list(self._items.values()) if item.check_expiry(now)]
        for item in expired:
            # Only drop the entry if it was not replaced meanwhile
            if self._items.get(item.index) is item:
                del self._items[item.index]
        if expired:
            logger.debug(f"Expired {len(expired)} {self.event} subscriptions")
        return expired

    def dump(self, now: float) -> str:
        """List every subscription with its remaining lifetime."""
        return "".join(
            f"{item.index} expires in {item.remaining(now)}{EOL}"
            for item in list(self._items.values())
        )

    def __repr__(self) -> str:
        return f"<SubscriptionRegistry {self.event!r} ({len(self)})>"


__all__ = ["SubscriptionRegistry"]
