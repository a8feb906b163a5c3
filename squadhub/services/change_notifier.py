"""
Change notification bridge.

Keeps handlers subscribed per topic and fires them (with no payload) when
a write to the matching rows is published. Subscribers re-read whatever
they display; the bridge never carries row data.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[], Awaitable[None]]
Unsubscribe = Callable[[], Awaitable[None]]


def queue_topic(game_mode: str) -> str:
    """Topic for writes to queue_entries rows of one game mode."""
    return f"queue_entries:game_mode={game_mode}"


class ChangeNotifier:
    """Routes change events from writers to interested observers."""

    def __init__(self):
        """Initialize the notifier."""
        # Dictionary mapping topic to set of subscribed handlers
        self.subscribers: Dict[str, Set[ChangeHandler]] = {}
        # Lock for safe access to the subscribers dict
        self._lock = asyncio.Lock()

    async def subscribe(self, topic: str, handler: ChangeHandler) -> Unsubscribe:
        """
        Register a handler for a topic.

        Args:
            topic: Topic filter, e.g. queue_topic("competitive")
            handler: Coroutine function called with no arguments on every change

        Returns:
            Coroutine function that removes the subscription
        """
        async with self._lock:
            if topic not in self.subscribers:
                self.subscribers[topic] = set()
            self.subscribers[topic].add(handler)
            logger.info(f"Subscribed to {topic} (total subscribers: {len(self.subscribers[topic])})")

        async def unsubscribe() -> None:
            await self.unsubscribe(topic, handler)

        return unsubscribe

    async def unsubscribe(self, topic: str, handler: ChangeHandler) -> None:
        """
        Remove a handler from a topic. Unknown handlers are ignored.

        Args:
            topic: Topic filter
            handler: Previously subscribed handler
        """
        async with self._lock:
            if topic in self.subscribers:
                self.subscribers[topic].discard(handler)
                # Clean up empty sets
                if not self.subscribers[topic]:
                    del self.subscribers[topic]
            logger.info(f"Unsubscribed from {topic}")

    async def publish(self, topic: str) -> int:
        """
        Notify every handler subscribed to a topic.

        Handlers run outside the lock so they may (un)subscribe themselves.
        A handler that raises is dropped from the topic.

        Args:
            topic: Topic that changed

        Returns:
            Number of handlers that ran successfully
        """
        async with self._lock:
            if topic not in self.subscribers:
                return 0
            handlers = self.subscribers[topic].copy()

        delivered = 0
        failed_handlers = []
        for handler in handlers:
            try:
                await handler()
                delivered += 1
            except Exception as e:
                logger.warning(f"Change handler for {topic} failed, dropping it: {e}")
                failed_handlers.append(handler)

        if failed_handlers:
            async with self._lock:
                if topic in self.subscribers:
                    for handler in failed_handlers:
                        self.subscribers[topic].discard(handler)
                    if not self.subscribers[topic]:
                        del self.subscribers[topic]

        return delivered

    async def get_subscriber_count(self, topic: str) -> int:
        """
        Get the number of handlers subscribed to a topic.

        Args:
            topic: Topic filter

        Returns:
            Number of subscribed handlers
        """
        async with self._lock:
            if topic not in self.subscribers:
                return 0
            return len(self.subscribers[topic])


# Global notifier instance
_change_notifier: Optional[ChangeNotifier] = None


def get_change_notifier() -> ChangeNotifier:
    """
    Get the global change notifier instance.

    Returns:
        ChangeNotifier instance
    """
    global _change_notifier
    if _change_notifier is None:
        _change_notifier = ChangeNotifier()
    return _change_notifier
