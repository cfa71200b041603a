"""
Live snapshots

Clients subscribe to one of their collections and receive the full, freshly
derived list every time it changes. Publishing is fire-and-forget: a slow
subscriber only ever holds the latest snapshot.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Set, Tuple

logger = logging.getLogger("finance-tracker")

COLLECTIONS = ("transactions", "cards", "subscriptions", "budgets", "goals")

Key = Tuple[int, str]


class SnapshotHub:
    def __init__(self):
        self._subscribers: Dict[Key, Set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, user_id: int, collection: str) -> asyncio.Queue:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection!r}")
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._subscribers[(user_id, collection)].add(queue)
        logger.debug("Subscribed user %s to %s", user_id, collection)
        return queue

    def unsubscribe(self, user_id: int, collection: str, queue: asyncio.Queue) -> None:
        key = (user_id, collection)
        queues = self._subscribers.get(key)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[key]
        logger.debug("Unsubscribed user %s from %s", user_id, collection)

    def has_subscribers(self, user_id: int, collection: str) -> bool:
        return bool(self._subscribers.get((user_id, collection)))

    def publish(self, user_id: int, collection: str, snapshot: Any) -> int:
        """Hand ``snapshot`` to every subscriber, replacing any one not yet consumed."""
        queues = self._subscribers.get((user_id, collection), ())
        for queue in queues:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(snapshot)
        return len(queues)


hub = SnapshotHub()
