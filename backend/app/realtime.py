"""In-process fan-out of new messages to connected WebSocket clients.

Each open ``/realtime/messages`` socket subscribes a queue under its user
id. When a message row is committed, ``publish`` puts it on every queue of
the sender and the recipient. Delivery is best effort: a subscriber that
is not connected simply misses the push and picks the message up on its
next list request.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any

logger = logging.getLogger(__name__)


class MessageBroker:
    def __init__(self) -> None:
        self._subscribers: dict[int, set[asyncio.Queue[dict[str, Any]]]] = defaultdict(set)

    def subscribe(self, user_id: int) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._subscribers[user_id].add(queue)
        logger.debug("User %s subscribed to messages", user_id)
        return queue

    def unsubscribe(self, user_id: int, queue: asyncio.Queue[dict[str, Any]]) -> None:
        queues = self._subscribers.get(user_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[user_id]

    def subscriber_count(self, user_id: int) -> int:
        return len(self._subscribers.get(user_id, ()))

    def publish(self, event: dict[str, Any], *user_ids: int) -> None:
        """Queue ``event`` for every socket of the given users."""
        for user_id in set(user_ids):
            for queue in self._subscribers.get(user_id, ()):
                queue.put_nowait(event)


broker = MessageBroker()
