"""In-process fan-out of room events to live subscribers."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

GAME_STATE = "game.state"
ROOM_DESTROYED = "room.destroyed"

Subscriber = Callable[[str, Dict[str, Any]], None]


class Broadcaster:
    """Fire-and-forget publish; a failing subscriber never reaches the publisher."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, room_id: str, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers[room_id].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(room_id)
                if callbacks and callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(room_id, None)

        return unsubscribe

    def publish(self, room_id: str, event: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(room_id, ()))
        for callback in callbacks:
            try:
                callback(event, payload)
            except Exception:
                logger.exception("Subscriber failed for %s on room %s", event, room_id)

    def subscriber_count(self, room_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(room_id, ()))
