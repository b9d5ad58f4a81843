"""Debounced background driver for AI turns."""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Dict, Optional

from .config import Settings
from .coordinator import GameCoordinator
from .repository import RoomRepository

logger = logging.getLogger(__name__)


class AiScheduler:
    """One cancellable timer per room; each firing runs under the room's AI lock.

    The lock holds an owner token and is renewed while a search runs, so a
    deep search never outlives it and one firing cannot release another's.
    """

    def __init__(
        self,
        coordinator: GameCoordinator,
        repository: RoomRepository,
        delay: float = Settings.ai_move_delay,
        lock_ttl: float = Settings.ai_lock_ttl,
        guard: int = Settings.ai_loop_guard,
    ) -> None:
        self.coordinator = coordinator
        self.repository = repository
        self.delay = delay
        self.lock_ttl = lock_ttl
        self.guard = guard
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def schedule(self, room_id: str, delay: Optional[float] = None) -> None:
        """(Re)arm the room's timer, replacing any pending one."""
        wait = self.delay if delay is None else delay
        timer = threading.Timer(max(0.0, wait), self._fire, args=(room_id,))
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(room_id, None)
            if previous is not None:
                previous.cancel()
            self._timers[room_id] = timer
        timer.start()

    def pending(self, room_id: str) -> bool:
        with self._lock:
            return room_id in self._timers

    def _fire(self, room_id: str) -> None:
        with self._lock:
            if self._timers.get(room_id) is threading.current_thread():
                del self._timers[room_id]
        try:
            self.step(room_id)
        except Exception:
            logger.exception("AI step failed for room %s", room_id)

    def _keep_lock(self, room_id: str, owner: str, done: threading.Event) -> None:
        while not done.wait(self.lock_ttl / 3):
            if not self.repository.extend_ai_lock(room_id, owner, self.lock_ttl):
                logger.warning("AI lock for room %s was lost mid-search", room_id)
                return

    def step(self, room_id: str) -> int:
        """Run one locked AI firing; returns transitions applied (0 if skipped)."""
        owner = uuid.uuid4().hex
        if not self.repository.acquire_ai_lock(room_id, owner, self.lock_ttl):
            logger.debug("AI lock for room %s is held; skipping", room_id)
            return 0

        done = threading.Event()
        keeper = threading.Thread(
            target=self._keep_lock, args=(room_id, owner, done), daemon=True
        )
        keeper.start()
        try:
            return self.coordinator.advance_ai(room_id, guard=self.guard)
        finally:
            done.set()
            keeper.join()
            self.repository.release_ai_lock(room_id, owner)

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
