"""Thread-safe in-memory key-value store with Redis-style TTL semantics.

Supports the subset of primitives the room layer needs: whole values,
hashes, lists, per-key expiry and an atomic set-if-absent. Values are copied
on the way in and out, so nothing handed to a caller aliases stored state.
"""

from __future__ import annotations

import copy
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

Clock = Callable[[], float]


@dataclass
class _Entry:
    value: Any
    expires_at: Optional[float] = None


class WrongType(TypeError):
    """Raised when a hash/list operation hits a key holding another type."""


class MemoryStore:
    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._data: Dict[str, _Entry] = {}
        self._lock = threading.RLock()

    # ---- internals ----

    def _live(self, key: str) -> Optional[_Entry]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def _typed(self, key: str, kind: type) -> Optional[_Entry]:
        entry = self._live(key)
        if entry is not None and not isinstance(entry.value, kind):
            raise WrongType(f"{key} does not hold a {kind.__name__}")
        return entry

    # ---- strings ----

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._live(key)
            return None if entry is None else copy.deepcopy(entry.value)

    def set(
        self,
        key: str,
        value: Any,
        ex: Optional[float] = None,
        px: Optional[int] = None,
        nx: bool = False,
    ) -> bool:
        """Store ``value``; ``ex`` seconds or ``px`` ms expiry; ``nx`` only if absent."""
        with self._lock:
            if nx and self._live(key) is not None:
                return False
            ttl = ex if ex is not None else (px / 1000.0 if px is not None else None)
            expires_at = None if ttl is None else self._clock() + ttl
            self._data[key] = _Entry(copy.deepcopy(value), expires_at)
            return True

    def compare_and_set(self, key: str, expected: Any, value: Any) -> bool:
        """Replace the value only if it still equals ``expected``; keeps the TTL."""
        with self._lock:
            entry = self._live(key)
            if entry is None or entry.value != expected:
                return False
            entry.value = copy.deepcopy(value)
            return True

    def compare_and_delete(self, key: str, expected: Any) -> bool:
        with self._lock:
            entry = self._live(key)
            if entry is None or entry.value != expected:
                return False
            del self._data[key]
            return True

    def compare_and_expire(self, key: str, expected: Any, seconds: float) -> bool:
        """Re-arm the expiry only while the key still holds ``expected``."""
        with self._lock:
            entry = self._live(key)
            if entry is None or entry.value != expected:
                return False
            entry.expires_at = self._clock() + seconds
            return True

    # ---- hashes ----

    def hget(self, key: str, field: str) -> Any:
        with self._lock:
            entry = self._typed(key, dict)
            if entry is None:
                return None
            return copy.deepcopy(entry.value.get(field))

    def hgetall(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._typed(key, dict)
            return None if entry is None else copy.deepcopy(entry.value)

    def hset(self, key: str, mapping: Mapping[str, Any]) -> int:
        """Set hash fields, returning how many were newly added."""
        with self._lock:
            entry = self._typed(key, dict)
            if entry is None:
                entry = self._data[key] = _Entry({})
            added = sum(1 for f in mapping if f not in entry.value)
            entry.value.update(copy.deepcopy(dict(mapping)))
            return added

    def hupdate(self, key: str, mapping: Mapping[str, Any]) -> bool:
        """Like :meth:`hset` but never creates the hash."""
        with self._lock:
            entry = self._typed(key, dict)
            if entry is None:
                return False
            entry.value.update(copy.deepcopy(dict(mapping)))
            return True

    def hcompare_and_set(self, key: str, field: str, expected: Any, value: Any) -> bool:
        """Set one hash field only if it still equals ``expected``; never creates."""
        with self._lock:
            entry = self._typed(key, dict)
            if entry is None or entry.value.get(field) != expected:
                return False
            entry.value[field] = copy.deepcopy(value)
            return True

    # ---- lists ----

    def rpush(self, key: str, *values: Any) -> int:
        with self._lock:
            entry = self._typed(key, list)
            if entry is None:
                entry = self._data[key] = _Entry([])
            entry.value.extend(copy.deepcopy(list(values)))
            return len(entry.value)

    def lpop(self, key: str) -> Any:
        with self._lock:
            entry = self._typed(key, list)
            if entry is None:
                return None
            value = entry.value.pop(0)
            if not entry.value:
                del self._data[key]
            return value

    def lrange(self, key: str, start: int, stop: int) -> List[Any]:
        """Inclusive ``stop``; negative indices count from the end."""
        with self._lock:
            entry = self._typed(key, list)
            if entry is None:
                return []
            items = entry.value
            end = len(items) + stop + 1 if stop < 0 else stop + 1
            if start < 0:
                start = max(0, len(items) + start)
            return copy.deepcopy(items[start:end])

    # ---- keys & expiry ----

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(key) is not None

    def delete(self, *keys: str) -> int:
        """Remove all ``keys`` in one step; returns how many existed."""
        with self._lock:
            removed = 0
            for key in keys:
                if self._live(key) is not None:
                    del self._data[key]
                    removed += 1
            return removed

    def ttl(self, key: str) -> int:
        """-2 if missing, -1 if no expiry, else remaining whole seconds."""
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return -2
            if entry.expires_at is None:
                return -1
            return max(0, math.ceil(entry.expires_at - self._clock()))

    def expire(self, key: str, seconds: float) -> bool:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return False
            if seconds <= 0:
                del self._data[key]
                return True
            entry.expires_at = self._clock() + seconds
            return True

    def persist(self, key: str) -> bool:
        with self._lock:
            entry = self._live(key)
            if entry is None or entry.expires_at is None:
                return False
            entry.expires_at = None
            return True

    def keys(self) -> List[str]:
        with self._lock:
            return [k for k in list(self._data) if self._live(k) is not None]
