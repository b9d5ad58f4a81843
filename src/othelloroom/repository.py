"""Typed room/game persistence on top of the shared key-value store."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from .models import GameState, RoomMeta, parse_meta
from .store import MemoryStore

logger = logging.getLogger(__name__)

MATCH_QUEUE_KEY = "queue:rooms"


def meta_key(room_id: str) -> str:
    return f"meta:{room_id}"


def game_key(room_id: str) -> str:
    return f"game:{room_id}"


def messages_key(room_id: str) -> str:
    return f"messages:{room_id}"


def invite_key(namespace: str, code: str) -> str:
    return f"invite:{namespace}:{code}"


def ai_lock_key(room_id: str) -> str:
    return f"lock:ai:{room_id}"


class RoomRepository:
    """Key layout and read/modify/write helpers shared by every component."""

    def __init__(self, store: MemoryStore, room_ttl_seconds: int) -> None:
        self.store = store
        self.room_ttl_seconds = room_ttl_seconds

    # ---- room metadata ----

    def load_meta(self, room_id: str) -> Optional[RoomMeta]:
        raw = self.store.hgetall(meta_key(room_id))
        return None if raw is None else parse_meta(raw)

    def create_meta(self, meta: RoomMeta, ttl_seconds: int) -> None:
        key = meta_key(meta.room_id)
        self.store.hset(key, meta.model_dump(mode="json"))
        self.store.expire(key, ttl_seconds)

    def update_meta(self, room_id: str, **fields: Any) -> bool:
        """Field-level write to a live room; False if the room is gone.

        Concurrent writers are last-writer-wins, so only idempotent fields
        (colour resolution) go through here. Token lists use :meth:`add_member`.
        """
        return self.store.hupdate(meta_key(room_id), fields)

    def add_member(
        self, room_id: str, field: str, seen: List[str], token: str
    ) -> bool:
        """Append ``token`` to a token list only if it still equals ``seen``."""
        return self.store.hcompare_and_set(
            meta_key(room_id), field, seen, [*seen, token]
        )

    def room_exists(self, room_id: str) -> bool:
        return self.store.exists(meta_key(room_id))

    def game_exists(self, room_id: str) -> bool:
        return self.store.exists(game_key(room_id))

    # ---- TTL ----

    def meta_ttl(self, room_id: str) -> int:
        return self.store.ttl(meta_key(room_id))

    def remaining_ttl(self, room_id: str) -> Optional[int]:
        """Seconds left on the room, ``None`` when it never expires."""
        ttl = self.store.ttl(meta_key(room_id))
        if ttl == -1:
            return None
        return ttl if ttl > 0 else self.room_ttl_seconds

    def room_keys(self, meta: RoomMeta) -> List[str]:
        keys = [meta_key(meta.room_id), game_key(meta.room_id), messages_key(meta.room_id)]
        keys.extend(invite_key(ns, code) for ns, code in meta.invite_codes())
        return keys

    def apply_room_ttl(self, meta: RoomMeta, seconds: Optional[int]) -> None:
        """Set every room-scoped key to ``seconds``, or clear expiry on ``None``."""
        for key in self.room_keys(meta):
            if seconds is None:
                self.store.persist(key)
            else:
                self.store.expire(key, seconds)

    def refresh_waiting_ttl(self, room_id: str, seconds: int) -> bool:
        """Give a waiting room a bounded lifetime again if it has none left."""
        if self.store.ttl(meta_key(room_id)) > 0:
            return False
        return self.store.expire(meta_key(room_id), seconds)

    def sync_game_ttl(self, room_id: str) -> None:
        remaining = self.remaining_ttl(room_id)
        if remaining is None:
            self.store.persist(game_key(room_id))
        else:
            self.store.expire(game_key(room_id), remaining)

    # ---- game state ----

    def load_game(self, room_id: str) -> Optional[GameState]:
        raw = self.store.get(game_key(room_id))
        return None if raw is None else GameState.model_validate(raw)

    def create_game(self, state: GameState) -> bool:
        """Store a fresh game only if none exists yet."""
        created = self.store.set(
            game_key(state.room_id), state.model_dump(mode="json"), nx=True
        )
        if created:
            self.sync_game_ttl(state.room_id)
        return created

    def replace_game(self, previous: GameState, state: GameState) -> bool:
        """Compare-and-set: write ``state`` only if ``previous`` is still stored."""
        swapped = self.store.compare_and_set(
            game_key(state.room_id),
            previous.model_dump(mode="json"),
            state.model_dump(mode="json"),
        )
        if swapped:
            self.sync_game_ttl(state.room_id)
        return swapped

    # ---- invite codes ----

    def code_taken(self, namespace: str, code: str) -> bool:
        return self.store.exists(invite_key(namespace, code))

    def bind_code(self, namespace: str, code: str, room_id: str, ttl_seconds: int) -> None:
        self.store.set(invite_key(namespace, code), room_id, ex=ttl_seconds)

    def lookup_code(self, namespace: str, code: str) -> Optional[str]:
        return self.store.get(invite_key(namespace, code))

    # ---- matchmaking queue ----

    def enqueue_match(self, room_id: str) -> None:
        self.store.rpush(MATCH_QUEUE_KEY, room_id)

    def pop_match(self) -> Optional[str]:
        return self.store.lpop(MATCH_QUEUE_KEY)

    # ---- AI lock ----

    def acquire_ai_lock(self, room_id: str, owner: str, ttl_seconds: float) -> bool:
        return self.store.set(
            ai_lock_key(room_id), owner, px=int(ttl_seconds * 1000), nx=True
        )

    def extend_ai_lock(self, room_id: str, owner: str, ttl_seconds: float) -> bool:
        return self.store.compare_and_expire(ai_lock_key(room_id), owner, ttl_seconds)

    def release_ai_lock(self, room_id: str, owner: str) -> bool:
        """Drop the lock only if ``owner`` still holds it."""
        return self.store.compare_and_delete(ai_lock_key(room_id), owner)

    # ---- destruction ----

    def delete_room(self, meta: RoomMeta) -> bool:
        """Delete every room key in one atomic step; False if already gone."""
        keys = self.room_keys(meta)
        if not self.store.exists(keys[0]):
            return False
        removed = self.store.delete(*keys)
        logger.debug("Deleted %d keys for room %s", removed, meta.room_id)
        return removed > 0

