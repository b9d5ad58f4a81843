"""Runtime settings read from ``OTHELLOROOM_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

ENV_PREFIX = "OTHELLOROOM_"


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    room_ttl_seconds: int = 60 * 10
    waiting_room_ttl_seconds: int = 60 * 60
    spectator_capacity: int = 10
    ai_move_delay: float = 0.85
    ai_lock_ttl: float = 2.5
    ai_loop_guard: int = 6
    invite_code_attempts: int = 6
    match_queue_attempts: int = 8

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        def read(name: str, default, cast=str):
            raw = env.get(ENV_PREFIX + name)
            return default if raw is None or raw == "" else cast(raw)

        base = cls()
        return cls(
            host=read("HOST", base.host),
            port=read("PORT", base.port, int),
            log_level=read("LOG_LEVEL", base.log_level).upper(),
            room_ttl_seconds=read("ROOM_TTL", base.room_ttl_seconds, int),
            waiting_room_ttl_seconds=read(
                "WAITING_ROOM_TTL", base.waiting_room_ttl_seconds, int
            ),
            spectator_capacity=read(
                "SPECTATOR_CAPACITY", base.spectator_capacity, int
            ),
            ai_move_delay=read("AI_DELAY", base.ai_move_delay, float),
            ai_lock_ttl=read("AI_LOCK_TTL", base.ai_lock_ttl, float),
            ai_loop_guard=read("AI_LOOP_GUARD", base.ai_loop_guard, int),
            invite_code_attempts=read(
                "INVITE_CODE_ATTEMPTS", base.invite_code_attempts, int
            ),
            match_queue_attempts=read(
                "MATCH_QUEUE_ATTEMPTS", base.match_queue_attempts, int
            ),
        )
