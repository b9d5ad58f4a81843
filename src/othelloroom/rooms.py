"""Room creation, invite codes, matchmaking and admission policy."""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from . import errors
from .config import Settings
from .models import (
    AiRoomConfig,
    AiRoomMeta,
    InviteRoomConfig,
    InviteRoomMeta,
    MatchRoomMeta,
    Role,
    RoomMeta,
)
from .randomness import RandomSource
from .realtime import ROOM_DESTROYED, Broadcaster
from .repository import RoomRepository

logger = logging.getLogger(__name__)

INVITE_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
INVITE_CODE_LENGTH = 6
_CODE_PATTERN = re.compile(r"^[0-9A-Z]{%d}$" % INVITE_CODE_LENGTH)
ADMIT_ATTEMPTS = 5


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def is_code_format(code: str) -> bool:
    return bool(_CODE_PATTERN.match(code))


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CreatedRoom:
    room_id: str
    invite_code: Optional[str] = None
    spectator_code: Optional[str] = None


@dataclass(frozen=True)
class Admission:
    role: Role
    meta: RoomMeta
    # True only for the join that crossed the playability threshold.
    became_playable: bool = False


class RoomRegistry:
    def __init__(
        self,
        repository: RoomRepository,
        broadcaster: Broadcaster,
        settings: Settings,
        rng: Optional[RandomSource] = None,
    ) -> None:
        self.repository = repository
        self.broadcaster = broadcaster
        self.settings = settings
        self.rng = rng or RandomSource()

    # ---- creation ----

    def _unique_code(self, namespace: str) -> str:
        for _ in range(self.settings.invite_code_attempts):
            code = self.rng.code(INVITE_ALPHABET, INVITE_CODE_LENGTH)
            if not self.repository.code_taken(namespace, code):
                return code
        # 36**6 codes; a seventh collision in a row is not worth failing over.
        return self.rng.code(INVITE_ALPHABET, INVITE_CODE_LENGTH)

    def _ttl_from(self, config: Any) -> Optional[int]:
        return config.ttl_seconds if config.ttl_was_given else self.settings.room_ttl_seconds

    def create_invite_room(self, config: InviteRoomConfig) -> CreatedRoom:
        waiting = self.settings.waiting_room_ttl_seconds
        meta = InviteRoomMeta(
            room_id=uuid.uuid4().hex,
            created_at=_now_ms(),
            ttl_seconds=self._ttl_from(config),
            handicap=config.handicap,
            invite_code=self._unique_code("player"),
            spectator_code=(
                self._unique_code("spectator") if config.allow_spectators else None
            ),
            allow_spectators=config.allow_spectators,
            spectator_can_view_chat=config.spectator_can_view_chat,
            spectator_can_send_chat=config.spectator_can_send_chat,
            host_color=config.host_color,
        )
        self.repository.create_meta(meta, waiting)
        for namespace, code in meta.invite_codes():
            self.repository.bind_code(namespace, code, meta.room_id, waiting)

        logger.info(
            "Created invite room %s (spectators=%s, ttl=%s)",
            meta.room_id,
            meta.allow_spectators,
            meta.ttl_seconds,
        )
        return CreatedRoom(meta.room_id, meta.invite_code, meta.spectator_code)

    def create_ai_room(self, config: AiRoomConfig) -> CreatedRoom:
        meta = AiRoomMeta(
            room_id=uuid.uuid4().hex,
            created_at=_now_ms(),
            ttl_seconds=self._ttl_from(config),
            handicap=config.handicap,
            ai_level=config.ai_level,
            human_plays=config.human_plays,
        )
        self.repository.create_meta(meta, self.settings.waiting_room_ttl_seconds)
        logger.info("Created AI room %s (level=%s)", meta.room_id, meta.ai_level)
        return CreatedRoom(meta.room_id)

    def _create_match_room(self) -> str:
        meta = MatchRoomMeta(
            room_id=uuid.uuid4().hex,
            created_at=_now_ms(),
            ttl_seconds=self.settings.room_ttl_seconds,
        )
        self.repository.create_meta(meta, self.settings.waiting_room_ttl_seconds)
        self.repository.enqueue_match(meta.room_id)
        logger.info("Created match room %s", meta.room_id)
        return meta.room_id

    # ---- lookup ----

    def get_meta(self, room_id: str) -> RoomMeta:
        meta = self.repository.load_meta(room_id)
        if meta is None:
            if self.repository.game_exists(room_id):
                raise errors.RoomVanished()
            raise errors.RoomNotFound()
        return meta

    def resolve_code(self, code: str) -> str:
        """Map an invite code to its room id, checking the room can take a joiner."""
        code = normalize_code(code)
        if not is_code_format(code):
            raise errors.InvalidCodeFormat()

        room_id = self.repository.lookup_code("player", code)
        namespace = "player"
        if room_id is None:
            room_id = self.repository.lookup_code("spectator", code)
            namespace = "spectator"
        if room_id is None:
            raise errors.CodeNotFound()

        meta = self.repository.load_meta(room_id)
        if meta is None:
            raise errors.RoomNotFound()

        if namespace == "player":
            if len(meta.players) >= meta.player_capacity:
                raise errors.RoomFull()
        else:
            if not isinstance(meta, InviteRoomMeta) or not meta.allow_spectators:
                raise errors.SpectatorsDisabled()
            if len(meta.spectators) >= self.settings.spectator_capacity:
                raise errors.SpectatorSlotsFull()
        return room_id

    def find_or_create_match(self) -> str:
        for _ in range(self.settings.match_queue_attempts):
            candidate = self.repository.pop_match()
            if candidate is None:
                break
            meta = self.repository.load_meta(candidate)
            if isinstance(meta, MatchRoomMeta) and len(meta.players) < meta.player_capacity:
                return candidate
            logger.debug("Discarded stale match queue entry %s", candidate)
        return self._create_match_room()

    # ---- admission ----

    def _role_for_join(self, meta: RoomMeta, code: Optional[str]) -> Role:
        if isinstance(meta, InviteRoomMeta):
            provided = normalize_code(code or "")
            if not provided:
                if meta.players:
                    raise errors.InviteCodeRequired()
                role: Role = "player"
            elif provided == meta.invite_code:
                role = "player"
            elif meta.allow_spectators and provided == meta.spectator_code:
                role = "spectator"
            else:
                raise errors.InviteCodeInvalid()
        else:
            # Match and AI rooms only take players.
            role = "player"

        if role == "player" and len(meta.players) >= meta.player_capacity:
            raise errors.RoomFull()
        if role == "spectator" and len(meta.spectators) >= self.settings.spectator_capacity:
            raise errors.SpectatorSlotsFull()
        return role

    def _join(self, room_id: str, token: str, code: Optional[str]) -> Tuple[Admission, bool]:
        """Append ``token`` against a fresh read; the flag is False for returning tokens."""
        for _ in range(ADMIT_ATTEMPTS):
            meta = self.get_meta(room_id)
            existing = meta.role_of(token)
            if existing is not None:
                return Admission(existing, meta), False

            role = self._role_for_join(meta, code)
            field = "players" if role == "player" else "spectators"
            seen: List[str] = getattr(meta, field)
            if self.repository.add_member(room_id, field, seen, token):
                was_playable = meta.is_playable
                seen.append(token)
                return Admission(role, meta, not was_playable and meta.is_playable), True
            if not self.repository.room_exists(room_id):
                raise errors.RoomVanished()
            logger.debug("Lost a join race in room %s; retrying", room_id)
        raise errors.RoomFull("Room is busy; try again")

    def admit(self, room_id: str, token: str, code: Optional[str] = None) -> Admission:
        admission, joined = self._join(room_id, token, code)
        if not joined:
            return admission

        meta = admission.meta
        if admission.became_playable:
            self.repository.apply_room_ttl(meta, meta.ttl_seconds)
        elif not meta.is_playable:
            self.repository.refresh_waiting_ttl(
                room_id, self.settings.waiting_room_ttl_seconds
            )

        logger.info("Admitted %s to room %s (%s)", admission.role, room_id, meta.mode)
        return admission

    def role_of(self, room_id: str, token: Optional[str]) -> Role:
        """Role of an already-admitted token; unknown tokens are unauthorized."""
        role = self.get_meta(room_id).role_of(token)
        if role is None:
            raise errors.Unauthorized()
        return role

    # ---- info & teardown ----

    def remaining_seconds(self, meta: RoomMeta) -> Optional[int]:
        """Countdown shown to clients; ``None`` until playable or when disabled."""
        if not meta.is_playable or meta.ttl_seconds is None:
            return None
        ttl = self.repository.meta_ttl(meta.room_id)
        return ttl if ttl > 0 else 0

    def room_info(self, room_id: str, token: Optional[str]) -> Dict[str, Any]:
        meta = self.get_meta(room_id)
        role = meta.role_of(token)
        if role is None:
            raise errors.Unauthorized()

        info: Dict[str, Any] = {
            "roomId": meta.room_id,
            "role": role,
            "mode": meta.mode,
            "inviteCode": None,
            "spectatorCode": None,
            "playersCount": len(meta.players),
            "spectatorsCount": len(meta.spectators),
            "spectatorCapacity": 0,
            "spectatorCanViewChat": False,
            "spectatorCanSendChat": False,
            "autoDestroy": meta.ttl_seconds is not None,
            "remainingSeconds": self.remaining_seconds(meta),
        }
        if isinstance(meta, InviteRoomMeta):
            if role == "player":
                info["inviteCode"] = meta.invite_code
                info["spectatorCode"] = meta.spectator_code
            if meta.allow_spectators:
                info["spectatorCapacity"] = self.settings.spectator_capacity
            info["spectatorCanViewChat"] = meta.spectator_can_view_chat
            info["spectatorCanSendChat"] = meta.spectator_can_send_chat
        if isinstance(meta, AiRoomMeta):
            info["aiLevel"] = meta.ai_level
        return info

    def destroy(self, room_id: str, role: Optional[str]) -> None:
        meta = self.get_meta(room_id)
        if role != "player":
            raise errors.Forbidden()

        # Subscribers treat the missing room as the source of truth, so the
        # event may go out before (or without) the delete winning the race.
        self.broadcaster.publish(room_id, ROOM_DESTROYED, {"isDestroyed": True})
        if not self.repository.delete_room(meta):
            raise errors.RoomNotFound()
        logger.info("Destroyed room %s", room_id)
