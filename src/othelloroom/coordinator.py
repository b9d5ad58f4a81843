"""Authoritative per-room Othello state machine.

Game records are only written through the repository's set-if-absent (first
bootstrap) and compare-and-set (every later transition). A transition is
validated against the state it replaces, so two requests racing for the same
turn cannot both land: the loser reloads, re-validates and gets a typed
rule error.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from . import board as rules
from . import errors
from .ai import MinimaxAI
from .config import Settings
from .models import (
    AI_TOKEN,
    PLAYER_TO_COLOR,
    AiRoomMeta,
    Color,
    GameState,
    InviteRoomMeta,
    LastMove,
    RoomMeta,
)
from .randomness import RandomSource
from .realtime import GAME_STATE, Broadcaster
from .repository import RoomRepository

if TYPE_CHECKING:
    from .scheduler import AiScheduler

logger = logging.getLogger(__name__)

WRITE_ATTEMPTS = 3

Transition = Callable[[GameState], GameState]


def _now_ms() -> int:
    return int(time.time() * 1000)


def finish_if_needed(state: GameState) -> GameState:
    """Close the game on two passes, a full board or no moves for either side."""
    if state.status != "playing":
        return state
    stuck = not rules.has_any_legal_move(
        state.board, rules.BLACK
    ) and not rules.has_any_legal_move(state.board, rules.WHITE)
    if state.pass_streak >= 2 or stuck or rules.is_full(state.board):
        state.status = "finished"
        state.turn = None
        state.winner = rules.winner(state.board)
    return state


def apply_play(state: GameState, player: int, x: int, y: int) -> GameState:
    """Apply a validated move and hand the turn over."""
    nxt = state.model_copy(deep=True)
    nxt.board = rules.apply_move(state.board, x, y, player)
    nxt.last_move = LastMove(x=x, y=y, player=player)
    nxt.pass_streak = 0
    nxt.turn = rules.opponent(player)
    nxt.updated_at = _now_ms()
    return finish_if_needed(nxt)


def apply_pass(state: GameState, player: int) -> GameState:
    nxt = state.model_copy(deep=True)
    nxt.turn = rules.opponent(player)
    nxt.pass_streak = min(2, state.pass_streak + 1)
    nxt.updated_at = _now_ms()
    return finish_if_needed(nxt)


def is_ai_turn(state: GameState, meta: Optional[RoomMeta]) -> bool:
    if not isinstance(meta, AiRoomMeta):
        return False
    if state.status != "playing" or state.turn is None:
        return False
    return state.token_of(state.turn) == AI_TOKEN


class GameCoordinator:
    def __init__(
        self,
        repository: RoomRepository,
        broadcaster: Broadcaster,
        rng: Optional[RandomSource] = None,
    ) -> None:
        self.repository = repository
        self.broadcaster = broadcaster
        self.rng = rng or RandomSource()
        self.scheduler: Optional["AiScheduler"] = None

    # ---- loading & bootstrap ----

    def _meta(self, room_id: str) -> RoomMeta:
        meta = self.repository.load_meta(room_id)
        if meta is None:
            if self.repository.game_exists(room_id):
                logger.warning("Room %s has a game record but no metadata", room_id)
                raise errors.RoomVanished()
            raise errors.RoomNotFound()
        return meta

    def _resolve_human_color(self, meta: AiRoomMeta) -> Color:
        if meta.human_plays_resolved is not None:
            return meta.human_plays_resolved
        if meta.human_plays in ("black", "white"):
            color: Color = meta.human_plays
        else:
            color = "black" if self.rng.coin_flip() else "white"
        # Pinned for the rest of the room's life; a repeat write is harmless.
        self.repository.update_meta(meta.room_id, human_plays_resolved=color)
        meta.human_plays_resolved = color
        return color

    def _seat_players(self, state: GameState, meta: RoomMeta) -> None:
        if isinstance(meta, AiRoomMeta):
            human = meta.players[0]
            if self._resolve_human_color(meta) == "black":
                state.black_token, state.white_token = human, AI_TOKEN
            else:
                state.black_token, state.white_token = AI_TOKEN, human
            return

        host, guest = meta.players[0], meta.players[1]
        preference = meta.host_color if isinstance(meta, InviteRoomMeta) else "random"
        if preference == "random":
            host_black = self.rng.coin_flip()
        else:
            host_black = preference == "black"
        state.black_token, state.white_token = (
            (host, guest) if host_black else (guest, host)
        )

    def _start(self, state: GameState, meta: RoomMeta) -> GameState:
        started = state.model_copy(deep=True)
        self._seat_players(started, meta)
        started.status = "playing"
        started.turn = rules.BLACK
        started.pass_streak = 0
        started.winner = None
        started.updated_at = _now_ms()
        logger.info("Game started in room %s", meta.room_id)
        return finish_if_needed(started)

    def _initial_state(self, meta: RoomMeta) -> GameState:
        return GameState(
            room_id=meta.room_id,
            board=meta.handicap.stamp(rules.initial_board()),
            updated_at=_now_ms(),
        )

    def ensure_game(self, room_id: str, meta: Optional[RoomMeta] = None) -> GameState:
        """Load the game, bootstrapping or starting it from room membership."""
        meta = meta or self._meta(room_id)
        for _ in range(WRITE_ATTEMPTS):
            state = self.repository.load_game(room_id)
            if state is None:
                fresh = self._initial_state(meta)
                if meta.is_playable:
                    fresh = self._start(fresh, meta)
                if self.repository.create_game(fresh):
                    if fresh.status != "waiting":
                        self._publish(fresh)
                    return fresh
                continue

            if state.status == "waiting" and meta.is_playable:
                started = self._start(state, meta)
                if self.repository.replace_game(state, started):
                    self._publish(started)
                    return started
                continue
            return state

        # Somebody else keeps winning the write; their state is just as valid.
        state = self.repository.load_game(room_id)
        if state is None:
            raise errors.RoomVanished()
        return state

    # ---- transitions ----

    def _publish(self, state: GameState) -> None:
        self.broadcaster.publish(state.room_id, GAME_STATE, state.public())

    def _transition(self, room_id: str, meta: RoomMeta, step: Transition) -> GameState:
        """Run ``step`` against fresh state and compare-and-set the result."""
        for _ in range(WRITE_ATTEMPTS):
            current = self.ensure_game(room_id, meta)
            nxt = step(current)
            if self.repository.replace_game(current, nxt):
                self._publish(nxt)
                if nxt.status == "finished":
                    logger.info(
                        "Game finished in room %s (winner=%s)", room_id, nxt.winner
                    )
                return nxt
            if not self.repository.room_exists(room_id):
                raise errors.RoomVanished()
        raise errors.NotYourTurn("Turn was taken by a concurrent request")

    def _mover(self, state: GameState, token: str) -> int:
        if state.status != "playing" or state.turn is None:
            raise errors.GameNotActive()
        me = state.player_of(token)
        if me is None:
            raise errors.NotAPlayer()
        if state.turn != me:
            raise errors.NotYourTurn()
        return me

    def _player_meta(self, room_id: str, token: str) -> RoomMeta:
        meta = self._meta(room_id)
        if meta.role_of(token) != "player":
            raise errors.NotAPlayer()
        return meta

    def move(self, room_id: str, token: str, x: int, y: int) -> GameState:
        meta = self._player_meta(room_id, token)

        def step(state: GameState) -> GameState:
            me = self._mover(state, token)
            if (x, y) not in rules.legal_moves(state.board, me):
                raise errors.IllegalMove()
            return apply_play(state, me, x, y)

        state = self._transition(room_id, meta, step)
        self._arm_ai(room_id, meta)
        return state

    def pass_turn(self, room_id: str, token: str) -> GameState:
        meta = self._player_meta(room_id, token)

        def step(state: GameState) -> GameState:
            me = self._mover(state, token)
            if rules.has_any_legal_move(state.board, me):
                raise errors.PassNotAllowed()
            return apply_pass(state, me)

        state = self._transition(room_id, meta, step)
        self._arm_ai(room_id, meta)
        return state

    def snapshot(self, room_id: str, token: Optional[str], role: Optional[str]) -> Dict[str, Any]:
        meta = self._meta(room_id)
        state = self.ensure_game(room_id, meta)
        me = state.player_of(token) if role == "player" else None
        self._arm_ai(room_id, meta)
        return {
            "me": PLAYER_TO_COLOR[me] if me else None,
            "state": state.public(),
        }

    # ---- AI ----

    def _arm_ai(self, room_id: str, meta: RoomMeta) -> None:
        if self.scheduler is not None and meta.is_ai:
            self.scheduler.schedule(room_id)

    def advance_ai(self, room_id: str, guard: int = Settings.ai_loop_guard) -> int:
        """Play AI turns until a human is to move; returns transitions applied.

        Callers must hold the room's AI lock.
        """
        meta = self.repository.load_meta(room_id)
        if not isinstance(meta, AiRoomMeta):
            return 0

        applied = 0
        for _ in range(guard):
            state = self.repository.load_game(room_id)
            if state is None or not is_ai_turn(state, meta):
                break
            side = state.turn
            ai = MinimaxAI.for_level_name(side, meta.ai_level, self.rng)
            if not rules.has_any_legal_move(state.board, side):
                nxt = apply_pass(state, side)
                logger.debug("AI passes in room %s", room_id)
            else:
                chosen = ai.choose(state.board)
                if chosen is None:
                    break
                nxt = apply_play(state, side, *chosen)
                logger.debug(
                    "AI (%s, depth %d) plays %s in room %s",
                    PLAYER_TO_COLOR[side],
                    ai.depth,
                    chosen,
                    room_id,
                )
            if not self.repository.replace_game(state, nxt):
                break
            self._publish(nxt)
            applied += 1
            if nxt.status == "finished":
                logger.info("Game finished in room %s (winner=%s)", room_id, nxt.winner)
        return applied
