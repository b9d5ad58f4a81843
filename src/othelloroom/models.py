"""Room metadata, game state and request payloads."""

from __future__ import annotations

import math
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

from . import board as rules

RoomMode = Literal["invite", "match", "ai"]
Role = Literal["player", "spectator"]
Color = Literal["black", "white"]
ColorChoice = Literal["black", "white", "random"]
AiLevelName = Literal["random", "easy", "normal", "hard"]
GameStatus = Literal["waiting", "playing", "finished"]

AI_TOKEN = "__ai__"
MIN_TTL_SECONDS = 60
MAX_TTL_SECONDS = 24 * 60 * 60

COLOR_TO_PLAYER: Dict[str, int] = {"black": rules.BLACK, "white": rules.WHITE}
PLAYER_TO_COLOR: Dict[int, Color] = {rules.BLACK: "black", rules.WHITE: "white"}


class Handicap(BaseModel):
    """Extra discs stamped on the opening board; black and white never overlap."""

    black: List[int] = Field(default_factory=list)
    white: List[int] = Field(default_factory=list)

    @field_validator("black", "white", mode="before")
    @classmethod
    def clean_indices(cls, value: Any) -> List[int]:
        if not isinstance(value, (list, tuple, set)):
            return []
        cleaned: List[int] = []
        for raw in value:
            try:
                cell = math.floor(float(raw))
            except (TypeError, ValueError, OverflowError):
                continue
            if 0 <= cell < rules.CELLS and cell not in cleaned:
                cleaned.append(cell)
        return cleaned

    @model_validator(mode="after")
    def keep_disjoint(self) -> "Handicap":
        taken = set(self.black)
        self.white = [cell for cell in self.white if cell not in taken]
        return self

    def stamp(self, board: rules.Board) -> rules.Board:
        """Fill only empty cells, black first."""
        stamped = board.copy()
        for cell in self.black:
            if stamped[cell] == rules.EMPTY:
                stamped[cell] = rules.BLACK
        for cell in self.white:
            if stamped[cell] == rules.EMPTY:
                stamped[cell] = rules.WHITE
        return stamped


# ---------- Room metadata ----------


class _RoomMetaBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    room_id: str
    created_at: int
    players: List[str] = Field(default_factory=list)
    spectators: List[str] = Field(default_factory=list)
    # None: the room never auto-expires once playable.
    ttl_seconds: Optional[int]
    handicap: Handicap = Field(default_factory=Handicap)

    @property
    def player_capacity(self) -> int:
        return 2

    @property
    def playable_threshold(self) -> int:
        return self.player_capacity

    @property
    def is_playable(self) -> bool:
        return len(self.players) >= self.playable_threshold

    @property
    def is_ai(self) -> bool:
        return False

    def role_of(self, token: Optional[str]) -> Optional[Role]:
        if not token:
            return None
        if token in self.players:
            return "player"
        if token in self.spectators:
            return "spectator"
        return None

    def invite_codes(self) -> List[Tuple[str, str]]:
        """``(namespace, code)`` pairs issued for this room."""
        return []


class InviteRoomMeta(_RoomMetaBase):
    mode: Literal["invite"] = "invite"
    invite_code: str
    spectator_code: Optional[str] = None
    allow_spectators: bool = False
    spectator_can_view_chat: bool = False
    spectator_can_send_chat: bool = False
    host_color: ColorChoice = "random"

    def invite_codes(self) -> List[Tuple[str, str]]:
        codes = [("player", self.invite_code)]
        if self.spectator_code:
            codes.append(("spectator", self.spectator_code))
        return codes


class MatchRoomMeta(_RoomMetaBase):
    mode: Literal["match"] = "match"


class AiRoomMeta(_RoomMetaBase):
    mode: Literal["ai"] = "ai"
    ai_level: AiLevelName = "normal"
    human_plays: ColorChoice = "random"
    human_plays_resolved: Optional[Color] = None

    @property
    def player_capacity(self) -> int:
        return 1

    @property
    def is_ai(self) -> bool:
        return True


RoomMeta = Annotated[
    Union[InviteRoomMeta, MatchRoomMeta, AiRoomMeta], Field(discriminator="mode")
]
ROOM_META: TypeAdapter = TypeAdapter(RoomMeta)


def parse_meta(raw: Dict[str, Any]) -> Union[InviteRoomMeta, MatchRoomMeta, AiRoomMeta]:
    return ROOM_META.validate_python(raw)


# ---------- Game state ----------


class LastMove(BaseModel):
    x: int
    y: int
    player: int


class GameState(BaseModel):
    room_id: str
    board: List[int]
    status: GameStatus = "waiting"
    turn: Optional[int] = None
    pass_streak: int = Field(default=0, ge=0, le=2)
    winner: Optional[int] = None
    black_token: Optional[str] = None
    white_token: Optional[str] = None
    last_move: Optional[LastMove] = None
    updated_at: int

    @field_validator("board")
    @classmethod
    def ensure_board_shape(cls, value: List[int]) -> List[int]:
        if len(value) != rules.CELLS:
            raise ValueError(f"Board must have {rules.CELLS} cells")
        if any(cell not in (rules.EMPTY, rules.BLACK, rules.WHITE) for cell in value):
            raise ValueError("Board cells must be 0, 1 or 2")
        return value

    def player_of(self, token: Optional[str]) -> Optional[int]:
        if token and token == self.black_token:
            return rules.BLACK
        if token and token == self.white_token:
            return rules.WHITE
        return None

    def token_of(self, player: int) -> Optional[str]:
        return self.black_token if player == rules.BLACK else self.white_token

    def public(self) -> Dict[str, Any]:
        """Projection safe to send to every room member; never carries tokens."""
        black, white = rules.count_discs(self.board)
        return {
            "roomId": self.room_id,
            "board": list(self.board),
            "status": self.status,
            "turn": self.turn,
            "passStreak": self.pass_streak,
            "winner": self.winner,
            "blackCount": black,
            "whiteCount": white,
            "lastMove": self.last_move.model_dump() if self.last_move else None,
            "updatedAt": self.updated_at,
        }


# ---------- Requests ----------


class _RoomOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ttl_seconds: Optional[int] = Field(
        default=None,
        alias="ttlSeconds",
        description="Self-destruct countdown once playable; null disables it",
    )
    handicap: Handicap = Field(default_factory=Handicap)

    @field_validator("ttl_seconds")
    @classmethod
    def clamp_ttl(cls, value: Optional[int]) -> Optional[int]:
        if value is None:
            return None
        return max(MIN_TTL_SECONDS, min(MAX_TTL_SECONDS, int(value)))

    @property
    def ttl_was_given(self) -> bool:
        return "ttl_seconds" in self.model_fields_set


class InviteRoomConfig(_RoomOptions):
    """Options for a two-player room joined through invite codes."""

    allow_spectators: bool = Field(default=False, alias="allowSpectators")
    spectator_can_view_chat: bool = Field(default=False, alias="spectatorCanViewChat")
    spectator_can_send_chat: bool = Field(default=False, alias="spectatorCanSendChat")
    host_color: ColorChoice = Field(default="random", alias="hostColor")

    @model_validator(mode="after")
    def narrow_chat_permissions(self) -> "InviteRoomConfig":
        if not self.allow_spectators:
            self.spectator_can_view_chat = False
        if not self.spectator_can_view_chat:
            self.spectator_can_send_chat = False
        return self


class AiRoomConfig(_RoomOptions):
    """Options for a single human playing the built-in AI."""

    ai_level: AiLevelName = Field(default="normal", alias="aiLevel")
    human_plays: ColorChoice = Field(default="random", alias="humanPlays")


class MoveRequest(BaseModel):
    """Request payload for placing a disc."""

    x: int = Field(ge=0, le=rules.SIZE - 1)
    y: int = Field(ge=0, le=rules.SIZE - 1)
