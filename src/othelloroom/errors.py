"""Typed, user-facing failures raised by the room and game layers."""

from __future__ import annotations


class RoomError(Exception):
    """Base class; ``code`` is the stable wire identifier."""

    code = "error"
    status_code = 400
    message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)

    @property
    def detail(self) -> str:
        return str(self)


# ---- admission ----


class RoomNotFound(RoomError):
    code, status_code, message = "room-not-found", 404, "Room not found"


class CodeNotFound(RoomError):
    code, status_code, message = "code-not-found", 404, "Invite code not found"


class InvalidCodeFormat(RoomError):
    code, status_code, message = "invalid-format", 400, "Invite code is malformed"


class RoomFull(RoomError):
    code, status_code, message = "room-full", 409, "Room is full"


class SpectatorsDisabled(RoomError):
    code, status_code, message = (
        "spectator-disabled",
        403,
        "Room does not allow spectators",
    )


class SpectatorSlotsFull(RoomError):
    code, status_code, message = "spectator-full", 409, "Spectator slots are full"


class InviteCodeRequired(RoomError):
    code, status_code, message = (
        "invite-code-required",
        403,
        "An invite code is required to join this room",
    )


class InviteCodeInvalid(RoomError):
    code, status_code, message = "code-invalid", 403, "Invite code does not match"


# ---- authorization ----


class Unauthorized(RoomError):
    code, status_code, message = "unauthorized", 401, "Unauthorized"


class NotAPlayer(RoomError):
    code, status_code, message = "not-a-player", 403, "Not a player"


class Forbidden(RoomError):
    code, status_code, message = "forbidden", 403, "Forbidden"


# ---- game rules ----


class GameNotActive(RoomError):
    code, status_code, message = "game-not-active", 409, "Game not started"


class NotYourTurn(RoomError):
    code, status_code, message = "not-your-turn", 409, "Not your turn"


class IllegalMove(RoomError):
    code, status_code, message = "illegal-move", 400, "Illegal move"


class PassNotAllowed(RoomError):
    code, status_code, message = (
        "pass-not-allowed",
        409,
        "Pass not allowed while legal moves exist",
    )


# ---- integrity ----


class RoomVanished(RoomError):
    """Room metadata disappeared while dependent keys were still in use."""

    code, status_code, message = "room-expired", 410, "Room expired or was destroyed"
