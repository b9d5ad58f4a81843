"""FastAPI application exposing rooms, games and the room event stream."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from fastapi import FastAPI, Request, Response, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from . import errors
from .config import Settings
from .coordinator import GameCoordinator
from .models import AiRoomConfig, InviteRoomConfig, MoveRequest, Role
from .randomness import RandomSource
from .realtime import ROOM_DESTROYED, Broadcaster
from .repository import RoomRepository
from .rooms import RoomRegistry
from .scheduler import AiScheduler
from .store import MemoryStore

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "x-auth-token"

SETTINGS = Settings.from_env()
RNG = RandomSource()
STORE = MemoryStore()
repository = RoomRepository(STORE, SETTINGS.room_ttl_seconds)
broadcaster = Broadcaster()
registry = RoomRegistry(repository, broadcaster, SETTINGS, RNG)
coordinator = GameCoordinator(repository, broadcaster, RNG)
scheduler = AiScheduler(
    coordinator,
    repository,
    delay=SETTINGS.ai_move_delay,
    lock_ttl=SETTINGS.ai_lock_ttl,
    guard=SETTINGS.ai_loop_guard,
)
coordinator.scheduler = scheduler


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    logger.info("Stopping AI scheduler")
    scheduler.shutdown()


app = FastAPI(
    title="Othello Room",
    description="Ephemeral Othello rooms for two players or one player versus AI",
    lifespan=lifespan,
)


@app.exception_handler(errors.RoomError)
async def room_error_handler(_: Request, exc: errors.RoomError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code, content={"error": exc.code, "detail": exc.detail}
    )


def _participant(room_id: str, request: Request) -> Tuple[Optional[str], Role]:
    token = request.cookies.get(TOKEN_COOKIE)
    # Unknown rooms are reported before missing credentials.
    return token, registry.role_of(room_id, token)


# ---- rooms ----


@app.post("/api/room")
def create_invite_room(config: InviteRoomConfig) -> Dict[str, Optional[str]]:
    created = registry.create_invite_room(config)
    return {
        "roomId": created.room_id,
        "inviteCode": created.invite_code,
        "spectatorCode": created.spectator_code,
    }


@app.post("/api/room/ai")
def create_ai_room(config: AiRoomConfig) -> Dict[str, str]:
    return {"roomId": registry.create_ai_room(config).room_id}


@app.post("/api/room/match")
def find_match() -> Dict[str, str]:
    return {"roomId": registry.find_or_create_match()}


@app.get("/api/room/resolve")
def resolve_code(code: str) -> Dict[str, str]:
    return {"roomId": registry.resolve_code(code)}


@app.post("/api/room/{room_id}/join")
def join_room(
    room_id: str, request: Request, response: Response, code: Optional[str] = None
) -> Dict[str, Any]:
    token = request.cookies.get(TOKEN_COOKIE) or RNG.token()
    admission = registry.admit(room_id, token, code)
    response.set_cookie(TOKEN_COOKIE, token, httponly=True, samesite="strict", path="/")
    if admission.became_playable:
        coordinator.ensure_game(room_id, admission.meta)
    return registry.room_info(room_id, token)


@app.get("/api/room/{room_id}")
def room_info(room_id: str, request: Request) -> Dict[str, Any]:
    token, _ = _participant(room_id, request)
    return registry.room_info(room_id, token)


@app.get("/api/room/{room_id}/ttl")
def room_ttl(room_id: str, request: Request) -> Dict[str, Optional[int]]:
    _participant(room_id, request)
    return {"ttl": registry.remaining_seconds(registry.get_meta(room_id))}


@app.delete("/api/room/{room_id}")
def destroy_room(room_id: str, request: Request) -> Dict[str, bool]:
    _, role = _participant(room_id, request)
    registry.destroy(room_id, role)
    return {"ok": True}


# ---- game ----


@app.get("/api/game/{room_id}")
def get_game(room_id: str, request: Request) -> Dict[str, Any]:
    token, role = _participant(room_id, request)
    return coordinator.snapshot(room_id, token, role)


@app.post("/api/game/{room_id}/move")
def make_move(room_id: str, move: MoveRequest, request: Request) -> Dict[str, bool]:
    token, role = _participant(room_id, request)
    if role != "player":
        raise errors.NotAPlayer()
    coordinator.move(room_id, token, move.x, move.y)
    return {"ok": True}


@app.post("/api/game/{room_id}/pass")
def pass_turn(room_id: str, request: Request) -> Dict[str, bool]:
    token, role = _participant(room_id, request)
    if role != "player":
        raise errors.NotAPlayer()
    coordinator.pass_turn(room_id, token)
    return {"ok": True}


# ---- events ----


@app.websocket("/ws/room/{room_id}")
async def room_events(websocket: WebSocket, room_id: str) -> None:
    token = websocket.cookies.get(TOKEN_COOKIE)
    meta = repository.load_meta(room_id)
    if meta is None or meta.role_of(token) is None:
        await websocket.close(code=4401)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()

    def forward(event: str, payload: Dict[str, Any]) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, {"event": event, "payload": payload})

    unsubscribe = broadcaster.subscribe(room_id, forward)
    try:
        while True:
            frame = await queue.get()
            await websocket.send_json(frame)
            if frame["event"] == ROOM_DESTROYED:
                await websocket.close()
                break
    except (WebSocketDisconnect, RuntimeError):
        pass
    finally:
        unsubscribe()
