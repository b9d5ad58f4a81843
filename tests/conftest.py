"""Shared fixtures: a controllable clock and a fully wired set of services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import pytest

from othelloroom.config import Settings
from othelloroom.coordinator import GameCoordinator
from othelloroom.randomness import RandomSource
from othelloroom.realtime import Broadcaster
from othelloroom.repository import RoomRepository, game_key
from othelloroom.rooms import RoomRegistry
from othelloroom.store import MemoryStore


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingBroadcaster(Broadcaster):
    def __init__(self) -> None:
        super().__init__()
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    def publish(self, room_id: str, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((room_id, event, payload))
        super().publish(room_id, event, payload)


@dataclass
class Services:
    clock: FakeClock
    store: MemoryStore
    repository: RoomRepository
    broadcaster: RecordingBroadcaster
    registry: RoomRegistry
    coordinator: GameCoordinator
    settings: Settings = field(default_factory=Settings)

    def seed_game(self, state) -> None:
        """Overwrite the stored game record, bypassing the state machine."""
        self.store.set(game_key(state.room_id), state.model_dump(mode="json"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def services(clock: FakeClock) -> Services:
    settings = Settings(spectator_capacity=2)
    store = MemoryStore(clock=clock)
    repository = RoomRepository(store, settings.room_ttl_seconds)
    broadcaster = RecordingBroadcaster()
    rng = RandomSource.seeded(1234)
    return Services(
        clock=clock,
        store=store,
        repository=repository,
        broadcaster=broadcaster,
        registry=RoomRegistry(repository, broadcaster, settings, rng),
        coordinator=GameCoordinator(repository, broadcaster, rng),
        settings=settings,
    )
