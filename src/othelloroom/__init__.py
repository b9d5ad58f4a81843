"""othelloroom package exposing the rules engine, AI, room services and web app."""

from .ai import MinimaxAI
from .coordinator import GameCoordinator
from .rooms import RoomRegistry

__all__ = ["GameCoordinator", "MinimaxAI", "RoomRegistry"]
