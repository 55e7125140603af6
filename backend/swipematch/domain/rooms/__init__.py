"""Swipe rooms domain exports."""

from .coordinator import RoomCoordinator
from .matching import MatchDetector
from .queue import QueueBuilder
from .service import RoomService

__all__ = ["MatchDetector", "QueueBuilder", "RoomCoordinator", "RoomService"]
