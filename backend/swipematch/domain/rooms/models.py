"""Domain models for two-player swipe rooms."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

SLOT_A = "A"
SLOT_B = "B"
SLOTS = (SLOT_A, SLOT_B)

STATUS_WAITING = "waiting"
STATUS_ACTIVE = "active"
STATUS_MATCHED = "matched"
STATUS_EXPIRED = "expired"
OPEN_STATUSES = (STATUS_WAITING, STATUS_ACTIVE)
TERMINAL_STATUSES = (STATUS_MATCHED, STATUS_EXPIRED)

ACTION_LIKE = "like"
ACTION_SKIP = "skip"

SOURCE_PARTNER_LIKE = "partner_like"
SOURCE_PRIORITY = "priority"
SOURCE_BASE = "base"

MATCH_VIA_SWIPE = "swipe"
MATCH_VIA_WATCHLIST = "watchlist"


def partner_slot(slot: str) -> str:
    if slot == SLOT_A:
        return SLOT_B
    if slot == SLOT_B:
        return SLOT_A
    raise ValueError(f"invalid slot: {slot}")


@dataclass(slots=True)
class Room:
    """Persisted representation of a swipe room."""

    id: str
    code: str
    pin: str
    status: str
    movie_pool_seed: int
    created_at: datetime
    media_type_filter: str = "all"
    user_a_connected: bool = False
    user_b_connected: bool = False
    user_a_id: Optional[str] = None
    user_b_id: Optional[str] = None
    matched_movie_id: Optional[int] = None
    expires_at: Optional[datetime] = None

    def set_connected(self, slot: str, connected: bool) -> None:
        if slot == SLOT_A:
            self.user_a_connected = connected
        else:
            self.user_b_connected = connected

    def user_for(self, slot: str) -> Optional[str]:
        return self.user_a_id if slot == SLOT_A else self.user_b_id

    def bind_user(self, slot: str, user_id: Optional[str]) -> None:
        if slot == SLOT_A:
            self.user_a_id = user_id
        else:
            self.user_b_id = user_id

    def partner_user(self, slot: str) -> Optional[str]:
        return self.user_for(partner_slot(slot))

    def both_connected(self) -> bool:
        return self.user_a_connected and self.user_b_connected

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def accepts_swipes(self) -> bool:
        return self.status in OPEN_STATUSES

    def to_info(self) -> dict:
        return {
            "code": self.code,
            "status": self.status,
            "userAConnected": self.user_a_connected,
            "userBConnected": self.user_b_connected,
            "matchedMovieId": self.matched_movie_id,
            "expiresAt": self.expires_at,
            "createdAt": self.created_at,
            "mediaTypeFilter": self.media_type_filter,
        }


@dataclass(slots=True, frozen=True)
class Swipe:
    room_id: str
    movie_id: int
    user_slot: str
    action: str
    created_at: datetime
    media_type: str = "movie"


@dataclass(slots=True, frozen=True)
class QueueCandidate:
    """An identifier headed for a queue, tagged with where it came from."""

    movie_id: int
    source: str


@dataclass(slots=True, frozen=True)
class SwipeOutcome:
    room: Room
    recorded: bool
    stale: bool = False
    swiped_count: int = 0
    media_type: str = "movie"


@dataclass(slots=True, frozen=True)
class MatchResult:
    room: Room
    movie_id: int
    via: str
    expires_at: datetime
    slot: Optional[str] = None
