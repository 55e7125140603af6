"""Domain models for deck settings and watch-list entries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

STATUS_WANT_TO_WATCH = "want_to_watch"
STATUS_WATCHING = "watching"
STATUS_WATCHED = "watched"
PRIORITY_STATUSES = (STATUS_WANT_TO_WATCH, STATUS_WATCHING)

RATING_VALUES = (1, 2, 3)


@dataclass(slots=True)
class DeckSettings:
    """How a user's swipe deck should be filtered."""

    user_id: str
    show_watched_movies: bool = False
    min_rating_filter: Optional[int] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "showWatchedMovies": self.show_watched_movies,
            "minRatingFilter": self.min_rating_filter,
        }


@dataclass(slots=True)
class WatchListEntry:
    user_id: str
    tmdb_id: int
    status: str
    rating: Optional[int] = None
    media_type: str = "movie"
    added_at: Optional[datetime] = None

    def meets_rating(self, min_rating: Optional[int]) -> bool:
        if min_rating is None:
            return True
        return self.rating is not None and self.rating >= min_rating
