"""Pydantic schemas for deck settings endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from swipematch.domain.lists.models import RATING_VALUES


class DeckSettingsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    show_watched_movies: bool = Field(default=False, alias="showWatchedMovies")
    min_rating_filter: Optional[int] = Field(default=None, alias="minRatingFilter")


class DeckSettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    show_watched_movies: Optional[bool] = Field(default=None, alias="showWatchedMovies")
    min_rating_filter: Optional[int] = Field(default=None, alias="minRatingFilter")

    @field_validator("min_rating_filter")
    @classmethod
    def _check_rating(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value not in RATING_VALUES:
            raise ValueError("minRatingFilter must be 1, 2, 3 or null")
        return value
