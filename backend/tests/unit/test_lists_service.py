import pytest
from pydantic import ValidationError

from swipematch.domain.lists import models, schemas
from swipematch.domain.lists.service import ListRepository, ListService


@pytest.mark.asyncio
async def test_deck_settings_default_when_unset():
    settings = await ListService().get_deck_settings("user-1")

    assert settings.to_dict() == {"showWatchedMovies": False, "minRatingFilter": None}


@pytest.mark.asyncio
async def test_deck_settings_partial_updates_keep_other_fields():
    service = ListService()

    await service.update_deck_settings("user-1", schemas.DeckSettingsUpdate(minRatingFilter=2))
    updated = await service.update_deck_settings("user-1", schemas.DeckSettingsUpdate(showWatchedMovies=True))
    assert updated.to_dict() == {"showWatchedMovies": True, "minRatingFilter": 2}

    cleared = await service.update_deck_settings("user-1", schemas.DeckSettingsUpdate(minRatingFilter=None))
    assert cleared.min_rating_filter is None
    assert cleared.show_watched_movies is True


def test_min_rating_must_be_one_two_or_three():
    with pytest.raises(ValidationError):
        schemas.DeckSettingsUpdate(minRatingFilter=4)
    assert schemas.DeckSettingsUpdate(minRatingFilter=3).min_rating_filter == 3


@pytest.mark.asyncio
async def test_priority_entries_and_watched_ids():
    repo = ListRepository()
    service = ListService(repo)
    await service.add_entries(
        [
            models.WatchListEntry(user_id="user-1", tmdb_id=1, status=models.STATUS_WANT_TO_WATCH),
            models.WatchListEntry(user_id="user-1", tmdb_id=2, status=models.STATUS_WATCHING),
            models.WatchListEntry(user_id="user-1", tmdb_id=3, status=models.STATUS_WATCHED),
            models.WatchListEntry(user_id="user-2", tmdb_id=4, status=models.STATUS_WANT_TO_WATCH),
        ]
    )

    assert [e.tmdb_id for e in await service.priority_entries("user-1")] == [1, 2]
    assert await service.watched_ids("user-1") == [3]
    assert await service.is_priority_item("user-1", 2) is True
    assert await service.is_priority_item("user-1", 3) is False
    assert await service.has_priority_entries("user-3") is False


def test_rating_threshold():
    entry = models.WatchListEntry(user_id="u", tmdb_id=1, status=models.STATUS_WATCHING, rating=2)
    assert entry.meets_rating(None)
    assert entry.meets_rating(2)
    assert not entry.meets_rating(3)
    assert not models.WatchListEntry(user_id="u", tmdb_id=1, status=models.STATUS_WATCHING).meets_rating(1)
