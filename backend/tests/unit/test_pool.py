import json

import pytest

from swipematch.domain.catalog.models import PoolItem
from swipematch.domain.rooms.pool import POOL_KEY, PoolGenerator, shuffle_pool


def _items(ids, kind="movie"):
    return [PoolItem(id=i, kind=kind) for i in ids]


def test_shuffle_is_deterministic_and_leaves_input_untouched():
    pool = _items(range(1, 51))
    snapshot = list(pool)

    first = shuffle_pool(pool, 42)
    second = shuffle_pool(pool, 42)

    assert first == second
    assert pool == snapshot
    assert sorted(item.id for item in first) == list(range(1, 51))


def test_shuffle_depends_on_seed():
    pool = _items(range(1, 51))
    assert shuffle_pool(pool, 1) != shuffle_pool(pool, 2)


def test_shuffle_of_empty_pool_is_empty():
    assert shuffle_pool([], 7) == []


@pytest.mark.asyncio
async def test_build_pool_dedupes_and_caps_groups(fake_catalog):
    for page in range(1, 6):
        start = (page - 1) * 30
        fake_catalog.set_list("movie_top_rated", range(start, start + 30), page=page)
    fake_catalog.set_list("movie_new_releases", [5, 500, 501])
    fake_catalog.set_list("tv_top_rated", [5, 900])

    pool = await PoolGenerator(fake_catalog).build_pool("all")

    movie_ids = [item.id for item in pool if item.kind == "movie"]
    assert movie_ids[:100] == list(range(0, 100))
    assert 500 in movie_ids and 501 in movie_ids
    assert movie_ids.count(5) == 1
    assert PoolItem(id=5, kind="tv") in pool
    assert PoolItem(id=900, kind="tv") in pool


@pytest.mark.asyncio
async def test_build_pool_is_served_from_cache(fake_catalog, fake_redis):
    fake_catalog.set_list("movie_top_rated", [1, 2, 3])
    generator = PoolGenerator(fake_catalog)

    first = await generator.build_pool("all")
    calls = len(fake_catalog.list_calls)
    second = await PoolGenerator(fake_catalog).build_pool("all")

    assert first == second
    assert len(fake_catalog.list_calls) == calls
    cached = json.loads(await fake_redis.get(POOL_KEY.format(media_filter="all")))
    assert cached == [["movie", 1], ["movie", 2], ["movie", 3]]


@pytest.mark.asyncio
async def test_build_pool_respects_media_filter(fake_catalog):
    fake_catalog.set_list("movie_top_rated", [1, 2])
    fake_catalog.set_list("tv_popular", [7, 8])

    pool = await PoolGenerator(fake_catalog).build_pool("tv")

    assert pool == _items([7, 8], kind="tv")
    assert all(category.startswith("tv_") for category, _ in fake_catalog.list_calls)


@pytest.mark.asyncio
async def test_build_pool_skips_unavailable_lists(fake_catalog, fake_redis):
    fake_catalog.set_list("movie_top_rated", [1, 2])
    fake_catalog.unavailable.add("tv_popular")

    pool = await PoolGenerator(fake_catalog).build_pool("all")

    assert [item.id for item in pool] == [1, 2]


@pytest.mark.asyncio
async def test_empty_pool_is_not_cached(fake_catalog, fake_redis):
    pool = await PoolGenerator(fake_catalog).build_pool("all")

    assert pool == []
    assert await fake_redis.get(POOL_KEY.format(media_filter="all")) is None
