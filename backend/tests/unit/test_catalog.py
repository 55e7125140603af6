import asyncio
import json

import httpx
import pytest

from swipematch.domain.catalog.client import TmdbCatalogClient, category_kind
from swipematch.domain.catalog.models import CatalogItem, CatalogUnavailable
from swipematch.domain.catalog.resolver import CachedCatalogResolver


class _CountingInner:
    def __init__(self, delay: float = 0.0, fail: bool = False):
        self.delay = delay
        self.fail = fail
        self.calls = []

    async def list_interesting(self, category, page):
        return []

    async def resolve_many(self, ids, *, kinds=None):
        self.calls.append(list(ids))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("upstream exploded")
        return {i: CatalogItem(tmdb_id=i, title=f"Title {i}") for i in ids}


def _tmdb_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/movie/top_rated":
        page = int(request.url.params["page"])
        return httpx.Response(200, json={"results": [{"id": page * 10 + 1}, {"id": page * 10 + 2}, {"title": "no id"}]})
    if path == "/tv/popular":
        return httpx.Response(503, json={"status_message": "down"})
    if path == "/movie/550":
        return httpx.Response(
            200,
            json={
                "id": 550,
                "title": "Fight Club",
                "overview": "An insomniac office worker...",
                "poster_path": "/poster.jpg",
                "release_date": "1999-10-15",
                "vote_average": 8.4,
                "genres": [{"id": 18, "name": "Drama"}],
                "runtime": 139,
                "original_language": "en",
            },
        )
    if path == "/tv/1399":
        return httpx.Response(
            200,
            json={
                "id": 1399,
                "name": "Game of Thrones",
                "first_air_date": "2011-04-17",
                "episode_run_time": [50, 60],
                "number_of_seasons": 8,
                "genres": [],
            },
        )
    return httpx.Response(404, json={"status_message": "not found"})


def _client() -> TmdbCatalogClient:
    http = httpx.AsyncClient(base_url="https://catalog.test", transport=httpx.MockTransport(_tmdb_handler))
    return TmdbCatalogClient(http=http, api_key="key", image_base_url="https://img.test/w500")


def test_category_kind_rejects_unknown_categories():
    assert category_kind("tv_top_rated") == "tv"
    with pytest.raises(ValueError):
        category_kind("anime_hot")


@pytest.mark.asyncio
async def test_client_lists_ids_and_surfaces_outages():
    client = _client()

    assert await client.list_interesting("movie_top_rated", 2) == [21, 22]
    with pytest.raises(CatalogUnavailable):
        await client.list_interesting("tv_popular", 1)


@pytest.mark.asyncio
async def test_client_resolves_movies_series_and_gaps():
    client = _client()

    resolved = await client.resolve_many([550, 1399, 404], kinds={1399: "tv"})

    movie = resolved[550]
    assert movie.title == "Fight Club"
    assert movie.poster_url == "https://img.test/w500/poster.jpg"
    assert movie.genres == ["Drama"]
    assert movie.to_dict()["ratings"] == {"tmdb": "8.4"}
    series = resolved[1399]
    assert series.media_type == "tv"
    assert series.runtime == 55
    assert series.number_of_seasons == 8
    assert resolved[404] is None


@pytest.mark.asyncio
async def test_cached_resolver_reuses_cached_items(fake_redis):
    inner = _CountingInner()
    resolver = CachedCatalogResolver(inner, ttl_seconds=60, timeout_seconds=1.0)

    first = await resolver.resolve_many([1, 2, 2, 3])
    second = await resolver.resolve_many([3, 1])

    assert inner.calls == [[1, 2, 3]]
    assert list(first) == [1, 2, 3]
    assert second[1].title == "Title 1"
    raw = await fake_redis.get("catalog:item:movie:1")
    assert json.loads(raw)["tmdbId"] == 1
    assert 0 < await fake_redis.ttl("catalog:item:movie:1") <= 60


@pytest.mark.asyncio
async def test_cached_resolver_returns_partial_results_on_timeout(fake_redis):
    warm = CachedCatalogResolver(_CountingInner(), ttl_seconds=60, timeout_seconds=1.0)
    await warm.resolve_many([1])
    slow = _CountingInner(delay=0.5)
    resolver = CachedCatalogResolver(slow, ttl_seconds=60, timeout_seconds=0.05)

    result = await resolver.resolve_many([1, 2])

    assert result[1] is not None
    assert result[2] is None
    await asyncio.sleep(0.6)
    assert await fake_redis.get("catalog:item:movie:2") is not None


@pytest.mark.asyncio
async def test_cached_resolver_joins_in_flight_lookups():
    inner = _CountingInner(delay=0.05)
    resolver = CachedCatalogResolver(inner, ttl_seconds=60, timeout_seconds=1.0)

    first, second = await asyncio.gather(resolver.resolve_many([7]), resolver.resolve_many([7]))

    assert inner.calls == [[7]]
    assert first[7].title == second[7].title == "Title 7"


@pytest.mark.asyncio
async def test_cached_resolver_absorbs_upstream_failures():
    resolver = CachedCatalogResolver(_CountingInner(fail=True), ttl_seconds=60, timeout_seconds=1.0)

    assert await resolver.resolve_many([1, 2]) == {1: None, 2: None}
    assert await resolver.resolve_many([]) == {}
