"""Base movie pool: building the shared candidate list and shuffling it per room."""

from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from redis.exceptions import RedisError

from swipematch.domain.catalog import CatalogResolver, CatalogUnavailable, PoolItem, get_catalog
from swipematch.domain.catalog.client import category_kind
from swipematch.domain.catalog.models import MEDIA_MOVIE, MEDIA_TV
from swipematch.infra.redis import redis_client
from swipematch.obs import metrics as obs_metrics
from swipematch.settings import settings

logger = logging.getLogger(__name__)

POOL_KEY = "pool:v1:{media_filter}"


@dataclass(frozen=True)
class PoolGroup:
	"""A run of list pages whose combined results are capped at ``limit`` items."""

	media_type: str
	pages: Tuple[Tuple[str, int], ...]
	limit: int


POOL_GROUPS: Tuple[PoolGroup, ...] = (
	PoolGroup(MEDIA_MOVIE, tuple(("movie_top_rated", page) for page in range(1, 6)), 100),
	PoolGroup(MEDIA_MOVIE, tuple(("movie_new_releases", page) for page in range(1, 3)), 40),
	PoolGroup(
		MEDIA_TV,
		tuple(
			(category, page)
			for page in range(1, 4)
			for category in ("tv_top_rated", "tv_popular")
		),
		100,
	),
)


def shuffle_pool(pool: Sequence[PoolItem], seed: int) -> List[PoolItem]:
	"""Return a seeded permutation of ``pool``; the input is left untouched."""
	items = list(pool)
	random.Random(seed).shuffle(items)
	return items


class PoolGenerator:
	def __init__(self, catalog: CatalogResolver | None = None, *, groups: Sequence[PoolGroup] = POOL_GROUPS) -> None:
		self._catalog = catalog
		self._groups = tuple(groups)
		self._inflight: Dict[str, asyncio.Task] = {}

	@property
	def catalog(self) -> CatalogResolver:
		return self._catalog or get_catalog()

	async def build_pool(self, media_filter: str = "all") -> List[PoolItem]:
		cached = await self._read_cache(media_filter)
		if cached is not None:
			obs_metrics.inc_pool_build("cache_hit")
			return cached
		task = self._inflight.get(media_filter)
		if task is None:
			task = asyncio.create_task(self._build_and_store(media_filter))
			self._inflight[media_filter] = task
			task.add_done_callback(lambda _t, key=media_filter: self._inflight.pop(key, None))
		return list(await asyncio.shield(task))

	async def shuffled(self, media_filter: str, seed: int) -> List[PoolItem]:
		return shuffle_pool(await self.build_pool(media_filter), seed)

	async def _build_and_store(self, media_filter: str) -> List[PoolItem]:
		groups = [g for g in self._groups if media_filter in ("all", g.media_type)]
		batches = await asyncio.gather(*(self._collect_group(g) for g in groups))
		seen: set[Tuple[str, int]] = set()
		pool: List[PoolItem] = []
		for batch in batches:
			for item in batch:
				if item.key() in seen:
					continue
				seen.add(item.key())
				pool.append(item)
		obs_metrics.inc_pool_build("built" if pool else "empty")
		if pool:
			await self._write_cache(media_filter, pool)
		logger.info("movie pool built", extra={"media_filter": media_filter, "size": len(pool)})
		return pool

	async def _collect_group(self, group: PoolGroup) -> List[PoolItem]:
		pages = await asyncio.gather(*(self._fetch_page(category, page) for category, page in group.pages))
		items: List[PoolItem] = []
		for (category, _page), ids in zip(group.pages, pages):
			kind = category_kind(category)
			items.extend(PoolItem(id=tmdb_id, kind=kind) for tmdb_id in ids)
		return items[: group.limit]

	async def _fetch_page(self, category: str, page: int) -> List[int]:
		try:
			return await self.catalog.list_interesting(category, page)
		except CatalogUnavailable:
			logger.warning("catalog list unavailable", extra={"category": category, "page": page})
			return []

	async def _read_cache(self, media_filter: str) -> Optional[List[PoolItem]]:
		try:
			raw = await redis_client.get(POOL_KEY.format(media_filter=media_filter))
		except RedisError:
			logger.warning("pool cache read failed", exc_info=True)
			return None
		if not raw:
			return None
		try:
			return [PoolItem(id=int(tmdb_id), kind=str(kind)) for kind, tmdb_id in json.loads(raw)]
		except (ValueError, TypeError):
			logger.warning("discarding corrupt pool cache entry", extra={"media_filter": media_filter})
			return None

	async def _write_cache(self, media_filter: str, pool: List[PoolItem]) -> None:
		payload = json.dumps([[item.kind, item.id] for item in pool])
		try:
			await redis_client.set(POOL_KEY.format(media_filter=media_filter), payload, ex=settings.pool_cache_ttl_seconds)
		except RedisError:
			logger.warning("pool cache write failed", exc_info=True)
