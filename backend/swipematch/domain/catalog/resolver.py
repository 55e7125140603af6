"""Batched, cached catalog resolution with a hard deadline."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from redis.exceptions import RedisError

from swipematch.domain.catalog.models import CatalogItem
from swipematch.infra.redis import redis_client
from swipematch.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

ITEM_KEY = "catalog:item:{kind}:{id}"


class CatalogResolver(Protocol):
	async def list_interesting(self, category: str, page: int) -> List[int]:
		...

	async def resolve_many(
		self,
		ids: Sequence[int],
		*,
		kinds: Mapping[int, str] | None = None,
	) -> Dict[int, Optional[CatalogItem]]:
		...


def _item_key(tmdb_id: int, kind: str) -> str:
	return ITEM_KEY.format(kind=kind, id=tmdb_id)


class CachedCatalogResolver:
	"""Wraps a catalog client with a shared item cache.

	Every call resolves its identifiers in one batch. Lookups that are already in
	flight in this process are joined instead of re-issued. When the deadline
	passes, whatever is available is returned and the outstanding fetches keep
	running so their results still land in the cache.
	"""

	def __init__(self, inner: CatalogResolver, *, ttl_seconds: int, timeout_seconds: float) -> None:
		self._inner = inner
		self._ttl = ttl_seconds
		self._timeout = timeout_seconds
		self._pending: Dict[tuple[str, int], asyncio.Task] = {}

	async def list_interesting(self, category: str, page: int) -> List[int]:
		return await self._inner.list_interesting(category, page)

	async def resolve_many(
		self,
		ids: Sequence[int],
		*,
		kinds: Mapping[int, str] | None = None,
	) -> Dict[int, Optional[CatalogItem]]:
		kinds = kinds or {}
		ordered = list(dict.fromkeys(int(i) for i in ids))
		result: Dict[int, Optional[CatalogItem]] = {i: None for i in ordered}
		if not ordered:
			return result
		cached = await self._read_cache(ordered, kinds)
		result.update(cached)
		misses = [i for i in ordered if i not in cached]
		obs_metrics.inc_catalog_lookup("cache_hit", len(cached))
		if misses:
			waiting = self._fetch(misses, kinds)
			done, still_running = await asyncio.wait(set(waiting.values()), timeout=self._timeout)
			if still_running:
				logger.warning(
					"catalog resolution deadline exceeded",
					extra={"requested": len(misses), "timeout_s": self._timeout},
				)
			for tmdb_id, task in waiting.items():
				if task in done:
					result[tmdb_id] = task.result().get(tmdb_id)
				else:
					obs_metrics.inc_catalog_lookup("timeout")
		unresolved = sum(1 for item in result.values() if item is None)
		if unresolved:
			obs_metrics.inc_catalog_lookup("unresolved", unresolved)
		return result

	def _fetch(self, misses: List[int], kinds: Mapping[int, str]) -> Dict[int, asyncio.Task]:
		waiting: Dict[int, asyncio.Task] = {}
		batch: List[int] = []
		for tmdb_id in misses:
			existing = self._pending.get((kinds.get(tmdb_id, "movie"), tmdb_id))
			if existing is not None:
				waiting[tmdb_id] = existing
			else:
				batch.append(tmdb_id)
		if batch:
			batch_kinds = {i: kinds[i] for i in batch if i in kinds}
			task = asyncio.create_task(self._load(batch, batch_kinds))
			for tmdb_id in batch:
				self._pending[(kinds.get(tmdb_id, "movie"), tmdb_id)] = task
				waiting[tmdb_id] = task
			obs_metrics.inc_catalog_lookup("fetched", len(batch))
		return waiting

	async def _load(self, batch: List[int], kinds: Dict[int, str]) -> Dict[int, Optional[CatalogItem]]:
		try:
			found = await self._inner.resolve_many(batch, kinds=kinds)
		except Exception:
			logger.exception("catalog batch lookup failed", extra={"batch_size": len(batch)})
			found = {}
		finally:
			for tmdb_id in batch:
				key = (kinds.get(tmdb_id, "movie"), tmdb_id)
				if self._pending.get(key) is asyncio.current_task():
					self._pending.pop(key, None)
		await self._write_cache([item for item in found.values() if item is not None])
		return found

	async def _read_cache(self, ids: List[int], kinds: Mapping[int, str]) -> Dict[int, CatalogItem]:
		keys = [_item_key(i, kinds.get(i, "movie")) for i in ids]
		try:
			raw = await redis_client.mget(keys)
		except RedisError:
			logger.warning("catalog cache read failed", exc_info=True)
			return {}
		hits: Dict[int, CatalogItem] = {}
		for tmdb_id, value in zip(ids, raw):
			if not value:
				continue
			try:
				hits[tmdb_id] = CatalogItem.from_dict(json.loads(value))
			except (ValueError, KeyError, TypeError):
				logger.warning("discarding corrupt catalog cache entry", extra={"tmdb_id": tmdb_id})
		return hits

	async def _write_cache(self, items: List[CatalogItem]) -> None:
		if not items:
			return
		try:
			async with redis_client.pipeline(transaction=False) as pipe:
				for item in items:
					pipe.set(_item_key(item.tmdb_id, item.media_type), json.dumps(item.to_dict()), ex=self._ttl)
				await pipe.execute()
		except RedisError:
			logger.warning("catalog cache write failed", exc_info=True)
