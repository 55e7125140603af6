"""Per-slot queue construction for a swipe room."""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Sequence

from swipematch.domain.catalog import CatalogResolver, get_catalog
from swipematch.domain.lists.service import ListService
from swipematch.domain.rooms import models, policy, schemas
from swipematch.domain.rooms.pool import PoolGenerator
from swipematch.domain.rooms.service import RoomRepository
from swipematch.obs import metrics as obs_metrics
from swipematch.settings import settings

logger = logging.getLogger(__name__)


def walk_order(pool: Sequence, slot: str) -> List:
	"""Slot A walks the shuffled pool from the front, slot B from the back."""
	if slot == models.SLOT_A:
		return list(pool)
	return list(reversed(pool))


def queue_meta(*, total: int, priority_count: int, offset: int, limit: int) -> schemas.QueueMeta:
	base_count = total - priority_count
	total_remaining = max(0, total - offset)
	return schemas.QueueMeta(
		total_remaining=total_remaining,
		priority_queue_remaining=max(0, priority_count - offset),
		base_pool_remaining=max(0, base_count - max(0, offset - priority_count)),
		has_more=total_remaining > limit,
	)


class QueueBuilder:
	def __init__(
		self,
		*,
		rooms: RoomRepository | None = None,
		lists: ListService | None = None,
		pool: PoolGenerator | None = None,
		catalog: CatalogResolver | None = None,
	) -> None:
		self._rooms = rooms or RoomRepository()
		self._lists = lists or ListService()
		self._catalog = catalog
		self._pool = pool or PoolGenerator(catalog)

	@property
	def catalog(self) -> CatalogResolver:
		return self._catalog or get_catalog()

	async def build_queue(
		self,
		room_code: str,
		slot: str,
		user_id: Optional[str] = None,
		*,
		limit: Optional[int] = None,
		offset: int = 0,
	) -> schemas.QueueResponse:
		started = time.perf_counter()
		slot = policy.ensure_slot(slot)
		limit = max(1, min(limit or settings.queue_default_limit, settings.queue_max_limit))
		offset = max(0, offset)
		room = await self._rooms.get_room_by_code(policy.normalise_code(room_code))
		if room is None:
			raise policy.RoomNotFound()

		candidates, kinds = await self._ordered_candidates(room, slot, user_id)
		priority_count = sum(1 for c in candidates if c.source != models.SOURCE_BASE)
		window = candidates[offset : offset + limit]
		lookahead = candidates[offset + limit : offset + limit + settings.queue_lookahead]
		resolved = await self.catalog.resolve_many(
			[c.movie_id for c in window + lookahead],
			kinds=kinds,
		)
		items: List[schemas.QueueItem] = []
		for candidate in window:
			movie = resolved.get(candidate.movie_id)
			if movie is None:
				continue
			items.append(schemas.QueueItem(movie=movie.to_dict(), source=candidate.source))

		meta = queue_meta(total=len(candidates), priority_count=priority_count, offset=offset, limit=limit)
		obs_metrics.observe_queue_build(slot, time.perf_counter() - started)
		logger.debug(
			"queue built",
			extra={
				"room_code": room.code,
				"slot": slot,
				"returned": len(items),
				"dropped": len(window) - len(items),
				"total_remaining": meta.total_remaining,
			},
		)
		return schemas.QueueResponse(items=items, meta=meta)

	async def _ordered_candidates(
		self,
		room: models.Room,
		slot: str,
		user_id: Optional[str],
	) -> tuple[List[models.QueueCandidate], Dict[int, str]]:
		deck = await self._lists.get_deck_settings(user_id)
		excluded = set(await self._rooms.list_swiped_ids(room.id, slot))
		if user_id and not deck.show_watched_movies:
			excluded.update(await self._lists.watched_ids(user_id))

		pool = await self._pool.shuffled(room.media_type_filter, room.movie_pool_seed)
		pool_kinds = {item.id: item.kind for item in pool}

		seen = set(excluded)
		candidates: List[models.QueueCandidate] = []
		kinds: Dict[int, str] = {}

		partner_id = room.partner_user(slot)
		if partner_id:
			partner = models.partner_slot(slot)
			for movie_id, media_type in await self._rooms.list_likes(room.id, partner):
				if movie_id in seen:
					continue
				seen.add(movie_id)
				kinds[movie_id] = pool_kinds.get(movie_id, media_type)
				candidates.append(models.QueueCandidate(movie_id, models.SOURCE_PARTNER_LIKE))
			for entry in await self._lists.priority_entries(partner_id):
				if entry.tmdb_id in seen or not entry.meets_rating(deck.min_rating_filter):
					continue
				if room.media_type_filter not in ("all", entry.media_type):
					continue
				seen.add(entry.tmdb_id)
				kinds[entry.tmdb_id] = entry.media_type
				candidates.append(models.QueueCandidate(entry.tmdb_id, models.SOURCE_PRIORITY))

		for item in walk_order(pool, slot):
			if item.id in seen:
				continue
			seen.add(item.id)
			kinds.setdefault(item.id, item.kind)
			candidates.append(models.QueueCandidate(item.id, models.SOURCE_BASE))
		return candidates, kinds
