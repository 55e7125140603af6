"""Match detection for liked items."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from swipematch.domain.lists.service import ListService
from swipematch.domain.rooms import models, outbox, sockets, timers
from swipematch.domain.rooms.service import RoomService
from swipematch.obs import metrics as obs_metrics
from swipematch.settings import settings

logger = logging.getLogger(__name__)


class MatchDetector:
	"""Decides whether a like completes a match and commits it at most once per room.

	A like matches when the partner slot already liked the same item, or when the
	partner's bound user keeps it on their want-to-watch or watching list.
	"""

	def __init__(
		self,
		service: RoomService,
		lists: ListService | None = None,
		*,
		ttl_seconds: Optional[int] = None,
	) -> None:
		self._service = service
		self._lists = lists or ListService()
		self._ttl_seconds = ttl_seconds

	@property
	def ttl_seconds(self) -> int:
		return self._ttl_seconds if self._ttl_seconds is not None else settings.match_ttl_seconds

	async def match_reason(self, room: models.Room, movie_id: int, slot: str) -> Optional[str]:
		partner = models.partner_slot(slot)
		if await self._service.repository.has_like(room.id, movie_id, partner):
			return models.MATCH_VIA_SWIPE
		partner_user = room.partner_user(slot)
		if partner_user and await self._lists.is_priority_item(partner_user, movie_id):
			return models.MATCH_VIA_WATCHLIST
		return None

	async def detect(self, room: models.Room, movie_id: int, slot: str) -> Optional[models.MatchResult]:
		via = await self.match_reason(room, movie_id, slot)
		if via is None:
			return None
		expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds)
		matched = await self._service.repository.mark_matched(room.id, movie_id, expires_at)
		if matched is None:
			logger.info("match already settled", extra={"room_code": room.code, "movie_id": movie_id})
			return None
		obs_metrics.inc_match(via)
		logger.info("match found", extra={"room_code": matched.code, "movie_id": movie_id, "via": via})
		return models.MatchResult(room=matched, movie_id=movie_id, via=via, expires_at=expires_at, slot=slot)

	async def announce(self, result: models.MatchResult) -> None:
		await sockets.emit_match_found(result.room.code, result.movie_id)
		await timers.schedule_expiry(self._service, result.room)
		await outbox.append_room_event(
			"match_found",
			result.room.code,
			slot=result.slot,
			meta={"movie_id": result.movie_id, "via": result.via},
		)

	async def on_like(self, room: models.Room, movie_id: int, slot: str) -> Optional[models.MatchResult]:
		result = await self.detect(room, movie_id, slot)
		if result is not None:
			await self.announce(result)
		return result
