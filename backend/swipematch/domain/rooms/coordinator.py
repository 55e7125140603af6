"""Realtime room flow: joins, swipes and departures."""

from __future__ import annotations

import asyncio
import logging
import weakref

from swipematch.domain.catalog import CatalogResolver, get_catalog
from swipematch.domain.lists.service import ListService
from swipematch.domain.rooms import models, schemas, sockets
from swipematch.domain.rooms.matching import MatchDetector
from swipematch.domain.rooms.service import RoomService
from swipematch.obs.logging import bind_context, reset_context

logger = logging.getLogger(__name__)


class RoomCoordinator:
	"""Applies socket events to room state and fans the results out.

	Swipes for one room are processed in arrival order on this instance; the
	storage layer settles anything that races across instances.
	"""

	def __init__(
		self,
		service: RoomService | None = None,
		*,
		lists: ListService | None = None,
		detector: MatchDetector | None = None,
		catalog: CatalogResolver | None = None,
	) -> None:
		self._lists = lists or ListService()
		self._service = service or RoomService()
		self._detector = detector or MatchDetector(self._service, self._lists)
		self._catalog = catalog
		self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

	@property
	def service(self) -> RoomService:
		return self._service

	@property
	def catalog(self) -> CatalogResolver:
		return self._catalog or get_catalog()

	def _room_lock(self, room_code: str) -> asyncio.Lock:
		"""Locks live only while a swipe holds or awaits them."""
		lock = self._locks.get(room_code)
		if lock is None:
			lock = asyncio.Lock()
			self._locks[room_code] = lock
		return lock

	async def join(self, sid: str, payload: schemas.JoinRoomPayload) -> bool:
		code, slot = payload.room_code, payload.user_slot
		tokens = bind_context(room_code=code, slot=slot, sid=sid)
		try:
			room = await self._service.get_room(code)
			if room is None:
				await sockets.emit_error(sid, "Room not found")
				return False
			if room.status == models.STATUS_EXPIRED:
				await sockets.emit_error(sid, "Room has expired")
				return False
			await sockets.enter_channel(sid, code)
			room, _activated = await self._service.connect(room, slot)
			await sockets.emit_user_joined(code, slot)
			bound_user = room.user_for(slot)
			if bound_user:
				has_list = await self._lists.has_priority_entries(bound_user)
				await sockets.emit_partner_auth_changed(code, sid, has_want_to_watch_list=has_list)
			if room.both_connected() and not room.is_terminal():
				await sockets.emit_room_ready(code)
			logger.info("slot joined", extra={"status": room.status})
			return True
		except Exception:
			logger.exception("join_room failed")
			await sockets.emit_error(sid, "Failed to join room")
			return False
		finally:
			reset_context(tokens)

	async def swipe(self, sid: str, payload: schemas.SwipePayload) -> None:
		code, slot = payload.room_code, payload.user_slot
		tokens = bind_context(room_code=code, slot=slot, sid=sid)
		try:
			async with self._room_lock(code):
				outcome = await self._service.record_swipe(
					code,
					payload.movie_id,
					slot,
					payload.action,
					media_type=payload.media_type,
				)
				if outcome is None:
					await sockets.emit_error(sid, "Room not found")
					return
				if not outcome.recorded:
					return
				await sockets.emit_swipe_progress(code, slot, outcome.swiped_count)
				if payload.action == models.ACTION_LIKE:
					await self._detector.on_like(outcome.room, payload.movie_id, slot)
			if payload.action == models.ACTION_LIKE:
				await self._push_partner_like(sid, code, payload.movie_id, outcome.media_type)
		except Exception:
			logger.exception("swipe failed")
			await sockets.emit_error(sid, "Failed to record swipe")
		finally:
			reset_context(tokens)

	async def _push_partner_like(self, sid: str, code: str, movie_id: int, media_type: str) -> None:
		resolved = await self.catalog.resolve_many([movie_id], kinds={movie_id: media_type})
		movie = resolved.get(movie_id)
		if movie is None:
			logger.info("liked item unresolved, partner not notified", extra={"movie_id": movie_id})
			return
		await sockets.emit_partner_liked(code, sid, movie_id, movie.to_dict())

	async def leave(self, sid: str, room_code: str, slot: str) -> None:
		tokens = bind_context(room_code=room_code, slot=slot, sid=sid)
		try:
			await self._service.disconnect(room_code, slot)
			await sockets.emit_user_left(room_code, slot)
			await sockets.leave_channel(sid, room_code)
		except Exception:
			logger.exception("leave_room failed")
		finally:
			reset_context(tokens)
