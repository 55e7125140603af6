"""Socket.IO namespace and fanout helpers for swipe rooms."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, Tuple

import socketio
from pydantic import ValidationError

from swipematch.domain.rooms import schemas
from swipematch.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_namespace: "SwipeRoomsNamespace" | None = None


class RoomEventHandler(Protocol):
	async def join(self, sid: str, payload: schemas.JoinRoomPayload) -> bool:
		...

	async def swipe(self, sid: str, payload: schemas.SwipePayload) -> None:
		...

	async def leave(self, sid: str, room_code: str, slot: str) -> None:
		...


class SwipeRoomsNamespace(socketio.AsyncNamespace):
	"""Accepts room events from clients and hands them to the coordinator."""

	def __init__(self, handler: RoomEventHandler, namespace: str = "/") -> None:
		super().__init__(namespace)
		self._handler = handler
		self.bindings: Dict[str, Tuple[str, str]] = {}

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		obs_metrics.socket_connected(self.namespace)

	async def on_disconnect(self, sid: str, reason: Any = None) -> None:
		obs_metrics.socket_disconnected(self.namespace)
		binding = self.bindings.pop(sid, None)
		if binding:
			await self._handler.leave(sid, *binding)

	async def on_join_room(self, sid: str, payload: dict) -> None:
		obs_metrics.socket_event(self.namespace, "join_room")
		data = await self._parse(sid, schemas.JoinRoomPayload, payload)
		if data is None:
			return
		previous = self.bindings.get(sid)
		if previous and previous != (data.room_code, data.user_slot):
			self.bindings.pop(sid, None)
			await self._handler.leave(sid, *previous)
		if await self._handler.join(sid, data):
			self.bindings[sid] = (data.room_code, data.user_slot)

	async def on_swipe(self, sid: str, payload: dict) -> None:
		obs_metrics.socket_event(self.namespace, "swipe")
		data = await self._parse(sid, schemas.SwipePayload, payload)
		if data is None:
			return
		await self._handler.swipe(sid, data)

	async def on_leave_room(self, sid: str, payload: dict) -> None:
		obs_metrics.socket_event(self.namespace, "leave_room")
		data = await self._parse(sid, schemas.LeaveRoomPayload, payload)
		if data is None:
			return
		self.bindings.pop(sid, None)
		await self._handler.leave(sid, data.room_code, data.user_slot)

	async def _parse(self, sid: str, model: type, payload: Any):
		try:
			return model.model_validate(payload or {})
		except ValidationError:
			await emit_error(sid, "Invalid payload")
			return None

	@staticmethod
	def room_channel(room_code: str) -> str:
		return f"room:{room_code}"


def set_namespace(namespace: SwipeRoomsNamespace | None) -> None:
	global _namespace
	_namespace = namespace


def get_namespace() -> SwipeRoomsNamespace | None:
	return _namespace


async def enter_channel(sid: str, room_code: str) -> None:
	if _namespace is None:
		return
	await _namespace.enter_room(sid, SwipeRoomsNamespace.room_channel(room_code))


async def leave_channel(sid: str, room_code: str) -> None:
	if _namespace is None:
		return
	await _namespace.leave_room(sid, SwipeRoomsNamespace.room_channel(room_code))


async def emit_room_event(event: str, room_code: str, payload: dict, *, skip_sid: str | None = None) -> None:
	if _namespace is None:
		return
	obs_metrics.socket_event(_namespace.namespace, event)
	await _namespace.emit(event, payload, room=SwipeRoomsNamespace.room_channel(room_code), skip_sid=skip_sid)


async def emit_error(sid: str, message: str) -> None:
	if _namespace is None:
		return
	obs_metrics.socket_event(_namespace.namespace, "error")
	await _namespace.emit("error", {"message": message}, room=sid)


async def emit_user_joined(room_code: str, slot: str) -> None:
	await emit_room_event("user_joined", room_code, {"userSlot": slot})


async def emit_user_left(room_code: str, slot: str) -> None:
	await emit_room_event("user_left", room_code, {"userSlot": slot})


async def emit_partner_auth_changed(room_code: str, sid: str, *, has_want_to_watch_list: bool) -> None:
	await emit_room_event(
		"partner_auth_changed",
		room_code,
		{"isAuthenticated": True, "hasWantToWatchList": has_want_to_watch_list},
		skip_sid=sid,
	)


async def emit_room_ready(room_code: str) -> None:
	await emit_room_event("room_ready", room_code, {"roomCode": room_code})


async def emit_swipe_progress(room_code: str, slot: str, count: int) -> None:
	await emit_room_event("swipe_progress", room_code, {"userSlot": slot, "totalSwiped": count})


async def emit_partner_liked(room_code: str, sid: str, movie_id: int, movie: dict) -> None:
	await emit_room_event("partner_liked", room_code, {"movieId": movie_id, "movie": movie}, skip_sid=sid)


async def emit_match_found(room_code: str, movie_id: int) -> None:
	await emit_room_event("match_found", room_code, {"movieId": movie_id})


async def emit_room_expired(room_code: str) -> None:
	await emit_room_event("room_expired", room_code, {})
