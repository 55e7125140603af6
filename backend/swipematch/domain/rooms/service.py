"""Room lifecycle service layer."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import asyncpg
import ulid

from swipematch.domain.rooms import models, outbox, policy, schemas, sockets
from swipematch.infra.auth import AuthenticatedUser
from swipematch.infra.postgres import get_pool
from swipematch.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_CREATE_ATTEMPTS = 5
_SLOT_COLUMNS = {
	models.SLOT_A: ("user_a_connected", "user_a_id"),
	models.SLOT_B: ("user_b_connected", "user_b_id"),
}


class _MemoryStore:
	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.rooms: Dict[str, models.Room] = {}
		self.codes: Dict[str, str] = {}
		self.swipes: Dict[Tuple[str, int, str], models.Swipe] = {}

	async def create_room(self, room_id: str, code: str, pin: str, seed: int, media_type_filter: str) -> Optional[models.Room]:
		async with self._lock:
			if code in self.codes:
				return None
			room = models.Room(
				id=room_id,
				code=code,
				pin=pin,
				status=models.STATUS_WAITING,
				movie_pool_seed=seed,
				created_at=datetime.now(timezone.utc),
				media_type_filter=media_type_filter,
			)
			self.rooms[room.id] = room
			self.codes[code] = room.id
			return replace(room)

	async def get_room(self, room_id: str) -> Optional[models.Room]:
		async with self._lock:
			room = self.rooms.get(room_id)
			return replace(room) if room else None

	async def get_room_by_code(self, code: str) -> Optional[models.Room]:
		async with self._lock:
			room_id = self.codes.get(code)
			room = self.rooms.get(room_id) if room_id else None
			return replace(room) if room else None

	async def bind_user(self, room_id: str, slot: str, user_id: str) -> None:
		async with self._lock:
			room = self.rooms.get(room_id)
			if room:
				room.bind_user(slot, user_id)

	async def set_connected(self, room_id: str, slot: str, connected: bool) -> Optional[models.Room]:
		async with self._lock:
			room = self.rooms.get(room_id)
			if room is None:
				return None
			room.set_connected(slot, connected)
			return replace(room)

	async def activate(self, room_id: str) -> Optional[models.Room]:
		async with self._lock:
			room = self.rooms.get(room_id)
			if room is None or room.status != models.STATUS_WAITING or not room.both_connected():
				return None
			room.status = models.STATUS_ACTIVE
			return replace(room)

	async def mark_matched(self, room_id: str, movie_id: int, expires_at: datetime) -> Optional[models.Room]:
		async with self._lock:
			room = self.rooms.get(room_id)
			if room is None or room.status not in models.OPEN_STATUSES:
				return None
			room.status = models.STATUS_MATCHED
			room.matched_movie_id = movie_id
			room.expires_at = expires_at
			return replace(room)

	async def expire(self, room_id: str, from_statuses: Sequence[str]) -> Optional[models.Room]:
		async with self._lock:
			room = self.rooms.get(room_id)
			if room is None or room.status not in from_statuses:
				return None
			room.status = models.STATUS_EXPIRED
			return replace(room)

	async def insert_swipe(self, swipe: models.Swipe) -> bool:
		async with self._lock:
			key = (swipe.room_id, swipe.movie_id, swipe.user_slot)
			if key in self.swipes:
				return False
			self.swipes[key] = swipe
			return True

	async def list_swipes(self, room_id: str, slot: str) -> List[models.Swipe]:
		async with self._lock:
			return [s for s in self.swipes.values() if s.room_id == room_id and s.user_slot == slot]

	async def list_rooms(self) -> List[models.Room]:
		async with self._lock:
			return [replace(room) for room in self.rooms.values()]

	async def delete_rooms(self, room_ids: Sequence[str]) -> int:
		async with self._lock:
			removed = 0
			for room_id in room_ids:
				room = self.rooms.pop(room_id, None)
				if room is None:
					continue
				removed += 1
				self.codes.pop(room.code, None)
				for key in [k for k in self.swipes if k[0] == room_id]:
					self.swipes.pop(key, None)
			return removed

	async def reset(self) -> None:
		async with self._lock:
			self.rooms.clear()
			self.codes.clear()
			self.swipes.clear()


_MEMORY = _MemoryStore()


async def reset_memory_state() -> None:
	await _MEMORY.reset()


class RoomRepository:
	def __init__(self) -> None:
		self._pool_checked = False
		self._pool_instance: Optional[asyncpg.Pool] = None

	async def _get_pool(self) -> Optional[asyncpg.Pool]:
		if self._pool_checked:
			return self._pool_instance
		self._pool_checked = True
		try:
			pool = await get_pool()
		except AssertionError:
			pool = None
		except Exception:
			pool = None
		self._pool_instance = pool
		return pool

	async def create_room(self, *, code: str, pin: str, seed: int, media_type_filter: str) -> Optional[models.Room]:
		room_id = str(ulid.new())
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.create_room(room_id, code, pin, seed, media_type_filter)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				INSERT INTO rooms (id, code, pin, movie_pool_seed, media_type_filter)
				VALUES ($1, $2, $3, $4, $5)
				ON CONFLICT (code) DO NOTHING
				RETURNING *
				""",
				room_id,
				code,
				pin,
				seed,
				media_type_filter,
			)
			return _row_to_room(row) if row else None

	async def get_room(self, room_id: str) -> Optional[models.Room]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.get_room(room_id)
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM rooms WHERE id=$1", room_id)
			return _row_to_room(row) if row else None

	async def get_room_by_code(self, code: str) -> Optional[models.Room]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.get_room_by_code(code)
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM rooms WHERE code=$1", code)
			return _row_to_room(row) if row else None

	async def bind_user(self, room_id: str, slot: str, user_id: str) -> None:
		pool = await self._get_pool()
		if pool is None:
			await _MEMORY.bind_user(room_id, slot, user_id)
			return
		_, user_column = _SLOT_COLUMNS[slot]
		async with pool.acquire() as conn:
			await conn.execute(f"UPDATE rooms SET {user_column}=$2 WHERE id=$1", room_id, user_id)

	async def set_connected(self, room_id: str, slot: str, connected: bool) -> Optional[models.Room]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.set_connected(room_id, slot, connected)
		flag_column, _ = _SLOT_COLUMNS[slot]
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				f"UPDATE rooms SET {flag_column}=$2 WHERE id=$1 RETURNING *",
				room_id,
				connected,
			)
			return _row_to_room(row) if row else None

	async def activate(self, room_id: str) -> Optional[models.Room]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.activate(room_id)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				UPDATE rooms SET status='active'
				WHERE id=$1 AND status='waiting' AND user_a_connected AND user_b_connected
				RETURNING *
				""",
				room_id,
			)
			return _row_to_room(row) if row else None

	async def mark_matched(self, room_id: str, movie_id: int, expires_at: datetime) -> Optional[models.Room]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.mark_matched(room_id, movie_id, expires_at)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				UPDATE rooms SET status='matched', matched_movie_id=$2, expires_at=$3
				WHERE id=$1 AND status IN ('waiting', 'active')
				RETURNING *
				""",
				room_id,
				movie_id,
				expires_at,
			)
			return _row_to_room(row) if row else None

	async def expire(self, room_id: str, from_statuses: Sequence[str]) -> Optional[models.Room]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.expire(room_id, from_statuses)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				UPDATE rooms SET status='expired'
				WHERE id=$1 AND status = ANY($2::text[])
				RETURNING *
				""",
				room_id,
				list(from_statuses),
			)
			return _row_to_room(row) if row else None

	async def insert_swipe(
		self,
		room_id: str,
		movie_id: int,
		slot: str,
		action: str,
		media_type: str = "movie",
	) -> bool:
		pool = await self._get_pool()
		if pool is None:
			swipe = models.Swipe(
				room_id=room_id,
				movie_id=movie_id,
				user_slot=slot,
				action=action,
				created_at=datetime.now(timezone.utc),
				media_type=media_type,
			)
			return await _MEMORY.insert_swipe(swipe)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				INSERT INTO swipes (id, room_id, movie_id, user_slot, action, media_type)
				VALUES ($1, $2, $3, $4, $5, $6)
				ON CONFLICT (room_id, movie_id, user_slot) DO NOTHING
				RETURNING id
				""",
				str(ulid.new()),
				room_id,
				movie_id,
				slot,
				action,
				media_type,
			)
			return row is not None

	async def count_swipes(self, room_id: str, slot: str) -> int:
		pool = await self._get_pool()
		if pool is None:
			return len(await _MEMORY.list_swipes(room_id, slot))
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"SELECT COUNT(*) AS cnt FROM swipes WHERE room_id=$1 AND user_slot=$2",
				room_id,
				slot,
			)
			return int(row["cnt"]) if row else 0

	async def list_swiped_ids(self, room_id: str, slot: str) -> List[int]:
		pool = await self._get_pool()
		if pool is None:
			return [s.movie_id for s in await _MEMORY.list_swipes(room_id, slot)]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT movie_id FROM swipes WHERE room_id=$1 AND user_slot=$2",
				room_id,
				slot,
			)
			return [int(row["movie_id"]) for row in rows]

	async def list_likes(self, room_id: str, slot: str) -> List[Tuple[int, str]]:
		"""Liked ids with the media type the client reported, oldest first."""
		pool = await self._get_pool()
		if pool is None:
			swipes = await _MEMORY.list_swipes(room_id, slot)
			return [(s.movie_id, s.media_type) for s in swipes if s.action == models.ACTION_LIKE]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT movie_id, media_type FROM swipes
				WHERE room_id=$1 AND user_slot=$2 AND action='like'
				ORDER BY created_at, id
				""",
				room_id,
				slot,
			)
			return [(int(row["movie_id"]), row["media_type"]) for row in rows]

	async def has_like(self, room_id: str, movie_id: int, slot: str) -> bool:
		pool = await self._get_pool()
		if pool is None:
			swipes = await _MEMORY.list_swipes(room_id, slot)
			return any(s.movie_id == movie_id and s.action == models.ACTION_LIKE for s in swipes)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				SELECT 1 FROM swipes
				WHERE room_id=$1 AND movie_id=$2 AND user_slot=$3 AND action='like'
				""",
				room_id,
				movie_id,
				slot,
			)
			return row is not None

	async def list_due_matched(self, now: datetime, *, limit: int = 100) -> List[models.Room]:
		pool = await self._get_pool()
		if pool is None:
			rooms = await _MEMORY.list_rooms()
			due = [
				r for r in rooms
				if r.status == models.STATUS_MATCHED and r.expires_at is not None and r.expires_at <= now
			]
			return due[:limit]
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM rooms
				WHERE status='matched' AND expires_at <= $1
				ORDER BY expires_at
				LIMIT $2
				""",
				now,
				limit,
			)
			return [_row_to_room(row) for row in rows]

	async def expire_waiting_before(self, cutoff: datetime) -> List[models.Room]:
		pool = await self._get_pool()
		if pool is None:
			expired: List[models.Room] = []
			for room in await _MEMORY.list_rooms():
				if room.status == models.STATUS_WAITING and room.created_at < cutoff:
					updated = await _MEMORY.expire(room.id, (models.STATUS_WAITING,))
					if updated:
						expired.append(updated)
			return expired
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				UPDATE rooms SET status='expired'
				WHERE status='waiting' AND created_at < $1
				RETURNING *
				""",
				cutoff,
			)
			return [_row_to_room(row) for row in rows]

	async def purge_expired_before(self, cutoff: datetime) -> int:
		pool = await self._get_pool()
		if pool is None:
			stale = [
				r.id for r in await _MEMORY.list_rooms()
				if r.status == models.STATUS_EXPIRED and r.created_at < cutoff
			]
			return await _MEMORY.delete_rooms(stale)
		async with pool.acquire() as conn:
			async with conn.transaction():
				await conn.execute(
					"""
					DELETE FROM swipes
					WHERE room_id IN (SELECT id FROM rooms WHERE status='expired' AND created_at < $1)
					""",
					cutoff,
				)
				result = await conn.execute(
					"DELETE FROM rooms WHERE status='expired' AND created_at < $1",
					cutoff,
				)
			return _affected(result)


def _affected(status: str) -> int:
	try:
		return int(status.split()[-1])
	except (AttributeError, ValueError, IndexError):
		return 0


def _row_to_room(row: asyncpg.Record) -> models.Room:
	return models.Room(
		id=str(row["id"]),
		code=row["code"],
		pin=row["pin"],
		status=row["status"],
		movie_pool_seed=int(row["movie_pool_seed"]),
		created_at=row["created_at"],
		media_type_filter=row["media_type_filter"],
		user_a_connected=bool(row["user_a_connected"]),
		user_b_connected=bool(row["user_b_connected"]),
		user_a_id=row["user_a_id"],
		user_b_id=row["user_b_id"],
		matched_movie_id=row["matched_movie_id"],
		expires_at=row["expires_at"],
	)


class RoomService:
	def __init__(self, repository: RoomRepository | None = None) -> None:
		self._repo = repository or RoomRepository()

	@property
	def repository(self) -> RoomRepository:
		return self._repo

	async def create_room(self, payload: schemas.RoomCreateRequest) -> schemas.RoomCreateResponse:
		room: Optional[models.Room] = None
		for _ in range(_CREATE_ATTEMPTS):
			room = await self._repo.create_room(
				code=policy.generate_code(),
				pin=policy.generate_pin(),
				seed=policy.generate_seed(),
				media_type_filter=payload.media_type_filter,
			)
			if room is not None:
				break
		if room is None:
			raise policy.RoomPolicyError("room_code_exhausted", status_code=503, message="Could not allocate a room code")
		await outbox.append_room_event("room_created", room.code, meta={"media_type_filter": room.media_type_filter})
		obs_metrics.inc_room_created()
		logger.info("room created", extra={"room_code": room.code})
		return schemas.RoomCreateResponse(
			room_code=room.code,
			pin=room.pin,
			share_url=f"/room/{room.code}/link",
			media_type_filter=room.media_type_filter,
		)

	async def join_room(
		self,
		code: str,
		payload: schemas.JoinRoomRequest,
		auth_user: AuthenticatedUser | None = None,
	) -> schemas.JoinRoomResponse:
		room = await self._repo.get_room_by_code(policy.normalise_code(code))
		room = policy.ensure_joinable(room, pin=payload.pin, via_link=payload.via_link)
		slot = policy.assign_slot(room)
		if auth_user is not None:
			await self._repo.bind_user(room.id, slot, auth_user.id)
		partner_id = room.partner_user(slot)
		return schemas.JoinRoomResponse(
			room_code=room.code,
			user_slot=slot,
			movie_pool_seed=room.movie_pool_seed,
			is_partner_authenticated=partner_id is not None,
			partner_id=partner_id,
		)

	async def get_room(self, code: str) -> Optional[models.Room]:
		return await self._repo.get_room_by_code(policy.normalise_code(code))

	async def require_room(self, code: str) -> models.Room:
		room = await self.get_room(code)
		if room is None:
			raise policy.RoomNotFound()
		return room

	async def get_room_info(self, code: str) -> schemas.RoomInfo:
		room = await self.require_room(code)
		return schemas.RoomInfo(**room.to_info())

	async def close_room(self, code: str) -> None:
		room = await self.require_room(code)
		await self.expire_room(room.id, reason="closed", from_statuses=models.OPEN_STATUSES + (models.STATUS_MATCHED,))

	async def connect(self, room: models.Room, slot: str) -> Tuple[models.Room, bool]:
		"""Mark a slot connected and activate the room once both players are present."""
		updated = await self._repo.set_connected(room.id, slot, True) or room
		if updated.status == models.STATUS_WAITING and updated.both_connected():
			activated = await self._repo.activate(updated.id)
			if activated is not None:
				obs_metrics.inc_room_activated()
				await outbox.append_room_event("room_activated", activated.code)
				return activated, True
			updated = await self._repo.get_room(updated.id) or updated
		return updated, False

	async def disconnect(self, code: str, slot: str) -> Optional[models.Room]:
		room = await self.get_room(code)
		if room is None:
			return None
		return await self._repo.set_connected(room.id, slot, False)

	async def record_swipe(
		self,
		code: str,
		movie_id: int,
		slot: str,
		action: str,
		*,
		media_type: Optional[str] = None,
	) -> Optional[models.SwipeOutcome]:
		room = await self.get_room(code)
		if room is None:
			return None
		if not room.accepts_swipes():
			obs_metrics.inc_swipe_stale()
			return models.SwipeOutcome(room=room, recorded=False, stale=True)
		if media_type is None:
			media_type = room.media_type_filter if room.media_type_filter != "all" else "movie"
		inserted = await self._repo.insert_swipe(room.id, movie_id, slot, action, media_type)
		if not inserted:
			obs_metrics.inc_swipe_duplicate()
			return models.SwipeOutcome(room=room, recorded=False, media_type=media_type)
		count = await self._repo.count_swipes(room.id, slot)
		obs_metrics.inc_swipe(action)
		await outbox.append_room_event("swipe_recorded", room.code, slot=slot, meta={"movie_id": movie_id, "action": action})
		return models.SwipeOutcome(room=room, recorded=True, swiped_count=count, media_type=media_type)

	async def expire_room(self, room_id: str, *, reason: str, from_statuses: Sequence[str]) -> Optional[models.Room]:
		expired = await self._repo.expire(room_id, from_statuses)
		if expired is None:
			return None
		obs_metrics.inc_room_expired(reason)
		await outbox.append_room_event("room_expired", expired.code, meta={"reason": reason})
		await sockets.emit_room_expired(expired.code)
		logger.info("room expired", extra={"room_code": expired.code, "reason": reason})
		return expired

	async def list_due_matched(self, now: datetime | None = None) -> List[models.Room]:
		return await self._repo.list_due_matched(now or datetime.now(timezone.utc))
