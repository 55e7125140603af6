"""Deferred expiry of matched rooms.

A matched room stays visible for a grace period, then moves to ``expired``.
Each instance schedules an in-process timer when it records a match and a
periodic sweeper catches rooms whose timer was lost, e.g. after a restart.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from redis.exceptions import RedisError

from swipematch.domain.rooms import models
from swipematch.domain.rooms.service import RoomService
from swipematch.infra.redis import redis_client
from swipematch.settings import settings

logger = logging.getLogger(__name__)

EXPIRY_KEY = "room:{room_id}:expiry"

_tasks: Dict[str, asyncio.Task] = {}


def _expiry_key(room_id: str) -> str:
	return EXPIRY_KEY.format(room_id=room_id)


async def schedule_expiry(service: RoomService, room: models.Room, *, delay_seconds: Optional[float] = None) -> None:
	if delay_seconds is None:
		if room.expires_at is not None:
			delay_seconds = max(0.0, (room.expires_at - datetime.now(timezone.utc)).total_seconds())
		else:
			delay_seconds = float(settings.match_ttl_seconds)
	existing = _tasks.pop(room.id, None)
	if existing and not existing.done():
		existing.cancel()
	task = asyncio.create_task(_expire_later(service, room.id, delay_seconds), name=f"room-expiry:{room.code}")
	_tasks[room.id] = task
	try:
		await redis_client.set(_expiry_key(room.id), room.code, ex=max(1, int(delay_seconds) + 1))
	except RedisError:
		logger.warning("expiry marker not stored", extra={"room_code": room.code}, exc_info=True)


async def _expire_later(service: RoomService, room_id: str, delay_seconds: float) -> None:
	try:
		await asyncio.sleep(delay_seconds)
		await expire_matched(service, room_id)
	except asyncio.CancelledError:
		raise
	except Exception:
		logger.exception("scheduled room expiry failed", extra={"room_id": room_id})
	finally:
		if _tasks.get(room_id) is asyncio.current_task():
			_tasks.pop(room_id, None)


async def expire_matched(service: RoomService, room_id: str) -> bool:
	"""Move a matched room to expired; a no-op if another worker already did."""
	expired = await service.expire_room(room_id, reason="match_ttl", from_statuses=(models.STATUS_MATCHED,))
	await redis_client.delete(_expiry_key(room_id))
	return expired is not None


async def sweep_due_rooms(service: RoomService, now: Optional[datetime] = None) -> int:
	expired = 0
	for room in await service.list_due_matched(now):
		if await expire_matched(service, room.id):
			expired += 1
	return expired


async def run_expiry_sweeper(service: RoomService, interval_seconds: Optional[float] = None) -> None:
	interval = interval_seconds or float(settings.expiry_sweep_interval_seconds)
	while True:
		try:
			count = await sweep_due_rooms(service)
			if count:
				logger.info("expired matched rooms", extra={"count": count})
		except asyncio.CancelledError:
			raise
		except Exception:
			logger.exception("expiry sweep failed")
		await asyncio.sleep(interval)


def pending_count() -> int:
	return sum(1 for task in _tasks.values() if not task.done())


async def shutdown() -> None:
	tasks = list(_tasks.values())
	_tasks.clear()
	for task in tasks:
		task.cancel()
	for task in tasks:
		try:
			await task
		except asyncio.CancelledError:
			pass
