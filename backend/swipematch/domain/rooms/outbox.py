"""Outbox helpers for swipe room events."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from redis.exceptions import RedisError

from swipematch.infra.redis import redis_client

logger = logging.getLogger(__name__)

ROOM_EVENT_STREAM = "x:swipe_rooms.events"


async def append_room_event(event: str, room_code: str, *, slot: str | None = None, meta: Mapping[str, Any] | None = None) -> bool:
	"""Append one analytics event; a stream outage never fails the room operation."""
	fields: dict[str, Any] = {
		"event": event,
		"room_code": room_code,
	}
	if slot:
		fields["slot"] = slot
	if meta:
		for key, value in meta.items():
			if value is not None:
				fields[f"meta_{key}"] = str(value)
	try:
		await redis_client.xadd(ROOM_EVENT_STREAM, fields, maxlen=100_000, approximate=True)
	except RedisError:
		logger.warning("room event not appended", extra={"event": event, "room_code": room_code}, exc_info=True)
		return False
	return True
