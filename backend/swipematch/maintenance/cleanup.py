from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from swipematch.domain.rooms import sockets
from swipematch.domain.rooms.service import RoomRepository
from swipematch.obs import metrics as obs_metrics
from swipematch.settings import settings

logger = logging.getLogger(__name__)


async def expire_stale_waiting_rooms(
	repository: RoomRepository | None = None,
	*,
	now: Optional[datetime] = None,
	max_age_hours: Optional[int] = None,
) -> int:
	"""Close rooms nobody finished joining within the allowed window."""
	repo = repository or RoomRepository()
	now = now or datetime.now(timezone.utc)
	cutoff = now - timedelta(hours=max_age_hours or settings.waiting_room_max_age_hours)
	try:
		expired = await repo.expire_waiting_before(cutoff)
	except Exception:
		obs_metrics.record_job_run("expire_waiting", result="error")
		logger.exception("waiting room expiry failed")
		raise
	for room in expired:
		obs_metrics.inc_room_expired("abandoned")
		await sockets.emit_room_expired(room.code)
	obs_metrics.record_job_run("expire_waiting", result="ok")
	logger.info("expired abandoned rooms", extra={"count": len(expired)})
	return len(expired)


async def purge_expired_rooms(
	repository: RoomRepository | None = None,
	*,
	now: Optional[datetime] = None,
	retention_days: Optional[int] = None,
) -> Dict[str, int]:
	"""Delete expired rooms and their swipes once they fall out of retention."""
	repo = repository or RoomRepository()
	now = now or datetime.now(timezone.utc)
	cutoff = now - timedelta(days=retention_days or settings.expired_room_retention_days)
	try:
		deleted = await repo.purge_expired_before(cutoff)
	except Exception:
		obs_metrics.record_job_run("purge_expired", result="error")
		logger.exception("expired room purge failed")
		raise
	obs_metrics.record_job_run("purge_expired", result="ok")
	logger.info("purged expired rooms", extra={"count": deleted})
	return {"rooms": deleted}
