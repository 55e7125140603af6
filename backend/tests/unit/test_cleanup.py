from datetime import datetime, timedelta, timezone

import pytest

from swipematch.domain.rooms import models
from swipematch.domain.rooms.service import RoomRepository
from swipematch.maintenance.cleanup import expire_stale_waiting_rooms, purge_expired_rooms
from swipematch.maintenance.scheduler import MaintenanceScheduler


@pytest.mark.asyncio
async def test_abandoned_waiting_rooms_expire():
    repo = RoomRepository()
    old = await repo.create_room(code="OLD111", pin="1111", seed=1, media_type_filter="all")
    active = await repo.create_room(code="ACT111", pin="1111", seed=1, media_type_filter="all")
    await repo.set_connected(active.id, "A", True)
    await repo.set_connected(active.id, "B", True)
    await repo.activate(active.id)

    count = await expire_stale_waiting_rooms(repo, now=datetime.now(timezone.utc) + timedelta(hours=25))

    assert count == 1
    assert (await repo.get_room(old.id)).status == models.STATUS_EXPIRED
    assert (await repo.get_room(active.id)).status == models.STATUS_ACTIVE


@pytest.mark.asyncio
async def test_recent_waiting_rooms_survive():
    repo = RoomRepository()
    room = await repo.create_room(code="NEW111", pin="1111", seed=1, media_type_filter="all")

    assert await expire_stale_waiting_rooms(repo) == 0
    assert (await repo.get_room(room.id)).status == models.STATUS_WAITING


@pytest.mark.asyncio
async def test_expired_rooms_and_swipes_are_purged_after_retention():
    repo = RoomRepository()
    gone = await repo.create_room(code="GONE11", pin="1111", seed=1, media_type_filter="all")
    await repo.insert_swipe(gone.id, 10, "A", "like")
    await repo.expire(gone.id, models.OPEN_STATUSES)
    kept = await repo.create_room(code="KEEP11", pin="1111", seed=1, media_type_filter="all")

    result = await purge_expired_rooms(repo, now=datetime.now(timezone.utc) + timedelta(days=8))

    assert result == {"rooms": 1}
    assert await repo.get_room(gone.id) is None
    assert await repo.list_swiped_ids(gone.id, "A") == []
    assert await repo.get_room(kept.id) is not None


@pytest.mark.asyncio
async def test_scheduler_registers_jobs_once():
    scheduler = MaintenanceScheduler()
    scheduler.start()
    try:
        scheduler.schedule_every("rooms-expire-waiting", expire_stale_waiting_rooms, hours=1)
        scheduler.schedule_every("rooms-expire-waiting", expire_stale_waiting_rooms, hours=1)
        scheduler.schedule_every("rooms-purge-expired", purge_expired_rooms, hours=24)
        assert sorted(scheduler.job_ids()) == ["rooms-expire-waiting", "rooms-purge-expired"]
    finally:
        scheduler.shutdown()
