from datetime import datetime, timezone

import pytest

from swipematch.domain.rooms import models
from swipematch.domain.rooms.service import RoomRepository


async def _create(api_client, **body):
    resp = await api_client.post("/rooms", json=body or None)
    assert resp.status_code == 200
    return resp.json()


@pytest.mark.asyncio
async def test_create_room_returns_credentials(api_client):
    data = await _create(api_client)

    assert len(data["roomCode"]) == 6
    assert len(data["pin"]) == 4 and data["pin"].isdigit()
    assert data["shareUrl"] == f"/room/{data['roomCode']}/link"
    assert data["mediaTypeFilter"] == "all"


@pytest.mark.asyncio
async def test_create_room_rejects_unknown_media_filter(api_client):
    resp = await api_client.post("/rooms", json={"mediaTypeFilter": "anime"})

    assert resp.status_code == 422
    assert resp.json()["detail"] == "validation_error"


@pytest.mark.asyncio
async def test_join_with_pin_assigns_first_free_slot(api_client):
    created = await _create(api_client, mediaTypeFilter="tv")

    resp = await api_client.post(f"/rooms/{created['roomCode'].lower()}/join", json={"pin": created["pin"]})

    assert resp.status_code == 200
    body = resp.json()
    assert body["roomCode"] == created["roomCode"]
    assert body["userSlot"] == "A"
    assert body["isPartnerAuthenticated"] is False
    assert body["partnerId"] is None


@pytest.mark.asyncio
async def test_join_with_wrong_pin_is_unauthorised(api_client):
    created = await _create(api_client)
    wrong = "0000" if created["pin"] != "0000" else "1111"

    resp = await api_client.post(f"/rooms/{created['roomCode']}/join", json={"pin": wrong})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid PIN"


@pytest.mark.asyncio
async def test_join_via_link_skips_pin(api_client):
    created = await _create(api_client)

    resp = await api_client.post(f"/rooms/{created['roomCode']}/join", json={"viaLink": True})

    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_join_unknown_room_is_not_found(api_client):
    resp = await api_client.post("/rooms/ZZZZZZ/join", json={"pin": "1234"})

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_join_reports_bound_partner(api_client):
    created = await _create(api_client)
    repo = RoomRepository()
    room = await repo.get_room_by_code(created["roomCode"])
    await repo.bind_user(room.id, "A", "user-a")
    await repo.set_connected(room.id, "A", True)

    resp = await api_client.post(
        f"/rooms/{created['roomCode']}/join",
        json={"pin": created["pin"]},
        headers={"X-User-Id": "user-b"},
    )

    body = resp.json()
    assert body["userSlot"] == "B"
    assert body["isPartnerAuthenticated"] is True
    assert body["partnerId"] == "user-a"
    stored = await repo.get_room(room.id)
    assert stored.user_b_id == "user-b"


@pytest.mark.asyncio
async def test_join_full_room_conflicts(api_client):
    created = await _create(api_client)
    repo = RoomRepository()
    room = await repo.get_room_by_code(created["roomCode"])
    await repo.set_connected(room.id, "A", True)
    await repo.set_connected(room.id, "B", True)

    resp = await api_client.post(f"/rooms/{created['roomCode']}/join", json={"pin": created["pin"]})

    assert resp.status_code == 409
    assert resp.json()["detail"] == "Room is full"


@pytest.mark.asyncio
async def test_join_matched_room_conflicts(api_client):
    created = await _create(api_client)
    repo = RoomRepository()
    room = await repo.get_room_by_code(created["roomCode"])
    await repo.mark_matched(room.id, 42, datetime.now(timezone.utc))

    resp = await api_client.post(f"/rooms/{created['roomCode']}/join", json={"pin": created["pin"]})

    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_closed_room_reports_expired(api_client):
    created = await _create(api_client)

    closed = await api_client.delete(f"/rooms/{created['roomCode']}")
    info = await api_client.get(f"/rooms/{created['roomCode']}")
    join = await api_client.post(f"/rooms/{created['roomCode']}/join", json={"pin": created["pin"]})

    assert closed.json() == {"success": True}
    assert info.status_code == 200
    assert info.json()["status"] == models.STATUS_EXPIRED
    assert join.status_code == 410


@pytest.mark.asyncio
async def test_room_info_unknown_code(api_client):
    resp = await api_client.get("/rooms/NOPE22")

    assert resp.status_code == 404
    assert resp.json()["detail"] == "Room not found"


@pytest.mark.asyncio
async def test_queue_endpoint_pages_the_pool(api_client, fake_catalog):
    fake_catalog.set_list("movie_top_rated", list(range(1, 9)))
    created = await _create(api_client)

    first = await api_client.get(f"/rooms/{created['roomCode']}/queue", params={"userSlot": "A", "limit": 5})
    second = await api_client.get(
        f"/rooms/{created['roomCode']}/queue",
        params={"userSlot": "A", "limit": 5, "offset": 5},
    )

    assert first.status_code == 200
    page_one = first.json()
    assert len(page_one["items"]) == 5
    assert page_one["items"][0]["source"] == "base"
    assert page_one["meta"]["hasMore"] is True
    assert page_one["meta"]["totalRemaining"] == 8
    page_two = second.json()
    assert len(page_two["items"]) == 3
    assert page_two["meta"]["hasMore"] is False
    ids = [m["movie"]["tmdbId"] for m in page_one["items"] + page_two["items"]]
    assert sorted(ids) == list(range(1, 9))


@pytest.mark.asyncio
async def test_queue_endpoint_rejects_bad_slot(api_client):
    created = await _create(api_client)

    resp = await api_client.get(f"/rooms/{created['roomCode']}/queue", params={"userSlot": "C"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Slot must be A or B"
