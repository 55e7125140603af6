import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from swipematch.domain.catalog import CatalogUnavailable, set_catalog
from swipematch.domain.catalog.models import CatalogItem
from swipematch.domain.lists.service import reset_memory_state as reset_list_state
from swipematch.domain.rooms import sockets, timers
from swipematch.domain.rooms.service import reset_memory_state as reset_room_state
from swipematch.infra import postgres
from swipematch.main import app
from swipematch.settings import settings


class FakeCatalog:
	"""In-memory catalog with configurable lists, gaps and latency."""

	def __init__(self) -> None:
		self.lists: Dict[str, Dict[int, List[int]]] = {}
		self.missing: set[int] = set()
		self.unavailable: set[str] = set()
		self.delay: float = 0.0
		self.list_calls: List[tuple[str, int]] = []
		self.resolve_calls: List[List[int]] = []

	def set_list(self, category: str, ids: Sequence[int], *, page: int = 1) -> None:
		self.lists.setdefault(category, {})[page] = list(ids)

	async def list_interesting(self, category: str, page: int) -> List[int]:
		self.list_calls.append((category, page))
		if category in self.unavailable:
			raise CatalogUnavailable(category)
		return list(self.lists.get(category, {}).get(page, []))

	async def resolve_many(self, ids, *, kinds: Optional[Dict[int, str]] = None):
		kinds = kinds or {}
		self.resolve_calls.append(list(ids))
		if self.delay:
			await asyncio.sleep(self.delay)
		return {
			i: None if i in self.missing else CatalogItem(tmdb_id=i, title=f"Title {i}", media_type=kinds.get(i, "movie"))
			for i in ids
		}


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from swipematch.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		await timers.shutdown()
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest_asyncio.fixture(autouse=True)
async def reset_state():
	await reset_room_state()
	await reset_list_state()
	yield
	await reset_room_state()
	await reset_list_state()


@pytest.fixture(autouse=True)
def fake_catalog():
	catalog = FakeCatalog()
	set_catalog(catalog)
	try:
		yield catalog
	finally:
		set_catalog(None)


@pytest.fixture(autouse=True)
def isolate_namespace():
	original = sockets.get_namespace()
	try:
		yield
	finally:
		sockets.set_namespace(original)


@pytest.fixture(autouse=True)
def force_test_settings():
	original_env = settings.environment
	settings.environment = "dev"
	try:
		yield
	finally:
		settings.environment = original_env


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
