"""Repositories and service for deck settings and watch-lists."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

import asyncpg

from swipematch.domain.lists import models, schemas
from swipematch.infra.postgres import get_pool


class _MemoryStore:
	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.settings: Dict[str, models.DeckSettings] = {}
		self.entries: Dict[str, Dict[int, models.WatchListEntry]] = {}

	async def get_settings(self, user_id: str) -> Optional[models.DeckSettings]:
		async with self._lock:
			return self.settings.get(user_id)

	async def put_settings(self, settings: models.DeckSettings) -> models.DeckSettings:
		async with self._lock:
			self.settings[settings.user_id] = settings
			return settings

	async def list_entries(self, user_id: str, statuses: Sequence[str]) -> List[models.WatchListEntry]:
		async with self._lock:
			entries = [e for e in self.entries.get(user_id, {}).values() if e.status in statuses]
			return sorted(entries, key=lambda e: e.added_at or datetime.min.replace(tzinfo=timezone.utc))

	async def put_entry(self, entry: models.WatchListEntry) -> None:
		async with self._lock:
			self.entries.setdefault(entry.user_id, {})[entry.tmdb_id] = entry

	async def reset(self) -> None:
		async with self._lock:
			self.settings.clear()
			self.entries.clear()


_MEMORY = _MemoryStore()


async def reset_memory_state() -> None:
	await _MEMORY.reset()


class ListRepository:
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

	async def get_settings(self, user_id: str) -> Optional[models.DeckSettings]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.get_settings(user_id)
		async with pool.acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM deck_settings WHERE user_id=$1", user_id)
			return _row_to_settings(row) if row else None

	async def upsert_settings(self, settings: models.DeckSettings) -> models.DeckSettings:
		settings.updated_at = datetime.now(timezone.utc)
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.put_settings(settings)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				INSERT INTO deck_settings (user_id, show_watched_movies, min_rating_filter, updated_at)
				VALUES ($1, $2, $3, NOW())
				ON CONFLICT (user_id) DO UPDATE
				SET show_watched_movies = EXCLUDED.show_watched_movies,
					min_rating_filter = EXCLUDED.min_rating_filter,
					updated_at = NOW()
				RETURNING *
				""",
				settings.user_id,
				settings.show_watched_movies,
				settings.min_rating_filter,
			)
			return _row_to_settings(row)

	async def list_entries(self, user_id: str, statuses: Sequence[str]) -> List[models.WatchListEntry]:
		pool = await self._get_pool()
		if pool is None:
			return await _MEMORY.list_entries(user_id, statuses)
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM user_movie_lists
				WHERE user_id = $1 AND status = ANY($2::text[])
				ORDER BY added_at
				""",
				user_id,
				list(statuses),
			)
			return [_row_to_entry(row) for row in rows]

	async def has_entry(self, user_id: str, tmdb_id: int, statuses: Sequence[str]) -> bool:
		pool = await self._get_pool()
		if pool is None:
			entries = await _MEMORY.list_entries(user_id, statuses)
			return any(e.tmdb_id == tmdb_id for e in entries)
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				SELECT 1 FROM user_movie_lists
				WHERE user_id = $1 AND tmdb_id = $2 AND status = ANY($3::text[])
				LIMIT 1
				""",
				user_id,
				tmdb_id,
				list(statuses),
			)
			return row is not None

	async def upsert_entry(self, entry: models.WatchListEntry) -> models.WatchListEntry:
		if entry.added_at is None:
			entry.added_at = datetime.now(timezone.utc)
		pool = await self._get_pool()
		if pool is None:
			await _MEMORY.put_entry(entry)
			return entry
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				INSERT INTO user_movie_lists (user_id, tmdb_id, media_type, status, rating, added_at)
				VALUES ($1, $2, $3, $4, $5, $6)
				ON CONFLICT (user_id, tmdb_id) DO UPDATE
				SET status = EXCLUDED.status, rating = EXCLUDED.rating, media_type = EXCLUDED.media_type
				RETURNING *
				""",
				entry.user_id,
				entry.tmdb_id,
				entry.media_type,
				entry.status,
				entry.rating,
				entry.added_at,
			)
			return _row_to_entry(row)


def _row_to_settings(row: asyncpg.Record) -> models.DeckSettings:
	return models.DeckSettings(
		user_id=str(row["user_id"]),
		show_watched_movies=bool(row["show_watched_movies"]),
		min_rating_filter=row["min_rating_filter"],
		updated_at=row["updated_at"],
	)


def _row_to_entry(row: asyncpg.Record) -> models.WatchListEntry:
	return models.WatchListEntry(
		user_id=str(row["user_id"]),
		tmdb_id=int(row["tmdb_id"]),
		status=row["status"],
		rating=row["rating"],
		media_type=row["media_type"],
		added_at=row["added_at"],
	)


class ListService:
	"""Read side used by the queue and match logic, plus deck settings CRUD."""

	def __init__(self, repository: ListRepository | None = None) -> None:
		self._repo = repository or ListRepository()

	async def get_deck_settings(self, user_id: Optional[str]) -> models.DeckSettings:
		if not user_id:
			return models.DeckSettings(user_id="")
		stored = await self._repo.get_settings(user_id)
		return stored or models.DeckSettings(user_id=user_id)

	async def update_deck_settings(self, user_id: str, payload: schemas.DeckSettingsUpdate) -> models.DeckSettings:
		current = await self.get_deck_settings(user_id)
		fields = payload.model_fields_set
		if "show_watched_movies" in fields and payload.show_watched_movies is not None:
			current.show_watched_movies = payload.show_watched_movies
		if "min_rating_filter" in fields:
			current.min_rating_filter = payload.min_rating_filter
		return await self._repo.upsert_settings(current)

	async def priority_entries(self, user_id: str) -> List[models.WatchListEntry]:
		return await self._repo.list_entries(user_id, models.PRIORITY_STATUSES)

	async def has_priority_entries(self, user_id: str) -> bool:
		return bool(await self.priority_entries(user_id))

	async def is_priority_item(self, user_id: str, tmdb_id: int) -> bool:
		return await self._repo.has_entry(user_id, tmdb_id, models.PRIORITY_STATUSES)

	async def watched_ids(self, user_id: str) -> List[int]:
		entries = await self._repo.list_entries(user_id, (models.STATUS_WATCHED,))
		return [e.tmdb_id for e in entries]

	async def add_entries(self, entries: Iterable[models.WatchListEntry]) -> None:
		for entry in entries:
			await self._repo.upsert_entry(entry)
