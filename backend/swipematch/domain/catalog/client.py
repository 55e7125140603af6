"""HTTP client for a TMDB-compatible catalog API."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence

import httpx

from swipematch.domain.catalog.models import MEDIA_MOVIE, MEDIA_TV, CatalogItem, CatalogUnavailable

logger = logging.getLogger(__name__)

CATEGORY_KINDS: Dict[str, str] = {
	"movie_top_rated": MEDIA_MOVIE,
	"movie_new_releases": MEDIA_MOVIE,
	"tv_top_rated": MEDIA_TV,
	"tv_popular": MEDIA_TV,
}


def category_kind(category: str) -> str:
	try:
		return CATEGORY_KINDS[category]
	except KeyError as exc:
		raise ValueError(f"unknown catalog category: {category}") from exc


@dataclass
class TmdbCatalogClient:
	"""Fetches "interesting" lists and item details over HTTP."""

	http: httpx.AsyncClient
	api_key: Optional[str] = None
	language: str = "en-US"
	image_base_url: str = "https://image.tmdb.org/t/p/w500"
	concurrency: int = 8
	request_timeout: float = 4.0
	_semaphore: asyncio.Semaphore | None = field(default=None, init=False, repr=False)

	async def list_interesting(self, category: str, page: int) -> List[int]:
		kind = category_kind(category)
		params: Dict[str, object] = {"page": page}
		if category == "movie_top_rated":
			path = "/movie/top_rated"
		elif category == "movie_new_releases":
			path = "/discover/movie"
			params["primary_release_year"] = datetime.now(timezone.utc).year
			params["sort_by"] = "popularity.desc"
		elif category == "tv_top_rated":
			path = "/tv/top_rated"
		else:
			path = "/tv/popular"
		payload = await self._get(path, params)
		if payload is None:
			raise CatalogUnavailable(f"{kind} list {category} page {page} not found")
		return [int(row["id"]) for row in payload.get("results", []) if row.get("id") is not None]

	async def resolve_many(
		self,
		ids: Sequence[int],
		*,
		kinds: Mapping[int, str] | None = None,
	) -> Dict[int, Optional[CatalogItem]]:
		kinds = kinds or {}
		unique = list(dict.fromkeys(int(i) for i in ids))
		results = await asyncio.gather(*(self._resolve_one(i, kinds.get(i, MEDIA_MOVIE)) for i in unique))
		return dict(zip(unique, results))

	async def _resolve_one(self, tmdb_id: int, kind: str) -> Optional[CatalogItem]:
		if self._semaphore is None:
			self._semaphore = asyncio.Semaphore(max(1, self.concurrency))
		async with self._semaphore:
			try:
				payload = await self._get(f"/{kind}/{tmdb_id}", {})
			except CatalogUnavailable:
				logger.warning("catalog lookup failed", extra={"tmdb_id": tmdb_id, "kind": kind})
				return None
		if payload is None:
			return None
		return self._to_item(payload, kind)

	async def _get(self, path: str, params: Dict[str, object]) -> Optional[dict]:
		query = {"language": self.language, **params}
		if self.api_key:
			query["api_key"] = self.api_key
		try:
			response = await self.http.get(path, params=query, timeout=self.request_timeout)
		except httpx.HTTPError as exc:
			raise CatalogUnavailable(str(exc)) from exc
		if response.status_code == 404:
			return None
		if response.status_code >= 400:
			raise CatalogUnavailable(f"catalog responded {response.status_code} for {path}")
		try:
			return response.json()
		except ValueError as exc:
			raise CatalogUnavailable(f"catalog returned malformed JSON for {path}") from exc

	def _to_item(self, payload: dict, kind: str) -> CatalogItem:
		poster_path = payload.get("poster_path")
		if kind == MEDIA_TV:
			run_times = payload.get("episode_run_time") or []
			runtime = round(sum(run_times) / len(run_times)) if run_times else None
			return CatalogItem(
				tmdb_id=int(payload["id"]),
				title=str(payload.get("name") or ""),
				media_type=MEDIA_TV,
				overview=str(payload.get("overview") or ""),
				poster_url=f"{self.image_base_url}{poster_path}" if poster_path else "",
				release_date=str(payload.get("first_air_date") or ""),
				rating=str(payload.get("vote_average", 0)),
				genres=[str(g.get("name")) for g in payload.get("genres") or [] if g.get("name")],
				runtime=runtime,
				original_language=payload.get("original_language"),
				number_of_seasons=payload.get("number_of_seasons"),
				number_of_episodes=payload.get("number_of_episodes"),
			)
		return CatalogItem(
			tmdb_id=int(payload["id"]),
			title=str(payload.get("title") or ""),
			media_type=MEDIA_MOVIE,
			overview=str(payload.get("overview") or ""),
			poster_url=f"{self.image_base_url}{poster_path}" if poster_path else "",
			release_date=str(payload.get("release_date") or ""),
			rating=str(payload.get("vote_average", 0)),
			genres=[str(g.get("name")) for g in payload.get("genres") or [] if g.get("name")],
			runtime=payload.get("runtime"),
			original_language=payload.get("original_language"),
		)
