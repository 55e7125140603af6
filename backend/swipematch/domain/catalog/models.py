"""Catalog item types shared by the pool, queue and realtime layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

MEDIA_MOVIE = "movie"
MEDIA_TV = "tv"


class CatalogUnavailable(RuntimeError):
	"""Raised by catalog clients when the upstream provider cannot answer."""


@dataclass(frozen=True, slots=True)
class PoolItem:
	id: int
	kind: str = MEDIA_MOVIE

	def key(self) -> tuple[str, int]:
		return (self.kind, self.id)


@dataclass(slots=True)
class CatalogItem:
	"""Display metadata for a movie or series."""

	tmdb_id: int
	title: str
	media_type: str = MEDIA_MOVIE
	overview: str = ""
	poster_url: str = ""
	release_date: str = ""
	rating: Optional[str] = None
	genres: List[str] = field(default_factory=list)
	runtime: Optional[int] = None
	original_language: Optional[str] = None
	number_of_seasons: Optional[int] = None
	number_of_episodes: Optional[int] = None

	def to_dict(self) -> Dict[str, Any]:
		return {
			"tmdbId": self.tmdb_id,
			"title": self.title,
			"overview": self.overview,
			"posterUrl": self.poster_url,
			"releaseDate": self.release_date,
			"ratings": {"tmdb": self.rating or "0"},
			"genres": list(self.genres),
			"runtime": self.runtime,
			"originalLanguage": self.original_language,
			"mediaType": self.media_type,
			"numberOfSeasons": self.number_of_seasons,
			"numberOfEpisodes": self.number_of_episodes,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "CatalogItem":
		ratings = data.get("ratings") or {}
		return cls(
			tmdb_id=int(data["tmdbId"]),
			title=str(data.get("title") or ""),
			media_type=str(data.get("mediaType") or MEDIA_MOVIE),
			overview=str(data.get("overview") or ""),
			poster_url=str(data.get("posterUrl") or ""),
			release_date=str(data.get("releaseDate") or ""),
			rating=ratings.get("tmdb"),
			genres=[str(g) for g in data.get("genres") or []],
			runtime=data.get("runtime"),
			original_language=data.get("originalLanguage"),
			number_of_seasons=data.get("numberOfSeasons"),
			number_of_episodes=data.get("numberOfEpisodes"),
		)
