"""Movie catalog collaborator: item metadata and discovery lists."""

from __future__ import annotations

from typing import Optional

import httpx

from swipematch.domain.catalog.client import TmdbCatalogClient
from swipematch.domain.catalog.models import CatalogItem, CatalogUnavailable, PoolItem
from swipematch.domain.catalog.resolver import CachedCatalogResolver, CatalogResolver
from swipematch.settings import settings

_catalog: Optional[CatalogResolver] = None
_http: Optional[httpx.AsyncClient] = None


def set_catalog(catalog: Optional[CatalogResolver]) -> None:
	global _catalog
	_catalog = catalog


def get_catalog() -> CatalogResolver:
	global _catalog, _http
	if _catalog is None:
		_http = httpx.AsyncClient(base_url=settings.catalog_base_url, timeout=settings.catalog_timeout_seconds)
		client = TmdbCatalogClient(
			http=_http,
			api_key=settings.catalog_api_key,
			language=settings.catalog_language,
			image_base_url=settings.catalog_image_base_url,
			concurrency=settings.catalog_concurrency,
			request_timeout=settings.catalog_timeout_seconds,
		)
		_catalog = CachedCatalogResolver(
			client,
			ttl_seconds=settings.catalog_item_ttl_seconds,
			timeout_seconds=settings.catalog_timeout_seconds,
		)
	return _catalog


async def close_catalog() -> None:
	global _catalog, _http
	if _http is not None:
		await _http.aclose()
	_http = None
	_catalog = None


__all__ = [
	"CachedCatalogResolver",
	"CatalogItem",
	"CatalogResolver",
	"CatalogUnavailable",
	"PoolItem",
	"TmdbCatalogClient",
	"close_catalog",
	"get_catalog",
	"set_catalog",
]
