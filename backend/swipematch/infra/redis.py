"""Shared Redis client.

Modules import the `redis_client` proxy once; tests point it at fakeredis with
`set_redis_client` and every existing import follows.
"""

from __future__ import annotations

import redis.asyncio as redis

from swipematch.settings import settings


class RedisProxy:
	"""Forwards every attribute to the current client."""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	@property
	def client(self) -> redis.Redis:
		return self._client

	def __getattr__(self, item):
		return getattr(self._client, item)


_real_client = redis.from_url(settings.redis_url, decode_responses=True)
redis_client: RedisProxy = RedisProxy(_real_client)


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)
