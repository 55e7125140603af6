"""Observability package bootstrap."""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import make_asgi_app

from swipematch.obs import logging as obs_logging
from swipematch.obs import middleware
from swipematch.settings import settings

_initialised = False


def init(app: FastAPI) -> None:
	global _initialised
	if _initialised:
		return
	if not settings.obs_enabled:
		return
	obs_logging.configure_logging()
	middleware.install(app)
	app.mount("/metrics", make_asgi_app())
	_initialised = True


__all__ = ["init"]
