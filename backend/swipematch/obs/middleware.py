"""Request id propagation and HTTP metrics."""

from __future__ import annotations

import time
from uuid import uuid4

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from swipematch.obs import logging as obs_logging
from swipematch.obs import metrics

_logger = obs_logging.get_logger("swipematch.http")


def _route_label(request: Request) -> str:
	route = request.scope.get("route")
	return getattr(route, "path", None) or request.url.path


class RequestContextMiddleware(BaseHTTPMiddleware):
	"""Tags each request with an id, times it and logs one line per request."""

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		request_id = request.headers.get("X-Request-Id") or uuid4().hex
		request.state.request_id = request_id
		tokens = obs_logging.bind_context(request_id=request_id)
		started = time.perf_counter()
		status_code = 500
		try:
			response = await call_next(request)
			status_code = response.status_code
			response.headers.setdefault("X-Request-Id", request_id)
			return response
		except Exception:
			_logger.exception("http_request_error", extra={"method": request.method, "path": request.url.path})
			raise
		finally:
			elapsed = time.perf_counter() - started
			route = _route_label(request)
			metrics.observe_request(route, request.method, status_code, elapsed)
			_logger.info(
				"http_request",
				extra={"status": status_code, "method": request.method, "route": route, "latency_ms": round(elapsed * 1000, 3)},
			)
			obs_logging.reset_context(tokens)


def install(app: FastAPI) -> None:
	app.add_middleware(RequestContextMiddleware)
