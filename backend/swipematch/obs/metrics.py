"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"swipematch_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"swipematch_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"swipematch_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"swipematch_socketio_events_total",
	"Socket.IO events handled or emitted per namespace",
	["namespace", "event"],
)

ROOMS_CREATED = Counter(
	"swipematch_rooms_created_total",
	"Swipe rooms created",
)

ROOMS_ACTIVATED = Counter(
	"swipematch_rooms_activated_total",
	"Swipe rooms that reached the active state",
)

ROOMS_EXPIRED = Counter(
	"swipematch_rooms_expired_total",
	"Swipe rooms moved to the expired state",
	["reason"],
)

SWIPES_RECORDED = Counter(
	"swipematch_swipes_recorded_total",
	"Swipes persisted",
	["action"],
)

SWIPES_DUPLICATE = Counter(
	"swipematch_swipes_duplicate_total",
	"Swipes ignored because the same slot already swiped the item",
)

SWIPES_STALE = Counter(
	"swipematch_swipes_stale_total",
	"Swipes ignored because the room is matched or expired",
)

MATCHES = Counter(
	"swipematch_matches_total",
	"Matches detected",
	["via"],
)

QUEUE_BUILDS = Counter(
	"swipematch_queue_builds_total",
	"Queue pages built",
	["slot"],
)

QUEUE_BUILD_LATENCY = Histogram(
	"swipematch_queue_build_duration_seconds",
	"Queue build latency in seconds",
	buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

CATALOG_LOOKUPS = Counter(
	"swipematch_catalog_lookups_total",
	"Catalog item lookups by outcome",
	["result"],
)

POOL_BUILDS = Counter(
	"swipematch_pool_builds_total",
	"Base pool builds by cache outcome",
	["result"],
)

JOB_RUNS = Counter(
	"swipematch_job_runs_total",
	"Maintenance job runs",
	["job", "result"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_room_created() -> None:
	ROOMS_CREATED.inc()


def inc_room_activated() -> None:
	ROOMS_ACTIVATED.inc()


def inc_room_expired(reason: str) -> None:
	ROOMS_EXPIRED.labels(reason=reason).inc()


def inc_swipe(action: str) -> None:
	SWIPES_RECORDED.labels(action=action).inc()


def inc_swipe_duplicate() -> None:
	SWIPES_DUPLICATE.inc()


def inc_swipe_stale() -> None:
	SWIPES_STALE.inc()


def inc_match(via: str) -> None:
	MATCHES.labels(via=via).inc()


def observe_queue_build(slot: str, elapsed_seconds: float) -> None:
	QUEUE_BUILDS.labels(slot=slot).inc()
	QUEUE_BUILD_LATENCY.observe(elapsed_seconds)


def inc_catalog_lookup(result: str, count: int = 1) -> None:
	if count > 0:
		CATALOG_LOOKUPS.labels(result=result).inc(count)


def inc_pool_build(result: str) -> None:
	POOL_BUILDS.labels(result=result).inc()


def record_job_run(job: str, *, result: str) -> None:
	JOB_RUNS.labels(job=job, result=result).inc()
