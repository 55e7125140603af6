"""FastAPI application entrypoint."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from swipematch.api import deck, rooms
from swipematch.api.errors import install_error_handlers
from swipematch.domain.catalog import close_catalog
from swipematch.domain.rooms import RoomCoordinator, timers
from swipematch.domain.rooms.sockets import SwipeRoomsNamespace, set_namespace
from swipematch.infra import postgres
from swipematch.maintenance.cleanup import expire_stale_waiting_rooms, purge_expired_rooms
from swipematch.maintenance.scheduler import MaintenanceScheduler
from swipematch.obs import init as obs_init
from swipematch.settings import settings

coordinator = RoomCoordinator()


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	worker_tasks: list[asyncio.Task] = []
	scheduler: MaintenanceScheduler | None = None
	if settings.maintenance_enabled:
		scheduler = MaintenanceScheduler()
		scheduler.start()
		scheduler.schedule_every("rooms-expire-waiting", expire_stale_waiting_rooms, hours=1)
		scheduler.schedule_every("rooms-purge-expired", purge_expired_rooms, hours=24)
		worker_tasks.append(
			asyncio.create_task(timers.run_expiry_sweeper(coordinator.service), name="room-expiry-sweeper")
		)
	app.state.maintenance_scheduler = scheduler
	try:
		yield
	finally:
		if scheduler is not None:
			scheduler.shutdown()
		for task in worker_tasks:
			task.cancel()
		await asyncio.gather(*worker_tasks, return_exceptions=True)
		await timers.shutdown()
		await close_catalog()
		await postgres.close_pool()


app = FastAPI(title="Swipematch", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins or [])
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
rooms_namespace = SwipeRoomsNamespace(coordinator)
sio.register_namespace(rooms_namespace)
set_namespace(rooms_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app, socketio_path=settings.socket_path)
obs_init(app)

app.include_router(rooms.router)
app.include_router(deck.router)


@app.get("/health")
async def health() -> dict:
	return {"status": "ok", "service": settings.service_name}
