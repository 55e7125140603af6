"""FastAPI routes for swipe rooms."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from swipematch.domain.rooms import QueueBuilder, RoomService, policy, schemas
from swipematch.infra.auth import AuthenticatedUser, get_optional_user

router = APIRouter(prefix="/rooms", tags=["rooms"])

_room_service = RoomService()
_queue_builder = QueueBuilder(rooms=_room_service.repository)


def _as_http_error(exc: policy.RoomPolicyError) -> HTTPException:
	return HTTPException(status_code=exc.status_code, detail=exc.detail)


@router.post("", response_model=schemas.RoomCreateResponse)
async def create_room_endpoint(
	payload: Optional[schemas.RoomCreateRequest] = Body(default=None),
) -> schemas.RoomCreateResponse:
	try:
		return await _room_service.create_room(payload or schemas.RoomCreateRequest())
	except policy.RoomPolicyError as exc:
		raise _as_http_error(exc) from exc


@router.post("/{room_code}/join", response_model=schemas.JoinRoomResponse)
async def join_room_endpoint(
	room_code: str,
	payload: schemas.JoinRoomRequest,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> schemas.JoinRoomResponse:
	try:
		return await _room_service.join_room(room_code, payload, auth_user)
	except policy.RoomPolicyError as exc:
		raise _as_http_error(exc) from exc


@router.get("/{room_code}", response_model=schemas.RoomInfo)
async def room_info_endpoint(room_code: str) -> schemas.RoomInfo:
	try:
		return await _room_service.get_room_info(room_code)
	except policy.RoomPolicyError as exc:
		raise _as_http_error(exc) from exc


@router.delete("/{room_code}")
async def close_room_endpoint(room_code: str) -> dict:
	try:
		await _room_service.close_room(room_code)
	except policy.RoomPolicyError as exc:
		raise _as_http_error(exc) from exc
	return {"success": True}


@router.get("/{room_code}/queue", response_model=schemas.QueueResponse)
async def room_queue_endpoint(
	room_code: str,
	user_slot: Optional[str] = Query(default=None, alias="userSlot"),
	limit: Optional[int] = Query(default=None, ge=1),
	offset: int = Query(default=0, ge=0),
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> schemas.QueueResponse:
	try:
		return await _queue_builder.build_queue(
			room_code,
			user_slot or "",
			auth_user.id if auth_user else None,
			limit=limit,
			offset=offset,
		)
	except policy.RoomPolicyError as exc:
		raise _as_http_error(exc) from exc
