"""Deck settings endpoints for signed-in users."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import ValidationError

from swipematch.domain.lists import schemas
from swipematch.domain.lists.service import ListService
from swipematch.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/settings/deck", tags=["settings"])

_list_service = ListService()


@router.get("", response_model=schemas.DeckSettingsResponse)
async def get_deck_settings(
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.DeckSettingsResponse:
	settings = await _list_service.get_deck_settings(auth_user.id)
	return schemas.DeckSettingsResponse(**settings.to_dict())


@router.patch("", response_model=schemas.DeckSettingsResponse)
async def update_deck_settings(
	body: Dict[str, Any] = Body(...),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.DeckSettingsResponse:
	try:
		payload = schemas.DeckSettingsUpdate.model_validate(body)
	except ValidationError as exc:
		message = exc.errors()[0].get("msg", "invalid_deck_settings") if exc.errors() else "invalid_deck_settings"
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message) from exc
	settings = await _list_service.update_deck_settings(auth_user.id, payload)
	return schemas.DeckSettingsResponse(**settings.to_dict())
