"""Pydantic schemas for the swipe rooms API and socket payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SlotValue = Literal["A", "B"]
ActionValue = Literal["like", "skip"]
MediaFilterValue = Literal["all", "movie", "tv"]
MediaKindValue = Literal["movie", "tv"]
QueueSourceValue = Literal["partner_like", "priority", "base"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RoomCreateRequest(_CamelModel):
    media_type_filter: MediaFilterValue = Field(default="all", alias="mediaTypeFilter")


class RoomCreateResponse(_CamelModel):
    room_code: str = Field(alias="roomCode")
    pin: str
    share_url: str = Field(alias="shareUrl")
    media_type_filter: MediaFilterValue = Field(alias="mediaTypeFilter")


class JoinRoomRequest(_CamelModel):
    pin: Optional[str] = None
    via_link: bool = Field(default=False, alias="viaLink")


class JoinRoomResponse(_CamelModel):
    room_code: str = Field(alias="roomCode")
    user_slot: SlotValue = Field(alias="userSlot")
    movie_pool_seed: int = Field(alias="moviePoolSeed")
    is_partner_authenticated: bool = Field(alias="isPartnerAuthenticated")
    partner_id: Optional[str] = Field(default=None, alias="partnerId")


class RoomInfo(_CamelModel):
    code: str
    status: str
    user_a_connected: bool = Field(alias="userAConnected")
    user_b_connected: bool = Field(alias="userBConnected")
    matched_movie_id: Optional[int] = Field(default=None, alias="matchedMovieId")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    created_at: datetime = Field(alias="createdAt")
    media_type_filter: MediaFilterValue = Field(default="all", alias="mediaTypeFilter")


class QueueItem(BaseModel):
    movie: Dict[str, Any]
    source: QueueSourceValue


class QueueMeta(_CamelModel):
    total_remaining: int = Field(alias="totalRemaining")
    priority_queue_remaining: int = Field(alias="priorityQueueRemaining")
    base_pool_remaining: int = Field(alias="basePoolRemaining")
    has_more: bool = Field(alias="hasMore")


class QueueResponse(BaseModel):
    items: List[QueueItem]
    meta: QueueMeta


class JoinRoomPayload(_CamelModel):
    room_code: str = Field(alias="roomCode", min_length=1, max_length=16)
    user_slot: SlotValue = Field(alias="userSlot")

    @field_validator("room_code")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


class SwipePayload(JoinRoomPayload):
    movie_id: int = Field(alias="movieId", gt=0)
    action: ActionValue
    media_type: Optional[MediaKindValue] = Field(default=None, alias="mediaType")


class LeaveRoomPayload(JoinRoomPayload):
    pass
