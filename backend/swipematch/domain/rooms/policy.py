"""Policy helpers for swipe rooms: errors, credentials and join rules."""

from __future__ import annotations

import secrets
from typing import Optional

from swipematch.domain.rooms import models

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6
PIN_LENGTH = 4
SEED_UPPER_BOUND = 1_000_000


class RoomPolicyError(RuntimeError):
	def __init__(self, code: str, *, status_code: int = 400, message: str | None = None) -> None:
		super().__init__(message or code)
		self.code = code
		self.status_code = status_code
		self.detail = message or code


class RoomNotFound(RoomPolicyError):
	def __init__(self) -> None:
		super().__init__("room_not_found", status_code=404, message="Room not found")


class InvalidPin(RoomPolicyError):
	def __init__(self) -> None:
		super().__init__("invalid_pin", status_code=401, message="Invalid PIN")


class RoomExpired(RoomPolicyError):
	def __init__(self) -> None:
		super().__init__("room_expired", status_code=410, message="Room has expired")


class RoomAlreadyMatched(RoomPolicyError):
	def __init__(self) -> None:
		super().__init__("room_matched", status_code=409, message="Room already has a match")


class RoomFull(RoomPolicyError):
	def __init__(self) -> None:
		super().__init__("room_full", status_code=409, message="Room is full")


class InvalidSlot(RoomPolicyError):
	def __init__(self) -> None:
		super().__init__("invalid_slot", status_code=400, message="Slot must be A or B")


def generate_code() -> str:
	return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def generate_pin() -> str:
	return "".join(secrets.choice("0123456789") for _ in range(PIN_LENGTH))


def generate_seed() -> int:
	return secrets.randbelow(SEED_UPPER_BOUND)


def normalise_code(code: str) -> str:
	return code.strip().upper()


def ensure_slot(slot: str) -> str:
	if slot not in models.SLOTS:
		raise InvalidSlot()
	return slot


def ensure_joinable(room: Optional[models.Room], *, pin: Optional[str], via_link: bool) -> models.Room:
	if room is None:
		raise RoomNotFound()
	if not via_link and not secrets.compare_digest(str(pin or ""), room.pin):
		raise InvalidPin()
	if room.status == models.STATUS_EXPIRED:
		raise RoomExpired()
	if room.status == models.STATUS_MATCHED:
		raise RoomAlreadyMatched()
	return room


def assign_slot(room: models.Room) -> str:
	"""Pick the first free slot; slot A belongs to the creator until they connect."""
	if not room.user_a_connected:
		return models.SLOT_A
	if not room.user_b_connected:
		return models.SLOT_B
	raise RoomFull()
