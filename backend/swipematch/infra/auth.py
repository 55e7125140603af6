"""Caller identity for HTTP endpoints.

Authentication itself happens upstream; the gateway forwards the verified user id
in ``X-User-Id``. Anonymous callers are allowed to swipe, so most endpoints use the
optional dependency.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	session_id: Optional[str] = None


async def get_optional_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_session_id: Optional[str] = Header(default=None, alias="X-Session-Id"),
) -> Optional[AuthenticatedUser]:
	user_id = (x_user_id or "").strip()
	if not user_id:
		return None
	return AuthenticatedUser(id=user_id, session_id=(x_session_id or "").strip() or None)


async def get_current_user(
	user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> AuthenticatedUser:
	if user is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")
	return user
