"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from swipematch.domain.rooms.policy import RoomPolicyError


def get_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-Id")


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        payload = {"detail": exc.detail, "request_id": get_request_id(request)}
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(RoomPolicyError)
    async def policy_exc_handler(request: Request, exc: RoomPolicyError):  # type: ignore[override]
        payload = {"detail": exc.detail, "code": exc.code, "request_id": get_request_id(request)}
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        errors = [{k: v for k, v in err.items() if k not in ("ctx", "input")} for err in exc.errors()]
        payload = {"detail": "validation_error", "errors": errors, "request_id": get_request_id(request)}
        return JSONResponse(status_code=422, content=payload)
