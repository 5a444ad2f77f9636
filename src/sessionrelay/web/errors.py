"""JSON error responses in the ``{"error": ...}`` shape callers expect."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sessionrelay.errors import SendFailed, SessionNotReady


class ApiError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error(request: Request, exc: ApiError) -> JSONResponse:
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted(
            {str(err["loc"][-1]) for err in exc.errors() if err.get("loc")}
        )
        detail = f"Missing parameters: {', '.join(fields)}" if fields else "Missing parameters"
        return _error(400, detail)

    @app.exception_handler(SessionNotReady)
    async def not_ready(request: Request, exc: SessionNotReady) -> JSONResponse:
        return _error(503, str(exc) or "Session is not connected")

    @app.exception_handler(SendFailed)
    async def send_failed(request: Request, exc: SendFailed) -> JSONResponse:
        return _error(500, str(exc))
