from __future__ import annotations

import time
import uuid

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from ..services.weather_service import WeatherFetchError

logger = structlog.get_logger()

FETCH_ERROR_MESSAGE = "Failed to fetch weather data."


class RequestIDMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        request_id = uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        status = {"code": 500}

        async def send_wrapper(message):
            if message.get("type") == "http.response.start":
                status["code"] = message.get("status", 500)
                headers = message.setdefault("headers", [])
                headers.append((b"x-request-id", request_id.encode()))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            dur_ms = int((time.perf_counter() - start) * 1000)
            logger.info(
                "request_completed",
                method=scope.get("method", ""),
                path=scope.get("path", ""),
                status=status["code"],
                duration_ms=dur_ms,
            )
            structlog.contextvars.clear_contextvars()


async def weather_fetch_exception_handler(request: Request, exc: WeatherFetchError) -> JSONResponse:
    body = {"error": FETCH_ERROR_MESSAGE, "detail": str(exc)}
    return JSONResponse(status_code=500, content=body)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    body = {"error": "Internal server error.", "detail": str(exc)}
    return JSONResponse(status_code=500, content=body)
