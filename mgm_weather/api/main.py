from typing import Optional

import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import AppSettings
from ..logging import init_logging
from ..services.weather_service import WeatherFetchError, WeatherService
from .middleware import RequestIDMiddleware, generic_exception_handler, weather_fetch_exception_handler
from .routes import health, home, weather

logger = structlog.get_logger()


def create_app(
    settings: Optional[AppSettings] = None,
    weather_service: Optional[WeatherService] = None,
) -> FastAPI:
    settings = settings or AppSettings()
    init_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "server_start",
            url=f"http://localhost:{settings.port}",
            strategy=settings.strategy,
            serverless=settings.serverless,
        )
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Service health and uptime"},
            {"name": "weather", "description": "Karaman weather republished from MGM"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)
    app.add_exception_handler(WeatherFetchError, weather_fetch_exception_handler)
    # Runs in ServerErrorMiddleware, outside RequestIDMiddleware: no x-request-id, and the
    # exception is re-raised after the response is sent
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(home.router)
    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(weather.router, prefix="/api", tags=["weather"])

    app.state.settings = settings
    app.state.start_time = time.time()
    app.state.weather_service = weather_service or WeatherService(settings)

    return app


def run() -> None:
    import uvicorn

    s = AppSettings()
    uvicorn.run(create_app(s), host=s.host, port=s.port)


if __name__ == "__main__":
    run()
