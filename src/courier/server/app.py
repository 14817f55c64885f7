"""FastAPI application for the Courier server."""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from courier.errors import SchedulingError
from courier.server.routes import deferrals, health, presence, queues

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from courier.config import CourierConfig
    from courier.scheduling import SchedulingEngine

logger = logging.getLogger(__name__)

# Error codes that are not plain validation failures
ERROR_STATUS = {
    "not_found": 404,
    "duplicate_name": 409,
    "persistence_failure": 500,
    "delivery_failure": 502,
}


class CourierServer:
    """Main server application.

    Starts the scheduling engine with the app and stops it on shutdown.
    """

    def __init__(
        self,
        engine: "SchedulingEngine",
        config: "CourierConfig",
    ):
        self._engine = engine
        self._config = config
        self._app = self._create_app()

    @property
    def app(self) -> FastAPI:
        return self._app

    def _create_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI) -> "AsyncIterator[None]":
            logger.info("Starting Courier server")
            await self._engine.start()

            yield

            logger.info("Shutting down Courier server")
            await self._engine.stop()

        app = FastAPI(
            title="Courier",
            description="Deferred and recurring post delivery",
            version="0.1.0",
            lifespan=lifespan,
        )

        app.state.server = self
        app.state.engine = self._engine
        app.state.config = self._config

        app.add_exception_handler(SchedulingError, _scheduling_error_handler)

        app.include_router(health.router, tags=["health"])
        app.include_router(presence.router, tags=["presence"])
        app.include_router(deferrals.router, prefix="/deferrals", tags=["deferrals"])
        app.include_router(queues.router, prefix="/queues", tags=["queues"])

        return app


async def _scheduling_error_handler(request: Request, exc: Exception) -> JSONResponse:
    code = getattr(exc, "code", SchedulingError.code)
    status = ERROR_STATUS.get(code, 400)
    if status >= 500:
        logger.error(
            "request_failed",
            extra={"http.path": request.url.path, "error.code": code},
        )
    return JSONResponse(
        status_code=status, content={"error": code, "detail": str(exc)}
    )


def create_app(engine: "SchedulingEngine", config: "CourierConfig") -> FastAPI:
    """Create the FastAPI application."""
    return CourierServer(engine=engine, config=config).app
