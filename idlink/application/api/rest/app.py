import logging
from contextlib import asynccontextmanager

import logfire
from dishka import AsyncContainer
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from idlink.application.api.v2.errors import map_idlink_error
from idlink.application.api.v2.routes import health, oauth, session
from idlink.application.di import create_container
from idlink.config import Config, configure_logging
from idlink.domain.shared.error import IdlinkError
from idlink.infrastructure.persistence.database import create_tables
from idlink.util.di.fastapi import setup_dishka

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = app.state.dishka_container
    config = await container.get(Config)

    if config.database.auto_create:
        engine = await container.get(AsyncEngine)
        await create_tables(engine)

    yield

    await container.close()


def create_app(config: Config | None = None, container: AsyncContainer | None = None) -> FastAPI:
    """Create FastAPI application."""
    # Pydantic Settings populates from env vars at runtime
    if config is None:
        config = Config()  # type: ignore[call-arg]

    # Configure logging early
    configure_logging(config.logging)
    logger.info("Starting idlink server: %s v%s", config.server.name, config.server.version)

    if not config.auth.jwt.secret:
        logger.warning("IDLINK_AUTH__JWT__SECRET is not set; session and flow tokens are insecure")

    app_instance = FastAPI(
        title=config.server.name,
        description=config.server.description,
        version=config.server.version,
        lifespan=lifespan,
    )

    # Instrument FastAPI for automatic tracing of HTTP requests
    logfire.instrument_httpx()
    logfire.instrument_fastapi(app_instance)

    # Setup dependency injection
    setup_dishka(container or create_container(config), app_instance)

    # Register v2 routes with /v2 prefix
    app_instance.include_router(health.router, prefix="/v2")
    app_instance.include_router(oauth.router, prefix="/v2")
    app_instance.include_router(session.router, prefix="/v2")

    # Global idlink error handler - maps domain and infrastructure errors to HTTP responses
    @app_instance.exception_handler(IdlinkError)
    async def idlink_error_handler(request: Request, exc: IdlinkError):
        http_exc = map_idlink_error(exc)
        return JSONResponse(
            status_code=http_exc.status_code,
            content=http_exc.detail,
            headers=http_exc.headers,
        )

    # Global exception handler - logs all unhandled exceptions
    @app_instance.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app_instance
