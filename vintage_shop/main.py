import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from vintage_shop.api.middleware.cors import setup_cors
from vintage_shop.api.middleware.request_id import RequestIdMiddleware
from vintage_shop.api.routes import cart, health, orders, session
from vintage_shop.api.routes.admin import orders as admin_orders
from vintage_shop.core.config import Settings, get_settings
from vintage_shop.core.database import create_engine, create_session_factory
from vintage_shop.core.logging import setup_logging
from vintage_shop.core.tasks import drain_background_tasks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    engine = create_engine(app.state.settings)
    app.state.session_factory = create_session_factory(engine)
    logger.info("Database engine started for %s", app.state.settings.db_host)
    try:
        yield
    finally:
        await drain_background_tasks()
        await engine.dispose()


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API. Run with ``uvicorn --factory vintage_shop.main:create_app``."""
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    if not settings.debug:
        try:
            settings.validate_secrets()
        except ValueError as e:
            logger.critical("Secret validation failed: %s", e)
            raise SystemExit(f"FATAL: {e}") from e

    app = FastAPI(
        title="Vintage Shop API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.add_exception_handler(Exception, global_exception_handler)

    setup_cors(app, settings)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(health.router, prefix="/api")
    app.include_router(session.router, prefix="/api")
    app.include_router(cart.router, prefix="/api")
    app.include_router(orders.router, prefix="/api")
    app.include_router(admin_orders.router, prefix="/api/admin")
    return app
