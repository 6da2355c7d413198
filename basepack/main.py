"""
Basepack - FastAPI Application

Serves mounted components to the front-end renderer.

    from basepack.components import default_registry
    from basepack.main import create_app

    registry = default_registry()
    registry.mount("users", "GridPanel", model="User", columns=["email", "role__name"])
    app = create_app(registry)
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from basepack.components import ComponentRegistry, default_registry
from basepack.config import Settings, get_settings
from basepack.core.database import close_db, init_db
from basepack.core.state_store import ComponentStateStore, MemoryStateStore, RedisStateStore
from basepack.routers import components_router

# Configure logging
logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Suppress noisy third-party loggers
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def create_state_store(settings: Settings) -> ComponentStateStore | None:
    """
    Shared state store for the configured backend.

    None means the database store, which is built per request on the
    request's session.
    """
    if settings.state_store == "redis":
        return RedisStateStore(settings.redis_url, ttl_seconds=settings.state_ttl_seconds)
    if settings.state_store == "database":
        return None
    return MemoryStateStore()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting Basepack...")
    settings = get_settings()

    logger.info("Initializing database connection...")
    await init_db()
    logger.info("Database connection established")

    logger.info(
        f"Basepack started in {settings.environment} mode "
        f"({settings.state_store} state store, roots: {app.state.registry.root_names()})"
    )

    yield

    # Shutdown
    logger.info("Shutting down Basepack...")
    state_store = app.state.state_store
    if isinstance(state_store, RedisStateStore):
        await state_store.close()
    await close_db()
    logger.info("Basepack shutdown complete")


def create_app(
    registry: ComponentRegistry | None = None,
    state_store: ComponentStateStore | None = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        registry: Registry with mounted root components; the built-in types
            with capabilities from settings when omitted
        state_store: Overrides the store selected by settings

    Returns:
        Configured FastAPI application instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Basepack",
        description="Server-side grid and form components",
        version="0.1.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.registry = registry or default_registry(settings)
    app.state.state_store = state_store or create_state_store(settings)

    app.include_router(components_router)

    return app
