from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI

from ..config import Settings, load_config
from ..services.event_relay import EventRelay
from ..services.media_cache import MediaCache
from .db import database
from .logger import SERVER_VERSION, get_logger

logger = get_logger(__name__)

Lifespan = Callable[[FastAPI], AbstractAsyncContextManager[None]]


async def startup_components(app: FastAPI, settings: Settings) -> None:
    """Database engine, media cache and event relay on ``app.state``."""
    app.state.config = settings

    database.init_engine(settings.database.url, echo=settings.database.echo)
    if settings.database.create_tables_on_start:
        await database.create_tables()
        logger.info("[Startup] Database tables ensured")

    app.state.media_cache = MediaCache.from_settings(settings)
    app.state.event_relay = EventRelay.from_settings(settings)
    logger.info(
        f"[Startup] Media cache ({settings.media_cache.max_entries} entries) "
        "and event relay ready"
    )


async def shutdown_components(app: FastAPI) -> None:
    event_relay: EventRelay | None = getattr(app.state, "event_relay", None)
    if event_relay is not None:
        event_relay.shutdown()

    media_cache: MediaCache | None = getattr(app.state, "media_cache", None)
    if media_cache is not None:
        media_cache.clear()

    await database.dispose_engine()
    logger.info("[Shutdown] Components released")


def lifespan_factory(settings: Settings | None = None) -> Lifespan:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app_settings = settings or Settings.from_dict(load_config())
        await startup_components(app, app_settings)
        try:
            yield
        finally:
            await shutdown_components(app)

    return lifespan


def create_application(
    router: APIRouter,
    settings: Settings | None = None,
    lifespan: Lifespan | None = None,
    **kwargs: Any,
) -> FastAPI:
    """Build the FastAPI app with the API router mounted."""
    debug = settings.server.debug if settings is not None else False
    application = FastAPI(
        title="AgentChat API",
        version=SERVER_VERSION,
        debug=debug,
        lifespan=lifespan or lifespan_factory(settings),
        **kwargs,
    )
    application.include_router(router)
    return application
