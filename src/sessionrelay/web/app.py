"""FastAPI application factory for the relay control surface."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sessionrelay import __version__
from sessionrelay.config import RelayConfig
from sessionrelay.session.manager import LifecycleManager
from sessionrelay.web.errors import register_error_handlers

logger = logging.getLogger(__name__)


def create_app(
    config: RelayConfig | None = None,
    manager: LifecycleManager | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    The manager is started when the app starts serving and shut down with it.
    """
    config = config or RelayConfig.load()
    manager = manager or LifecycleManager(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not config.api_token:
            logger.warning("No API token configured — all /api endpoints will reject requests")
        await manager.start()
        try:
            yield
        finally:
            await manager.shutdown()

    app = FastAPI(
        title="sessionrelay",
        version=__version__,
        docs_url="/api/docs",
        lifespan=lifespan,
    )

    # Store config and manager in app state
    app.state.config = config
    app.state.manager = manager

    register_error_handlers(app)

    from sessionrelay.web.api.messages import router as messages_router
    from sessionrelay.web.api.status import health_router
    from sessionrelay.web.api.status import router as status_router

    app.include_router(health_router)
    app.include_router(status_router, prefix="/api")
    app.include_router(messages_router, prefix="/api")

    return app
