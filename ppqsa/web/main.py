from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ppqsa.infrastructure.config import get_settings
from ppqsa.infrastructure.kv import KeyValueStore
from ppqsa.infrastructure.logging import get_logger
from ppqsa.web.dependencies import init_service
from ppqsa.web.routes import api

logger = get_logger(__name__)


def create_application(kv: KeyValueStore | None = None) -> FastAPI:
    """
    Build the API app.

    ``kv`` overrides the configured storage backend (tests pass an in-memory
    store). The legacy snapshot migration runs once at startup.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app.title,
        version=settings.app.version,
        debug=settings.app.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if kv is not None:
        app.state.kv = kv

    app.include_router(api.router)
    app.include_router(api.admin_router)

    @app.on_event("startup")
    async def startup_event() -> None:
        logger.info(f"Starting {settings.app.title} ({settings.app.environment})")
        init_service(app)

    return app


app = create_application()
