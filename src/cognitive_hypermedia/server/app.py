"""FastAPI app factory.

Endpoints are intentionally thin wrappers over :class:`CognitiveStore`.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cognitive_hypermedia import __version__
from cognitive_hypermedia.core.config import AppConfig
from cognitive_hypermedia.core.errors import CognitiveStoreError
from cognitive_hypermedia.core.registry import StateMachineRegistry
from cognitive_hypermedia.core.store import CognitiveStore
from cognitive_hypermedia.server.config import ServerSettings
from cognitive_hypermedia.server.router import router
from cognitive_hypermedia.storage.factory import StorageFactory

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[str, int] = {
    "NotFound": 404,
    "UnknownType": 404,
    "InvalidAction": 409,
    "ConcurrentModification": 409,
    "InvalidRequest": 422,
    "InvalidDefinition": 422,
    "InvalidState": 500,
    "AdapterFailure": 502,
}


async def _store_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, CognitiveStoreError):
        raise exc
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.kind, 500),
        content={"error": exc.to_error().to_json()},
    )


def _build_store(settings: ServerSettings, config: AppConfig) -> CognitiveStore:
    registry = StateMachineRegistry()
    directory = settings.state_machine_dir
    if directory.is_dir():
        loaded = registry.load_directory(directory)
        logger.info(
            "Loaded state machines", extra={"directory": str(directory), "types": loaded}
        )
    else:
        logger.warning(
            "State machine directory not found; no types registered",
            extra={"directory": str(directory)},
        )
    return StorageFactory.create_store(config, registry)


def create_app(
    store: CognitiveStore | None = None,
    settings: ServerSettings | None = None,
    config: AppConfig | None = None,
) -> FastAPI:
    settings = settings or ServerSettings()
    if store is None:
        store = _build_store(settings, config or AppConfig())

    app = FastAPI(
        title="Cognitive Hypermedia",
        version=__version__,
        description="REST API over state-machine governed resources.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings
    app.state.store = store

    origins = settings.parsed_cors_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(CognitiveStoreError, _store_error_handler)
    app.include_router(router, prefix="/api")
    return app
