"""
FastAPI application entry point for the craftshop backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from craftshop.config import Settings, get_settings
from craftshop.db import DocumentStore, PersistenceUnavailable
from craftshop.dependencies import (
    build_document_store,
    build_session_manager,
    build_session_store,
)
from craftshop.routes import router, site_router
from craftshop.sessions import SessionStore

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


def create_app(
    settings: Optional[Settings] = None,
    *,
    document_store: Optional[DocumentStore] = None,
    session_store: Optional[SessionStore] = None,
) -> FastAPI:
    settings = settings or get_settings()
    store = document_store or build_document_store(settings)
    sessions = build_session_manager(
        settings, session_store or build_session_store(settings)
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not store.connect():
            logger.error("Starting without a database; requests will retry the connection")
        yield
        store.close()
        logger.info("Document store closed")

    app = FastAPI(
        title="Craftshop Inventory (FastAPI)",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.document_store = store
    app.state.session_manager = sessions

    # Echo the caller's origin so the browser sends the session cookie.
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _disable_caching(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(NO_CACHE_HEADERS)
        return response

    @app.exception_handler(PersistenceUnavailable)
    async def _persistence_unavailable(request: Request, exc: PersistenceUnavailable):
        logger.error("%s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Database not connected"})

    # Runs outside the middleware stack, so the cache headers are set here.
    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception):
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal Server Error"},
            headers=NO_CACHE_HEADERS,
        )

    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(site_router)

    static_dir = Path(settings.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    else:
        logger.warning("Static directory %s not found; front end not served", static_dir)

    return app


app = create_app()
