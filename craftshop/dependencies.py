"""
Dependency wiring for the FastAPI app.

Backends are built once in ``create_app`` and kept on ``app.state``;
handlers receive them through the ``get_*`` dependencies below.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from craftshop.config import Settings
from craftshop.db import DocumentStore, InMemoryDocumentStore, SqlDocumentStore
from craftshop.seed import load_seed_data
from craftshop.sessions import (
    InMemorySessionStore,
    RedisSessionStore,
    SessionManager,
    SessionStore,
)


def build_document_store(settings: Settings, *, seed: bool = True) -> DocumentStore:
    if settings.use_in_memory_backends or not settings.database_url:
        store: DocumentStore = InMemoryDocumentStore()
    else:
        store = SqlDocumentStore(
            settings.database_url,
            connect_timeout=settings.db_connect_timeout_seconds,
        )
    if seed:
        seed_dir = settings.seed_dir
        store.on_connect = lambda connected: load_seed_data(connected, seed_dir)
    return store


def build_session_store(settings: Settings) -> SessionStore:
    if settings.redis_url and not settings.use_in_memory_backends:
        return RedisSessionStore(
            url=settings.redis_url,
            prefix=settings.redis_session_prefix,
        )
    return InMemorySessionStore()


def build_session_manager(settings: Settings, store: SessionStore) -> SessionManager:
    return SessionManager(
        store,
        settings.session_secret,
        cookie_name=settings.session_cookie_name,
        max_age=settings.session_max_age_seconds,
        secure=settings.session_cookie_secure,
    )


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_document_store(request: Request) -> DocumentStore:
    """The store as-is, connected or not."""
    return request.app.state.document_store


def get_connected_store(
    store: DocumentStore = Depends(get_document_store),
) -> DocumentStore:
    """
    Return the store after making sure it is connected.

    Raises ``PersistenceUnavailable`` (rendered as a 500) when the retry fails.
    """
    store.ensure_connected()
    return store


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def require_admin(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    sessions: SessionManager = Depends(get_session_manager),
) -> None:
    if not settings.api_auth_required:
        return
    if sessions.load(request).get("authenticated") is not True:
        raise HTTPException(status_code=401, detail="Authentication required")
