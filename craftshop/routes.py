"""
HTTP routes for the craftshop API.

Every collection gets a fetch-all and a replace-all endpoint; inventory
also supports a partial update of a single record.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, TypeVar

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from craftshop.config import Settings
from craftshop.db import DocumentStore, PersistenceUnavailable
from craftshop.dependencies import (
    get_app_settings,
    get_connected_store,
    get_document_store,
    get_session_manager,
    require_admin,
)
from craftshop.schemas import (
    COLLECTION_MODELS,
    AuthStatusResponse,
    HealthResponse,
    InventoryItem,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    Record,
    SuccessResponse,
    UpdateResponse,
    VersionResponse,
)
from craftshop.sessions import SessionManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

router = APIRouter()
site_router = APIRouter()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _store_call(action: str, collection: str, call: Callable[[], T]) -> T:
    try:
        return call()
    except PersistenceUnavailable:
        raise
    except Exception:
        logger.exception("Error %s %s", action, collection)
        raise HTTPException(
            status_code=500, detail=f"Failed to {action} {collection} data"
        )


def _add_collection_routes(collection: str, model: type[Record]) -> None:
    def fetch_all(store: DocumentStore = Depends(get_connected_store)) -> list[dict]:
        documents = _store_call("fetch", collection, lambda: store.find_all(collection))
        logger.debug("Fetched %d %s records", len(documents), collection)
        return documents

    def replace_all(
        payload: Optional[list[model]] = Body(default=None),
        store: DocumentStore = Depends(get_connected_store),
    ) -> SuccessResponse:
        documents = [record.to_document() for record in payload or []]
        _store_call("save", collection, lambda: store.replace_all(collection, documents))
        logger.info("Replaced %s with %d records", collection, len(documents))
        return SuccessResponse()

    router.add_api_route(
        f"/{collection}",
        fetch_all,
        methods=["GET"],
        dependencies=[Depends(require_admin)],
        name=f"fetch_{collection}",
    )
    router.add_api_route(
        f"/{collection}",
        replace_all,
        methods=["POST"],
        response_model=SuccessResponse,
        dependencies=[Depends(require_admin)],
        name=f"replace_{collection}",
    )


for _collection, _model in COLLECTION_MODELS.items():
    _add_collection_routes(_collection, _model)


@router.put(
    "/inventory/{item_id}",
    response_model=UpdateResponse,
    dependencies=[Depends(require_admin)],
)
def update_inventory_item(
    item_id: str,
    payload: InventoryItem,
    store: DocumentStore = Depends(get_connected_store),
):
    result = _store_call(
        "update",
        "inventory",
        lambda: store.update_one("inventory", item_id, payload.to_document()),
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Item not found")
    return UpdateResponse(success=True, modifiedCount=result.modified_count)


@router.get("/auth/status", response_model=AuthStatusResponse)
def auth_status(
    request: Request, sessions: SessionManager = Depends(get_session_manager)
):
    session = sessions.load(request)
    authenticated = session.get("authenticated") is True
    return AuthStatusResponse(
        authenticated=authenticated,
        username=session.get("username") if authenticated else None,
    )


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    settings: Settings = Depends(get_app_settings),
    sessions: SessionManager = Depends(get_session_manager),
):
    if (
        payload.username == settings.admin_username
        and payload.password == settings.admin_password
    ):
        sessions.start(
            request, response, {"authenticated": True, "username": payload.username}
        )
        logger.info("Admin login succeeded for %s", payload.username)
        return LoginResponse(
            success=True, message="Login successful", username=payload.username
        )

    logger.warning("Admin login failed for %r", payload.username)
    return JSONResponse(
        status_code=401,
        content={"success": False, "message": "Invalid username or password"},
    )


@router.post("/logout", response_model=LogoutResponse)
def logout(
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
):
    sessions.end(request, response)
    return LogoutResponse(success=True, message="Logged out successfully")


@site_router.get("/health", response_model=HealthResponse)
def health(store: DocumentStore = Depends(get_document_store)):
    return HealthResponse(
        status="OK",
        timestamp=_now_iso(),
        database="Connected" if store.connect() else "Disconnected",
    )


@site_router.get("/version.json", response_model=VersionResponse)
def version(settings: Settings = Depends(get_app_settings)):
    return VersionResponse(
        version=settings.app_version,
        timestamp=_now_iso(),
        build=settings.build_sha or "local",
        environment=settings.env,
    )
