"""
Document store abstraction over SQLAlchemy and an in-memory test implementation.

Records are schema-less JSON objects grouped into named collections. Every
record carries its identifier in the ``_id`` field.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Protocol

from sqlalchemy import JSON, Column, Float, Integer, String, create_engine, delete, func, select, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

COLLECTIONS = ("inventory", "customers", "sales", "gallery", "ideas")
ID_FIELD = "_id"


class PersistenceUnavailable(RuntimeError):
    """Raised when the store cannot be reached."""


class DuplicateKeyError(ValueError):
    """Raised when a batch would store two records with the same id."""


@dataclass
class UpdateResult:
    matched_count: int
    modified_count: int


class DocumentStore(Protocol):
    """Interface for collection access."""

    on_connect: Optional[Callable[["DocumentStore"], None]]

    @property
    def connected(self) -> bool:
        ...

    def connect(self) -> bool:
        ...

    def ensure_connected(self) -> None:
        ...

    def find_all(self, collection: str) -> list[dict]:
        ...

    def insert_many(self, collection: str, documents: Iterable[dict]) -> list[str]:
        ...

    def replace_all(self, collection: str, documents: Iterable[dict]) -> list[str]:
        ...

    def update_one(self, collection: str, doc_id: str, fields: dict) -> UpdateResult:
        ...

    def count(self, collection: str) -> int:
        ...

    def close(self) -> None:
        ...


def _check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise KeyError(f"Unknown collection: {collection}")


def _prepare_documents(documents: Iterable[dict]) -> list[tuple[str, dict]]:
    """
    Copy documents and assign an ``_id`` to those without one.

    Returns ``(key, document)`` pairs; the key is the string form of ``_id``
    while the document keeps the id exactly as the client sent it.
    """
    prepared: list[tuple[str, dict]] = []
    seen: set[str] = set()
    for document in documents:
        doc = copy.deepcopy(dict(document))
        raw_id = doc.get(ID_FIELD)
        if raw_id in (None, ""):
            raw_id = doc[ID_FIELD] = uuid.uuid4().hex
        doc_id = str(raw_id)
        if doc_id in seen:
            raise DuplicateKeyError(f"Duplicate {ID_FIELD}: {doc_id}")
        seen.add(doc_id)
        prepared.append((doc_id, doc))
    return prepared


def _merge_fields(current: dict, fields: dict) -> dict:
    merged = dict(current)
    for key, value in fields.items():
        if key == ID_FIELD:
            continue
        merged[key] = value
    return merged


class _LazyConnection:
    """
    Connection bookkeeping shared by the store implementations.

    ``connect`` never raises; a failed attempt leaves the store disconnected
    and the next ``ensure_connected`` call tries again.
    """

    on_connect: Optional[Callable[["DocumentStore"], None]] = None

    def __init__(self):
        self._connected = False
        self._initialized = False
        self._connect_lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._connected

    def _open(self) -> None:
        raise NotImplementedError

    def connect(self) -> bool:
        if self._connected:
            return True
        with self._connect_lock:
            # Another thread may have connected while we waited.
            if self._connected:
                return True
            try:
                self._open()
            except (SQLAlchemyError, OSError, PersistenceUnavailable) as exc:
                logger.error("Database connection error: %s", exc)
                return False
            self._connected = True
            logger.info("Connected to document store (%s)", type(self).__name__)
            if not self._initialized and self.on_connect:
                self._initialized = True
                try:
                    self.on_connect(self)
                except Exception:
                    logger.exception("Error initializing collections")
        return True

    def ensure_connected(self) -> None:
        if not self.connect():
            raise PersistenceUnavailable("Database not connected")


class InMemoryDocumentStore(_LazyConnection):
    """Simple in-memory document store for development and tests."""

    def __init__(self, available: bool = True):
        super().__init__()
        self.available = available
        self.collections: Dict[str, Dict[str, dict]] = {name: {} for name in COLLECTIONS}
        self._lock = threading.Lock()

    def _open(self) -> None:
        if not self.available:
            raise PersistenceUnavailable("In-memory store marked unavailable")

    def find_all(self, collection: str) -> list[dict]:
        _check_collection(collection)
        with self._lock:
            return [copy.deepcopy(doc) for doc in self.collections[collection].values()]

    def insert_many(self, collection: str, documents: Iterable[dict]) -> list[str]:
        _check_collection(collection)
        prepared = _prepare_documents(documents)
        with self._lock:
            existing = self.collections[collection]
            for key, _ in prepared:
                if key in existing:
                    raise DuplicateKeyError(f"Duplicate {ID_FIELD}: {key}")
            for key, doc in prepared:
                existing[key] = doc
        return [key for key, _ in prepared]

    def replace_all(self, collection: str, documents: Iterable[dict]) -> list[str]:
        _check_collection(collection)
        prepared = _prepare_documents(documents)
        with self._lock:
            self.collections[collection] = dict(prepared)
        return [key for key, _ in prepared]

    def update_one(self, collection: str, doc_id: str, fields: dict) -> UpdateResult:
        _check_collection(collection)
        with self._lock:
            current = self.collections[collection].get(doc_id)
            if current is None:
                return UpdateResult(matched_count=0, modified_count=0)
            merged = _merge_fields(current, copy.deepcopy(fields))
            modified = merged != current
            self.collections[collection][doc_id] = merged
        return UpdateResult(matched_count=1, modified_count=1 if modified else 0)

    def count(self, collection: str) -> int:
        _check_collection(collection)
        with self._lock:
            return len(self.collections[collection])

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            for docs in self.collections.values():
                docs.clear()

    def close(self) -> None:
        self._connected = False


class SqlDocumentStore(_LazyConnection):
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, connect_timeout: float = 5.0):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDocumentStore")
        super().__init__()
        self.database_url = database_url
        self.connect_timeout = connect_timeout
        self.engine = None
        self.Session: Optional[sessionmaker] = None

    def _engine_kwargs(self) -> dict:
        kwargs: dict = {"future": True, "pool_pre_ping": True}
        if self.database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if make_url(self.database_url).database in (None, "", ":memory:"):
                # One shared connection so every thread sees the same database.
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_recycle"] = 1800
            if self.database_url.startswith("postgres"):
                kwargs["connect_args"] = {"connect_timeout": int(self.connect_timeout)}
        return kwargs

    def _open(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            self.Session = None
        engine = create_engine(self.database_url, **self._engine_kwargs())
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            Base.metadata.create_all(engine)
        except SQLAlchemyError:
            engine.dispose()
            raise
        self.engine = engine
        self.Session = sessionmaker(
            bind=engine, class_=Session, expire_on_commit=False, future=True
        )

    def _session(self) -> Session:
        if self.Session is None:
            raise PersistenceUnavailable("Database not connected")
        return self.Session()

    def _rows(self, collection: str, documents: list[tuple[str, dict]]) -> list["DocumentRow"]:
        now = time.time()
        return [
            DocumentRow(
                collection=collection,
                doc_id=key,
                seq=index,
                data=doc,
                created_at=now,
            )
            for index, (key, doc) in enumerate(documents)
        ]

    def find_all(self, collection: str) -> list[dict]:
        _check_collection(collection)
        with self._session() as session:
            stmt = (
                select(DocumentRow)
                .where(DocumentRow.collection == collection)
                .order_by(DocumentRow.created_at.asc(), DocumentRow.seq.asc())
            )
            return [dict(row.data) for row in session.execute(stmt).scalars()]

    def insert_many(self, collection: str, documents: Iterable[dict]) -> list[str]:
        _check_collection(collection)
        prepared = _prepare_documents(documents)
        with self._session() as session:
            session.add_all(self._rows(collection, prepared))
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateKeyError(str(exc.orig)) from exc
        return [key for key, _ in prepared]

    def replace_all(self, collection: str, documents: Iterable[dict]) -> list[str]:
        _check_collection(collection)
        prepared = _prepare_documents(documents)
        with self._session() as session:
            session.execute(
                delete(DocumentRow).where(DocumentRow.collection == collection)
            )
            session.add_all(self._rows(collection, prepared))
            session.commit()
        return [key for key, _ in prepared]

    def update_one(self, collection: str, doc_id: str, fields: dict) -> UpdateResult:
        _check_collection(collection)
        with self._session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if not row:
                return UpdateResult(matched_count=0, modified_count=0)
            current = dict(row.data)
            merged = _merge_fields(current, fields)
            modified = merged != current
            if modified:
                row.data = merged
                session.commit()
            return UpdateResult(matched_count=1, modified_count=1 if modified else 0)

    def count(self, collection: str) -> int:
        _check_collection(collection)
        with self._session() as session:
            stmt = (
                select(func.count())
                .select_from(DocumentRow)
                .where(DocumentRow.collection == collection)
            )
            return int(session.execute(stmt).scalar_one())

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.Session = None
        self._connected = False


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    collection = Column(String, primary_key=True)
    doc_id = Column(String, primary_key=True)
    seq = Column(Integer, nullable=False, default=0)
    data = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False, index=True)
