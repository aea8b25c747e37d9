"""
Server-side session storage for the shared admin login.

The browser only holds a signed session key; session data lives in a
``SessionStore`` (in-memory for tests/local runs, Redis for production).
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from fastapi import Request, Response
from itsdangerous import BadSignature, URLSafeTimedSerializer
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Minimal key/value interface for session data."""

    def get(self, key: str) -> Optional[dict]:
        ...

    def set(self, key: str, data: dict, ttl_seconds: int) -> None:
        ...

    def destroy(self, key: str) -> None:
        ...


@dataclass
class InMemorySessionStore:
    """Dict-backed sessions with expiry, for testing/dev."""

    sessions: dict[str, tuple[float, dict]] = field(default_factory=dict)

    def __post_init__(self):
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[dict]:
        with self._lock:
            entry = self.sessions.get(key)
            if entry is None:
                return None
            expires_at, data = entry
            if expires_at <= time.time():
                del self.sessions[key]
                return None
            return dict(data)

    def set(self, key: str, data: dict, ttl_seconds: int) -> None:
        with self._lock:
            self.sessions[key] = (time.time() + ttl_seconds, dict(data))

    def destroy(self, key: str) -> None:
        with self._lock:
            self.sessions.pop(key, None)


@dataclass
class RedisSessionStore:
    """Redis-backed sessions stored as JSON strings with a TTL."""

    url: str
    prefix: str = "craftshop:session:"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _reconnect(self, action: str) -> None:
        # Managed Redis drops idle connections.
        logger.warning("Redis connection lost while %s session; reconnecting", action)
        self.client = redis.Redis.from_url(self.url)

    def get(self, key: str) -> Optional[dict]:
        try:
            raw = self.client.get(self._key(key))
        except redis_exceptions.ConnectionError:
            # Treat the session as missing for this request.
            self._reconnect("reading")
            return None
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    def set(self, key: str, data: dict, ttl_seconds: int) -> None:
        payload = json.dumps(data)
        try:
            self.client.setex(self._key(key), ttl_seconds, payload)
        except redis_exceptions.ConnectionError:
            self._reconnect("writing")
            self.client.setex(self._key(key), ttl_seconds, payload)

    def destroy(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis_exceptions.ConnectionError:
            self._reconnect("deleting")
            self.client.delete(self._key(key))


class SessionManager:
    """Binds a ``SessionStore`` to a signed session cookie."""

    def __init__(
        self,
        store: SessionStore,
        secret: str,
        *,
        cookie_name: str = "craftshop_session",
        max_age: int = 24 * 60 * 60,
        secure: bool = False,
    ):
        self.store = store
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = secure
        self._serializer = URLSafeTimedSerializer(secret, salt="craftshop-session")

    def session_key(self, request: Request) -> Optional[str]:
        cookie = request.cookies.get(self.cookie_name)
        if not cookie:
            return None
        try:
            return self._serializer.loads(cookie, max_age=self.max_age)
        except BadSignature:
            logger.info("Rejected invalid or expired session cookie")
            return None

    def load(self, request: Request) -> dict:
        key = self.session_key(request)
        if key is None:
            return {}
        return self.store.get(key) or {}

    def start(self, request: Request, response: Response, data: dict) -> str:
        """Replace any current session with a fresh key holding ``data``."""
        previous = self.session_key(request)
        if previous:
            self.store.destroy(previous)
        key = uuid.uuid4().hex
        self.store.set(key, data, self.max_age)
        response.set_cookie(
            self.cookie_name,
            self._serializer.dumps(key),
            max_age=self.max_age,
            httponly=True,
            samesite="lax",
            secure=self.secure,
        )
        return key

    def end(self, request: Request, response: Response) -> None:
        key = self.session_key(request)
        if key:
            self.store.destroy(key)
        response.delete_cookie(self.cookie_name, httponly=True, samesite="lax")
