"""Session token store with in-memory / Redis swap.

Provides issue/resolve/revoke/revoke_all_for over opaque bearer tokens.
Each token maps to a principal snapshot (id, username, role, grade,
group_name). When SESSION_BACKEND is "redis" and REDIS_URL is configured,
tokens live in Redis and are shared between instances; otherwise they live
in a lock-guarded dict inside this process and die with it.

Usage:
    from session_store import init_sessions, get_session_store
    init_sessions(app)                 # called once in create_app()
    store = get_session_store()
    token = store.issue(principal_dict)
    principal = store.resolve(token)
"""

from __future__ import annotations

import json
import logging
import secrets
import threading
import time
from typing import Any, Protocol

logger = logging.getLogger(__name__)

TOKEN_BYTES = 18  # 24 url-safe characters


def new_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


# ── Protocol ───────────────────────────────────────────────

class SessionStore(Protocol):
    def issue(self, principal: dict[str, Any]) -> str: ...
    def resolve(self, token: str) -> dict[str, Any] | None: ...
    def revoke(self, token: str) -> None: ...
    def revoke_all_for(self, user_id: int) -> int: ...


# ── In-Memory Implementation ──────────────────────────────

class InMemorySessionStore:
    """Process-local token map. ttl=0 means tokens never expire."""

    def __init__(self, ttl: int = 0) -> None:
        self.ttl = ttl
        self._tokens: dict[str, tuple[dict[str, Any], float]] = {}
        self._lock = threading.Lock()

    def issue(self, principal: dict[str, Any]) -> str:
        token = new_token()
        expires_at = time.time() + self.ttl if self.ttl > 0 else 0.0
        with self._lock:
            self._tokens[token] = (dict(principal), expires_at)
        return token

    def resolve(self, token: str) -> dict[str, Any] | None:
        if not token:
            return None
        with self._lock:
            entry = self._tokens.get(token)
            if entry is None:
                return None
            principal, expires_at = entry
            if expires_at and time.time() > expires_at:
                del self._tokens[token]
                return None
            return dict(principal)

    def revoke(self, token: str) -> None:
        with self._lock:
            self._tokens.pop(token, None)

    def revoke_all_for(self, user_id: int) -> int:
        with self._lock:
            doomed = [t for t, (p, _) in self._tokens.items() if p.get("id") == user_id]
            for t in doomed:
                del self._tokens[t]
            return len(doomed)

    def cleanup(self) -> int:
        """Remove expired tokens. Returns count removed."""
        now = time.time()
        with self._lock:
            expired = [t for t, (_, exp) in self._tokens.items() if exp and now > exp]
            for t in expired:
                del self._tokens[t]
            return len(expired)


# ── Redis Implementation ──────────────────────────────────

class RedisSessionStore:
    """Tokens as JSON values under session:<token>, indexed per user."""

    KEY_PREFIX = "session:"
    USER_PREFIX = "user_sessions:"

    def __init__(self, redis_client, ttl: int = 0) -> None:
        self._redis = redis_client
        self.ttl = ttl

    def issue(self, principal: dict[str, Any]) -> str:
        token = new_token()
        raw = json.dumps(principal)
        key = self.KEY_PREFIX + token
        user_key = f"{self.USER_PREFIX}{principal['id']}"
        pipe = self._redis.pipeline()
        if self.ttl > 0:
            pipe.setex(key, self.ttl, raw)
        else:
            pipe.set(key, raw)
        pipe.sadd(user_key, token)
        pipe.execute()
        return token

    def resolve(self, token: str) -> dict[str, Any] | None:
        if not token:
            return None
        raw = self._redis.get(self.KEY_PREFIX + token)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Discarding unreadable session entry")
            self._redis.delete(self.KEY_PREFIX + token)
            return None

    def revoke(self, token: str) -> None:
        principal = self.resolve(token)
        self._redis.delete(self.KEY_PREFIX + token)
        if principal is not None:
            self._redis.srem(f"{self.USER_PREFIX}{principal['id']}", token)

    def revoke_all_for(self, user_id: int) -> int:
        user_key = f"{self.USER_PREFIX}{user_id}"
        tokens = [t.decode() if isinstance(t, bytes) else t for t in self._redis.smembers(user_key)]
        if tokens:
            self._redis.delete(*[self.KEY_PREFIX + t for t in tokens])
        self._redis.delete(user_key)
        return len(tokens)


# ── Module-level singleton ────────────────────────────────

_store: SessionStore | None = None


def init_sessions(app) -> None:
    """Initialize the session backend. Call once from create_app()."""
    global _store

    backend = app.config.get("SESSION_BACKEND", "memory")
    ttl = int(app.config.get("SESSION_TTL", 0) or 0)

    if backend == "redis":
        redis_url = app.config.get("REDIS_URL", "")
        if not redis_url:
            raise RuntimeError("SESSION_BACKEND=redis requires REDIS_URL to be set.")
        import redis
        client = redis.Redis.from_url(redis_url, decode_responses=False)
        client.ping()
        _store = RedisSessionStore(client, ttl=ttl)
        app.logger.info("Session backend: Redis (%s)", redis_url)
    else:
        _store = InMemorySessionStore(ttl=ttl)
        if ttl:
            app.logger.info("Session backend: in-memory (ttl=%ss)", ttl)
        else:
            app.logger.info("Session backend: in-memory (no expiry)")

    app.extensions["session_store"] = _store


def get_session_store() -> SessionStore:
    """Return the active session store. Lazily initializes if needed."""
    global _store
    if _store is None:
        _store = InMemorySessionStore()
    return _store
