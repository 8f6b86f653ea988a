"""
Caching abstraction used for small pieces of persisted state.

The only state schema-spine persists across process restarts is the
timestamp of the last reconciliation run. It lives in a named cache entry
with "never expire" semantics (``ttl_seconds=None``). The backend is
pluggable so embedders can point it at whatever their host already uses.

Architecture:
    ::

        CacheBackend (Protocol)
        ├── InMemoryCache  : single process, bounded LRU (tests, embedding)
        └── FileCache      : JSON file on disk (CLI, survives restarts)

        API: get(key) → value | None
             set(key, value, ttl_seconds=None)
             delete(key)
             exists(key) → bool
             clear()

Examples:
    >>> cache = FileCache("/tmp/schemaspine-state.json", default_ttl_seconds=None)
    >>> cache.set("schemaspine-last-run", 1760000000)
    >>> cache.get("schemaspine-last-run")
    1760000000

Guardrails:
    ❌ DON'T: Share a FileCache between hosts (no locking)
    ✅ DO: Serialize deployments that reconcile the same store

Tags:
    cache, persistence, state, schema-spine
"""

from __future__ import annotations

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheBackend(Protocol):
    """Protocol for cache backend implementations.

    Keys are strings, values are JSON-serializable.
    """

    def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` if missing or expired."""
        ...

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value. ``ttl_seconds=None`` → use the backend default."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key. No-op if the key does not exist."""
        ...

    def exists(self, key: str) -> bool:
        """Check if a key exists and has not expired."""
        ...

    def clear(self) -> None:
        """Remove all keys."""
        ...


# ------------------------------------------------------------------ #
# In-Memory Cache
# ------------------------------------------------------------------ #


class InMemoryCache:
    """Bounded in-memory cache with TTL support.

    Uses LRU eviction when ``max_size`` is reached.

    Attributes:
        max_size: Maximum number of keys before LRU eviction.
        default_ttl_seconds: Default TTL for keys (``None`` → no expiry).
    """

    def __init__(
        self,
        *,
        max_size: int = 10_000,
        default_ttl_seconds: int | None = None,
    ):
        self._store: dict[str, tuple[Any, float | None]] = {}
        self._access_order: list[str] = []
        self._max_size = max_size
        self._default_ttl = default_ttl_seconds

    def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        if key not in self._store:
            return None

        value, expires_at = self._store[key]

        if expires_at is not None and time.time() > expires_at:
            self.delete(key)
            return None

        if key in self._access_order:
            self._access_order.remove(key)
        self._access_order.append(key)

        return value

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = (time.time() + ttl) if ttl else None

        if key not in self._store and len(self._store) >= self._max_size:
            if self._access_order:
                lru_key = self._access_order.pop(0)
                self._store.pop(lru_key, None)

        self._store[key] = (value, expires_at)

        if key in self._access_order:
            self._access_order.remove(key)
        self._access_order.append(key)

    def delete(self, key: str) -> None:
        """Remove a key from the cache."""
        self._store.pop(key, None)
        if key in self._access_order:
            self._access_order.remove(key)

    def exists(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        if key not in self._store:
            return False

        _, expires_at = self._store[key]
        if expires_at is not None and time.time() > expires_at:
            self.delete(key)
            return False

        return True

    def clear(self) -> None:
        """Remove all keys."""
        self._store.clear()
        self._access_order.clear()

    def size(self) -> int:
        """Return current number of cached keys."""
        return len(self._store)


# ------------------------------------------------------------------ #
# File Cache
# ------------------------------------------------------------------ #


class FileCache:
    """JSON-file backed cache for state that must survive restarts.

    The whole file is read on every access and rewritten on every change,
    which is fine for the handful of keys it holds. Writes go to a temporary
    file in the same directory and are moved into place with
    :func:`os.replace`, so a crash never leaves a half-written file.

    Each entry is stored as ``{"value": ..., "expires_at": float | null}``.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        default_ttl_seconds: int | None = None,
    ):
        self._path = Path(path)
        self._default_ttl = default_ttl_seconds

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, dict[str, Any]]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        if not raw.strip():
            return {}
        data = json.loads(raw)
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=".cache-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, sort_keys=True)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _live(self, entry: dict[str, Any]) -> bool:
        expires_at = entry.get("expires_at")
        return expires_at is None or time.time() <= expires_at

    def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        entry = self._load().get(key)
        if entry is None or not self._live(entry):
            return None
        return entry.get("value")

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        data = self._load()
        data[key] = {
            "value": value,
            "expires_at": (time.time() + ttl) if ttl else None,
        }
        self._dump(data)

    def delete(self, key: str) -> None:
        """Remove a key from the cache."""
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)

    def exists(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        entry = self._load().get(key)
        return entry is not None and self._live(entry)

    def clear(self) -> None:
        """Remove all keys."""
        self._dump({})


__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "FileCache",
]
