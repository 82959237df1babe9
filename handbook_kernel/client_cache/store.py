"""
Client Persistent Cache — durable key/value storage for the offline handbook.

Behavioral Contract:
- Storage failures are returned as StoreResult(ok=False), never raised.
- The envelope is written whole under one key and overwritten on every
  successful fetch; it is never partially updated.
- A record that cannot be read or decoded is treated as "no cache".
"""

import json
import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from pydantic import ValidationError

from handbook_kernel.models.config import CACHE_KEY
from handbook_kernel.models.view import CachedEnvelope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a key/value operation."""

    ok: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "StoreResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: Exception) -> "StoreResult":
        return cls(ok=False, error=f"{type(error).__name__}: {error}")


class KeyValueStore(Protocol):
    """Persistence capability the client cache is written against."""

    def get(self, key: str) -> StoreResult: ...

    def set(self, key: str, value: Any) -> StoreResult: ...

    def remove(self, key: str) -> StoreResult: ...


class MemoryKeyValueStore:
    """Process-local store. Values are JSON round-tripped like the SQLite store."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> StoreResult:
        with self._lock:
            raw = self._data.get(key)
        if raw is None:
            return StoreResult.success(None)
        try:
            return StoreResult.success(json.loads(raw))
        except ValueError as e:
            return StoreResult.failure(e)

    def set(self, key: str, value: Any) -> StoreResult:
        try:
            raw = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            return StoreResult.failure(e)
        with self._lock:
            self._data[key] = raw
        return StoreResult.success()

    def remove(self, key: str) -> StoreResult:
        with self._lock:
            self._data.pop(key, None)
        return StoreResult.success()


class SqliteKeyValueStore:
    """
    Durable store backed by a single SQLite table.
    Survives restarts; one row per key.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._conn.commit()

    def get(self, key: str) -> StoreResult:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM kv WHERE key = ?", (key,)
                ).fetchone()
            if row is None:
                return StoreResult.success(None)
            return StoreResult.success(json.loads(row[0]))
        except (sqlite3.Error, ValueError) as e:
            return StoreResult.failure(e)

    def set(self, key: str, value: Any) -> StoreResult:
        try:
            raw = json.dumps(value, ensure_ascii=False)
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                    (key, raw, datetime.now(timezone.utc).isoformat()),
                )
            return StoreResult.success()
        except (sqlite3.Error, TypeError, ValueError) as e:
            return StoreResult.failure(e)

    def remove(self, key: str) -> StoreResult:
        try:
            with self._lock, self._conn:
                self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            return StoreResult.success()
        except sqlite3.Error as e:
            return StoreResult.failure(e)

    def close(self) -> None:
        self._conn.close()


class EnvelopeCache:
    """Reads and replaces the cached envelope under a fixed key."""

    def __init__(self, store: KeyValueStore, key: str = CACHE_KEY):
        self.store = store
        self.key = key

    def read(self) -> Optional[CachedEnvelope]:
        result = self.store.get(self.key)
        if not result.ok:
            logger.warning("Cache read failed (continuing without cache): %s", result.error)
            return None
        if result.value is None:
            return None
        try:
            return CachedEnvelope.model_validate(result.value)
        except ValidationError as e:
            logger.warning("Cached envelope is unreadable (ignoring it): %s", e)
            return None

    def write(self, envelope: CachedEnvelope) -> bool:
        result = self.store.set(self.key, envelope.to_wire())
        if not result.ok:
            logger.warning("Cache write failed (continuing without caching): %s", result.error)
        return result.ok

    def clear(self) -> bool:
        result = self.store.remove(self.key)
        if result.ok:
            logger.info("Cache cleared")
        else:
            logger.warning("Failed to clear cache: %s", result.error)
        return result.ok
