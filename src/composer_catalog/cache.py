"""Cache layer for the assembled package catalog.

The catalog is stored under a fixed key with a 12-hour TTL so it is not
rebuilt on every request. Stores are injected: an in-memory store for a
single process, or a SQLite store that persists across restarts.
"""

import asyncio
import contextlib
import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Optional

from composer_catalog.models import CacheEntry, Catalog

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class CacheStore(ABC):
    """Abstract key/value store with per-entry TTL."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Retrieve a value.

        Args:
            key: Cache key.

        Returns:
            The stored value, or None on a miss or if the entry expired.
        """
        ...

    @abstractmethod
    def set(self, key: str, value: str, ttl: timedelta) -> None:
        """Store a value, replacing any previous one.

        Args:
            key: Cache key.
            value: Serialized value.
            ttl: Time the value stays valid.
        """
        ...

    @abstractmethod
    def delete(self, key: Optional[str] = None) -> None:
        """Remove one entry, or every entry when key is None."""
        ...

    @abstractmethod
    def info(self) -> dict[str, Any]:
        """Return store statistics."""
        ...


class MemoryCacheStore(CacheStore):
    """Process-local cache store backed by a dict.

    Attributes:
        clock: Callable returning the current UTC time.
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self.clock()):
            del self._entries[key]
            return None

        return entry.value

    def set(self, key: str, value: str, ttl: timedelta) -> None:
        stored_at = self.clock()
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            stored_at=stored_at,
            expires_at=stored_at + ttl,
        )

    def delete(self, key: Optional[str] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def info(self) -> dict[str, Any]:
        return {"backend": "memory", "count": len(self._entries)}


class SqliteCacheStore(CacheStore):
    """SQLite cache store persisting entries across processes and restarts.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database. If None, uses
                ~/.cache/composer_catalog/cache.db.
        """
        if db_path is None:
            cache_dir = Path.home() / ".cache" / "composer_catalog"
            cache_dir.mkdir(parents=True, exist_ok=True)
            db_path = cache_dir / "cache.db"

        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._init_database()

    def __enter__(self) -> "SqliteCacheStore":
        """Enter context manager, keeping connection open."""
        self._conn = sqlite3.connect(self.db_path)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager, closing connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @contextlib.contextmanager
    def _connect(self):
        """Get a database connection.

        If used as a context manager (with statement), reuses the existing
        connection. Otherwise, creates a new one and closes it after use.
        """
        if self._conn:
            yield self._conn
        else:
            conn = sqlite3.connect(self.db_path)
            try:
                yield conn
            finally:
                conn.close()

    def _init_database(self) -> None:
        """Initialize the database schema if it doesn't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS cache_entries (
                    cache_key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    stored_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def get(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT value, expires_at FROM cache_entries WHERE cache_key = ?",
                (key,),
            )
            row = cursor.fetchone()

        if row is None:
            return None

        value, expires_at_str = row
        expires_at = datetime.fromisoformat(expires_at_str)
        if datetime.now(UTC) >= expires_at:
            self.delete(key)
            return None

        return value

    def set(self, key: str, value: str, ttl: timedelta) -> None:
        stored_at = datetime.now(UTC)
        expires_at = stored_at + ttl

        with self._connect() as conn:
            cursor = conn.cursor()
            # REPLACE handles both insert and update
            cursor.execute(
                """
                REPLACE INTO cache_entries (cache_key, value, stored_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                (key, value, stored_at.isoformat(), expires_at.isoformat()),
            )
            conn.commit()

    def delete(self, key: Optional[str] = None) -> None:
        with self._connect() as conn:
            cursor = conn.cursor()
            if key is None:
                cursor.execute("DELETE FROM cache_entries")
            else:
                cursor.execute(
                    "DELETE FROM cache_entries WHERE cache_key = ?", (key,)
                )
            conn.commit()

    def info(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with cache information:
                - backend: "sqlite"
                - path: Path to cache database file
                - count: Number of stored entries
                - size_bytes: Database file size in bytes
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM cache_entries")
            count = cursor.fetchone()[0]

        size_bytes = self.db_path.stat().st_size if self.db_path.exists() else 0

        return {
            "backend": "sqlite",
            "path": str(self.db_path),
            "count": count,
            "size_bytes": size_bytes,
        }


class CatalogCache:
    """Serves the catalog from a cache store, rebuilding it when stale.

    Expiry is checked lazily when the catalog is read. Concurrent requests
    on a cold cache share a single build.

    Attributes:
        store: Backing cache store.
        ttl: Time a built catalog stays valid (default: 12 hours).
        key: Key the catalog is stored under.
    """

    CACHE_KEY = "composer_catalog_packages"
    DEFAULT_TTL = timedelta(hours=12)

    def __init__(
        self,
        store: CacheStore,
        ttl: timedelta = DEFAULT_TTL,
        key: str = CACHE_KEY,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self.key = key
        self._lock = asyncio.Lock()

    def peek(self) -> Optional[Catalog]:
        """Return the cached catalog without building.

        Returns:
            The cached Catalog, or None if absent, expired or unreadable.
        """
        raw = self.store.get(self.key)
        if raw is None:
            return None

        try:
            data = json.loads(raw)
            return Catalog.from_dict(
                data["packages"],
                built_at=datetime.fromisoformat(data["built_at"]),
            )
        except (json.JSONDecodeError, AttributeError, TypeError, KeyError, ValueError):
            # Corrupted data is treated as a cache miss
            logger.warning("Discarding unreadable cached catalog under %s", self.key)
            return None

    async def get_or_build(
        self, builder_fn: Callable[[], Awaitable[Catalog]]
    ) -> Catalog:
        """Return the cached catalog, building and storing it on a miss.

        Nothing is stored if the build raises or is cancelled. Store reads
        and writes run in a worker thread, since SqliteCacheStore blocks.

        Args:
            builder_fn: Coroutine function producing a fresh catalog.

        Returns:
            The valid catalog.
        """
        catalog = await asyncio.to_thread(self.peek)
        if catalog is not None:
            logger.debug("Catalog cache hit")
            return catalog

        async with self._lock:
            # Another request may have rebuilt it while we waited
            catalog = await asyncio.to_thread(self.peek)
            if catalog is not None:
                return catalog

            logger.info("Catalog cache miss, rebuilding")
            catalog = await builder_fn()
            await asyncio.to_thread(
                self.store.set, self.key, self._serialize(catalog), self.ttl
            )
            return catalog

    def clear(self) -> None:
        """Invalidate the cached catalog."""
        self.store.delete(self.key)
        logger.info("Catalog cache cleared")

    @staticmethod
    def _serialize(catalog: Catalog) -> str:
        return json.dumps(
            {
                "built_at": catalog.built_at.isoformat(),
                "packages": catalog.to_dict(),
            }
        )
