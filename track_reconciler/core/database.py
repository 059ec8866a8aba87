"""
Cache stores for track-reconciler.

A cache store is a key-value map from a container id (the source
playlist id) to a JSON-able payload dict. ExportCache sits on top of it
and owns the payload's shape; the store only persists and returns it.

Stores:
    SqliteCacheStore: Thread-safe SQLite file, one row per container.
    MemoryCacheStore: In-process dict, used by tests and --no-cache runs.

Contract:
    get(container_id) -> dict | None   Missing or undecodable -> None
    put(container_id, payload)         Whole-record replace
    delete(container_id)               No-op when absent
    list_all() -> list[(id, dict)]     Undecodable rows are skipped

Usage:
    store = SqliteCacheStore(output_dir / "cache.db")
    store.put("37i9dQZF1DXcBWIGoYBM5M", {"version_marker": "abc", ...})
    payload = store.get("37i9dQZF1DXcBWIGoYBM5M")
"""

import copy
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from track_reconciler.core.exceptions import CacheError
from track_reconciler.core.logger import get_logger


logger = get_logger(__name__)

DATABASE_VERSION = 1


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS match_cache (
    container_id TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    updated_at TEXT
);
"""


class CacheStore(ABC):
    """Key-value persistence for per-container snapshot payloads."""

    @abstractmethod
    def get(self, container_id: str) -> dict[str, Any] | None:
        pass

    @abstractmethod
    def put(self, container_id: str, payload: dict[str, Any]) -> None:
        pass

    @abstractmethod
    def delete(self, container_id: str) -> None:
        pass

    @abstractmethod
    def list_all(self) -> list[tuple[str, dict[str, Any]]]:
        pass

    @abstractmethod
    def list_container_ids(self) -> list[str]:
        """Every stored container id, including ones whose payload is corrupt."""
        pass

    def close(self) -> None:
        """Release resources. Default: nothing to release."""
        pass


class MemoryCacheStore(CacheStore):
    """
    Dict-backed store.

    Payloads are deep-copied on the way in and out so callers can never
    mutate what is stored.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, dict[str, Any]] = {}

    def get(self, container_id: str) -> dict[str, Any] | None:
        with self._lock:
            payload = self._records.get(container_id)
            return copy.deepcopy(payload) if payload is not None else None

    def put(self, container_id: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self._records[container_id] = copy.deepcopy(payload)

    def delete(self, container_id: str) -> None:
        with self._lock:
            self._records.pop(container_id, None)

    def list_all(self) -> list[tuple[str, dict[str, Any]]]:
        with self._lock:
            return [
                (container_id, copy.deepcopy(payload))
                for container_id, payload in self._records.items()
            ]

    def list_container_ids(self) -> list[str]:
        with self._lock:
            return list(self._records)


class SqliteCacheStore(CacheStore):
    """
    Thread-safe SQLite cache store.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing.

    Raises:
        CacheError: If the parent directory is missing, the file cannot be
                    opened, or the schema version does not match.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise CacheError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            self._init_database()
        except sqlite3.Error as e:
            raise CacheError(
                f"Failed to initialize cache database: {e}",
                details={"path": str(db_path)}
            ) from e

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Yield the persistent connection, creating it on first use.

        The connection is not closed on exit; close() does that.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # We handle thread safety with _lock
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
        yield self._conn

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _init_database(self) -> None:
        with self._get_connection() as conn:
            conn.executescript(_SCHEMA_SQL)

            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()

            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
            elif row[0] != DATABASE_VERSION:
                raise CacheError(
                    f"Cache database version mismatch: expected {DATABASE_VERSION}, got {row[0]}",
                    details={"expected": DATABASE_VERSION, "actual": row[0]}
                )
            conn.commit()

    def _now_iso(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _decode(self, container_id: str, raw: str) -> dict[str, Any] | None:
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Ignoring undecodable cache record for {container_id}")
            return None

        if not isinstance(payload, dict):
            logger.warning(f"Ignoring non-object cache record for {container_id}")
            return None

        return payload

    # =========================================================================
    # Store Operations
    # =========================================================================

    def get(self, container_id: str) -> dict[str, Any] | None:
        with self._lock:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT payload FROM match_cache WHERE container_id = ?",
                    (container_id,)
                ).fetchone()

        if row is None:
            return None
        return self._decode(container_id, row["payload"])

    def put(self, container_id: str, payload: dict[str, Any]) -> None:
        encoded = json.dumps(payload, ensure_ascii=False)
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO match_cache (container_id, payload, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(container_id) DO UPDATE SET
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                """, (container_id, encoded, self._now_iso()))
                conn.commit()

    def delete(self, container_id: str) -> None:
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM match_cache WHERE container_id = ?", (container_id,))
                conn.commit()

    def list_all(self) -> list[tuple[str, dict[str, Any]]]:
        with self._lock:
            with self._get_connection() as conn:
                rows = conn.execute(
                    "SELECT container_id, payload FROM match_cache ORDER BY container_id"
                ).fetchall()

        records = []
        for row in rows:
            payload = self._decode(row["container_id"], row["payload"])
            if payload is not None:
                records.append((row["container_id"], payload))
        return records

    def list_container_ids(self) -> list[str]:
        with self._lock:
            with self._get_connection() as conn:
                rows = conn.execute(
                    "SELECT container_id FROM match_cache ORDER BY container_id"
                ).fetchall()
        return [row["container_id"] for row in rows]
