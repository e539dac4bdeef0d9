"""SQLite-backed catalog snapshot store with staleness tracking."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from linkdex.catalog.models import CatalogEntry, CatalogSnapshot, SnapshotMeta
from linkdex.config import DB_PATH
from linkdex.errors import StorageError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2
# Databases older than this carry no version stamp and are rebuilt.
MIN_MIGRATABLE_VERSION = 1
META_KEY = "lastUpdate"
ENTRIES_TABLE = "catalog_entries"
META_TABLE = "catalog_meta"


def now_ms() -> int:
    return int(time.time() * 1000)


class CatalogStore:
    """Persists the last full catalog snapshot.

    Every write runs in a single transaction: a failed save rolls back and
    leaves the previously committed snapshot visible to ``load()``.
    """

    def __init__(
        self,
        db_path: Union[str, Path, None] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.db_path = Path(db_path or DB_PATH)
        self._clock = clock
        self._db_lock = threading.Lock()
        self.init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Get a database connection."""
        return sqlite3.connect(str(self.db_path), check_same_thread=False)

    def _connect(self) -> sqlite3.Connection:
        try:
            return self._get_conn()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to open catalog database {self.db_path}: {exc}") from exc

    def init_db(self) -> None:
        """Create or migrate catalog tables to ``SCHEMA_VERSION``."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._db_lock:
            conn = self._connect()
            try:
                with conn:
                    self._migrate(conn.cursor())
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to initialize catalog database: {exc}") from exc
            finally:
                conn.close()
        logger.debug("Catalog database initialized at %s", self.db_path)

    def _migrate(self, cursor: sqlite3.Cursor) -> None:
        cursor.execute("PRAGMA user_version")
        stored_version = cursor.fetchone()[0]
        if stored_version >= SCHEMA_VERSION:
            return

        if stored_version < MIN_MIGRATABLE_VERSION and self._has_catalog_tables(cursor):
            logger.warning(
                "Catalog database predates schema versioning; rebuilding from next fetch"
            )
            cursor.execute(f"DROP TABLE IF EXISTS {ENTRIES_TABLE}")
            cursor.execute(f"DROP TABLE IF EXISTS {META_TABLE}")

        # Version 1 layout
        cursor.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {ENTRIES_TABLE} (
                position INTEGER PRIMARY KEY,
                link TEXT NOT NULL,
                title TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                status TEXT NOT NULL DEFAULT 'active'
            )
        """
        )
        cursor.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {META_TABLE} (
                key TEXT PRIMARY KEY,
                timestamp INTEGER NOT NULL,
                count INTEGER NOT NULL
            )
        """
        )

        # Version 2: external ids, confirmation time, one row per link
        self._ensure_column(cursor, ENTRIES_TABLE, "external_id", "TEXT")
        self._ensure_column(cursor, META_TABLE, "checked_at", "INTEGER")
        try:
            cursor.execute(
                f"""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_catalog_entries_link
                ON {ENTRIES_TABLE}(link)
            """
            )
        except sqlite3.IntegrityError:
            logger.warning(
                "Stored catalog has duplicate links and cannot be migrated; clearing it"
            )
            cursor.execute(f"DELETE FROM {ENTRIES_TABLE}")
            cursor.execute(f"DELETE FROM {META_TABLE}")
            cursor.execute(
                f"CREATE UNIQUE INDEX idx_catalog_entries_link ON {ENTRIES_TABLE}(link)"
            )

        cursor.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        logger.info(
            "Migrated catalog schema from version %s to %s", stored_version, SCHEMA_VERSION
        )

    def _has_catalog_tables(self, cursor: sqlite3.Cursor) -> bool:
        cursor.execute(
            "SELECT COUNT(*) FROM sqlite_master WHERE type='table' AND name IN (?, ?)",
            (ENTRIES_TABLE, META_TABLE),
        )
        return cursor.fetchone()[0] > 0

    def _ensure_column(
        self,
        cursor: sqlite3.Cursor,
        table_name: str,
        column_name: str,
        column_sql_type: str,
    ) -> None:
        """Add a missing column for backward-compatible schema evolution."""
        cursor.execute(f"PRAGMA table_info({table_name})")
        existing_columns = {row[1] for row in cursor.fetchall()}
        if column_name in existing_columns:
            return
        cursor.execute(
            f"ALTER TABLE {table_name} ADD COLUMN {column_name} {column_sql_type}"
        )

    def save(self, entries: Iterable[CatalogEntry], timestamp: int) -> SnapshotMeta:
        """Replace the stored snapshot with ``entries`` in one transaction.

        Entries sharing a link collapse to the last one, at its later position.
        """
        by_link: Dict[str, CatalogEntry] = {}
        for entry in entries:
            by_link.pop(entry.link, None)
            by_link[entry.link] = entry
        rows = [
            (position, entry.link, entry.external_id, entry.title, entry.timestamp, entry.status)
            for position, entry in enumerate(by_link.values())
        ]
        meta = SnapshotMeta(timestamp=timestamp, count=len(rows), checked_at=self._clock())

        with self._db_lock:
            conn = self._connect()
            try:
                with conn:
                    c = conn.cursor()
                    c.execute(f"DELETE FROM {ENTRIES_TABLE}")
                    c.executemany(
                        f"""
                        INSERT INTO {ENTRIES_TABLE}
                        (position, link, external_id, title, timestamp, status)
                        VALUES (?, ?, ?, ?, ?, ?)
                    """,
                        rows,
                    )
                    c.execute(
                        f"""
                        INSERT INTO {META_TABLE} (key, timestamp, count, checked_at)
                        VALUES (?, ?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET
                            timestamp = excluded.timestamp,
                            count = excluded.count,
                            checked_at = excluded.checked_at
                    """,
                        (META_KEY, meta.timestamp, meta.count, meta.checked_at),
                    )
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to save catalog snapshot: {exc}") from exc
            finally:
                conn.close()

        logger.info("Saved catalog snapshot with %d entries", meta.count)
        return meta

    def load(self) -> CatalogSnapshot:
        """Return the committed snapshot; empty with ``meta=None`` if never saved."""
        conn = self._connect()
        try:
            c = conn.cursor()
            c.execute("BEGIN")
            c.execute(
                f"""
                SELECT title, link, external_id, timestamp, status
                FROM {ENTRIES_TABLE}
                ORDER BY position
            """
            )
            entries = tuple(
                CatalogEntry(
                    title=row[0],
                    link=row[1],
                    external_id=row[2],
                    timestamp=row[3],
                    status=row[4],
                )
                for row in c.fetchall()
            )
            meta = self._read_meta(c)
            conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to load catalog snapshot: {exc}") from exc
        finally:
            conn.close()

        return CatalogSnapshot(schema_version=SCHEMA_VERSION, entries=entries, meta=meta)

    def _read_meta(self, cursor: sqlite3.Cursor) -> Optional[SnapshotMeta]:
        cursor.execute(
            f"SELECT timestamp, count, checked_at FROM {META_TABLE} WHERE key = ?",
            (META_KEY,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        timestamp, count, checked_at = row
        return SnapshotMeta(
            timestamp=timestamp,
            count=count,
            checked_at=checked_at if checked_at is not None else timestamp,
        )

    def get_meta(self) -> Optional[SnapshotMeta]:
        conn = self._connect()
        try:
            return self._read_meta(conn.cursor())
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read catalog metadata: {exc}") from exc
        finally:
            conn.close()

    def is_stale(self, max_age_ms: int) -> bool:
        """True when nothing is stored or the snapshot is older than ``max_age_ms``."""
        meta = self.get_meta()
        if meta is None:
            return True
        return self._clock() - meta.checked_at > max_age_ms

    def touch(self) -> Optional[SnapshotMeta]:
        """Mark the stored snapshot as confirmed current without rewriting it."""
        checked_at = self._clock()
        with self._db_lock:
            conn = self._connect()
            try:
                with conn:
                    conn.execute(
                        f"UPDATE {META_TABLE} SET checked_at = ? WHERE key = ?",
                        (checked_at, META_KEY),
                    )
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to update catalog metadata: {exc}") from exc
            finally:
                conn.close()
        return self.get_meta()

    def invalidate(self) -> None:
        """Clear the stored snapshot so the next staleness check reports True."""
        with self._db_lock:
            conn = self._connect()
            try:
                with conn:
                    conn.execute(f"DELETE FROM {ENTRIES_TABLE}")
                    conn.execute(f"DELETE FROM {META_TABLE}")
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to invalidate catalog: {exc}") from exc
            finally:
                conn.close()
        logger.info("Catalog cache invalidated")

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        conn = self._connect()
        try:
            c = conn.cursor()
            c.execute(f"SELECT COUNT(*) FROM {ENTRIES_TABLE}")
            total = c.fetchone()[0]
            c.execute(f"SELECT COUNT(*) FROM {ENTRIES_TABLE} WHERE external_id IS NOT NULL")
            with_ids = c.fetchone()[0]
            meta = self._read_meta(c)
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read catalog stats: {exc}") from exc
        finally:
            conn.close()

        return {
            "db_path": str(self.db_path),
            "schema_version": SCHEMA_VERSION,
            "total_entries": total,
            "entries_with_external_id": with_ids,
            "timestamp": meta.timestamp if meta else None,
            "checked_at": meta.checked_at if meta else None,
        }


def entries_as_dicts(entries: Iterable[CatalogEntry]) -> List[Dict[str, Any]]:
    """Serialize entries in the persisted snapshot field layout."""
    return [
        {
            "link": entry.link,
            "externalId": entry.external_id,
            "title": entry.title,
            "timestamp": entry.timestamp,
            "status": entry.status,
        }
        for entry in entries
    ]
