"""
SQLite-backed local document store.

Each syncable table keeps one row per record: the device-local ``id``, the
indexed sync metadata (``uuid``, ``updated_at``, ``deleted_at``) and the full
record as a JSON document. A ``meta`` key/value table holds per-installation
values such as the device id.
"""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from strength_journal.domain.records import (
    SYNC_TABLES,
    SyncRecord,
    TableName,
    record_from_document,
)
from strength_journal.utils.exceptions import StoreError
from strength_journal.utils.hashing import new_uuid
from strength_journal.utils.timestamps import now_ms

logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "deviceId"


def _quoted(table: TableName) -> str:
    return f'"{table.value}"'


class LocalStore:
    """
    Embedded document store holding every syncable table.

    Writes made outside :meth:`transaction` commit immediately. Inside a
    transaction all writes commit or roll back together.
    """

    def __init__(self, path: str | Path = ":memory:") -> None:
        """
        Open (and create if needed) the store.

        Args:
            path: SQLite database file, or ``":memory:"``.

        Raises:
            StoreError: If the database cannot be opened or initialized.
        """
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = sqlite3.connect(self.path, isolation_level=None)
            self._create_schema()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open store {self.path}: {e}") from e

        self._in_transaction = False
        logger.debug(f"Opened local store at {self.path}")

    def _create_schema(self) -> None:
        for table in SYNC_TABLES:
            self._conn.execute(
                f"CREATE TABLE IF NOT EXISTS {_quoted(table)} ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "uuid TEXT UNIQUE, "
                "updated_at INTEGER NOT NULL DEFAULT 0, "
                "deleted_at INTEGER, "
                "document TEXT NOT NULL)"
            )
        self._conn.execute(
            "CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "LocalStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Run the enclosed writes atomically.

        Nested calls join the outermost transaction. Any exception rolls back
        every write made since the outermost ``transaction()`` began.
        """
        if self._in_transaction:
            yield
            return

        self._conn.execute("BEGIN IMMEDIATE")
        self._in_transaction = True
        try:
            yield
        except BaseException:
            self._conn.execute("ROLLBACK")
            logger.debug("Transaction rolled back")
            raise
        else:
            self._conn.execute("COMMIT")
        finally:
            self._in_transaction = False

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def all(self, table: TableName) -> list[SyncRecord]:
        """Every record of ``table``, tombstoned ones included, in id order."""
        rows = self._conn.execute(
            f"SELECT id, document FROM {_quoted(table)} ORDER BY id"
        ).fetchall()
        return [record_from_document(table, json.loads(doc), row_id) for row_id, doc in rows]

    def live(self, table: TableName) -> list[SyncRecord]:
        """Records of ``table`` that are not tombstoned."""
        return [record for record in self.all(table) if not record.is_deleted]

    def get_by_uuid(self, table: TableName, record_uuid: str) -> SyncRecord | None:
        row = self._conn.execute(
            f"SELECT id, document FROM {_quoted(table)} WHERE uuid = ?", (record_uuid,)
        ).fetchone()
        if row is None:
            return None
        return record_from_document(table, json.loads(row[1]), row[0])

    def first(self, table: TableName) -> SyncRecord | None:
        """The lowest-id record of ``table`` (used for the settings singleton)."""
        row = self._conn.execute(
            f"SELECT id, document FROM {_quoted(table)} ORDER BY id LIMIT 1"
        ).fetchone()
        if row is None:
            return None
        return record_from_document(table, json.loads(row[1]), row[0])

    def count(self, table: TableName, include_deleted: bool = True) -> int:
        query = f"SELECT COUNT(*) FROM {_quoted(table)}"
        if not include_deleted:
            query += " WHERE deleted_at IS NULL"
        result: int = self._conn.execute(query).fetchone()[0]
        return result

    def raw_rows(self, table: TableName) -> list[tuple[Any, ...]]:
        """Stored rows of ``table`` exactly as persisted."""
        return self._conn.execute(
            f"SELECT id, uuid, updated_at, deleted_at, document FROM {_quoted(table)} ORDER BY id"
        ).fetchall()

    # ------------------------------------------------------------------
    # Low-level writes (used by the merge engine)
    # ------------------------------------------------------------------

    def insert(self, table: TableName, record: SyncRecord) -> int:
        """
        Insert ``record`` under a freshly assigned local id.

        Any ``id`` carried by the record is ignored.

        Returns:
            The new local id.

        Raises:
            StoreError: If the row cannot be written (e.g. duplicate uuid).
        """
        document = record.to_document()
        try:
            cursor = self._conn.execute(
                f"INSERT INTO {_quoted(table)} (uuid, updated_at, deleted_at, document) "
                "VALUES (?, ?, ?, ?)",
                (
                    record.uuid or None,
                    record.updated_at,
                    record.deleted_at,
                    json.dumps(document),
                ),
            )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to insert into {table.value}: {e}") from e

        new_id = cursor.lastrowid
        if new_id is None:
            raise StoreError(f"Insert into {table.value} returned no row id")
        return new_id

    def replace(self, table: TableName, record_id: int | None, record: SyncRecord) -> None:
        """
        Overwrite every field of row ``record_id`` with ``record``.

        The row keeps its local id.

        Raises:
            StoreError: If ``record_id`` is None, no such row exists or the write fails.
        """
        if record_id is None:
            raise StoreError(f"Cannot update {table.value} record without a local id")

        document = record.to_document()
        try:
            cursor = self._conn.execute(
                f"UPDATE {_quoted(table)} SET uuid = ?, updated_at = ?, deleted_at = ?, "
                "document = ? WHERE id = ?",
                (
                    record.uuid or None,
                    record.updated_at,
                    record.deleted_at,
                    json.dumps(document),
                    record_id,
                ),
            )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to update {table.value} row {record_id}: {e}") from e

        if cursor.rowcount == 0:
            raise StoreError(f"No row {record_id} in {table.value}")

    # ------------------------------------------------------------------
    # Local mutations (used by the CRUD layer)
    # ------------------------------------------------------------------

    def save(self, table: TableName, record: SyncRecord, now: int | None = None) -> SyncRecord:
        """
        Create or update a record as a local edit.

        A missing ``uuid`` is generated. ``updatedAt`` is refreshed so that
        it never goes backwards for the same record, even if the wall clock
        does.

        Settings is a singleton: a settings record without a uuid updates
        the stored settings row (which may itself lack one, e.g. after a
        merge) instead of adding a second row.

        Args:
            table: Target table.
            record: Record to persist; matched to an existing row by uuid.
            now: Mutation time in epoch ms (defaults to the current time).

        Returns:
            The stored record with its local id.
        """
        timestamp = now_ms() if now is None else now
        stored = record.model_copy()

        with self.transaction():
            if stored.uuid:
                existing = self.get_by_uuid(table, stored.uuid)
            elif table is TableName.SETTINGS:
                existing = self.first(table)
            else:
                existing = None

            if not stored.uuid:
                stored.uuid = (existing.uuid if existing is not None else "") or new_uuid()

            if existing is None:
                stored.updated_at = timestamp
                stored.id = self.insert(table, stored)
            else:
                stored.updated_at = max(timestamp, existing.updated_at + 1)
                self.replace(table, existing.id, stored)
                stored.id = existing.id

        return stored

    def mark_deleted(
        self, table: TableName, record_uuid: str, now: int | None = None
    ) -> SyncRecord | None:
        """
        Tombstone a record instead of removing it.

        The tombstone travels through merge like any other edit; the row is
        only removed later by :meth:`reap_tombstones`.

        Returns:
            The tombstoned record, or None if no record has that uuid.
        """
        with self.transaction():
            existing = self.get_by_uuid(table, record_uuid)
            if existing is None:
                return None
            if existing.is_deleted:
                return existing
            timestamp = now_ms() if now is None else now
            existing.deleted_at = max(timestamp, existing.updated_at + 1)
            return self.save(table, existing, now=existing.deleted_at)

    def reap_tombstones(self, cutoff_ms: int) -> dict[TableName, int]:
        """
        Physically remove rows tombstoned before ``cutoff_ms``.

        Returns:
            Number of removed rows per table (tables with none are omitted).
        """
        removed: dict[TableName, int] = {}
        with self.transaction():
            for table in SYNC_TABLES:
                cursor = self._conn.execute(
                    f"DELETE FROM {_quoted(table)} "
                    "WHERE deleted_at IS NOT NULL AND deleted_at < ?",
                    (cutoff_ms,),
                )
                if cursor.rowcount:
                    removed[table] = cursor.rowcount
        return removed

    # ------------------------------------------------------------------
    # Meta
    # ------------------------------------------------------------------

    def get_meta(self, key: str) -> str | None:
        row = self._conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        return None if row is None else str(row[0])

    def set_meta(self, key: str, value: str) -> None:
        self._conn.execute(
            "INSERT INTO meta (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )

    def device_id(self) -> str:
        """Return this installation's device id, generating it on first use."""
        device_id = self.get_meta(DEVICE_ID_KEY)
        if device_id is None:
            device_id = new_uuid()
            self.set_meta(DEVICE_ID_KEY, device_id)
            logger.info(f"Generated device id {device_id}")
        return device_id
