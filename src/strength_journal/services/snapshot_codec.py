"""
Snapshot codec.

Converts the full local store into one portable, versioned JSON document and
parses such documents back into typed tables.
"""

import json
import logging

from pydantic import ValidationError

from strength_journal.domain.records import SYNC_TABLES, SyncRecord, TableName
from strength_journal.domain.snapshot import SCHEMA_VERSION, Snapshot, SnapshotData
from strength_journal.infrastructure.store.local_store import LocalStore
from strength_journal.utils.exceptions import MalformedSnapshot, SchemaMismatch
from strength_journal.utils.timestamps import now_ms

logger = logging.getLogger(__name__)


class SnapshotCodec:
    """Serializes the local store to snapshots and parses snapshots back."""

    def __init__(self, schema_version: int = SCHEMA_VERSION) -> None:
        self.schema_version = schema_version

    def create_snapshot(
        self, store: LocalStore, device_id: str, exported_at: int | None = None
    ) -> Snapshot:
        """
        Read every syncable table in full and wrap it in a snapshot.

        This is a pure read of the store. Every known table is present in
        ``data``, even when empty.

        Args:
            store: Local store to export.
            device_id: Installation id recorded in the snapshot.
            exported_at: Export time in epoch ms (defaults to now).

        Returns:
            Snapshot of the current local state.
        """
        tables: dict[TableName, list[SyncRecord]] = {
            table: store.all(table) for table in SYNC_TABLES
        }
        snapshot = Snapshot(
            schema_version=self.schema_version,
            exported_at=now_ms() if exported_at is None else exported_at,
            device_id=device_id,
            data=SnapshotData.from_tables(tables),
        )
        logger.debug(f"Created snapshot with {snapshot.record_count()} records")
        return snapshot

    def encode_snapshot(self, snapshot: Snapshot, indent: int | None = None) -> bytes:
        """
        Encode a snapshot as UTF-8 JSON.

        Args:
            snapshot: Snapshot to encode.
            indent: Pretty-print indentation; compact when None.

        Returns:
            JSON bytes.
        """
        document = snapshot.model_dump(mode="json", by_alias=True, exclude_none=True)
        return json.dumps(document, indent=indent, ensure_ascii=False).encode("utf-8")

    def parse_snapshot(self, raw: bytes | str) -> Snapshot:
        """
        Parse snapshot bytes.

        Args:
            raw: JSON document as bytes or text.

        Returns:
            Parsed snapshot.

        Raises:
            MalformedSnapshot: If the input is not JSON or lacks the snapshot shape.
            SchemaMismatch: If the document was written under another schema
                version; checked before the records are validated.
        """
        try:
            document = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedSnapshot(f"Snapshot is not valid JSON: {e}") from e

        if not isinstance(document, dict):
            raise MalformedSnapshot("Snapshot must be a JSON object")

        self.check_schema_version(document.get("schemaVersion"))

        try:
            snapshot = Snapshot.model_validate(document)
        except ValidationError as e:
            raise MalformedSnapshot(f"Snapshot has an invalid structure: {e}") from e

        logger.debug(
            f"Parsed snapshot from device {snapshot.device_id} "
            f"(schema {snapshot.schema_version}, {snapshot.record_count()} records)"
        )
        return snapshot

    def check_schema_version(self, version: object) -> None:
        """
        Refuse a snapshot written under another schema version.

        Raises:
            MalformedSnapshot: If the version is missing or not an integer.
            SchemaMismatch: If the version differs from this build's.
        """
        if not isinstance(version, int) or isinstance(version, bool):
            raise MalformedSnapshot(f"Snapshot has no valid schemaVersion: {version!r}")
        if version != self.schema_version:
            raise SchemaMismatch(self.schema_version, version)
