"""
Merge engine for reconciling a remote snapshot into the local store.

Records are matched across devices by ``uuid`` and resolved last-write-wins
on ``updatedAt``. All tables of one merge pass are written inside a single
store transaction, so a failure leaves the local store as it was.
"""

import logging
from collections.abc import Callable, Sequence
from enum import Enum

from pydantic import BaseModel, Field

from strength_journal.domain.records import (
    ENTITY_TYPES,
    SYNC_TABLES,
    ConflictRecord,
    ConflictResolution,
    SyncRecord,
    TableName,
)
from strength_journal.domain.snapshot import Snapshot
from strength_journal.infrastructure.store.local_store import LocalStore
from strength_journal.utils.exceptions import MergeTransactionError
from strength_journal.utils.hashing import conflict_uuid, content_hash
from strength_journal.utils.parameters import SyncConfig
from strength_journal.utils.timestamps import now_ms

logger = logging.getLogger(__name__)


class MergeOutcome(str, Enum):
    """What happened to one remote record."""

    INSERTED = "inserted"
    UPDATED = "updated"
    KEPT_LOCAL = "kept_local"
    UNCHANGED = "unchanged"
    TIE_RECORDED = "tie_recorded"
    INVALID = "invalid"


class TableMergeStats(BaseModel):
    """Per-table merge counters."""

    inserted: int = 0
    updated: int = 0
    kept_local: int = 0
    unchanged: int = 0
    ties_recorded: int = 0
    invalid: int = 0

    def record(self, outcome: MergeOutcome) -> None:
        if outcome is MergeOutcome.TIE_RECORDED:
            self.unchanged += 1
            self.ties_recorded += 1
        else:
            setattr(self, outcome.value, getattr(self, outcome.value) + 1)


class MergeReport(BaseModel):
    """Outcome of merging one snapshot."""

    tables: dict[str, TableMergeStats] = Field(default_factory=dict)

    def total(self, counter: str) -> int:
        """Sum of ``counter`` over all tables."""
        return sum(getattr(stats, counter) for stats in self.tables.values())

    @property
    def changed(self) -> int:
        """Number of local rows inserted or overwritten."""
        return self.total("inserted") + self.total("updated")

    def summary(self) -> str:
        return (
            f"{self.total('inserted')} inserted, {self.total('updated')} updated, "
            f"{self.total('kept_local')} kept local, {self.total('ties_recorded')} ties logged, "
            f"{self.total('invalid')} skipped"
        )


class MergeEngine:
    """
    Folds remote records into the local store, table by table.

    For every table except settings, each remote record is matched to a
    local one by uuid:

    - no local match: inserted under a fresh local id;
    - remote newer: every field is overwritten, the local id is kept;
    - local newer: left alone, it goes out on the next push;
    - equal timestamps: left alone. When the contents differ the tie is
      written to the conflict log (once per distinct pair of versions).

    Settings is a singleton matched by "first record found" and follows
    ``SyncConfig.settings_policy``.
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """
        Initialize merge engine.

        Args:
            config: Sync configuration (settings policy, tie recording).
            clock: Source of epoch-ms timestamps for conflict log entries.
        """
        self.config = config or SyncConfig()
        self.clock = clock

    def merge_snapshot(self, store: LocalStore, snapshot: Snapshot) -> MergeReport:
        """
        Merge every table of ``snapshot`` into ``store`` atomically.

        Args:
            store: Local store to update.
            snapshot: Remote snapshot; its schema version must already be checked.

        Returns:
            Per-table merge counters.

        Raises:
            MergeTransactionError: If anything fails; no table is changed.
        """
        report = MergeReport()

        try:
            with store.transaction():
                for table in SYNC_TABLES:
                    stats = self.merge_table(store, table, snapshot.data.records_for(table))
                    report.tables[table.value] = stats
        except MergeTransactionError:
            raise
        except Exception as e:
            raise MergeTransactionError(f"Merge aborted, local store unchanged: {e}") from e

        logger.info(f"Merged snapshot from device {snapshot.device_id}: {report.summary()}")
        return report

    def merge_table(
        self, store: LocalStore, table: TableName, remote_records: Sequence[SyncRecord]
    ) -> TableMergeStats:
        """Merge the remote records of one table."""
        if table is TableName.SETTINGS:
            return self._merge_settings(store, remote_records)

        stats = TableMergeStats()
        for remote in remote_records:
            stats.record(self.merge_record(store, table, remote))

        logger.debug(f"Merged {table.value}: {stats.model_dump()}")
        return stats

    def merge_record(
        self, store: LocalStore, table: TableName, remote: SyncRecord
    ) -> MergeOutcome:
        """Apply last-write-wins to a single remote record."""
        if not remote.uuid:
            logger.debug(f"Skipping {table.value} record without uuid")
            return MergeOutcome.INVALID

        local = store.get_by_uuid(table, remote.uuid)

        if local is None:
            store.insert(table, remote)
            return MergeOutcome.INSERTED

        if remote.updated_at > local.updated_at:
            store.replace(table, local.id, remote)
            return MergeOutcome.UPDATED

        if remote.updated_at < local.updated_at:
            return MergeOutcome.KEPT_LOCAL

        if self._record_tie(store, table, local, remote):
            return MergeOutcome.TIE_RECORDED
        return MergeOutcome.UNCHANGED

    def _merge_settings(
        self, store: LocalStore, remote_records: Sequence[SyncRecord]
    ) -> TableMergeStats:
        stats = TableMergeStats()
        if not remote_records:
            return stats

        remote, *extra = remote_records
        stats.unchanged += len(extra)

        local = store.first(TableName.SETTINGS)
        if local is None:
            store.insert(TableName.SETTINGS, remote)
            stats.inserted += 1
        elif (
            self.config.settings_policy == "last_write_wins"
            and remote.updated_at > local.updated_at
        ):
            store.replace(TableName.SETTINGS, local.id, remote)
            stats.updated += 1
        else:
            stats.kept_local += 1

        return stats

    def _record_tie(
        self, store: LocalStore, table: TableName, local: SyncRecord, remote: SyncRecord
    ) -> bool:
        """
        Log an equal-timestamp pair whose contents differ.

        Returns:
            True if a new conflict log entry was written.
        """
        if not self.config.record_ties or table is TableName.CONFLICT_LOG:
            return False

        local_doc = local.to_document()
        remote_doc = remote.to_document()
        local_hash = content_hash(local_doc)
        remote_hash = content_hash(remote_doc)
        if local_hash == remote_hash:
            return False

        entity_type = ENTITY_TYPES[table]
        entry_uuid = conflict_uuid(entity_type, local.uuid, local_hash, remote_hash)
        if store.get_by_uuid(TableName.CONFLICT_LOG, entry_uuid) is not None:
            return False

        now = self.clock()
        entry = ConflictRecord(
            uuid=entry_uuid,
            updated_at=now,
            entity_type=entity_type,
            entity_id=local.uuid,
            local_updated_at=local.updated_at,
            remote_updated_at=remote.updated_at,
            resolved_at=now,
            resolution=ConflictResolution.LOCAL,
            snapshot={"local": local_doc, "remote": remote_doc},
        )
        store.insert(TableName.CONFLICT_LOG, entry)

        logger.warning(
            f"Equal updatedAt with divergent content for {entity_type} {local.uuid}; kept local"
        )
        return True
