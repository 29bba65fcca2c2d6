"""
Tombstone garbage collection.

Deleted records stay in the store as tombstones so the deletion reaches the
other device through merge. Once a tombstone is older than the retention
window both devices are assumed to have observed it and the row is removed.
"""

import logging
from collections.abc import Callable

from strength_journal.domain.records import TableName
from strength_journal.infrastructure.store.local_store import LocalStore
from strength_journal.utils.timestamps import days_to_ms, now_ms

logger = logging.getLogger(__name__)


class TombstoneReaper:
    """Physically removes tombstones older than the retention window."""

    def __init__(
        self,
        store: LocalStore,
        retention_days: int,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.retention_days = retention_days
        self.clock = clock

    def cutoff(self) -> int:
        """Tombstones with ``deletedAt`` before this epoch-ms value are reaped."""
        return self.clock() - days_to_ms(self.retention_days)

    def reap(self, before_ms: int | None = None) -> dict[TableName, int]:
        """
        Remove expired tombstones.

        Args:
            before_ms: Explicit cutoff; defaults to :meth:`cutoff`.

        Returns:
            Number of removed rows per table.
        """
        cutoff = self.cutoff() if before_ms is None else before_ms
        removed = self.store.reap_tombstones(cutoff)

        total = sum(removed.values())
        logger.info(f"Reaped {total} tombstones deleted before {cutoff}")
        return removed
