"""
Sync manager driving one synchronization cycle against a provider.

A cycle is: ensure authenticated -> pull -> merge (if a snapshot came back)
-> snapshot the merged local state -> push. Failures abort the cycle and are
raised to the caller; nothing is retried here.
"""

import asyncio
import logging
from pathlib import Path

from pydantic import BaseModel

from strength_journal.domain.snapshot import Snapshot
from strength_journal.infrastructure.providers.base import SyncProvider
from strength_journal.infrastructure.providers.file_provider import FileSyncProvider
from strength_journal.infrastructure.store.local_store import LocalStore
from strength_journal.services.merge import MergeEngine, MergeReport
from strength_journal.services.snapshot_codec import SnapshotCodec
from strength_journal.utils.exceptions import (
    ProviderAuthError,
    ProviderIOError,
    StrengthJournalError,
    SyncInProgressError,
)
from strength_journal.utils.parameters import FileProviderConfig, SyncConfig

logger = logging.getLogger(__name__)


class SyncResult(BaseModel):
    """Outcome of a completed sync cycle; failed cycles raise instead."""

    message: str
    provider: str
    merged: bool = False
    report: MergeReport | None = None
    pushed_at: int | None = None


class SyncManager:
    """
    Orchestrates sync cycles for one local store and one provider.

    Only one cycle may run at a time per manager; an overlapping call is
    refused with :class:`SyncInProgressError`.
    """

    def __init__(
        self,
        provider: SyncProvider,
        store: LocalStore,
        codec: SnapshotCodec | None = None,
        merge_engine: MergeEngine | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        """
        Initialize sync manager.

        Args:
            provider: Transport the cycle pulls from and pushes to.
            store: Local store.
            codec: Snapshot codec; its schema version is the one this build expects.
            merge_engine: Merge engine; built from ``config`` when omitted.
            config: Sync configuration.
        """
        self.provider = provider
        self.store = store
        self.codec = codec or SnapshotCodec()
        self.config = config or SyncConfig()
        self.merge_engine = merge_engine or MergeEngine(self.config)
        self.device_id = store.device_id()
        self._lock = asyncio.Lock()

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    def create_snapshot(self) -> Snapshot:
        """Snapshot the current local state."""
        return self.codec.create_snapshot(self.store, self.device_id)

    def merge_snapshot(self, remote: Snapshot) -> MergeReport:
        """
        Merge a remote snapshot into the local store.

        Raises:
            SchemaMismatch: If the snapshot's schema version differs; nothing is merged.
            MergeTransactionError: If the merge fails; nothing is merged.
        """
        self.codec.check_schema_version(remote.schema_version)
        return self.merge_engine.merge_snapshot(self.store, remote)

    async def import_file(self, path: str | Path) -> MergeReport:
        """
        Parse a user-selected snapshot file and merge it.

        Raises:
            ProviderIOError: If the file cannot be read.
            MalformedSnapshot: If the file is not a valid snapshot; nothing is merged.
            SchemaMismatch: If the schema version differs; nothing is merged.
        """
        reader = (
            self.provider
            if isinstance(self.provider, FileSyncProvider)
            else FileSyncProvider(FileProviderConfig(), codec=self.codec)
        )
        snapshot = await reader.import_file(path)
        return self.merge_snapshot(snapshot)

    async def sync(self) -> SyncResult:
        """
        Run one full sync cycle.

        Returns:
            Result of the completed cycle.

        Raises:
            SyncInProgressError: If another cycle is already running.
            ProviderAuthError: If connecting fails; the store is untouched.
            ProviderIOError: If pull or push fails.
            MalformedSnapshot: If the pulled snapshot cannot be parsed.
            SchemaMismatch: If the pulled snapshot has another schema version.
            MergeTransactionError: If merging fails; the store is unchanged.
        """
        if self._lock.locked():
            raise SyncInProgressError("A sync cycle is already running")

        async with self._lock:
            logger.info(f"Starting sync with {self.provider.name}")

            await self._ensure_connected()
            remote = await self._pull()

            report: MergeReport | None = None
            if remote is None:
                logger.info("Remote is empty, pushing local state")
            else:
                report = self.merge_snapshot(remote)

            snapshot = self.create_snapshot()
            await self._push(snapshot)

            logger.info(f"Sync with {self.provider.name} succeeded")
            return SyncResult(
                message="succeeded",
                provider=self.provider.name,
                merged=report is not None,
                report=report,
                pushed_at=snapshot.exported_at,
            )

    async def _ensure_connected(self) -> None:
        if self.provider.is_authenticated():
            return
        try:
            await self.provider.connect()
        except ProviderAuthError:
            raise
        except Exception as e:
            raise ProviderAuthError(f"Failed to connect to {self.provider.name}: {e}") from e

    async def _pull(self) -> Snapshot | None:
        try:
            return await self.provider.pull()
        except StrengthJournalError:
            raise
        except Exception as e:
            raise ProviderIOError(f"Failed to pull from {self.provider.name}: {e}") from e

    async def _push(self, snapshot: Snapshot) -> None:
        try:
            await self.provider.push(snapshot)
        except StrengthJournalError:
            raise
        except Exception as e:
            raise ProviderIOError(f"Failed to push to {self.provider.name}: {e}") from e
