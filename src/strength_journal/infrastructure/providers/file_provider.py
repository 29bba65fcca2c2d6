"""
File export/import provider.

Pushing writes a date-stamped JSON file into the export directory. Pulling is
only meaningful when the caller has picked a file to import.
"""

import asyncio
import logging
from pathlib import Path

from strength_journal.domain.snapshot import Snapshot
from strength_journal.infrastructure.providers.base import SyncProvider
from strength_journal.services.snapshot_codec import SnapshotCodec
from strength_journal.utils.exceptions import ProviderIOError
from strength_journal.utils.parameters import FileProviderConfig
from strength_journal.utils.timestamps import iso_date

logger = logging.getLogger(__name__)


class FileSyncProvider(SyncProvider):
    """Provider backed by JSON files on the local filesystem."""

    name = "File Export/Import"

    def __init__(
        self,
        config: FileProviderConfig,
        codec: SnapshotCodec | None = None,
        import_path: str | Path | None = None,
    ) -> None:
        """
        Initialize file provider.

        Args:
            config: File provider configuration.
            codec: Snapshot codec used for reading and writing files.
            import_path: File returned by :meth:`pull`; without it pull yields None.
        """
        self.config = config
        self.codec = codec or SnapshotCodec()
        self.export_dir = Path(config.export_dir)
        self.import_path = Path(import_path) if import_path is not None else None
        self.last_export_path: Path | None = None

    async def connect(self) -> None:
        return None

    async def disconnect(self) -> None:
        return None

    def is_authenticated(self) -> bool:
        return True

    def export_path_for(self, snapshot: Snapshot) -> Path:
        """Target path for ``snapshot``: ``<prefix>-<YYYY-MM-DD>.json``."""
        file_name = f"{self.config.file_prefix}-{iso_date(snapshot.exported_at)}.json"
        return self.export_dir / file_name

    async def pull(self) -> Snapshot | None:
        if self.import_path is None:
            return None
        return await self.import_file(self.import_path)

    async def push(self, snapshot: Snapshot) -> None:
        """
        Write the snapshot to a dated JSON file.

        Raises:
            ProviderIOError: If the file cannot be written.
        """
        path = self.export_path_for(snapshot)
        payload = self.codec.encode_snapshot(snapshot, indent=2)

        try:
            await asyncio.to_thread(self._write, path, payload)
        except OSError as e:
            raise ProviderIOError(f"Failed to write export {path}: {e}") from e

        self.last_export_path = path
        logger.info(f"Exported snapshot to {path}")

    async def import_file(self, path: str | Path) -> Snapshot:
        """
        Read and parse a user-selected snapshot file.

        Raises:
            ProviderIOError: If the file is missing, unreadable or not ``.json``.
            MalformedSnapshot: If the content is not a valid snapshot.
        """
        file_path = Path(path)
        if file_path.suffix.lower() != ".json":
            raise ProviderIOError(f"Not a .json file: {file_path}")

        try:
            raw = await asyncio.to_thread(file_path.read_bytes)
        except OSError as e:
            raise ProviderIOError(f"Failed to read {file_path}: {e}") from e

        snapshot = self.codec.parse_snapshot(raw)
        logger.info(f"Loaded snapshot from {file_path}")
        return snapshot

    @staticmethod
    def _write(path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
