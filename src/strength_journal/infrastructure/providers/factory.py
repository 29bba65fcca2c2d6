"""Construction of sync providers by kind."""

from pathlib import Path

from strength_journal.infrastructure.drive_client.client import DriveSyncProvider
from strength_journal.infrastructure.providers.base import ProviderKind, SyncProvider
from strength_journal.infrastructure.providers.file_provider import FileSyncProvider
from strength_journal.services.snapshot_codec import SnapshotCodec
from strength_journal.utils.parameters import AppConfig


def build_provider(
    kind: ProviderKind,
    config: AppConfig,
    codec: SnapshotCodec | None = None,
    import_path: str | Path | None = None,
) -> SyncProvider:
    """
    Construct the provider for ``kind``.

    Args:
        kind: Transport to build.
        config: Application configuration.
        codec: Snapshot codec shared with the sync manager.
        import_path: File to pull from (file provider only).

    Returns:
        A provider instance.
    """
    if kind is ProviderKind.FILE:
        return FileSyncProvider(config.file, codec=codec, import_path=import_path)
    if kind is ProviderKind.DRIVE:
        return DriveSyncProvider(config.drive, codec=codec)
    raise ValueError(f"Unknown provider kind: {kind}")
