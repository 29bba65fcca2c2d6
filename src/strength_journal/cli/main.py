"""
Command-line interface for Strength Journal.

Provides commands for syncing, exporting, importing and maintaining the
local workout database.
"""

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import typer

from strength_journal.domain.records import SYNC_TABLES
from strength_journal.infrastructure.providers.base import ProviderKind
from strength_journal.infrastructure.providers.factory import build_provider
from strength_journal.infrastructure.store.local_store import LocalStore
from strength_journal.services.snapshot_codec import SnapshotCodec
from strength_journal.services.sync_manager import SyncManager, SyncResult
from strength_journal.services.tombstones import TombstoneReaper
from strength_journal.utils.exceptions import StrengthJournalError
from strength_journal.utils.logging_config import get_logger, setup_logging
from strength_journal.utils.parameters import ParameterLoader
from strength_journal.utils.timestamps import parse_to_ms

app = typer.Typer(help="Strength Journal - offline-first workout log synchronization")

logger = get_logger(__name__)

T = TypeVar("T")


def init_config(config_path: str = "config/config.yaml") -> ParameterLoader:
    """
    Initialize configuration and logging.

    Args:
        config_path: Path to configuration file.

    Returns:
        Parameter loader instance.
    """
    param_loader = ParameterLoader(config_path)
    setup_logging(param_loader.get_logging_config(), "strength_journal")
    return param_loader


def _run(coro: Coroutine[Any, Any, T], timeout_seconds: float | None) -> T:
    """Run a coroutine to completion, bounded by ``timeout_seconds`` when set."""
    if timeout_seconds is not None:
        return asyncio.run(asyncio.wait_for(coro, timeout_seconds))
    return asyncio.run(coro)


def _echo_result(result: SyncResult) -> None:
    typer.echo(f"Sync {result.message} ({result.provider})")
    if result.report is not None:
        typer.echo(f"  Merged: {result.report.summary()}")
    else:
        typer.echo("  Nothing to merge, pushed local state")


def _run_cycle(param_loader: ParameterLoader, kind: ProviderKind) -> SyncResult:
    config = param_loader.config
    codec = SnapshotCodec()
    provider = build_provider(kind, config, codec=codec)

    with LocalStore(config.store.path) as store:
        manager = SyncManager(provider, store, codec=codec, config=config.sync)
        try:
            return _run(manager.sync(), config.sync.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise StrengthJournalError(
                f"Sync timed out after {config.sync.timeout_seconds}s"
            ) from e


@app.command()
def sync(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """
    Sync with Google Drive.

    Pulls the snapshot from the app-data folder, merges it into the local
    database and pushes the merged state back.
    """
    try:
        param_loader = init_config(config_path)
        logger.info("Starting Google Drive sync")

        result = _run_cycle(param_loader, ProviderKind.DRIVE)
        _echo_result(result)

    except StrengthJournalError as e:
        logger.error(f"Sync failed: {e}")
        typer.echo(f"Sync failed: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def export(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    export_dir: str | None = typer.Option(None, help="Override export directory from config"),
) -> None:
    """
    Export the local database to a dated JSON snapshot file.
    """
    try:
        param_loader = init_config(config_path)
        file_config = param_loader.get_file_config()

        if export_dir:
            file_config.export_dir = export_dir

        result = _run_cycle(param_loader, ProviderKind.FILE)
        typer.echo(f"Export {result.message}")
        typer.echo(f"  Written to {file_config.export_dir}/")

    except StrengthJournalError as e:
        logger.error(f"Export failed: {e}")
        typer.echo(f"Export failed: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command("import")
def import_snapshot(
    path: Path = typer.Argument(..., help="Snapshot .json file to merge"),
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    export_after: bool = typer.Option(
        False, "--export", help="Write a fresh export after merging"
    ),
) -> None:
    """
    Merge a snapshot file into the local database.

    The local database is left untouched if the file cannot be parsed.
    """
    try:
        param_loader = init_config(config_path)
        config = param_loader.config
        codec = SnapshotCodec()
        provider = build_provider(ProviderKind.FILE, config, codec=codec, import_path=path)

        with LocalStore(config.store.path) as store:
            manager = SyncManager(provider, store, codec=codec, config=config.sync)
            if export_after:
                result = _run(manager.sync(), config.sync.timeout_seconds)
                _echo_result(result)
            else:
                report = _run(manager.import_file(path), config.sync.timeout_seconds)
                typer.echo(f"Import succeeded: {report.summary()}")

    except StrengthJournalError as e:
        logger.error(f"Import of {path} failed: {e}")
        typer.echo(f"Import failed: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def status(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """
    Show the device id and record counts per table.
    """
    try:
        param_loader = init_config(config_path)

        with LocalStore(param_loader.get_store_config().path) as store:
            typer.echo(f"Device: {store.device_id()}")
            for table in SYNC_TABLES:
                total = store.count(table)
                live = store.count(table, include_deleted=False)
                typer.echo(f"  {table.value}: {live} live, {total - live} tombstoned")

    except StrengthJournalError as e:
        logger.error(f"Status failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def reap(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
    before: str | None = typer.Option(
        None, help="Remove tombstones deleted before this date instead of the retention window"
    ),
) -> None:
    """
    Remove tombstoned records that both devices have had time to observe.
    """
    try:
        param_loader = init_config(config_path)
        sync_config = param_loader.get_sync_config()

        with LocalStore(param_loader.get_store_config().path) as store:
            reaper = TombstoneReaper(store, sync_config.tombstone_retention_days)
            removed = reaper.reap(parse_to_ms(before) if before else None)

        typer.echo(f"Removed {sum(removed.values())} tombstones")
        for table, count in removed.items():
            typer.echo(f"  - {table.value}: {count}")

    except (StrengthJournalError, ValueError) as e:
        logger.error(f"Reap failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command()
def logout(
    config_path: str = typer.Option("config/config.yaml", help="Path to configuration file"),
) -> None:
    """
    Disconnect from Google Drive and forget the cached token.
    """
    try:
        param_loader = init_config(config_path)
        provider = build_provider(ProviderKind.DRIVE, param_loader.config)
        asyncio.run(provider.disconnect())
        typer.echo("Disconnected from Google Drive")

    except StrengthJournalError as e:
        logger.error(f"Logout failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


if __name__ == "__main__":
    app()
