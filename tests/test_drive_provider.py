"""Unit tests for the Google Drive app-data provider."""

import asyncio
import json
from unittest.mock import MagicMock, Mock, patch

import pytest
from googleapiclient.errors import HttpError
from helpers import EXPORTED_AT, make_snapshot

from strength_journal.domain.records import Exercise, TableName
from strength_journal.infrastructure.drive_client.client import DriveSyncProvider
from strength_journal.infrastructure.store.local_store import LocalStore
from strength_journal.services.snapshot_codec import SnapshotCodec
from strength_journal.services.sync_manager import SyncManager
from strength_journal.utils.exceptions import ProviderAuthError, ProviderIOError
from strength_journal.utils.parameters import DriveConfig

CLIENT_MODULE = "strength_journal.infrastructure.drive_client.client"


def _service(files: list[dict] | None = None) -> MagicMock:
    service = MagicMock()
    service.files.return_value.list.return_value.execute.return_value = {"files": files or []}
    service.files.return_value.create.return_value.execute.return_value = {"id": "new-file"}
    return service


def _fake_downloader(payload: bytes):  # type: ignore[no-untyped-def]
    class FakeDownloader:
        def __init__(self, buffer, request) -> None:  # type: ignore[no-untyped-def]
            self.buffer = buffer

        def next_chunk(self):  # type: ignore[no-untyped-def]
            self.buffer.write(payload)
            return None, True

    return FakeDownloader


def _config(tmp_path) -> DriveConfig:  # type: ignore[no-untyped-def]
    return DriveConfig(token_path=str(tmp_path / "token.json"))


def test_pull_without_remote_file_returns_none(tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Test that an empty app-data folder means there is nothing to merge."""
    service = _service()
    provider = DriveSyncProvider(_config(tmp_path), service=service)

    if asyncio.run(provider.pull()) is not None:
        raise AssertionError("Expected None when no snapshot file exists")

    list_kwargs = service.files.return_value.list.call_args.kwargs
    if list_kwargs["spaces"] != "appDataFolder":
        raise AssertionError("Lookup must be restricted to the app-data folder")

    if "strength-journal-snapshot.json" not in list_kwargs["q"]:
        raise AssertionError(f"Unexpected query {list_kwargs['q']}")


def test_pull_downloads_and_parses_snapshot(tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Test that the remote file is downloaded and parsed."""
    remote = make_snapshot(
        {TableName.EXERCISES: [Exercise(uuid="E1", updated_at=5, name="Dip")]}
    )
    payload = SnapshotCodec().encode_snapshot(remote)
    service = _service([{"id": "file-1", "name": "strength-journal-snapshot.json"}])
    provider = DriveSyncProvider(_config(tmp_path), service=service)

    with patch(f"{CLIENT_MODULE}.MediaIoBaseDownload", _fake_downloader(payload)):
        snapshot = asyncio.run(provider.pull())

    if snapshot is None or snapshot.exported_at != EXPORTED_AT:
        raise AssertionError("Expected the remote snapshot")

    if [r.uuid for r in snapshot.data.exercises] != ["E1"]:
        raise AssertionError("Remote records were not parsed")

    service.files.return_value.get_media.assert_called_once_with(fileId="file-1")


def test_first_push_creates_file(tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Test that the first push creates the snapshot file in the app-data folder."""
    service = _service()
    provider = DriveSyncProvider(_config(tmp_path), service=service)

    asyncio.run(provider.push(make_snapshot({})))

    files = service.files.return_value
    if not files.create.called or files.update.called:
        raise AssertionError("Expected create and no update on first push")

    body = files.create.call_args.kwargs["body"]
    if body != {"name": "strength-journal-snapshot.json", "parents": ["appDataFolder"]}:
        raise AssertionError(f"Unexpected file metadata {body}")


def test_later_push_updates_file(tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Test that an existing snapshot file is replaced in place."""
    service = _service([{"id": "file-1", "name": "strength-journal-snapshot.json"}])
    provider = DriveSyncProvider(_config(tmp_path), service=service)

    with patch(f"{CLIENT_MODULE}.MediaIoBaseUpload") as upload_mock:
        asyncio.run(provider.push(make_snapshot({})))

    files = service.files.return_value
    if files.create.called:
        raise AssertionError("Existing file must not be created again")

    if files.update.call_args.kwargs["fileId"] != "file-1":
        raise AssertionError("Expected the existing file to be updated")

    uploaded = upload_mock.call_args.args[0].getvalue()
    if json.loads(uploaded)["exportedAt"] != EXPORTED_AT:
        raise AssertionError("Uploaded payload should be the encoded snapshot")


def test_http_error_becomes_provider_io_error(tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Test that Drive API failures surface as ProviderIOError."""
    service = _service()
    service.files.return_value.list.return_value.execute.side_effect = HttpError(
        Mock(status=500, reason="Internal Server Error"), b"boom"
    )
    provider = DriveSyncProvider(_config(tmp_path), service=service)

    with pytest.raises(ProviderIOError):
        asyncio.run(provider.pull())


def test_transfer_requires_connection(tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Test that pull before connect fails instead of authenticating implicitly."""
    provider = DriveSyncProvider(_config(tmp_path))

    if provider.is_authenticated():
        raise AssertionError("Provider without a service must not report authenticated")

    with pytest.raises(ProviderIOError):
        asyncio.run(provider.pull())


def test_connect_builds_service(tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Test that connect authenticates and builds the Drive v3 service."""
    provider = DriveSyncProvider(_config(tmp_path))
    credentials = MagicMock(valid=True)

    with (
        patch.object(DriveSyncProvider, "_authenticate_oauth2", return_value=credentials),
        patch(f"{CLIENT_MODULE}.build", return_value=MagicMock()) as build_mock,
    ):
        asyncio.run(provider.connect())

    build_mock.assert_called_once_with(
        "drive", "v3", credentials=credentials, cache_discovery=False
    )

    if not provider.is_authenticated():
        raise AssertionError("Provider should be authenticated after connect")


def test_connect_failure_raises_auth_error(tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Test that an OAuth failure surfaces as ProviderAuthError."""
    provider = DriveSyncProvider(_config(tmp_path))

    with patch.object(
        DriveSyncProvider, "_authenticate_oauth2", side_effect=RuntimeError("consent denied")
    ):
        with pytest.raises(ProviderAuthError):
            asyncio.run(provider.connect())

    if provider.is_authenticated():
        raise AssertionError("Provider must stay unauthenticated after a failed connect")


def test_disconnect_forgets_token(tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Test that disconnect drops the session and removes the cached token."""
    config = _config(tmp_path)
    token_path = tmp_path / "token.json"
    token_path.write_text("{}", encoding="utf-8")
    provider = DriveSyncProvider(config, service=_service())

    asyncio.run(provider.disconnect())

    if provider.is_authenticated():
        raise AssertionError("Provider should not be authenticated after disconnect")

    if token_path.exists():
        raise AssertionError("Cached token should be removed")


def test_first_sync_bootstraps_remote(tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Test a first Drive sync: nothing to pull, local state is uploaded."""
    store = LocalStore()
    store.save(TableName.EXERCISES, Exercise(name="Lunge"), now=1_000)
    service = _service()
    provider = DriveSyncProvider(_config(tmp_path), service=service)

    result = asyncio.run(SyncManager(provider, store).sync())

    if result.merged or result.provider != "Google Drive":
        raise AssertionError(f"Unexpected result {result}")

    if not service.files.return_value.create.called:
        raise AssertionError("Expected the snapshot file to be created")
