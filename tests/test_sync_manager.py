"""Unit tests for the sync manager cycle."""

import asyncio
from unittest.mock import patch

import pytest
from helpers import FakeProvider, make_snapshot, store_rows

from strength_journal.domain.records import Exercise, SetEntry, TableName
from strength_journal.domain.snapshot import SCHEMA_VERSION
from strength_journal.infrastructure.store.local_store import LocalStore
from strength_journal.services.merge import MergeEngine
from strength_journal.services.sync_manager import SyncManager
from strength_journal.utils.exceptions import (
    MalformedSnapshot,
    MergeTransactionError,
    ProviderAuthError,
    ProviderIOError,
    SchemaMismatch,
    SyncInProgressError,
)


def _seeded_store() -> LocalStore:
    store = LocalStore()
    store.insert(TableName.EXERCISES, Exercise(uuid="E1", updated_at=100, name="Squat"))
    store.insert(
        TableName.SETS,
        SetEntry(uuid="S1", updated_at=100, workout_exercise_id="we-1", weight=50, reps=5),
    )
    return store


def test_sync_merges_then_pushes_merged_state() -> None:
    """Test a full cycle: pull, merge, then push a snapshot containing both sides."""
    store = _seeded_store()
    remote = make_snapshot(
        {TableName.EXERCISES: [Exercise(uuid="E2", updated_at=200, name="Bench Press")]}
    )
    provider = FakeProvider(remote=remote)
    manager = SyncManager(provider, store)

    result = asyncio.run(manager.sync())

    if result.message != "succeeded" or result.provider != "fake":
        raise AssertionError(f"Unexpected result {result}")

    if not result.merged or result.report is None:
        raise AssertionError("Expected the pulled snapshot to be merged")

    if len(provider.pushed) != 1:
        raise AssertionError(f"Expected one push, got {len(provider.pushed)}")

    pushed_uuids = {r.uuid for r in provider.pushed[0].data.exercises}
    if pushed_uuids != {"E1", "E2"}:
        raise AssertionError(f"Pushed snapshot should hold both exercises, got {pushed_uuids}")

    if provider.pushed[0].device_id != store.device_id():
        raise AssertionError("Pushed snapshot must carry this device's id")


def test_bootstrap_pushes_without_merging() -> None:
    """Test that an empty remote skips merge and pushes the current local state."""
    store = _seeded_store()
    provider = FakeProvider(remote=None)
    manager = SyncManager(provider, store)

    with patch.object(MergeEngine, "merge_snapshot") as merge_mock:
        result = asyncio.run(manager.sync())

    if merge_mock.called:
        raise AssertionError("Merge must not run when pull returns None")

    if result.merged:
        raise AssertionError("Result should report that nothing was merged")

    if len(provider.pushed) != 1:
        raise AssertionError("Expected the local state to be pushed")

    pushed = provider.pushed[0]
    if [r.uuid for r in pushed.data.sets] != ["S1"]:
        raise AssertionError("Pushed snapshot should contain the local set")

    if pushed.schema_version != SCHEMA_VERSION:
        raise AssertionError("Pushed snapshot must carry the current schema version")


def test_schema_mismatch_refuses_merge() -> None:
    """Test that a newer schema version aborts the cycle with the store untouched."""
    store = _seeded_store()
    before = store_rows(store)
    remote = make_snapshot(
        {TableName.EXERCISES: [Exercise(uuid="E1", updated_at=999, name="Changed")]},
        schema_version=SCHEMA_VERSION + 1,
    )
    provider = FakeProvider(remote=remote)

    with pytest.raises(SchemaMismatch) as excinfo:
        asyncio.run(SyncManager(provider, store).sync())

    if excinfo.value.remote_version != SCHEMA_VERSION + 1:
        raise AssertionError("SchemaMismatch should report the remote version")

    if store_rows(store) != before:
        raise AssertionError("Store changed despite a schema mismatch")

    if provider.pushed:
        raise AssertionError("Nothing should be pushed after a schema mismatch")


def test_connects_when_not_authenticated() -> None:
    """Test that connect is called only when the provider is not authenticated."""
    provider = FakeProvider(authenticated=False)
    manager = SyncManager(provider, LocalStore())

    asyncio.run(manager.sync())
    asyncio.run(manager.sync())

    if provider.connect_calls != 1:
        raise AssertionError(f"Expected one connect call, got {provider.connect_calls}")


def test_connect_failure_aborts_before_pull() -> None:
    """Test that an auth failure surfaces as ProviderAuthError and nothing else runs."""
    store = _seeded_store()
    before = store_rows(store)
    provider = FakeProvider(remote=make_snapshot({}), authenticated=False, fail_connect=True)

    with pytest.raises(ProviderAuthError):
        asyncio.run(SyncManager(provider, store).sync())

    if provider.pull_calls != 0:
        raise AssertionError("Pull must not run after a failed connect")

    if store_rows(store) != before:
        raise AssertionError("Store changed after a failed connect")


def test_push_failure_keeps_committed_merge() -> None:
    """Test that a failed push raises ProviderIOError but the merge stays committed."""
    store = _seeded_store()
    remote = make_snapshot(
        {TableName.EXERCISES: [Exercise(uuid="E2", updated_at=200, name="Deadlift")]}
    )
    provider = FakeProvider(remote=remote, fail_push=True)

    with pytest.raises(ProviderIOError):
        asyncio.run(SyncManager(provider, store).sync())

    if store.get_by_uuid(TableName.EXERCISES, "E2") is None:
        raise AssertionError("Merged record should remain after the push failed")


def test_fault_during_sync_merge_leaves_store_unchanged() -> None:
    """Test that an injected merge fault fails sync() and no table is partially merged."""

    class FaultyEngine(MergeEngine):
        def merge_table(self, store, table, remote_records):  # type: ignore[no-untyped-def]
            if table is TableName.WORKOUTS:
                raise RuntimeError("disk full")
            return super().merge_table(store, table, remote_records)

    store = _seeded_store()
    before = store_rows(store)
    remote = make_snapshot(
        {
            TableName.EXERCISES: [Exercise(uuid="E9", updated_at=300, name="Row")],
            TableName.SETS: [
                SetEntry(uuid="S1", updated_at=300, workout_exercise_id="we-1", weight=99, reps=1)
            ],
        }
    )
    provider = FakeProvider(remote=remote)

    with pytest.raises(MergeTransactionError):
        asyncio.run(SyncManager(provider, store, merge_engine=FaultyEngine()).sync())

    if store_rows(store) != before:
        raise AssertionError("Store was partially merged")

    if provider.pushed:
        raise AssertionError("Nothing should be pushed after a failed merge")


def test_overlapping_sync_is_refused() -> None:
    """Test that a second cycle started while one is in flight is refused."""

    async def scenario() -> tuple[bool, int]:
        gate = asyncio.Event()
        provider = FakeProvider(pull_gate=gate)
        manager = SyncManager(provider, LocalStore())

        first = asyncio.create_task(manager.sync())
        await asyncio.sleep(0)

        refused = False
        try:
            await manager.sync()
        except SyncInProgressError:
            refused = True

        gate.set()
        await first
        return refused, len(provider.pushed)

    refused, pushes = asyncio.run(scenario())

    if not refused:
        raise AssertionError("Overlapping sync should raise SyncInProgressError")

    if pushes != 1:
        raise AssertionError(f"Expected only the first cycle to push, got {pushes}")


def test_import_file_rejects_malformed_file(tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Test that a malformed import file is surfaced and the store is untouched."""
    store = _seeded_store()
    before = store_rows(store)
    bad_file = tmp_path / "broken.json"
    bad_file.write_text('{"schemaVersion": 1, "data": ', encoding="utf-8")

    with pytest.raises(MalformedSnapshot):
        asyncio.run(SyncManager(FakeProvider(), store).import_file(bad_file))

    if store_rows(store) != before:
        raise AssertionError("Store changed after a malformed import")


def test_import_newer_schema_raises_mismatch(tmp_path) -> None:  # type: ignore[no-untyped-def]
    """Test that a file from a newer schema with a different data shape is refused."""
    store = _seeded_store()
    before = store_rows(store)
    newer_file = tmp_path / "newer.json"
    newer_file.write_text(
        '{"schemaVersion": 2, "exportedAt": 1, "deviceId": "d",'
        ' "data": {"settings": [], "exercises": [], "setEntries": []}}',
        encoding="utf-8",
    )

    with pytest.raises(SchemaMismatch) as excinfo:
        asyncio.run(SyncManager(FakeProvider(), store).import_file(newer_file))

    if excinfo.value.remote_version != 2:
        raise AssertionError("SchemaMismatch should report the remote version")

    if store_rows(store) != before:
        raise AssertionError("Store changed after importing a newer schema")
