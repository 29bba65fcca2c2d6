"""Shared builders for sync tests."""

from strength_journal.domain.records import SyncRecord, TableName
from strength_journal.domain.snapshot import SCHEMA_VERSION, Snapshot, SnapshotData
from strength_journal.infrastructure.providers.base import SyncProvider
from strength_journal.infrastructure.store.local_store import LocalStore

EXPORTED_AT = 1_700_000_000_000


def make_snapshot(
    tables: dict[TableName, list[SyncRecord]],
    schema_version: int = SCHEMA_VERSION,
    device_id: str = "remote-device",
) -> Snapshot:
    """Build a snapshot holding ``tables``; other tables are empty."""
    return Snapshot(
        schema_version=schema_version,
        exported_at=EXPORTED_AT,
        device_id=device_id,
        data=SnapshotData.from_tables(tables),
    )


def store_rows(store: LocalStore) -> dict[TableName, list[tuple]]:
    """Persisted rows of every table, for before/after comparisons."""
    return {table: store.raw_rows(table) for table in TableName}


class FakeProvider(SyncProvider):
    """In-memory provider recording every call."""

    name = "fake"

    def __init__(
        self,
        remote: Snapshot | None = None,
        authenticated: bool = True,
        fail_connect: bool = False,
        fail_push: bool = False,
        pull_gate=None,
    ) -> None:
        self.remote = remote
        self.authenticated = authenticated
        self.fail_connect = fail_connect
        self.fail_push = fail_push
        self.pull_gate = pull_gate
        self.connect_calls = 0
        self.pull_calls = 0
        self.pushed: list[Snapshot] = []

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connect:
            raise RuntimeError("access denied")
        self.authenticated = True

    async def disconnect(self) -> None:
        self.authenticated = False

    def is_authenticated(self) -> bool:
        return self.authenticated

    async def pull(self) -> Snapshot | None:
        self.pull_calls += 1
        if self.pull_gate is not None:
            await self.pull_gate.wait()
        return self.remote

    async def push(self, snapshot: Snapshot) -> None:
        if self.fail_push:
            raise OSError("network unreachable")
        self.pushed.append(snapshot)
