"""
Sync provider contract.

A provider abstracts over where a snapshot is stored remotely. Transports
implement this interface; the sync manager never inspects which one it holds.
"""

from abc import ABC, abstractmethod
from enum import Enum

from strength_journal.domain.snapshot import Snapshot


class ProviderKind(str, Enum):
    """Closed set of supported transports."""

    FILE = "file"
    DRIVE = "drive"


class SyncProvider(ABC):
    """Transport-neutral interface for moving snapshots to and from a remote location."""

    name: str = "provider"

    @abstractmethod
    async def connect(self) -> None:
        """Establish whatever session or authorization is required; idempotent."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Tear down session state."""

    @abstractmethod
    def is_authenticated(self) -> bool:
        """Non-blocking check of whether a usable session exists."""

    @abstractmethod
    async def pull(self) -> Snapshot | None:
        """
        Fetch the remote snapshot.

        Returns:
            The snapshot, or None if there is nothing to merge yet.
        """

    @abstractmethod
    async def push(self, snapshot: Snapshot) -> None:
        """Upload the snapshot, replacing any prior one."""
