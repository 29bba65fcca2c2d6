"""Custom exceptions for the strength journal."""


class StrengthJournalError(Exception):
    """Base exception for all strength journal errors."""

    pass


class ConfigurationError(StrengthJournalError):
    """Raised when there is a configuration error."""

    pass


class StoreError(StrengthJournalError):
    """Raised when the local store cannot be read or written."""

    pass


class MalformedSnapshot(StrengthJournalError):
    """Raised when snapshot bytes do not parse into the expected shape."""

    pass


class SchemaMismatch(StrengthJournalError):
    """Raised when a snapshot was written by an incompatible schema version."""

    def __init__(self, local_version: int, remote_version: int) -> None:
        self.local_version = local_version
        self.remote_version = remote_version
        super().__init__(
            f"Schema version mismatch. Local: {local_version}, Remote: {remote_version}"
        )


class ProviderAuthError(StrengthJournalError):
    """Raised when a sync provider cannot establish a session."""

    pass


class ProviderIOError(StrengthJournalError):
    """Raised when a sync provider fails to pull or push a snapshot."""

    pass


class MergeTransactionError(StrengthJournalError):
    """Raised when merging a snapshot fails; the local store is left unchanged."""

    pass


class SyncInProgressError(StrengthJournalError):
    """Raised when a sync cycle is requested while another one is running."""

    pass
