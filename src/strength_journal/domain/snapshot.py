"""
Snapshot document model.

A snapshot is one self-contained, versioned serialization of the entire
local store: ``{schemaVersion, exportedAt, deviceId, data}``.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from strength_journal.domain.records import (
    ConflictRecord,
    Exercise,
    SetEntry,
    Settings,
    SyncRecord,
    TableName,
    Workout,
    WorkoutExercise,
    WorkoutTemplate,
)

# Bump whenever the record shape changes incompatibly.
SCHEMA_VERSION = 1


class SnapshotData(BaseModel):
    """Per-table record arrays of a snapshot."""

    settings: list[Settings]
    exercises: list[Exercise]
    workouts: list[Workout]
    workout_exercises: list[WorkoutExercise]
    sets: list[SetEntry]
    workout_templates: list[WorkoutTemplate] = Field(default_factory=list)
    conflict_log: list[ConflictRecord] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("workout_templates", "conflict_log", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def records_for(self, table: TableName) -> list[SyncRecord]:
        """Return the records of ``table``."""
        records: list[SyncRecord] = getattr(self, _FIELD_BY_TABLE[table])
        return records

    @classmethod
    def from_tables(cls, tables: dict[TableName, list[SyncRecord]]) -> "SnapshotData":
        """Build snapshot data from a table -> records mapping; missing tables are empty."""
        return cls(
            **{field: list(tables.get(table, [])) for table, field in _FIELD_BY_TABLE.items()}
        )


_FIELD_BY_TABLE: dict[TableName, str] = {
    TableName.SETTINGS: "settings",
    TableName.EXERCISES: "exercises",
    TableName.WORKOUTS: "workouts",
    TableName.WORKOUT_EXERCISES: "workout_exercises",
    TableName.SETS: "sets",
    TableName.WORKOUT_TEMPLATES: "workout_templates",
    TableName.CONFLICT_LOG: "conflict_log",
}


class Snapshot(BaseModel):
    """Portable, versioned image of the whole local store."""

    schema_version: int = Field(description="Record shape version")
    exported_at: int = Field(description="Export wall-clock time, epoch ms")
    device_id: str = Field(description="Installation that produced the snapshot")
    data: SnapshotData

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def record_count(self) -> int:
        """Total number of records across all tables."""
        return sum(len(self.data.records_for(table)) for table in _FIELD_BY_TABLE)
