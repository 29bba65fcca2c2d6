"""
Syncable record models and the sync-metadata convention.

Every table that takes part in synchronization stores records that carry
a device-local ``id``, a globally unique ``uuid``, an ``updatedAt`` epoch
millisecond timestamp and an optional ``deletedAt`` tombstone. Field names
on the wire are camelCase; Python attributes are snake_case.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TableName(str, Enum):
    """Syncable tables, valued by their key in the snapshot ``data`` object."""

    SETTINGS = "settings"
    EXERCISES = "exercises"
    WORKOUTS = "workouts"
    WORKOUT_EXERCISES = "workoutExercises"
    SETS = "sets"
    WORKOUT_TEMPLATES = "workoutTemplates"
    CONFLICT_LOG = "conflictLog"


class MassUnit(str, Enum):
    """Unit used to display weights."""

    KG = "kg"
    LB = "lb"


class RPEType(str, Enum):
    """Effort scale recorded on sets."""

    RPE = "rpe"
    RIR = "rir"


class Theme(str, Enum):
    """UI colour theme."""

    DARK = "dark"
    LIGHT = "light"
    SYSTEM = "system"


class ConflictResolution(str, Enum):
    """How a logged conflict was settled."""

    LOCAL = "local"
    REMOTE = "remote"
    MANUAL = "manual"


class SyncRecord(BaseModel):
    """
    Base model for every syncable record.

    Unknown fields are kept as extras so a record written by a newer client
    of the same schema version survives a round trip untouched.
    """

    id: int | None = Field(None, description="Device-local row identifier")
    uuid: str = Field("", description="Stable cross-device identity")
    updated_at: int = Field(0, description="Last local mutation, epoch ms")
    deleted_at: int | None = Field(None, description="Tombstone timestamp, epoch ms")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        use_enum_values=True,
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_document(self) -> dict[str, Any]:
        """
        Serialize to the stored/wire document form.

        The local ``id`` is never part of the document; ``None`` values are
        omitted so optional fields round-trip as absent.
        """
        return self.model_dump(
            mode="json", by_alias=True, exclude={"id"}, exclude_none=True
        )


class Settings(SyncRecord):
    """Singleton user preferences."""

    mass_unit: MassUnit = MassUnit.KG
    weight_step: float = 2.5
    default_rpe_type: RPEType = Field(RPEType.RPE, alias="defaultRPEType")
    theme: Theme = Theme.SYSTEM
    language: str = "en"


class Exercise(SyncRecord):
    """An exercise from the user's catalogue."""

    name: str
    muscle_group: str = "other"
    movement_type: str | None = None
    equipment: str | None = None
    aliases: list[str] = Field(default_factory=list)
    is_custom: bool = False
    notes: str | None = None
    is_unilateral: bool | None = None


class Workout(SyncRecord):
    """A training session."""

    started_at: int
    workout_day: str = ""
    ended_at: int | None = None
    title: str | None = None
    tags: list[str] | None = None
    mood: str | None = None
    notes: str | None = None
    body_weight: float | None = None


class WorkoutExercise(SyncRecord):
    """An exercise performed within a workout, linked by uuid."""

    workout_id: str
    exercise_id: str
    order: int = 0
    notes: str | None = None


class SetEntry(SyncRecord):
    """A single set of a workout exercise."""

    workout_exercise_id: str
    order: int = 0
    weight: float = 0.0
    reps: int = 0
    rpe: float | None = None
    rir: float | None = None
    rest_sec: int | None = None
    is_warmup: bool = False
    is_failure: bool = False
    failure_rep: int | None = None
    side: str | None = None
    notes: str | None = None


class WorkoutTemplate(SyncRecord):
    """A reusable ordered list of exercise uuids."""

    name: str
    description: str | None = None
    exercises: list[str] = Field(default_factory=list)
    is_custom: bool = False


class ConflictRecord(SyncRecord):
    """An entry in the conflict log describing a divergent pair of records."""

    entity_type: str
    entity_id: str
    local_updated_at: int
    remote_updated_at: int
    resolved_at: int | None = None
    resolution: ConflictResolution | None = None
    snapshot: dict[str, Any] | None = None


TABLE_MODELS: dict[TableName, type[SyncRecord]] = {
    TableName.SETTINGS: Settings,
    TableName.EXERCISES: Exercise,
    TableName.WORKOUTS: Workout,
    TableName.WORKOUT_EXERCISES: WorkoutExercise,
    TableName.SETS: SetEntry,
    TableName.WORKOUT_TEMPLATES: WorkoutTemplate,
    TableName.CONFLICT_LOG: ConflictRecord,
}

# Merge order: parents before children.
SYNC_TABLES: tuple[TableName, ...] = (
    TableName.SETTINGS,
    TableName.EXERCISES,
    TableName.WORKOUTS,
    TableName.WORKOUT_EXERCISES,
    TableName.SETS,
    TableName.WORKOUT_TEMPLATES,
    TableName.CONFLICT_LOG,
)

# Entity type names written into ConflictRecord.entity_type.
ENTITY_TYPES: dict[TableName, str] = {
    TableName.SETTINGS: "settings",
    TableName.EXERCISES: "exercise",
    TableName.WORKOUTS: "workout",
    TableName.WORKOUT_EXERCISES: "workout_exercise",
    TableName.SETS: "set",
    TableName.WORKOUT_TEMPLATES: "workout_template",
    TableName.CONFLICT_LOG: "conflict",
}


def record_from_document(
    table: TableName, document: dict[str, Any], record_id: int | None = None
) -> SyncRecord:
    """
    Build the typed record for ``table`` from a stored document.

    Args:
        table: Table the document belongs to.
        document: Wire-form document (camelCase keys).
        record_id: Local row id to attach.

    Returns:
        Validated record model.
    """
    model = TABLE_MODELS[table]
    record = model.model_validate(document)
    record.id = record_id
    return record
