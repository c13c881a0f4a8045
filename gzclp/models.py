"""
GZCLP Tracker — Data Models

Records stored in the ledger and passed between the analysis, progression
and queue layers. Each stored record round-trips through plain dicts so
any key-value store holding JSON-like values can persist it.
"""
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone

from gzclp.config import DEFAULT_INCREMENTS, DEFAULT_WEIGHT_UNIT, STAGES, WEIGHT_UNITS


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str) -> datetime:
    """Hevy ISO timestamps, with or without a trailing Z."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class _Record:
    """Dict (de)serialisation shared by all stored records."""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict):
        # Unknown keys are dropped so older stores still load
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})

    def copy(self, **changes):
        return replace(self, **changes)


# ═════════════════════════════════════════════════════════════════════
# CONFIGURATION RECORDS
# ═════════════════════════════════════════════════════════════════════

@dataclass
class ExerciseConfig(_Record):
    id: str
    hevy_template_id: str
    name: str
    role: str | None = None
    custom_increment: float | None = None  # kg, overrides the increment table


@dataclass
class Settings(_Record):
    weight_unit: str = DEFAULT_WEIGHT_UNIT
    increments: dict = field(default_factory=lambda: dict(DEFAULT_INCREMENTS))

    def __post_init__(self) -> None:
        if self.weight_unit not in WEIGHT_UNITS:
            raise ValueError(f"weight_unit must be one of {WEIGHT_UNITS}, got {self.weight_unit!r}")


@dataclass
class ProgramState(_Record):
    name: str = "GZCLP"
    created_at: str = field(default_factory=utc_now_iso)
    current_day: str = "A1"
    routine_ids: dict = field(default_factory=dict)  # day -> Hevy routine id
    total_workouts: int = 0
    most_recent_workout_date: str | None = None
    last_sync: str | None = None
    processed_through: str | None = None  # newest workout date applied or rejected


# ═════════════════════════════════════════════════════════════════════
# PROGRESSION LEDGER RECORDS
# ═════════════════════════════════════════════════════════════════════

@dataclass
class ProgressionState(_Record):
    exercise_id: str
    current_weight: float = 0.0
    stage: int = 0
    base_weight: float = 0.0
    last_workout_id: str | None = None
    last_workout_date: str | None = None
    amrap_record: int = 0
    amrap_record_date: str | None = None
    amrap_record_workout_id: str | None = None

    def __post_init__(self) -> None:
        if self.current_weight < 0:
            raise ValueError("current_weight must be non-negative")
        if self.stage not in STAGES:
            raise ValueError(f"stage must be 0, 1 or 2, got {self.stage!r}")


@dataclass
class HistoryEntry(_Record):
    date: str
    workout_id: str
    weight: float
    stage: int
    tier: str
    success: bool
    change_type: str
    amrap_reps: int | None = None


@dataclass
class ExerciseHistory(_Record):
    progression_key: str
    exercise_name: str
    tier: str
    role: str | None = None
    entries: list[HistoryEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ExerciseHistory":
        history = super().from_dict(data)
        history.entries = [
            e if isinstance(e, HistoryEntry) else HistoryEntry.from_dict(e)
            for e in history.entries
        ]
        return history


@dataclass
class AcknowledgedDiscrepancy(_Record):
    exercise_id: str
    acknowledged_weight: float
    tier: str


# ═════════════════════════════════════════════════════════════════════
# SYNC / REVIEW RECORDS
# ═════════════════════════════════════════════════════════════════════

@dataclass
class DiscrepancyRecord(_Record):
    exercise_id: str
    exercise_name: str
    tier: str
    stored_weight: float
    actual_weight: float
    workout_id: str
    workout_date: str


@dataclass
class PendingChange(_Record):
    id: str
    exercise_id: str
    exercise_name: str
    tier: str
    type: str
    progression_key: str
    current_weight: float
    current_stage: int
    new_weight: float
    new_stage: int
    new_scheme: str
    reason: str
    workout_id: str
    workout_date: str
    created_at: str
    amrap_reps: int | None = None
    new_pr: bool | None = None
    new_amrap_record: int | None = None
    sets_completed: int | None = None
    sets_target: int | None = None
    success: bool | None = None
    day: str | None = None
    discrepancy: dict | None = None  # {"stored_weight", "actual_weight"}
    modified: bool = False  # weight set by the user, kept when the chain is rebased


@dataclass
class ExerciseOccurrence:
    """One configured exercise as it appeared in one logged workout."""

    exercise_id: str
    exercise_name: str
    tier: str
    reps: list[int]
    weight: float
    workout_id: str
    workout_date: str
    day: str | None = None
    has_working_sets: bool = True


@dataclass
class AnalysisOutcome:
    success: bool
    total_reps: int
    amrap_reps: int | None = None


@dataclass
class ProgressionResult:
    type: str
    new_weight: float
    new_stage: int
    new_scheme: str
    reason: str
    success: bool
    new_base_weight: float | None = None
    amrap_reps: int | None = None


@dataclass
class ApplyResult:
    """What an apply operation committed, for the caller to render."""

    updated_progression: dict
    history_entries: list[HistoryEntry]
    current_day: str
    day_advanced: bool = False
    workouts_processed: list[str] = field(default_factory=list)
    applied: list[PendingChange] = field(default_factory=list)


@dataclass
class SyncResult:
    status: str  # "success" | "error"
    error: str | None = None
    pending_changes: list[PendingChange] = field(default_factory=list)
    discrepancies: list[DiscrepancyRecord] = field(default_factory=list)
    new_workouts: int = 0
    skipped_workouts: int = 0
    skipped_exercises: int = 0
    detected_day: str | None = None
