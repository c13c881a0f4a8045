"""
GZCLP Tracker — Exercise Management

Adding, editing and removing configured exercises, keeping the exercise
config, the progression slots it owns and the pending queue consistent.
Each operation is a single ledger commit.
"""
from gzclp.config import (
    EXERCISE_ROLES,
    get_progression_keys_for_role,
    is_main_lift_role,
)
from gzclp.ledger import ProgressionLedger
from gzclp.models import ExerciseConfig, ProgressionState
from gzclp.progression import generate_id

EDITABLE_FIELDS = ("name", "hevy_template_id", "role", "custom_increment")


def _check_role(exercises: dict[str, ExerciseConfig], role: str | None, exercise_id: str | None = None) -> None:
    """Valid role, and each main lift held by at most one exercise."""
    if role is None:
        return
    if role not in EXERCISE_ROLES:
        raise ValueError(f"Unknown role {role!r}. Valid: {EXERCISE_ROLES}")
    if is_main_lift_role(role):
        for other in exercises.values():
            if other.role == role and other.id != exercise_id:
                raise ValueError(f"Role '{role}' is already assigned to {other.name}")


def plan_role_change(exercise_id: str, old_role: str | None, new_role: str | None) -> tuple[list[str], list[str]]:
    """
    Progression keys to drop and to create when an exercise changes role.

    Keys shared by both roles are left alone.
    """
    old_keys = get_progression_keys_for_role(exercise_id, old_role)
    new_keys = get_progression_keys_for_role(exercise_id, new_role)
    remove = [k for k in old_keys if k not in new_keys]
    add = [k for k in new_keys if k not in old_keys]
    return remove, add


def add_exercise(
    ledger: ProgressionLedger,
    hevy_template_id: str,
    name: str,
    role: str | None,
    weight: float = 0.0,
    custom_increment: float | None = None,
) -> ExerciseConfig:
    """Create the exercise and a progression slot for every key its role owns."""
    if weight < 0:
        raise ValueError(f"Weight must be non-negative, got {weight}")
    exercises = ledger.exercises()
    _check_role(exercises, role)

    exercise = ExerciseConfig(
        id=generate_id(),
        hevy_template_id=hevy_template_id,
        name=name,
        role=role,
        custom_increment=custom_increment,
    )
    exercises[exercise.id] = exercise

    progression = ledger.progression()
    for key in get_progression_keys_for_role(exercise.id, role):
        progression[key] = ProgressionState(
            exercise_id=exercise.id, current_weight=weight, base_weight=weight,
        )
    ledger.commit(exercises=exercises, progression=progression)
    return exercise


def update_exercise(ledger: ProgressionLedger, exercise_id: str, **updates) -> ExerciseConfig:
    """
    Edit an exercise's config.

    A role change drops the old role's progression slots and their pending
    changes, and creates fresh slots for the new role, in one commit.
    """
    unknown = set(updates) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update fields: {sorted(unknown)}")

    exercises = ledger.exercises()
    existing = exercises.get(exercise_id)
    if existing is None:
        raise KeyError(f"Unknown exercise {exercise_id!r}")

    updated = existing.copy(**updates)
    commit = {"exercises": exercises}

    if "role" in updates and updated.role != existing.role:
        _check_role(exercises, updated.role, exercise_id)
        remove, add = plan_role_change(exercise_id, existing.role, updated.role)

        progression = ledger.progression()
        for key in remove:
            progression.pop(key, None)
        for key in add:
            progression.setdefault(key, ProgressionState(exercise_id=exercise_id))
        commit["progression"] = progression
        commit["pending_changes"] = [
            c for c in ledger.pending_changes() if c.progression_key not in remove
        ]
        print(f"  🔁 {existing.name}: role {existing.role} → {updated.role} (removed {remove}, added {add})")

    exercises[exercise_id] = updated
    ledger.commit(**commit)
    return updated


def remove_exercise(ledger: ProgressionLedger, exercise_id: str) -> None:
    """Remove the exercise, its progression slots and their pending changes."""
    exercises = ledger.exercises()
    exercise = exercises.pop(exercise_id, None)
    if exercise is None:
        raise KeyError(f"Unknown exercise {exercise_id!r}")

    keys = get_progression_keys_for_role(exercise_id, exercise.role)
    progression = ledger.progression()
    for key in keys:
        progression.pop(key, None)
    ledger.commit(
        exercises=exercises,
        progression=progression,
        pending_changes=[c for c in ledger.pending_changes() if c.exercise_id != exercise_id],
    )


def set_weight(
    ledger: ProgressionLedger,
    progression_key: str,
    weight: float,
    stage: int | None = None,
) -> ProgressionState:
    """Manual override of a slot's weight (and optionally stage). Resets the deload base."""
    progression = ledger.progression()
    state = progression.get(progression_key)
    if state is None:
        raise KeyError(f"No progression for {progression_key!r}")
    changes = {"current_weight": weight, "base_weight": weight}
    if stage is not None:
        changes["stage"] = stage
    progression[progression_key] = state.copy(**changes)
    ledger.commit(progression=progression)
    return progression[progression_key]
