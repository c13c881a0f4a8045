"""
GZCLP Tracker — Progression Rules

Pure functions that decide the next weight/stage for a progression slot,
and the factory that turns an analysed exercise occurrence into a
PendingChange for review.

Stored weights are always kg. Deloads round to 2.5 kg whatever the
display unit is; the unit only changes how weights read in `reason`.
"""
import uuid
from decimal import ROUND_HALF_DOWN, Decimal

from gzclp.analysis import analyze_reps
from gzclp.config import (
    BAR_WEIGHT_KG,
    DEFAULT_INCREMENTS,
    DEFAULT_WEIGHT_UNIT,
    DELOAD_PERCENTAGE,
    WEIGHT_ROUNDING_KG,
    format_weight,
    get_muscle_group,
    get_progression_key,
    is_main_lift_role,
    rep_scheme,
)
from gzclp.models import (
    ExerciseConfig,
    ExerciseOccurrence,
    PendingChange,
    ProgressionResult,
    ProgressionState,
    Settings,
    utc_now_iso,
)


# ═════════════════════════════════════════════════════════════════════
# WEIGHT UTILITIES
# ═════════════════════════════════════════════════════════════════════

def round_weight_kg(weight: float) -> float:
    """
    Round to the nearest 2.5 kg. An exact midpoint rounds down.

    Decimal keeps products like 97.5 * 0.85 exact before rounding.
    """
    step = Decimal(str(WEIGHT_ROUNDING_KG))
    steps = (Decimal(str(weight)) / step).quantize(Decimal(1), rounding=ROUND_HALF_DOWN)
    return float(steps * step)


def calculate_deload(weight_kg: float) -> float:
    """85% of the current weight, rounded, never below the empty bar."""
    deloaded = Decimal(str(weight_kg)) * Decimal(str(DELOAD_PERCENTAGE))
    return max(BAR_WEIGHT_KG, round_weight_kg(float(deloaded)))


def get_increment_kg(
    muscle_group: str,
    increments: dict | None = None,
    custom_increment: float | None = None,
) -> float:
    """Per-exercise override first, then the (possibly user-edited) table."""
    if custom_increment is not None:
        return float(custom_increment)
    table = increments or DEFAULT_INCREMENTS
    return float(table.get(muscle_group, DEFAULT_INCREMENTS[muscle_group]))


# ═════════════════════════════════════════════════════════════════════
# RULES
# ═════════════════════════════════════════════════════════════════════

def next_state(
    tier: str,
    current_weight: float,
    current_stage: int,
    success: bool,
    muscle_group: str,
    unit: str = DEFAULT_WEIGHT_UNIT,
    increments: dict | None = None,
    custom_increment: float | None = None,
    amrap_reps: int | None = None,
) -> ProgressionResult:
    """
    The GZCLP state machine for one slot.

    T1/T2: success adds weight; failure moves to the next stage, and
    failure at the last stage deloads to 85% and restarts at stage 0.
    T3: success adds weight; failure repeats. T3 never deloads.
    """
    scheme = rep_scheme(tier, current_stage)
    increment = get_increment_kg(muscle_group, increments, custom_increment)
    at = format_weight(current_weight, unit)

    if success:
        new_weight = current_weight + increment
        return ProgressionResult(
            type="progress",
            new_weight=new_weight,
            new_stage=current_stage,
            new_scheme=scheme.display,
            reason=(
                f"Completed {scheme.display} at {at}. "
                f"Adding {format_weight(increment, unit)}."
            ),
            success=True,
            amrap_reps=amrap_reps,
        )

    if tier == "T3":
        return ProgressionResult(
            type="repeat",
            new_weight=current_weight,
            new_stage=0,
            new_scheme=scheme.display,
            reason=f"Missed {scheme.display} target at {at}. Repeat same weight.",
            success=False,
            amrap_reps=amrap_reps,
        )

    if current_stage < 2:
        nxt = rep_scheme(tier, current_stage + 1)
        return ProgressionResult(
            type="stage_change",
            new_weight=current_weight,
            new_stage=current_stage + 1,
            new_scheme=nxt.display,
            reason=(
                f"Failed to complete {scheme.display} at {at}. "
                f"Moving to {nxt.display}."
            ),
            success=False,
            amrap_reps=amrap_reps,
        )

    deload = calculate_deload(current_weight)
    restart = rep_scheme(tier, 0)
    return ProgressionResult(
        type="deload",
        new_weight=deload,
        new_stage=0,
        new_scheme=restart.display,
        new_base_weight=deload,
        reason=(
            f"Failed {scheme.display} at {at}. Deloading to "
            f"{format_weight(deload, unit)} and restarting at {restart.display}."
        ),
        success=False,
        amrap_reps=amrap_reps,
    )


def calculate_progression(
    tier: str,
    state: ProgressionState,
    reps: list[int],
    muscle_group: str,
    unit: str = DEFAULT_WEIGHT_UNIT,
    increments: dict | None = None,
    custom_increment: float | None = None,
) -> ProgressionResult:
    """Analyse logged reps and run the rules on the result."""
    stage = 0 if tier == "T3" else state.stage
    outcome = analyze_reps(reps, tier, stage)
    return next_state(
        tier, state.current_weight, stage, outcome.success, muscle_group,
        unit=unit, increments=increments, custom_increment=custom_increment,
        amrap_reps=outcome.amrap_reps,
    )


# ═════════════════════════════════════════════════════════════════════
# PENDING CHANGE FACTORY
# ═════════════════════════════════════════════════════════════════════

def generate_id() -> str:
    return str(uuid.uuid4())


def create_pending_change(
    exercise: ExerciseConfig,
    state: ProgressionState,
    result: ProgressionResult,
    workout_id: str,
    workout_date: str,
    tier: str,
    day: str | None = None,
    summary: dict | None = None,
    discrepancy: dict | None = None,
) -> PendingChange:
    """
    Build a PendingChange. Nothing is mutated.

    Main lifts get the tier in their display name ("T1 Squat") since the
    same exercise shows up twice in a rotation.
    """
    if is_main_lift_role(exercise.role) and tier in ("T1", "T2"):
        name = f"{tier} {exercise.name}"
    else:
        name = exercise.name

    change = PendingChange(
        id=generate_id(),
        exercise_id=exercise.id,
        exercise_name=name,
        tier=tier,
        type=result.type,
        progression_key=get_progression_key(exercise.id, exercise.role, tier),
        current_weight=state.current_weight,
        current_stage=state.stage,
        new_weight=result.new_weight,
        new_stage=result.new_stage,
        new_scheme=result.new_scheme,
        reason=result.reason,
        workout_id=workout_id,
        workout_date=workout_date,
        created_at=utc_now_iso(),
        amrap_reps=result.amrap_reps,
        success=result.success,
        day=day,
        discrepancy=discrepancy,
    )
    if summary:
        change.sets_completed = summary.get("sets_completed")
        change.sets_target = summary.get("sets_target")
        change.new_pr = summary.get("new_pr")
        change.new_amrap_record = summary.get("new_amrap_record")
    return change


def create_pending_changes_from_analysis(
    occurrences: list[ExerciseOccurrence],
    exercises: dict[str, ExerciseConfig],
    progression: dict[str, ProgressionState],
    settings: Settings | None = None,
    weights: dict[tuple[str, str], float] | None = None,
) -> list[PendingChange]:
    """
    One PendingChange per occurrence that maps to a configured exercise
    with a progression entry. Others are skipped: imported routines often
    hold exercises the program doesn't track.

    `weights` optionally overrides the weight the rules start from, keyed
    by (workout_id, progression_key); sync uses it when the logged weight
    should drive progression instead of the stored one.
    """
    settings = settings or Settings()
    weights = weights or {}
    changes = []

    for occ in occurrences:
        exercise = exercises.get(occ.exercise_id)
        if exercise is None or not exercise.role:
            print(f"  ⚠️ Skipping {occ.exercise_name}: not a configured GZCLP exercise")
            continue

        key = get_progression_key(exercise.id, exercise.role, occ.tier)
        state = progression.get(key)
        if state is None:
            print(
                f"  ⚠️ Skipping {exercise.name} ({occ.tier}): no progression for "
                f"'{key}'. Available: {sorted(progression)}"
            )
            continue

        start_weight = weights.get((occ.workout_id, key), state.current_weight)
        result = calculate_progression(
            occ.tier,
            state.copy(current_weight=start_weight),
            occ.reps,
            get_muscle_group(exercise.role),
            unit=settings.weight_unit,
            increments=settings.increments,
            custom_increment=exercise.custom_increment,
        )

        new_pr = result.amrap_reps is not None and result.amrap_reps > state.amrap_record
        summary = {
            "sets_completed": len(occ.reps),
            "sets_target": rep_scheme(occ.tier, 0 if occ.tier == "T3" else state.stage).sets,
            "new_pr": new_pr,
            "new_amrap_record": result.amrap_reps if new_pr else None,
        }
        discrepancy = None
        if start_weight != state.current_weight:
            discrepancy = {
                "stored_weight": state.current_weight,
                "actual_weight": start_weight,
            }

        changes.append(create_pending_change(
            exercise, state, result, occ.workout_id, occ.workout_date,
            occ.tier, day=occ.day, summary=summary, discrepancy=discrepancy,
        ))

    return changes
