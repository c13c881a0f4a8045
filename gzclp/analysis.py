"""
GZCLP Tracker — Workout Analysis

Turns raw Hevy workouts into per-exercise occurrences and classifies each
occurrence as success or failure for its tier and stage.

All exercise matching uses exercise_template_id, never display names.
"""

from gzclp.config import (
    T3_SUCCESS_THRESHOLD,
    WORKING_SET_TYPES,
    get_tier_for_day,
    rep_scheme,
)
from gzclp.models import (
    AnalysisOutcome,
    ExerciseConfig,
    ExerciseOccurrence,
    parse_timestamp,
)


# ═════════════════════════════════════════════════════════════════════
# SET PROCESSING
# ═════════════════════════════════════════════════════════════════════

def working_sets(sets: list[dict]) -> list[dict]:
    """Drop warm-up sets; everything else Hevy logs counts."""
    return [s for s in sets if s.get("type") in WORKING_SET_TYPES]


def extract_reps_from_sets(sets: list[dict]) -> list[int]:
    """Reps per working set, in logged order. Missing reps count as 0."""
    return [int(s.get("reps") or 0) for s in working_sets(sets)]


def extract_working_weight(sets: list[dict]) -> float:
    """Weight of the first working set (kg), 0 when there is none."""
    work = working_sets(sets)
    if not work:
        return 0.0
    return float(work[0].get("weight_kg") or 0)


# ═════════════════════════════════════════════════════════════════════
# CLASSIFICATION
# ═════════════════════════════════════════════════════════════════════

def analyze_reps(reps: list[int], tier: str, stage: int) -> AnalysisOutcome:
    """
    Classify one exercise occurrence.

    T1/T2: every prescribed set must reach its target. Missing sets are
    failures; extra reps on the AMRAP set only matter for PR tracking.
    T3: total reps across all sets must reach 25.
    An empty rep list is always a failure.
    """
    scheme = rep_scheme(tier, stage)
    total = sum(reps)

    if tier == "T3":
        amrap = reps[-1] if reps else None
        return AnalysisOutcome(
            success=bool(reps) and total >= T3_SUCCESS_THRESHOLD,
            total_reps=total,
            amrap_reps=amrap,
        )

    prescribed = reps[:scheme.sets]
    success = (
        len(prescribed) == scheme.sets
        and all(r >= scheme.reps for r in prescribed)
    )
    amrap = None
    if scheme.amrap and prescribed:
        amrap = prescribed[-1]
    return AnalysisOutcome(success=success, total_reps=total, amrap_reps=amrap)


def analyze_sets(sets: list[dict], tier: str, stage: int) -> AnalysisOutcome:
    """Same as analyze_reps, on raw Hevy set dicts."""
    return analyze_reps(extract_reps_from_sets(sets), tier, stage)


# ═════════════════════════════════════════════════════════════════════
# WORKOUT MATCHING
# ═════════════════════════════════════════════════════════════════════

def match_workout_to_exercises(
    workout: dict, exercises: dict[str, ExerciseConfig],
) -> list[tuple[ExerciseConfig, dict]]:
    """Pair each logged exercise with its configured exercise, by template id."""
    by_template = {e.hevy_template_id: e for e in exercises.values()}
    matches = []
    for ex in workout.get("exercises", []):
        config = by_template.get(ex.get("exercise_template_id", ""))
        if config is not None:
            matches.append((config, ex))
    return matches


def resolve_day(workout: dict, routine_ids: dict[str, str]) -> str | None:
    """Program day of a workout, from the Hevy routine it was started from."""
    rid = workout.get("routine_id")
    if not rid:
        return None
    for day, day_rid in routine_ids.items():
        if day_rid == rid:
            return day
    return None


def analyze_workout(
    workout: dict,
    exercises: dict[str, ExerciseConfig],
    day: str,
) -> list[ExerciseOccurrence]:
    """
    Extract progression-relevant data for each configured exercise in a
    workout.

    Tier comes from role + day, so a main lift done on a day it isn't
    scheduled (or an exercise without a role) produces nothing.
    """
    occurrences = []
    for config, ex in match_workout_to_exercises(workout, exercises):
        if not config.role:
            continue
        tier = get_tier_for_day(config.role, day)
        if tier is None:
            continue

        sets = ex.get("sets", [])
        occurrences.append(ExerciseOccurrence(
            exercise_id=config.id,
            exercise_name=config.name,
            tier=tier,
            reps=extract_reps_from_sets(sets),
            weight=extract_working_weight(sets),
            workout_id=workout["id"],
            workout_date=workout["start_time"],
            day=day,
            has_working_sets=bool(working_sets(sets)),
        ))
    return occurrences


def sort_workouts_chronologically(workouts: list[dict]) -> list[dict]:
    """Oldest first, so later workouts build on earlier ones."""
    return sorted(workouts, key=lambda w: parse_timestamp(w["start_time"]))
