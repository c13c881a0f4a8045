"""
GZCLP Tracker — Weight Discrepancies

A discrepancy is a workout logged at a different weight than the ledger
expected. They are recomputed on every sync; the user either takes the
logged weight or keeps the stored one. Keeping the stored weight
acknowledges that exact (exercise, weight, tier) so it isn't flagged again.
"""

from gzclp.config import get_progression_key
from gzclp.models import (
    AcknowledgedDiscrepancy,
    DiscrepancyRecord,
    ExerciseOccurrence,
    ProgressionState,
    parse_timestamp,
)


def is_acknowledged(
    acknowledged: list[AcknowledgedDiscrepancy],
    exercise_id: str,
    weight: float,
    tier: str,
) -> bool:
    return any(
        a.exercise_id == exercise_id
        and a.acknowledged_weight == weight
        and a.tier == tier
        for a in acknowledged
    )


def detect_discrepancy(
    occurrence: ExerciseOccurrence,
    state: ProgressionState,
    acknowledged: list[AcknowledgedDiscrepancy],
) -> DiscrepancyRecord | None:
    """Compare the logged working weight with the stored one."""
    if not occurrence.has_working_sets:
        return None
    if occurrence.weight == state.current_weight:
        return None
    if is_acknowledged(acknowledged, occurrence.exercise_id, occurrence.weight, occurrence.tier):
        return None
    return DiscrepancyRecord(
        exercise_id=occurrence.exercise_id,
        exercise_name=occurrence.exercise_name,
        tier=occurrence.tier,
        stored_weight=state.current_weight,
        actual_weight=occurrence.weight,
        workout_id=occurrence.workout_id,
        workout_date=occurrence.workout_date,
    )


def acknowledge(
    acknowledged: list[AcknowledgedDiscrepancy],
    record: DiscrepancyRecord,
) -> list[AcknowledgedDiscrepancy]:
    """
    New acknowledgement list with `record` kept as stored.

    A previous acknowledgement for the same exercise+tier at another
    weight is superseded.
    """
    if is_acknowledged(acknowledged, record.exercise_id, record.actual_weight, record.tier):
        return list(acknowledged)
    kept = [
        a for a in acknowledged
        if not (a.exercise_id == record.exercise_id and a.tier == record.tier)
    ]
    kept.append(AcknowledgedDiscrepancy(
        exercise_id=record.exercise_id,
        acknowledged_weight=record.actual_weight,
        tier=record.tier,
    ))
    return kept


def deduplicate_discrepancies(records: list[DiscrepancyRecord]) -> list[DiscrepancyRecord]:
    """Keep only the most recent discrepancy per exercise+tier."""
    by_key: dict[tuple[str, str], DiscrepancyRecord] = {}
    for rec in records:
        key = (rec.exercise_id, rec.tier)
        existing = by_key.get(key)
        if existing is None or parse_timestamp(rec.workout_date) > parse_timestamp(existing.workout_date):
            by_key[key] = rec
    return list(by_key.values())


# ═════════════════════════════════════════════════════════════════════
# RESOLUTION
# ═════════════════════════════════════════════════════════════════════

def _progression_key_for(ledger, record: DiscrepancyRecord) -> str:
    exercise = ledger.exercises().get(record.exercise_id)
    if exercise is None:
        raise KeyError(f"Unknown exercise {record.exercise_id!r}")
    return get_progression_key(exercise.id, exercise.role, record.tier)


def use_actual_weight(ledger, record: DiscrepancyRecord) -> ProgressionState:
    """Take the logged weight as the new stored and base weight."""
    key = _progression_key_for(ledger, record)
    progression = ledger.progression()
    if key not in progression:
        raise KeyError(f"No progression for {key!r}")
    progression[key] = progression[key].copy(
        current_weight=record.actual_weight,
        base_weight=record.actual_weight,
    )
    ledger.commit(progression=progression)
    return progression[key]


def keep_stored_weight(ledger, record: DiscrepancyRecord) -> list[AcknowledgedDiscrepancy]:
    """Keep the stored weight and stop flagging this logged weight."""
    acknowledged = acknowledge(ledger.acknowledged_discrepancies(), record)
    ledger.commit(acknowledged_discrepancies=acknowledged)
    return acknowledged
