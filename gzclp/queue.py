"""
GZCLP Tracker — Pending Change Queue

The review step between "sync found a change" and "progression updated".
Changes live in the ledger until the user applies, rejects or clears them.

Applying commits progression, history, the processed-workout list, the
queue and (when the queue empties) the day rotation in a single ledger
commit. The caller gets an ApplyResult back instead of callbacks.
"""
import time

from gzclp.config import UNDO_TIMEOUT_SECONDS, get_muscle_group, next_day, rep_scheme
from gzclp.ledger import ProgressionLedger, advance_processed_through, append_processed_ids
from gzclp.models import (
    ApplyResult,
    ExerciseConfig,
    ExerciseHistory,
    HistoryEntry,
    PendingChange,
    ProgressionState,
    Settings,
    parse_timestamp,
)
from gzclp.progression import next_state


# ═════════════════════════════════════════════════════════════════════
# PURE HELPERS
# ═════════════════════════════════════════════════════════════════════

def apply_pending_change(state: ProgressionState, change: PendingChange) -> ProgressionState:
    """Progression state after committing one change."""
    updated = state.copy(
        current_weight=change.new_weight,
        stage=change.new_stage,
        last_workout_id=change.workout_id,
        last_workout_date=change.workout_date,
    )
    if change.type == "deload":
        updated.base_weight = change.new_weight
    if change.new_pr and change.amrap_reps is not None and change.amrap_reps > state.amrap_record:
        updated.amrap_record = change.amrap_reps
        updated.amrap_record_date = change.workout_date
        updated.amrap_record_workout_id = change.workout_id
    return updated


def modify_pending_change_weight(change: PendingChange, new_weight: float) -> PendingChange:
    """Same change with a user-chosen weight. Success/failure is not re-judged."""
    if new_weight < 0:
        raise ValueError(f"Weight must be non-negative, got {new_weight}")
    return change.copy(
        new_weight=new_weight,
        modified=True,
        reason=(
            f"Modified by user: {change.current_weight:g} -> {new_weight:g} "
            f"(original suggestion: {change.new_weight:g})"
        ),
    )


def create_history_entry(change: PendingChange) -> HistoryEntry:
    """History records the weight actually lifted, before the change."""
    weight = change.current_weight
    if change.discrepancy:
        weight = change.discrepancy["actual_weight"]
    return HistoryEntry(
        date=change.workout_date,
        workout_id=change.workout_id,
        weight=weight,
        stage=change.current_stage,
        tier=change.tier,
        success=bool(change.success),
        change_type=change.type,
        amrap_reps=change.amrap_reps,
    )


def record_history(
    history: dict[str, ExerciseHistory],
    change: PendingChange,
    exercises: dict[str, ExerciseConfig],
) -> HistoryEntry | None:
    """
    Append the change to its slot's history in place.

    Returns the new entry, or None when this workout is already recorded
    for the slot.
    """
    key = change.progression_key
    existing = history.get(key)
    if existing and any(e.workout_id == change.workout_id for e in existing.entries):
        return None

    entry = create_history_entry(change)
    if existing is None:
        exercise = exercises.get(change.exercise_id)
        history[key] = ExerciseHistory(
            progression_key=key,
            exercise_name=exercise.name if exercise else change.exercise_name,
            tier=change.tier,
            role=exercise.role if exercise else None,
            entries=[entry],
        )
    else:
        existing.entries.append(entry)
    return entry


def rebase_change(
    change: PendingChange,
    state: ProgressionState,
    exercise: ExerciseConfig,
    settings: Settings,
) -> PendingChange:
    """
    Re-run the rules for `change` starting from `state`.

    The logged reps aren't kept, so success/failure is not re-judged. A
    user-modified weight is kept; only its starting point moves.
    """
    stage = 0 if change.tier == "T3" else state.stage
    start = state.current_weight
    discrepancy = None
    if change.discrepancy:
        start = change.discrepancy["actual_weight"]
    if start != state.current_weight:
        discrepancy = {"stored_weight": state.current_weight, "actual_weight": start}

    updates = dict(current_weight=state.current_weight, current_stage=state.stage, discrepancy=discrepancy)
    if not change.modified:
        result = next_state(
            change.tier, start, stage, bool(change.success), get_muscle_group(exercise.role),
            unit=settings.weight_unit, increments=settings.increments,
            custom_increment=exercise.custom_increment, amrap_reps=change.amrap_reps,
        )
        new_pr = change.amrap_reps is not None and change.amrap_reps > state.amrap_record
        updates.update(
            type=result.type,
            new_weight=result.new_weight,
            new_stage=result.new_stage,
            new_scheme=result.new_scheme,
            reason=result.reason,
            sets_target=rep_scheme(change.tier, stage).sets,
            new_pr=new_pr,
            new_amrap_record=change.amrap_reps if new_pr else None,
        )
    return change.copy(**updates)


def _by_date(changes: list[PendingChange]) -> list[PendingChange]:
    return sorted(changes, key=lambda c: parse_timestamp(c.workout_date))


# ═════════════════════════════════════════════════════════════════════
# QUEUE
# ═════════════════════════════════════════════════════════════════════

class PendingChangeQueue:
    """
    Apply / reject / modify / undo over the ledger's pending changes.

    `clock` is a monotonic seconds source for the undo window.
    """

    def __init__(
        self,
        ledger: ProgressionLedger,
        clock=time.monotonic,
        undo_timeout: float = UNDO_TIMEOUT_SECONDS,
    ):
        self.ledger = ledger
        self.clock = clock
        self.undo_timeout = undo_timeout
        self._rejected: PendingChange | None = None
        self._undo_deadline: float | None = None

    @property
    def changes(self) -> list[PendingChange]:
        return self.ledger.pending_changes()

    def __len__(self) -> int:
        return len(self.changes)

    def get(self, change_id: str) -> PendingChange | None:
        return next((c for c in self.changes if c.id == change_id), None)

    # ── Undo window ──────────────────────────────────────────────────
    @property
    def recently_rejected(self) -> PendingChange | None:
        if self._rejected is not None and self.clock() >= self._undo_deadline:
            self._clear_undo()
        return self._rejected

    def _clear_undo(self) -> None:
        self._rejected = None
        self._undo_deadline = None

    # ── Apply ────────────────────────────────────────────────────────
    def _commit(self, to_apply: list[PendingChange]) -> ApplyResult:
        progression = self.ledger.progression()
        history = self.ledger.history()
        processed = self.ledger.processed_workout_ids()
        program = self.ledger.program()
        exercises = self.ledger.exercises()

        # Oldest first so chained changes on one slot land in workout order
        to_apply = _by_date(to_apply)
        entries = []
        workouts = []
        for change in to_apply:
            state = progression.get(change.progression_key)
            if state is None:
                print(f"  ⚠️ No progression for '{change.progression_key}', dropping {change.exercise_name}")
            else:
                progression[change.progression_key] = apply_pending_change(state, change)
                entry = record_history(history, change, exercises)
                if entry is not None:
                    entries.append(entry)
            for wid in (change.workout_id, state.last_workout_id if state else None):
                if wid and wid not in workouts:
                    workouts.append(wid)

        applied_ids = {c.id for c in to_apply}
        remaining = [c for c in self.changes if c.id not in applied_ids]

        program.processed_through = advance_processed_through(
            self.ledger.processed_through(), [c.workout_date for c in to_apply],
        )
        day_advanced = bool(to_apply) and not remaining
        if day_advanced:
            program.current_day = next_day(program.current_day)
            program.total_workouts += 1
            dates = [c.workout_date for c in to_apply]
            if program.most_recent_workout_date:
                dates.append(program.most_recent_workout_date)
            program.most_recent_workout_date = max(dates, key=parse_timestamp)

        self.ledger.commit(
            progression=progression,
            history=history,
            processed_workout_ids=append_processed_ids(processed, workouts),
            pending_changes=remaining,
            program=program,
        )
        return ApplyResult(
            updated_progression=progression,
            history_entries=entries,
            current_day=program.current_day,
            day_advanced=day_advanced,
            workouts_processed=workouts,
            applied=list(to_apply),
        )

    def apply_change(self, change: PendingChange | str) -> ApplyResult:
        """
        Commit one change. A change no longer in the queue (already applied
        or rejected) is a no-op.

        Older queued changes for the same slot are committed with it, since
        this change was computed on top of them.
        """
        change_id = change if isinstance(change, str) else change.id
        queued = self.get(change_id)
        if queued is None:
            return ApplyResult(
                updated_progression=self.ledger.progression(),
                history_entries=[],
                current_day=self.ledger.program().current_day,
            )
        when = parse_timestamp(queued.workout_date)
        earlier = [
            c for c in self.changes
            if c.progression_key == queued.progression_key and c.id != queued.id
            and parse_timestamp(c.workout_date) < when
        ]
        if earlier:
            print(
                f"  🔁 {queued.exercise_name}: also applying {len(earlier)} earlier "
                f"pending change(s) for the same slot"
            )
        return self._commit(earlier + [queued])

    def apply_all_changes(self) -> ApplyResult:
        """Apply the whole queue; the day advances once, not per change."""
        return self._commit(self.changes)

    # ── Chain rebase ─────────────────────────────────────────────────
    def _rebase(self, changes: list[PendingChange], key: str) -> list[PendingChange]:
        """
        Recompute queued changes for one slot from its committed state, oldest
        first, so each starts where the previous one ends. Changes already
        starting there are left as they are.
        """
        state = self.ledger.progression().get(key)
        if state is None:
            return changes
        exercises = self.ledger.exercises()
        settings = self.ledger.settings()

        rebased = {}
        for change in _by_date([c for c in changes if c.progression_key == key]):
            exercise = exercises.get(change.exercise_id)
            moved = (change.current_weight, change.current_stage) != (state.current_weight, state.stage)
            if moved and exercise is not None:
                change = rebase_change(change, state, exercise, settings)
            rebased[change.id] = change
            state = apply_pending_change(state, change)
        return [rebased.get(c.id, c) for c in changes]

    # ── Reject / undo ────────────────────────────────────────────────
    def reject_change(self, change_id: str) -> PendingChange | None:
        """
        Drop a change without committing it.

        Its workout is marked processed so the next sync doesn't bring it
        back, but no history entry is written. Later changes for the same
        slot are recomputed to start from where this one started.
        """
        change = self.get(change_id)
        if change is None:
            return None
        remaining = [c for c in self.changes if c.id != change_id]
        program = self.ledger.program()
        program.processed_through = advance_processed_through(
            self.ledger.processed_through(), [change.workout_date],
        )
        self.ledger.commit(
            pending_changes=self._rebase(remaining, change.progression_key),
            processed_workout_ids=append_processed_ids(
                self.ledger.processed_workout_ids(), [change.workout_id],
            ),
            program=program,
        )
        self._rejected = change
        self._undo_deadline = self.clock() + self.undo_timeout
        return change

    def undo_reject(self) -> PendingChange | None:
        """Put back the last rejected change while the undo window is open."""
        change = self.recently_rejected
        if change is None:
            return None
        changes = self._rebase(self.changes + [change], change.progression_key)
        self.ledger.commit(pending_changes=changes)
        self._clear_undo()
        return changes[-1]

    # ── Edit / bulk ──────────────────────────────────────────────────
    def modify_change(self, change_id: str, new_weight: float) -> PendingChange:
        """Set a change's new weight; later changes for its slot follow it."""
        changes = self.changes
        for i, c in enumerate(changes):
            if c.id == change_id:
                changes[i] = modify_pending_change_weight(c, new_weight)
                changes = self._rebase(changes, c.progression_key)
                self.ledger.commit(pending_changes=changes)
                return changes[i]
        raise KeyError(f"No pending change with id {change_id!r}")

    def clear_all_changes(self) -> None:
        """Discard everything without committing (used on data reset)."""
        self.ledger.commit(pending_changes=[])
        self._clear_undo()

    def merge(self, new_changes: list[PendingChange], program=None) -> list[PendingChange]:
        """
        Add changes not already queued (by id), keeping unresolved ones.

        `program` is committed in the same write when given. Returns the
        changes actually added.
        """
        changes = self.changes
        known = {c.id for c in changes}
        added = [c for c in new_changes if c.id not in known]
        updates = {}
        if added:
            updates["pending_changes"] = changes + added
        if program is not None:
            updates["program"] = program
        if updates:
            self.ledger.commit(**updates)
        return added
