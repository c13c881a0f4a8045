"""
GZCLP Tracker — Progression Ledger

Typed access to the key-value store that holds program state. The store is
injected: anything implementing MutableMapping works (a dict in tests, a
shelve file from the command line, a host app's own storage adapter).

Values are written as plain dicts/lists. Every write goes through
`commit()`, which writes several keys as one unit: if any write fails, the
keys already written are put back and the error propagates.
"""
import copy
from collections.abc import MutableMapping

from gzclp.config import MAX_PROCESSED_WORKOUT_IDS
from gzclp.models import (
    AcknowledgedDiscrepancy,
    ExerciseConfig,
    ExerciseHistory,
    PendingChange,
    ProgramState,
    ProgressionState,
    Settings,
    parse_timestamp,
)

# ── Store keys ───────────────────────────────────────────────────────
EXERCISES = "exercises"
SETTINGS = "settings"
PROGRAM = "program"
PROGRESSION = "progression"
HISTORY = "history"
PROCESSED_WORKOUT_IDS = "processed_workout_ids"
ACKNOWLEDGED_DISCREPANCIES = "acknowledged_discrepancies"
PENDING_CHANGES = "pending_changes"

_MISSING = object()


def _dump_map(records: dict) -> dict:
    return {k: v.to_dict() for k, v in records.items()}


def _dump_list(records: list) -> list:
    return [r.to_dict() for r in records]


SERIALIZERS = {
    EXERCISES: _dump_map,
    SETTINGS: lambda s: s.to_dict(),
    PROGRAM: lambda p: p.to_dict(),
    PROGRESSION: _dump_map,
    HISTORY: _dump_map,
    PROCESSED_WORKOUT_IDS: list,
    ACKNOWLEDGED_DISCREPANCIES: _dump_list,
    PENDING_CHANGES: _dump_list,
}


def append_processed_ids(existing: list[str], workout_ids) -> list[str]:
    """Add ids not yet present, keeping only the most recent entries."""
    seen = set(existing)
    updated = list(existing)
    for wid in workout_ids:
        if wid and wid not in seen:
            updated.append(wid)
            seen.add(wid)
    return updated[-MAX_PROCESSED_WORKOUT_IDS:]


def advance_processed_through(current: str | None, dates) -> str | None:
    """Newest of the current watermark and the given workout dates."""
    candidates = [d for d in dates if d]
    if current:
        candidates.append(current)
    if not candidates:
        return None
    return max(candidates, key=parse_timestamp)


class ProgressionLedger:
    """Reads return fresh objects; mutate them freely, then `commit()`."""

    def __init__(self, store: MutableMapping | None = None):
        self.store = store if store is not None else {}

    def _get(self, key: str, default):
        if key not in self.store:
            return default
        return copy.deepcopy(self.store[key])

    # ── Readers ──────────────────────────────────────────────────────
    def exercises(self) -> dict[str, ExerciseConfig]:
        raw = self._get(EXERCISES, {})
        return {k: ExerciseConfig.from_dict(v) for k, v in raw.items()}

    def settings(self) -> Settings:
        raw = self._get(SETTINGS, None)
        return Settings.from_dict(raw) if raw else Settings()

    def program(self) -> ProgramState:
        raw = self._get(PROGRAM, None)
        return ProgramState.from_dict(raw) if raw else ProgramState()

    def progression(self) -> dict[str, ProgressionState]:
        raw = self._get(PROGRESSION, {})
        return {k: ProgressionState.from_dict(v) for k, v in raw.items()}

    def history(self) -> dict[str, ExerciseHistory]:
        raw = self._get(HISTORY, {})
        return {k: ExerciseHistory.from_dict(v) for k, v in raw.items()}

    def processed_workout_ids(self) -> list[str]:
        """
        Workout ids already folded into progression.

        Stores written before this list existed are seeded from each slot's
        last_workout_id, so old workouts are not reprocessed.
        """
        ids = self._get(PROCESSED_WORKOUT_IDS, [])
        if ids:
            return ids
        seeded = [p.last_workout_id for p in self.progression().values() if p.last_workout_id]
        return append_processed_ids([], seeded)

    def processed_through(self) -> str | None:
        """
        Date of the newest workout folded in or rejected. Anything older was
        handled already, even once its id has aged out of the capped list.

        Seeded from the slots' last_workout_date for older stores.
        """
        program = self.program()
        if program.processed_through:
            return program.processed_through
        dates = [p.last_workout_date for p in self.progression().values()]
        return advance_processed_through(None, dates)

    def acknowledged_discrepancies(self) -> list[AcknowledgedDiscrepancy]:
        raw = self._get(ACKNOWLEDGED_DISCREPANCIES, [])
        return [AcknowledgedDiscrepancy.from_dict(a) for a in raw]

    def pending_changes(self) -> list[PendingChange]:
        raw = self._get(PENDING_CHANGES, [])
        return [PendingChange.from_dict(c) for c in raw]

    # ── Writer ───────────────────────────────────────────────────────
    def commit(self, **updates) -> None:
        """
        Write several keys as one unit.

        Keyword names are the store keys (progression=..., history=...).
        """
        unknown = set(updates) - set(SERIALIZERS)
        if unknown:
            raise KeyError(f"Unknown ledger keys: {sorted(unknown)}")

        payload = {k: SERIALIZERS[k](v) for k, v in updates.items()}
        previous = {k: self.store.get(k, _MISSING) for k in payload}
        written = []
        try:
            for key, value in payload.items():
                self.store[key] = value
                written.append(key)
        except Exception:
            for key in written:
                old = previous[key]
                if old is _MISSING:
                    del self.store[key]
                else:
                    self.store[key] = old
            raise

    def reset(self) -> None:
        """Drop everything (full data reset)."""
        for key in list(SERIALIZERS):
            if key in self.store:
                del self.store[key]
