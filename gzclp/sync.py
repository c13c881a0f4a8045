"""
GZCLP Tracker — Sync Orchestrator
Run manually: python -m gzclp.sync [--dry-run]

Pulls workouts from Hevy, turns the unseen ones into pending changes and
merges them into the review queue. Nothing touches progression until the
user applies a change.
"""
import shelve
import sys
from datetime import datetime

from gzclp.analysis import analyze_workout, resolve_day, sort_workouts_chronologically
from gzclp.config import GZCLP_STATE_PATH, format_weight, get_progression_key
from gzclp.discrepancy import deduplicate_discrepancies, detect_discrepancy
from gzclp.ledger import ProgressionLedger
from gzclp.models import SyncResult, parse_timestamp, utc_now_iso
from gzclp.progression import create_pending_changes_from_analysis
from gzclp.queue import PendingChangeQueue, apply_pending_change


class SyncReconciler:
    """
    One sync at a time over a ledger and its queue.

    `fetch_workouts` is any zero-argument callable returning Hevy-shaped
    workout dicts; it defaults to the Hevy API client.
    """

    def __init__(self, ledger: ProgressionLedger, queue: PendingChangeQueue | None = None,
                 fetch_workouts=None):
        if fetch_workouts is None:
            from gzclp.hevy_client import fetch_all_workouts
            fetch_workouts = fetch_all_workouts
        self.ledger = ledger
        self.queue = queue or PendingChangeQueue(ledger)
        self.fetch_workouts = fetch_workouts
        self.status = "idle"
        self.last_error: str | None = None
        self._in_flight = False

    @property
    def is_syncing(self) -> bool:
        return self._in_flight

    def sync(self) -> SyncResult | None:
        """
        Fetch, reconcile and queue. Returns None when a sync is already
        running. Failures come back as status="error" with the ledger
        untouched.
        """
        if self._in_flight:
            print("  ⏭️ Sync already running, ignoring request")
            return None

        self._in_flight = True
        self.status = "syncing"
        self.last_error = None
        try:
            workouts = self.fetch_workouts()
            result = self.reconcile(workouts)
            program = self.ledger.program()
            program.last_sync = utc_now_iso()
            self.queue.merge(result.pending_changes, program=program)
            return result
        except Exception as e:
            self.last_error = str(e)
            print(f"❌ Sync FAILED: {e}")
            return SyncResult(status="error", error=str(e))
        finally:
            self._in_flight = False
            self.status = "idle"

    def reconcile(self, workouts: list[dict]) -> SyncResult:
        """
        Pending changes and discrepancies for workouts not yet seen.

        Reads the ledger, writes nothing. Progression is projected forward
        workout by workout, so a second unseen workout for the same slot
        starts from the first one's outcome.
        """
        exercises = self.ledger.exercises()
        settings = self.ledger.settings()
        program = self.ledger.program()
        acknowledged = self.ledger.acknowledged_discrepancies()
        projected = self.ledger.progression()
        processed = set(self.ledger.processed_workout_ids())
        queued = {c.workout_id for c in self.queue.changes}
        through = self.ledger.processed_through()
        cutoff = parse_timestamp(through) if through else None

        result = SyncResult(status="success")
        discrepancies = []

        for workout in sort_workouts_chronologically(workouts):
            wid = workout["id"]
            # Older than the watermark means handled, even if the id aged out of the list
            handled = cutoff is not None and parse_timestamp(workout["start_time"]) < cutoff
            if wid in processed or wid in queued or handled:
                result.skipped_workouts += 1
                continue

            day = resolve_day(workout, program.routine_ids)
            if day is None:
                print(f"  ⚠️ Workout {wid} ({workout.get('title', '')}) is not from a GZCLP routine, skipping")
                result.skipped_workouts += 1
                continue

            occurrences = analyze_workout(workout, exercises, day)

            # Unacknowledged weight mismatches: the logged weight drives the rules
            weights = {}
            for occ in occurrences:
                exercise = exercises[occ.exercise_id]
                key = get_progression_key(exercise.id, exercise.role, occ.tier)
                state = projected.get(key)
                if state is None:
                    continue
                record = detect_discrepancy(occ, state, acknowledged)
                if record is not None:
                    discrepancies.append(record)
                    weights[(wid, key)] = occ.weight

            changes = create_pending_changes_from_analysis(
                occurrences, exercises, projected, settings=settings, weights=weights,
            )
            for change in changes:
                projected[change.progression_key] = apply_pending_change(
                    projected[change.progression_key], change,
                )

            result.pending_changes.extend(changes)
            result.skipped_exercises += len(workout.get("exercises", [])) - len(changes)
            result.new_workouts += 1
            result.detected_day = day

        result.discrepancies = deduplicate_discrepancies(discrepancies)
        return result


def run_sync(dry_run: bool = False, store=None) -> SyncResult | None:
    """
    Command-line sync against a shelve state file (or a given store).
    Dry run prints what would be queued without writing.
    """
    print("🔄 GZCLP Sync — Starting...")
    print(f"   {datetime.now().isoformat()}")

    own_store = store is None
    if own_store:
        store = shelve.open(GZCLP_STATE_PATH)
    try:
        ledger = ProgressionLedger(store)
        reconciler = SyncReconciler(ledger)
        unit = ledger.settings().weight_unit

        if dry_run:
            print("\n🏃 DRY RUN — nothing will be written")
            result = reconciler.reconcile(reconciler.fetch_workouts())
        else:
            print("\n📥 Fetching workouts from Hevy...")
            result = reconciler.sync()

        if result is None or result.status == "error":
            return result

        print(f"   New workouts: {result.new_workouts}")
        print(f"   Skipped workouts: {result.skipped_workouts}")
        print(f"   Skipped exercises: {result.skipped_exercises}")
        if result.detected_day:
            print(f"   Last detected day: {result.detected_day}")

        if result.discrepancies:
            print("\n⚠️ Weight discrepancies:")
            for d in result.discrepancies:
                print(
                    f"   {d.exercise_name} ({d.tier}): stored {format_weight(d.stored_weight, unit)}, "
                    f"logged {format_weight(d.actual_weight, unit)}"
                )

        pending = result.pending_changes if dry_run else reconciler.queue.changes
        print(f"\n{'='*50}")
        print(f"📋 Pending changes: {len(pending)}")
        for c in pending:
            print(
                f"   [{c.type}] {c.exercise_name}: {format_weight(c.current_weight, unit)} → "
                f"{format_weight(c.new_weight, unit)} ({c.new_scheme})"
            )
        print("\n✅ Sync complete")
        return result
    finally:
        if own_store:
            store.close()


if __name__ == "__main__":
    dry = "--dry-run" in sys.argv
    result = run_sync(dry_run=dry)
    if result is not None and result.status == "error":
        sys.exit(1)
