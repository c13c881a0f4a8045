"""
GZCLP Tracker — Pandas Analytics

Read-only views over the history ledger and the pending queue, for
dashboards and the command line. Nothing here writes to the ledger.
"""
import pandas as pd
import numpy as np

from gzclp.models import ExerciseHistory, PendingChange, ProgressionState

HISTORY_COLUMNS = [
    "progression_key", "exercise", "tier", "role", "date", "workout_id",
    "weight", "stage", "success", "change_type", "amrap_reps",
]


def _utc(value) -> pd.Timestamp:
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts


def _now(now=None) -> pd.Timestamp:
    return _utc(now) if now is not None else pd.Timestamp.now(tz="UTC")


# ═══════════════════════════════════════════════════════════════════════
# HISTORY
# ═══════════════════════════════════════════════════════════════════════

def history_to_dataframe(history: dict[str, ExerciseHistory]) -> pd.DataFrame:
    """One row per history entry, oldest first."""
    rows = []
    for key, h in history.items():
        for e in h.entries:
            rows.append({
                "progression_key": key,
                "exercise": h.exercise_name,
                "tier": e.tier,
                "role": h.role,
                "date": _utc(e.date),
                "workout_id": e.workout_id,
                "weight": e.weight,
                "stage": e.stage,
                "success": e.success,
                "change_type": e.change_type,
                "amrap_reps": e.amrap_reps,
            })
    if not rows:
        return pd.DataFrame(columns=HISTORY_COLUMNS)
    df = pd.DataFrame(rows, columns=HISTORY_COLUMNS)
    df["amrap_reps"] = pd.to_numeric(df["amrap_reps"])
    df["success"] = df["success"].astype(bool)
    return df.sort_values(["date", "progression_key"]).reset_index(drop=True)


def progression_summary(df: pd.DataFrame) -> pd.DataFrame:
    """
    Per progression slot: sessions, success rate, start/latest weight,
    weight gained, deload count and best AMRAP.
    """
    if df.empty:
        return pd.DataFrame()
    df = df.sort_values("date")
    summary = (
        df.groupby("progression_key")
        .agg(
            exercise=("exercise", "first"),
            tier=("tier", "first"),
            sessions=("workout_id", "nunique"),
            successes=("success", "sum"),
            start_weight=("weight", "first"),
            latest_weight=("weight", "last"),
            deloads=("change_type", lambda s: int((s == "deload").sum())),
            best_amrap=("amrap_reps", "max"),
            last_date=("date", "max"),
        )
        .reset_index()
    )
    summary["successes"] = summary["successes"].astype(int)
    summary["success_rate"] = np.where(
        summary["sessions"] > 0,
        (summary["successes"] / summary["sessions"] * 100).round(1),
        0,
    )
    summary["weight_gained"] = summary["latest_weight"] - summary["start_weight"]
    return summary.sort_values(["tier", "progression_key"]).reset_index(drop=True)


# ═══════════════════════════════════════════════════════════════════════
# QUEUE
# ═══════════════════════════════════════════════════════════════════════

def pending_changes_to_dataframe(changes: list[PendingChange]) -> pd.DataFrame:
    if not changes:
        return pd.DataFrame()
    df = pd.DataFrame([{
        "id": c.id,
        "exercise": c.exercise_name,
        "tier": c.tier,
        "type": c.type,
        "current_weight": c.current_weight,
        "new_weight": c.new_weight,
        "new_scheme": c.new_scheme,
        "workout_date": _utc(c.workout_date),
        "has_discrepancy": c.discrepancy is not None,
    } for c in changes])
    df["delta"] = df["new_weight"] - df["current_weight"]
    return df.sort_values(["workout_date", "tier"]).reset_index(drop=True)


# ═══════════════════════════════════════════════════════════════════════
# QUICK STATS
# ═══════════════════════════════════════════════════════════════════════

def weeks_on_program(created_at: str, now=None) -> int:
    """Complete weeks since the program was created."""
    delta = _now(now) - _utc(created_at)
    return max(0, delta.days // 7)


def days_since_last_workout(progression: dict[str, ProgressionState], now=None) -> int | None:
    """Whole days since the latest last_workout_date, None before any workout."""
    dates = [_utc(p.last_workout_date) for p in progression.values() if p.last_workout_date]
    if not dates:
        return None
    return (_now(now) - max(dates)).days
