"""
GZCLP Tracker — Configuration

Program structure for GZCLP: roles, the A1/B1/A2/B2 day rotation, which
main lift is T1/T2 on each day, rep schemes per tier and stage, and the
weight increment table.

All weights are kilograms. Display units never change stored values.
"""
import os
from dataclasses import dataclass

# ── API Keys / Paths ─────────────────────────────────────────────────
HEVY_API_KEY = os.environ.get("HEVY_API_KEY", "")
GZCLP_STATE_PATH = os.environ.get("GZCLP_STATE_PATH", "gzclp_state")

# ── Hevy API ─────────────────────────────────────────────────────────
HEVY_BASE_URL = os.environ.get("HEVY_BASE_URL", "https://api.hevyapp.com/v1")
HEVY_TIMEOUT_SECONDS = float(os.environ.get("HEVY_TIMEOUT_SECONDS", "15"))

# ── Roles & Tiers ────────────────────────────────────────────────────
MAIN_LIFT_ROLES = ("squat", "bench", "ohp", "deadlift")
EXERCISE_ROLES = MAIN_LIFT_ROLES + ("t3",)
LOWER_BODY_ROLES = {"squat", "deadlift"}

STAGES = (0, 1, 2)

# ── Day Rotation ─────────────────────────────────────────────────────
GZCLP_DAYS = ("A1", "B1", "A2", "B2")

DAY_CYCLE = {
    "A1": "B1",
    "B1": "A2",
    "A2": "B2",
    "B2": "A1",
}

# Which main lift is T1 / T2 on each day
T1_MAPPING = {
    "A1": "squat",
    "B1": "ohp",
    "A2": "bench",
    "B2": "deadlift",
}
T2_MAPPING = {
    "A1": "bench",
    "B1": "deadlift",
    "A2": "squat",
    "B2": "ohp",
}

# ── Weights ──────────────────────────────────────────────────────────
DEFAULT_WEIGHT_UNIT = "kg"
WEIGHT_UNITS = ("kg", "lbs")
LBS_PER_KG = 2.20462

# Default increments per muscle group, kg
DEFAULT_INCREMENTS = {
    "upper": 2.5,
    "lower": 5.0,
}

DELOAD_PERCENTAGE = 0.85
WEIGHT_ROUNDING_KG = 2.5
BAR_WEIGHT_KG = 20.0

# ── Thresholds & Limits ──────────────────────────────────────────────
T3_SUCCESS_THRESHOLD = 25  # total reps across all T3 sets
UNDO_TIMEOUT_SECONDS = 5.0
MAX_PROCESSED_WORKOUT_IDS = 200

# Hevy set types that count as working sets
WORKING_SET_TYPES = ("normal", "failure", "dropset", None)


# ═════════════════════════════════════════════════════════════════════
# REP SCHEMES
# ═════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RepScheme:
    sets: int
    reps: int
    amrap: bool
    display: str


T1_SCHEMES = {
    0: RepScheme(sets=5, reps=3, amrap=True, display="5x3+"),
    1: RepScheme(sets=6, reps=2, amrap=True, display="6x2+"),
    2: RepScheme(sets=10, reps=1, amrap=True, display="10x1+"),
}

T2_SCHEMES = {
    0: RepScheme(sets=3, reps=10, amrap=False, display="3x10"),
    1: RepScheme(sets=3, reps=8, amrap=False, display="3x8"),
    2: RepScheme(sets=3, reps=6, amrap=False, display="3x6"),
}

T3_SCHEME = RepScheme(sets=3, reps=15, amrap=True, display="3x15+")


def rep_scheme(tier: str, stage: int) -> RepScheme:
    """
    Look up the rep scheme for a tier/stage pair.

    T3 has a single scheme and only stage 0. Anything outside the table is
    a programming error, not bad user data.
    """
    if tier == "T1":
        assert stage in T1_SCHEMES, f"Invalid T1 stage: {stage!r}"
        return T1_SCHEMES[stage]
    if tier == "T2":
        assert stage in T2_SCHEMES, f"Invalid T2 stage: {stage!r}"
        return T2_SCHEMES[stage]
    assert tier == "T3", f"Invalid tier: {tier!r}"
    assert stage == 0, f"T3 has no stage {stage!r}"
    return T3_SCHEME


# ═════════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS — roles, tiers, keys
# ═════════════════════════════════════════════════════════════════════

def is_main_lift_role(role: str | None) -> bool:
    return role in MAIN_LIFT_ROLES


def get_muscle_group(role: str | None) -> str:
    """Squat and deadlift are lower body; everything else is upper."""
    return "lower" if role in LOWER_BODY_ROLES else "upper"


def get_tier_for_day(role: str, day: str) -> str | None:
    """
    Tier of a role on a given day.

    Returns None when a main lift is not trained that day.
    """
    if role == "t3":
        return "T3"
    if T1_MAPPING.get(day) == role:
        return "T1"
    if T2_MAPPING.get(day) == role:
        return "T2"
    return None


def get_progression_key(exercise_id: str, role: str | None, tier: str) -> str:
    """
    Key of the progression slot an exercise occurrence trains.

    Main lifts track T1 and T2 separately ("squat-T1", "squat-T2") because
    the same lift changes tier across days. T3 uses the exercise id.
    """
    if is_main_lift_role(role) and tier in ("T1", "T2"):
        return f"{role}-{tier}"
    return exercise_id


def get_progression_keys_for_role(exercise_id: str, role: str | None) -> list[str]:
    """All progression keys owned by an exercise holding this role."""
    if not role:
        return []
    if is_main_lift_role(role):
        return [f"{role}-T1", f"{role}-T2"]
    return [exercise_id]


def next_day(day: str) -> str:
    assert day in DAY_CYCLE, f"Invalid day: {day!r}"
    return DAY_CYCLE[day]


def to_display_weight(weight_kg: float, unit: str = DEFAULT_WEIGHT_UNIT) -> float:
    """Convert a stored kg weight to the user's display unit."""
    if unit == "lbs":
        return round(weight_kg * LBS_PER_KG, 1)
    return weight_kg


def format_weight(weight_kg: float, unit: str = DEFAULT_WEIGHT_UNIT) -> str:
    value = to_display_weight(weight_kg, unit)
    return f"{value:g}{unit}"
