"""
Tests for program structure, workout analysis and progression rules.
Run: pytest tests/ -v
"""
import pytest


def _make_exercises() -> dict:
    """Helper: one exercise per main lift plus a T3 accessory."""
    from gzclp.models import ExerciseConfig
    rows = [
        ("ex-squat", "T-SQ", "Back Squat", "squat"),
        ("ex-bench", "T-BP", "Bench Press", "bench"),
        ("ex-ohp", "T-OHP", "Overhead Press", "ohp"),
        ("ex-dl", "T-DL", "Deadlift", "deadlift"),
        ("ex-lat", "T-LAT", "Lat Pulldown", "t3"),
    ]
    return {
        eid: ExerciseConfig(id=eid, hevy_template_id=tid, name=name, role=role)
        for eid, tid, name, role in rows
    }


def _make_sets(reps: list[int], weight: float, warmups: int = 0) -> list[dict]:
    """Helper: Hevy set dicts, optional warm-ups first."""
    sets = [{"type": "warmup", "reps": 5, "weight_kg": 20.0} for _ in range(warmups)]
    sets += [{"type": "normal", "reps": r, "weight_kg": weight} for r in reps]
    return sets


# ═══════════════════════════════════════════════════════════════════════
# CONFIG
# ═══════════════════════════════════════════════════════════════════════

class TestRepSchemes:

    def test_t1_stages(self):
        from gzclp.config import rep_scheme
        assert rep_scheme("T1", 0).display == "5x3+"
        assert rep_scheme("T1", 1).sets == 6
        assert rep_scheme("T1", 2).reps == 1

    def test_t2_has_no_amrap(self):
        from gzclp.config import rep_scheme
        assert not any(rep_scheme("T2", s).amrap for s in (0, 1, 2))

    def test_t3_single_scheme(self):
        from gzclp.config import rep_scheme
        scheme = rep_scheme("T3", 0)
        assert (scheme.sets, scheme.reps, scheme.amrap) == (3, 15, True)

    def test_invalid_stage_is_programming_error(self):
        from gzclp.config import rep_scheme
        with pytest.raises(AssertionError):
            rep_scheme("T1", 3)
        with pytest.raises(AssertionError):
            rep_scheme("T3", 1)


class TestDayMapping:

    def test_tier_for_day(self):
        from gzclp.config import get_tier_for_day
        assert get_tier_for_day("squat", "A1") == "T1"
        assert get_tier_for_day("squat", "A2") == "T2"
        assert get_tier_for_day("squat", "B1") is None
        assert get_tier_for_day("t3", "B2") == "T3"

    def test_every_day_has_one_t1_and_one_t2(self):
        from gzclp.config import GZCLP_DAYS, MAIN_LIFT_ROLES, get_tier_for_day
        for day in GZCLP_DAYS:
            tiers = [get_tier_for_day(role, day) for role in MAIN_LIFT_ROLES]
            assert tiers.count("T1") == 1
            assert tiers.count("T2") == 1

    def test_day_cycle_wraps(self):
        from gzclp.config import next_day
        day = "A1"
        seen = []
        for _ in range(4):
            day = next_day(day)
            seen.append(day)
        assert seen == ["B1", "A2", "B2", "A1"]

    def test_progression_keys(self):
        from gzclp.config import get_progression_key, get_progression_keys_for_role
        assert get_progression_key("ex-squat", "squat", "T1") == "squat-T1"
        assert get_progression_key("ex-lat", "t3", "T3") == "ex-lat"
        assert get_progression_keys_for_role("ex-bench", "bench") == ["bench-T1", "bench-T2"]
        assert get_progression_keys_for_role("ex-lat", "t3") == ["ex-lat"]
        assert get_progression_keys_for_role("ex-x", None) == []

    def test_muscle_groups(self):
        from gzclp.config import get_muscle_group
        assert get_muscle_group("squat") == "lower"
        assert get_muscle_group("deadlift") == "lower"
        assert get_muscle_group("ohp") == "upper"
        assert get_muscle_group("t3") == "upper"

    def test_format_weight_units(self):
        from gzclp.config import format_weight
        assert format_weight(100.0) == "100kg"
        assert format_weight(42.5) == "42.5kg"
        assert format_weight(100.0, "lbs") == "220.5lbs"


# ═══════════════════════════════════════════════════════════════════════
# ANALYSIS
# ═══════════════════════════════════════════════════════════════════════

class TestAnalyzeReps:

    def test_t1_all_sets_hit_with_amrap(self):
        from gzclp.analysis import analyze_reps
        out = analyze_reps([3, 3, 3, 3, 5], "T1", 0)
        assert out.success
        assert out.amrap_reps == 5
        assert out.total_reps == 17

    def test_t1_missed_reps_fail(self):
        from gzclp.analysis import analyze_reps
        assert not analyze_reps([3, 3, 2, 2, 1], "T1", 0).success

    def test_t1_missing_sets_fail(self):
        from gzclp.analysis import analyze_reps
        assert not analyze_reps([3, 3, 3, 3], "T1", 0).success

    def test_t1_extra_sets_ignored(self):
        from gzclp.analysis import analyze_reps
        out = analyze_reps([2, 2, 2, 2, 2, 4, 1], "T1", 1)
        assert out.success
        assert out.amrap_reps == 4

    def test_t2_success_no_amrap(self):
        from gzclp.analysis import analyze_reps
        out = analyze_reps([10, 10, 10], "T2", 0)
        assert out.success
        assert out.amrap_reps is None

    def test_t3_success_threshold(self):
        from gzclp.analysis import analyze_reps
        assert analyze_reps([15, 10, 5], "T3", 0).success
        assert analyze_reps([10, 10, 5], "T3", 0).success  # exactly 25
        assert not analyze_reps([10, 9, 5], "T3", 0).success  # 24
        assert not analyze_reps([10, 8, 6], "T3", 0).success

    def test_t3_amrap_is_last_set(self):
        from gzclp.analysis import analyze_reps
        assert analyze_reps([15, 15, 22], "T3", 0).amrap_reps == 22

    def test_empty_is_failure(self):
        from gzclp.analysis import analyze_reps
        for tier in ("T1", "T2", "T3"):
            assert not analyze_reps([], tier, 0).success


class TestSetExtraction:

    def test_warmups_dropped(self):
        from gzclp.analysis import extract_reps_from_sets, extract_working_weight
        sets = _make_sets([3, 3, 3, 3, 5], 100.0, warmups=2)
        assert extract_reps_from_sets(sets) == [3, 3, 3, 3, 5]
        assert extract_working_weight(sets) == 100.0

    def test_no_working_sets(self):
        from gzclp.analysis import extract_reps_from_sets, extract_working_weight
        sets = _make_sets([], 0, warmups=3)
        assert extract_reps_from_sets(sets) == []
        assert extract_working_weight(sets) == 0.0

    def test_analyze_sets_ignores_warmups(self):
        from gzclp.analysis import analyze_sets
        out = analyze_sets(_make_sets([10, 10, 10], 50.0, warmups=3), "T2", 0)
        assert out.success
        assert out.total_reps == 30

    def test_missing_reps_count_as_zero(self):
        from gzclp.analysis import extract_reps_from_sets
        assert extract_reps_from_sets([{"type": "normal", "reps": None, "weight_kg": 50}]) == [0]


class TestAnalyzeWorkout:

    def _workout(self):
        return {
            "id": "w-1",
            "routine_id": "r-a1",
            "start_time": "2026-03-02T18:00:00Z",
            "exercises": [
                {"exercise_template_id": "T-SQ", "title": "Squat (Barbell)", "sets": _make_sets([3, 3, 3, 3, 5], 100.0, warmups=2)},
                {"exercise_template_id": "T-BP", "title": "Bench Press (Barbell)", "sets": _make_sets([10, 10, 10], 50.0)},
                {"exercise_template_id": "T-LAT", "title": "Lat Pulldown", "sets": _make_sets([15, 10, 5], 40.0)},
                {"exercise_template_id": "T-OHP", "title": "Overhead Press", "sets": _make_sets([5, 5], 30.0)},
                {"exercise_template_id": "UNKNOWN", "title": "Plank", "sets": _make_sets([1], 0)},
            ],
        }

    def test_tiers_from_day(self):
        from gzclp.analysis import analyze_workout
        occs = analyze_workout(self._workout(), _make_exercises(), "A1")
        by_id = {o.exercise_id: o for o in occs}
        # OHP isn't trained on A1, the plank isn't configured
        assert set(by_id) == {"ex-squat", "ex-bench", "ex-lat"}
        assert by_id["ex-squat"].tier == "T1"
        assert by_id["ex-bench"].tier == "T2"
        assert by_id["ex-lat"].tier == "T3"
        assert by_id["ex-squat"].reps == [3, 3, 3, 3, 5]
        assert by_id["ex-squat"].weight == 100.0
        assert by_id["ex-squat"].day == "A1"

    def test_resolve_day(self):
        from gzclp.analysis import resolve_day
        routines = {"A1": "r-a1", "B1": "r-b1"}
        assert resolve_day({"routine_id": "r-b1"}, routines) == "B1"
        assert resolve_day({"routine_id": "r-zz"}, routines) is None
        assert resolve_day({"routine_id": None}, routines) is None

    def test_chronological_sort(self):
        from gzclp.analysis import sort_workouts_chronologically
        ws = [
            {"id": "b", "start_time": "2026-03-04T18:00:00Z"},
            {"id": "a", "start_time": "2026-03-02T18:00:00+00:00"},
            {"id": "c", "start_time": "2026-03-06T07:30:00Z"},
        ]
        assert [w["id"] for w in sort_workouts_chronologically(ws)] == ["a", "b", "c"]


# ═══════════════════════════════════════════════════════════════════════
# PROGRESSION RULES
# ═══════════════════════════════════════════════════════════════════════

class TestDeload:

    def test_examples(self):
        from gzclp.progression import calculate_deload
        assert calculate_deload(100) == 85.0
        assert calculate_deload(97.5) == 82.5

    def test_never_below_bar(self):
        from gzclp.progression import calculate_deload
        assert calculate_deload(5) == 20.0

    def test_rounding(self):
        from gzclp.progression import round_weight_kg
        assert round_weight_kg(80.75) == 80.0
        assert round_weight_kg(81.3) == 82.5
        # Exact midpoint rounds down
        assert round_weight_kg(81.25) == 80.0


class TestNextState:

    def test_t1_success_lower_body(self):
        from gzclp.progression import next_state
        r = next_state("T1", 100.0, 0, True, "lower")
        assert r.type == "progress"
        assert r.new_weight == 105.0
        assert r.new_stage == 0

    def test_t1_failure_moves_stage(self):
        from gzclp.progression import next_state
        r = next_state("T1", 100.0, 0, False, "lower")
        assert r.type == "stage_change"
        assert r.new_stage == 1
        assert r.new_weight == 100.0
        assert r.new_scheme == "6x2+"

    def test_t2_failure_at_last_stage_deloads(self):
        from gzclp.progression import next_state
        r = next_state("T2", 60.0, 2, False, "upper")
        assert r.type == "deload"
        assert r.new_stage == 0
        assert r.new_weight == 50.0  # 51 rounds down to 50
        assert r.new_base_weight == 50.0
        assert r.new_scheme == "3x10"

    def test_t3_success_and_repeat(self):
        from gzclp.progression import next_state
        assert next_state("T3", 40.0, 0, True, "upper").new_weight == 42.5
        r = next_state("T3", 40.0, 0, False, "upper")
        assert r.type == "repeat"
        assert r.new_weight == 40.0

    def test_custom_increment_wins(self):
        from gzclp.progression import next_state
        r = next_state("T3", 40.0, 0, True, "upper", increments={"upper": 5.0, "lower": 10.0}, custom_increment=1.25)
        assert r.new_weight == 41.25

    def test_settings_increments(self):
        from gzclp.progression import next_state
        r = next_state("T1", 100.0, 0, True, "lower", increments={"upper": 1.0, "lower": 2.5})
        assert r.new_weight == 102.5

    def test_unit_only_changes_reason(self):
        from gzclp.progression import next_state
        r = next_state("T1", 100.0, 0, True, "lower", unit="lbs")
        assert r.new_weight == 105.0
        assert "220.5lbs" in r.reason


class TestCalculateProgression:

    def test_examples(self):
        from gzclp.models import ProgressionState
        from gzclp.progression import calculate_progression
        state = ProgressionState(exercise_id="ex-squat", current_weight=100.0)
        assert calculate_progression("T1", state, [3, 3, 3, 3, 5], "lower").new_weight == 105.0
        assert calculate_progression("T1", state, [3, 3, 2, 2, 1], "lower").type == "stage_change"

        lat = ProgressionState(exercise_id="ex-lat", current_weight=40.0)
        assert calculate_progression("T3", lat, [15, 10, 5], "upper").new_weight == 42.5
        assert calculate_progression("T3", lat, [10, 8, 6], "upper").type == "repeat"

    def test_state_validation(self):
        from gzclp.models import ProgressionState
        with pytest.raises(ValueError):
            ProgressionState(exercise_id="x", current_weight=-1)
        with pytest.raises(ValueError):
            ProgressionState(exercise_id="x", stage=3)


class TestPendingChangeFactory:

    def _occurrence(self, **overrides):
        from gzclp.models import ExerciseOccurrence
        defaults = dict(
            exercise_id="ex-squat", exercise_name="Back Squat", tier="T1",
            reps=[3, 3, 3, 3, 5], weight=100.0, workout_id="w-1",
            workout_date="2026-03-02T18:00:00Z", day="A1",
        )
        return ExerciseOccurrence(**{**defaults, **overrides})

    def _progression(self):
        from gzclp.models import ProgressionState
        return {
            "squat-T1": ProgressionState(exercise_id="ex-squat", current_weight=100.0, base_weight=100.0, amrap_record=4),
            "ex-lat": ProgressionState(exercise_id="ex-lat", current_weight=40.0, base_weight=40.0),
        }

    def test_builds_change(self):
        from gzclp.progression import create_pending_changes_from_analysis
        [c] = create_pending_changes_from_analysis([self._occurrence()], _make_exercises(), self._progression())
        assert c.exercise_name == "T1 Back Squat"
        assert c.progression_key == "squat-T1"
        assert c.type == "progress"
        assert (c.current_weight, c.new_weight) == (100.0, 105.0)
        assert c.sets_completed == 5 and c.sets_target == 5
        assert c.new_pr and c.new_amrap_record == 5
        assert c.day == "A1"
        assert c.discrepancy is None

    def test_t3_name_unprefixed(self):
        from gzclp.progression import create_pending_changes_from_analysis
        occ = self._occurrence(exercise_id="ex-lat", exercise_name="Lat Pulldown", tier="T3", reps=[15, 10, 5], weight=40.0)
        [c] = create_pending_changes_from_analysis([occ], _make_exercises(), self._progression())
        assert c.exercise_name == "Lat Pulldown"
        assert c.new_weight == 42.5

    def test_missing_progression_skipped(self):
        from gzclp.progression import create_pending_changes_from_analysis
        occ = self._occurrence(exercise_id="ex-bench", exercise_name="Bench Press", tier="T2", reps=[10, 10, 10])
        assert create_pending_changes_from_analysis([occ], _make_exercises(), self._progression()) == []

    def test_unknown_exercise_skipped(self):
        from gzclp.progression import create_pending_changes_from_analysis
        occ = self._occurrence(exercise_id="ex-nope")
        assert create_pending_changes_from_analysis([occ], _make_exercises(), self._progression()) == []

    def test_weight_override_records_discrepancy(self):
        from gzclp.progression import create_pending_changes_from_analysis
        [c] = create_pending_changes_from_analysis(
            [self._occurrence(weight=95.0)], _make_exercises(), self._progression(),
            weights={("w-1", "squat-T1"): 95.0},
        )
        assert c.new_weight == 100.0
        assert c.current_weight == 100.0
        assert c.discrepancy == {"stored_weight": 100.0, "actual_weight": 95.0}

    def test_ids_unique(self):
        from gzclp.progression import create_pending_changes_from_analysis
        occs = [self._occurrence(workout_id=f"w-{i}") for i in range(5)]
        changes = create_pending_changes_from_analysis(occs, _make_exercises(), self._progression())
        assert len({c.id for c in changes}) == 5
