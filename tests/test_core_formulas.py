"""
Formula-focused unit tests for the scoring primitives.

Each test checks one pure function from rehab_engine.core.metrics against
values computed by hand, so the tests double as a reference for the
scoring formulas.
"""

import math

import pytest

from rehab_engine.core.config import (
    ACCURACY_SCALE,
    CALIBRATION_FLOOR,
    CONSISTENCY_SCALE,
    SMOOTHNESS_SCALE,
)
from rehab_engine.core.metrics import (
    accuracy_percent,
    all_finite,
    angle_between,
    breathing_cue,
    clamp01,
    clamp_percent,
    consistency_percent,
    distance_to_polyline,
    effort_band,
    endurance_percent,
    instruction_steps,
    inverse_lerp,
    jerk_proxy,
    lerp,
    linear_score,
    mean,
    point_segment_distance,
    population_variance,
    quaternion_angle,
    relative_effort,
    round_percent,
    smoothness_percent,
    smoothness_score,
    speed_change,
    tick_speed,
)

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

IDENTITY = (0.0, 0.0, 0.0, 1.0)


def _quat_about_z(deg: float) -> tuple[float, float, float, float]:
    half = math.radians(deg) / 2.0
    return (0.0, 0.0, math.sin(half), math.cos(half))


def _line(n: int, step: float = 0.1) -> list[tuple[float, float, float]]:
    """n evenly spaced points along x."""
    return [(i * step, 0.0, 0.0) for i in range(n)]


# ===========================================================================
# metrics.py: clamping, rounding and interpolation
# ===========================================================================

class TestClampAndRound:

    def test_clamp01_bounds(self):
        assert clamp01(-0.5) == 0.0
        assert clamp01(0.25) == 0.25
        assert clamp01(1.7) == 1.0

    def test_clamp_percent_bounds(self):
        assert clamp_percent(-3.0) == 0.0
        assert clamp_percent(42.0) == 42.0
        assert clamp_percent(250.0) == 100.0

    def test_round_percent_is_half_up(self):
        # round(62.5) would give 62 under banker's rounding
        assert round_percent(62.5) == 63
        assert round_percent(62.4999) == 62
        assert round_percent(0.5) == 1

    def test_round_percent_clamps(self):
        assert round_percent(-10.0) == 0
        assert round_percent(130.0) == 100

    def test_all_finite(self):
        assert all_finite((0.0, -3.5, 1e9))
        assert all_finite(())
        assert not all_finite((0.0, math.nan, 1.0))
        assert not all_finite((math.inf,))
        assert not all_finite((0.0, 0.0, -math.inf))


class TestInterpolation:

    def test_lerp_clamps_t(self):
        assert lerp(0.0, 10.0, 0.5) == pytest.approx(5.0)
        assert lerp(0.0, 10.0, 2.0) == pytest.approx(10.0)
        assert lerp(1.0, 0.0, -1.0) == pytest.approx(1.0)

    def test_inverse_lerp(self):
        assert inverse_lerp(0.0, 90.0, 45.0) == pytest.approx(0.5)
        assert inverse_lerp(0.0, 90.0, 120.0) == 1.0
        assert inverse_lerp(0.0, 90.0, -5.0) == 0.0

    def test_inverse_lerp_degenerate_range(self):
        assert inverse_lerp(3.0, 3.0, 3.0) == 0.0


# ===========================================================================
# metrics.py: vector geometry
# ===========================================================================

class TestAngleBetween:
    """angle = acos(a·b / |a||b|) in degrees"""

    def test_orthogonal(self):
        assert angle_between((1, 0, 0), (0, 1, 0)) == pytest.approx(90.0)

    def test_parallel_and_opposite(self):
        assert angle_between((0, 0, 2), (0, 0, 5)) == pytest.approx(0.0, abs=1e-6)
        assert angle_between((1, 0, 0), (-1, 0, 0)) == pytest.approx(180.0)

    def test_forty_five_degrees(self):
        assert angle_between((1, 0, 0), (1, 1, 0)) == pytest.approx(45.0)

    def test_zero_vector_is_zero(self):
        assert angle_between((0, 0, 0), (1, 0, 0)) == 0.0


class TestQuaternionAngle:
    """angle = 2·acos(|q1·q2|) in degrees"""

    def test_identical(self):
        assert quaternion_angle(IDENTITY, IDENTITY) == pytest.approx(0.0, abs=1e-6)

    def test_rotation_about_axis(self):
        assert quaternion_angle(IDENTITY, _quat_about_z(30.0)) == pytest.approx(30.0, abs=1e-6)

    def test_double_cover(self):
        q = _quat_about_z(50.0)
        neg = tuple(-c for c in q)
        assert quaternion_angle(q, neg) == pytest.approx(0.0, abs=1e-4)

    def test_unnormalized_input(self):
        q = tuple(2.0 * c for c in _quat_about_z(20.0))
        assert quaternion_angle(IDENTITY, q) == pytest.approx(20.0, abs=1e-6)


class TestPointSegmentDistance:
    """Projection parameter is clamped to the segment."""

    def test_perpendicular_projection(self):
        assert point_segment_distance((0.5, 1.0, 0.0), (0, 0, 0), (1, 0, 0)) == pytest.approx(1.0)

    def test_beyond_end_clamps_to_endpoint(self):
        # Closest point is b = (1,0,0), not the infinite-line foot (2,0,0)
        d = point_segment_distance((2.0, 1.0, 0.0), (0, 0, 0), (1, 0, 0))
        assert d == pytest.approx(math.sqrt(2.0))

    def test_before_start_clamps_to_start(self):
        assert point_segment_distance((-3.0, 0.0, 0.0), (0, 0, 0), (1, 0, 0)) == pytest.approx(3.0)

    def test_degenerate_segment(self):
        assert point_segment_distance((0.0, 3.0, 4.0), (0, 0, 0), (0, 0, 0)) == pytest.approx(5.0)


class TestDistanceToPolyline:

    def test_minimum_over_segments(self):
        path = [(0, 0, 0), (1, 0, 0), (1, 1, 0)]
        assert distance_to_polyline((1.5, 0.5, 0.0), path) == pytest.approx(0.5)

    def test_point_on_path(self):
        assert distance_to_polyline((0.3, 0.0, 0.0), _line(5)) == pytest.approx(0.0, abs=1e-9)

    @pytest.mark.parametrize("path", [[], [(0.0, 0.0, 0.0)]])
    def test_fewer_than_two_points_is_none(self, path):
        assert distance_to_polyline((1.0, 1.0, 1.0), path) is None


# ===========================================================================
# metrics.py: statistics and linear scores
# ===========================================================================

class TestStatistics:

    def test_mean(self):
        assert mean([0.4, 0.6, 0.5]) == pytest.approx(0.5)
        assert mean([]) == 0.0

    def test_population_variance_divides_by_n(self):
        # mean 2, squared deviations 1 + 0 + 1 → 2/3
        assert population_variance([1.0, 2.0, 3.0]) == pytest.approx(2.0 / 3.0)

    def test_variance_needs_two_values(self):
        assert population_variance([5.0]) == 0.0


class TestLinearScore:
    """score = clip(100 - value × scale, 0, 100)"""

    def test_zero_penalty(self):
        assert linear_score(0.0, ACCURACY_SCALE) == 100.0

    def test_partial_penalty(self):
        assert linear_score(2.5, ACCURACY_SCALE) == pytest.approx(75.0)

    def test_floor_at_zero(self):
        assert linear_score(50.0, ACCURACY_SCALE) == 0.0

    def test_accuracy_without_geometry_is_neutral(self):
        assert accuracy_percent(None, ACCURACY_SCALE) == 100.0
        assert accuracy_percent(1.0, ACCURACY_SCALE) == pytest.approx(90.0)


class TestSmoothness:
    """smoothness = linear_score(mean |Δspeed|, scale)"""

    def test_fewer_than_three_samples_is_full(self):
        assert smoothness_percent(_line(2), [0.1, 0.1], SMOOTHNESS_SCALE) == 100.0

    def test_constant_speed_is_full(self):
        positions = _line(6)
        assert smoothness_percent(positions, [0.1] * 6, SMOOTHNESS_SCALE) == pytest.approx(100.0)

    def test_speed_change_is_penalised(self):
        # speeds 1.0 then 2.0 → mean |Δv| = 1.0 → 100 - 20
        positions = [(0.0, 0.0, 0.0), (0.1, 0.0, 0.0), (0.3, 0.0, 0.0)]
        assert jerk_proxy(positions, [0.1, 0.1, 0.1]) == pytest.approx(1.0)
        assert smoothness_percent(positions, [0.1, 0.1, 0.1], SMOOTHNESS_SCALE) == pytest.approx(80.0)

    def test_zero_dt_triples_are_skipped(self):
        positions = _line(3)
        assert jerk_proxy(positions, [0.1, 0.0, 0.1]) is None
        assert smoothness_percent(positions, [0.1, 0.0, 0.1], SMOOTHNESS_SCALE) == 100.0

    def test_zero_dt_drops_both_neighbouring_changes(self):
        # speeds 1.0, (none), 0.5, 2.5, 1.0 → changes 2.0 and 1.5 only
        positions = [(x, 0.0, 0.0) for x in (0.0, 0.1, 0.3, 0.35, 0.6, 0.7)]
        dts = [0.1, 0.1, 0.0, 0.1, 0.1, 0.1]
        assert jerk_proxy(positions, dts) == pytest.approx(1.75)
        assert smoothness_percent(positions, dts, SMOOTHNESS_SCALE) == pytest.approx(65.0)

    def test_tick_speed(self):
        assert tick_speed((0.0, 0.0, 0.0), (0.3, 0.4, 0.0), 0.5) == pytest.approx(1.0)
        assert tick_speed((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), 0.0) is None

    def test_speed_change(self):
        assert speed_change(1.0, 2.5) == pytest.approx(1.5)
        assert speed_change(2.5, 1.0) == pytest.approx(1.5)
        assert speed_change(None, 1.0) is None
        assert speed_change(1.0, None) is None

    def test_smoothness_score(self):
        assert smoothness_score(None, SMOOTHNESS_SCALE) == 100.0
        assert smoothness_score(1.0, SMOOTHNESS_SCALE) == pytest.approx(80.0)
        assert smoothness_score(10.0, SMOOTHNESS_SCALE) == 0.0


class TestConsistency:
    """consistency = linear_score(population_variance(rep_distances), scale)"""

    def test_identical_reps_are_full(self):
        assert consistency_percent([0.2, 0.2, 0.2], CONSISTENCY_SCALE) == pytest.approx(100.0)

    def test_single_rep_is_full(self):
        assert consistency_percent([3.0], CONSISTENCY_SCALE) == 100.0

    def test_variance_is_penalised(self):
        # variance of [0, 1] = 0.25 → 100 - 0.25 × 40
        assert consistency_percent([0.0, 1.0], CONSISTENCY_SCALE) == pytest.approx(90.0)


# ===========================================================================
# metrics.py: grip effort
# ===========================================================================

class TestGripEffort:
    """endurance = clamp01(avg / calibrated_max) × 100"""

    def test_endurance_relative_to_calibration(self):
        assert endurance_percent(0.5, 0.8) == pytest.approx(62.5)

    def test_avg_equal_to_calibration_is_full(self):
        assert endurance_percent(0.8, 0.8) == pytest.approx(100.0)

    def test_zero_avg(self):
        assert endurance_percent(0.0, 0.8) == 0.0

    def test_above_calibration_is_clamped(self):
        assert endurance_percent(0.95, 0.8) == 100.0

    def test_degenerate_calibration_falls_back_to_raw(self):
        assert endurance_percent(0.4, CALIBRATION_FLOOR) == pytest.approx(40.0)
        assert relative_effort(0.4, 0.0) == pytest.approx(0.4)

    @pytest.mark.parametrize(
        "rel, expected",
        [
            (0.95, "effort.great_peak"),
            (0.9, "effort.great_peak"),
            (0.7, "effort.good_squeeze"),
            (0.3, "effort.keep_squeezing"),
            (0.29, None),
        ],
    )
    def test_effort_bands(self, rel, expected):
        assert effort_band(rel) == expected


# ===========================================================================
# metrics.py: breathing cue and instruction text
# ===========================================================================

class TestBreathingCue:
    """Bar rises over the inhale, falls over the exhale; cycles repeat."""

    def test_start_of_inhale(self):
        cue, fraction, completed = breathing_cue(0.0, 3.0, 4.0)
        assert (cue, completed) == ("inhale", 0)
        assert fraction == pytest.approx(0.0)

    def test_mid_inhale(self):
        cue, fraction, _ = breathing_cue(1.5, 3.0, 4.0)
        assert cue == "inhale"
        assert fraction == pytest.approx(0.5)

    def test_mid_exhale(self):
        cue, fraction, _ = breathing_cue(5.0, 3.0, 4.0)
        assert cue == "exhale"
        assert fraction == pytest.approx(0.5)

    def test_second_cycle(self):
        cue, fraction, completed = breathing_cue(8.0, 3.0, 4.0)
        assert (cue, completed) == ("inhale", 1)
        assert fraction == pytest.approx(1.0 / 3.0)


class TestInstructionSteps:

    def test_splits_sentences(self):
        text = "Rest your hand flat. Slowly spread your fingers.  Relax."
        assert instruction_steps(text) == ["Rest your hand flat", "Slowly spread your fingers", "Relax"]

    def test_empty(self):
        assert instruction_steps("") == []
