"""
Pure metric computation functions.

Vector geometry, statistics and score mappings used by every exercise
engine. No state; all functions are typed for testability.
"""

import math
from typing import Iterable, Sequence

from .config import CALIBRATION_FLOOR, EFFORT_BANDS
from .models import Quat, Vec3


def all_finite(values: Iterable[float]) -> bool:
    """True when every value is a finite number (no NaN, no infinity)."""
    return all(math.isfinite(v) for v in values)


def clamp01(value: float) -> float:
    """Clamp value into [0, 1]."""
    return max(0.0, min(1.0, value))


def clamp_percent(value: float) -> float:
    """Clamp value into [0, 100]."""
    return max(0.0, min(100.0, value))


def round_percent(value: float) -> int:
    """
    Round a percentage half-up for display (62.5 -> 63).

    Python's round() uses banker's rounding, which would report 62.
    """
    return int(math.floor(clamp_percent(value) + 0.5))


def lerp(start: float, end: float, t: float) -> float:
    """Linear interpolation with t clamped to [0, 1]."""
    return start + (end - start) * clamp01(t)


def inverse_lerp(start: float, end: float, value: float) -> float:
    """Fraction of the way value lies from start to end, clamped to [0, 1]."""
    if end == start:
        return 0.0
    return clamp01((value - start) / (end - start))


# =============================================================================
# VECTORS
# =============================================================================


def vec_sub(a: Sequence[float], b: Sequence[float]) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def vec_dot(a: Sequence[float], b: Sequence[float]) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def vec_length(a: Sequence[float]) -> float:
    return math.sqrt(vec_dot(a, a))


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance between two points."""
    return vec_length(vec_sub(a, b))


def angle_between(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Unsigned angle between two vectors in degrees (0..180).

    Returns 0 when either vector has zero length.
    """
    magnitude = vec_length(a) * vec_length(b)
    if magnitude == 0:
        return 0.0
    cos_angle = max(-1.0, min(1.0, vec_dot(a, b) / magnitude))
    return math.degrees(math.acos(cos_angle))


def quaternion_angle(q1: Quat, q2: Quat) -> float:
    """
    Angular difference between two orientations in degrees (0..180).

    Uses the absolute dot product so q and -q compare as identical.
    Quaternions are normalized first; a zero quaternion compares as 0.

    Args:
        q1: (x, y, z, w) orientation
        q2: (x, y, z, w) orientation

    Returns:
        Smallest rotation angle taking q1 to q2
    """
    n1 = math.sqrt(sum(c * c for c in q1))
    n2 = math.sqrt(sum(c * c for c in q2))
    if n1 == 0 or n2 == 0:
        return 0.0
    dot = abs(sum(a * b for a, b in zip(q1, q2))) / (n1 * n2)
    return math.degrees(2.0 * math.acos(min(1.0, dot)))


def point_segment_distance(p: Sequence[float], a: Sequence[float], b: Sequence[float]) -> float:
    """
    Distance from p to the closest point on segment ab.

    The projection parameter is clamped to [0, 1]; a degenerate segment
    (a == b) reduces to the point distance.
    """
    ab = vec_sub(b, a)
    length_sq = vec_dot(ab, ab)
    if length_sq == 0:
        return distance(p, a)
    t = clamp01(vec_dot(vec_sub(p, a), ab) / length_sq)
    closest = (a[0] + ab[0] * t, a[1] + ab[1] * t, a[2] + ab[2] * t)
    return distance(p, closest)


def distance_to_polyline(p: Sequence[float], path: Sequence[Sequence[float]]) -> float | None:
    """
    Minimum distance from p to any segment of path.

    Returns None when the path has fewer than 2 points (no geometry).
    """
    if len(path) < 2:
        return None
    return min(point_segment_distance(p, path[i], path[i + 1]) for i in range(len(path) - 1))


# =============================================================================
# STATISTICS
# =============================================================================


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def population_variance(values: Sequence[float]) -> float:
    """Population variance (divide by n); 0.0 for fewer than 2 values."""
    if len(values) < 2:
        return 0.0
    avg = mean(values)
    return sum((v - avg) ** 2 for v in values) / len(values)


# =============================================================================
# SCORES
# =============================================================================


def linear_score(value: float, scale: float) -> float:
    """
    Map a non-negative penalty to a percentage.

    score = clip(100 - value * scale, 0, 100)
    """
    return clamp_percent(100.0 - value * scale)


def accuracy_percent(avg_distance: float | None, scale: float) -> float:
    """Accuracy from average distance to the reference; None (no geometry) scores 100."""
    if avg_distance is None:
        return 100.0
    return linear_score(avg_distance, scale)


def tick_speed(previous: Sequence[float], current: Sequence[float], dt: float) -> float | None:
    """Speed over one tick; None when dt is not positive (no defined speed)."""
    if dt <= 0:
        return None
    return distance(current, previous) / dt


def speed_change(previous_speed: float | None, speed: float | None) -> float | None:
    """|v2 - v1| between consecutive tick speeds; None when either is undefined."""
    if previous_speed is None or speed is None:
        return None
    return abs(speed - previous_speed)


def jerk_proxy(positions: Sequence[Sequence[float]], dts: Sequence[float]) -> float | None:
    """
    Average absolute change in speed between consecutive ticks.

    dts[i] is the tick length at which positions[i] was sampled, so the
    speed into p_i is |p_i - p_(i-1)| / dts[i]. A tick with a non-positive
    dt has no speed, which drops both changes it takes part in.

    Returns:
        Mean |v2 - v1|, or None when no change could be evaluated
    """
    total = 0.0
    n = 0
    previous_speed = None
    for i in range(1, len(positions)):
        speed = tick_speed(positions[i - 1], positions[i], dts[i])
        change = speed_change(previous_speed, speed)
        if change is not None:
            total += change
            n += 1
        previous_speed = speed
    if n == 0:
        return None
    return total / n


def smoothness_score(jerk: float | None, scale: float) -> float:
    """Smoothness from a jerk proxy; None (nothing measured) scores 100."""
    if jerk is None:
        return 100.0
    return linear_score(jerk, scale)


def smoothness_percent(positions: Sequence[Sequence[float]], dts: Sequence[float], scale: float) -> float:
    """Smoothness score; fewer than 3 samples yields 100 (no penalty)."""
    return smoothness_score(jerk_proxy(positions, dts), scale)


def consistency_percent(rep_distances: Sequence[float], scale: float) -> float:
    """Consistency from variance of per-repetition distances; fewer than 2 yields 100."""
    if len(rep_distances) < 2:
        return 100.0
    return linear_score(population_variance(rep_distances), scale)


def relative_effort(grip: float, calibrated_max: float) -> float:
    """
    Grip value relative to the calibrated maximum, clamped to [0, 1].

    Falls back to the raw grip when the calibration is degenerate.
    """
    if calibrated_max > CALIBRATION_FLOOR:
        return clamp01(grip / calibrated_max)
    return clamp01(grip)


def endurance_percent(avg: float, calibrated_max: float) -> float:
    """
    Endurance = clamp01(avg / calibrated_max) * 100.

    Falls back to avg directly when calibrated_max <= CALIBRATION_FLOOR.
    """
    return relative_effort(avg, calibrated_max) * 100.0


def effort_band(rel: float) -> str | None:
    """Feedback key for a relative effort, or None below the lowest breakpoint."""
    for threshold, key in EFFORT_BANDS:
        if rel >= threshold:
            return key
    return None


# =============================================================================
# TIMED INTERPOLATION
# =============================================================================


def breathing_cue(elapsed: float, inhale_seconds: float, exhale_seconds: float) -> tuple[str, float, int]:
    """
    Breathing bar state at a point in a repeating inhale/exhale cycle.

    The bar rises 0 -> 1 over the inhale and falls 1 -> 0 over the exhale.

    Args:
        elapsed: Seconds since the first inhale began
        inhale_seconds: Inhale length (> 0)
        exhale_seconds: Exhale length (> 0)

    Returns:
        (cue, fraction, completed_cycles) with cue "inhale" or "exhale"
    """
    cycle = inhale_seconds + exhale_seconds
    completed = int(elapsed // cycle)
    t = elapsed - completed * cycle
    if t < inhale_seconds:
        return "inhale", lerp(0.0, 1.0, t / inhale_seconds), completed
    return "exhale", lerp(1.0, 0.0, (t - inhale_seconds) / exhale_seconds), completed


def instruction_steps(text: str) -> list[str]:
    """Split instruction prose into trimmed sentences for bullet display."""
    return [part.strip() for part in text.split(".") if part.strip()]
