"""
Movement accuracy, smoothness and consistency.

The user traces a reference path (an ordered polyline) with the hand. Every
tick the hand position is scored against the path:

- Accuracy: mean distance from every sample of the session to the closest
  point on the path, mapped linearly to a percentage.
- Smoothness: mean absolute change in speed between consecutive ticks
  (a jerk proxy), mapped linearly.
- Consistency: population variance of the per-repetition mean distances,
  mapped linearly.

The caller closes each repetition explicitly with ``record_repetition()``.

Lifecycle: intro -> active -> complete
"""

from typing import Any, Sequence

from ..metrics import (
    accuracy_percent,
    all_finite,
    consistency_percent,
    distance_to_polyline,
    smoothness_score,
    speed_change,
    tick_speed,
)
from ..models import MetricSet, Sample, SessionConfig, Vec3
from ..phase_machine import TransitionTable
from .base import ExerciseSession, PhaseHandler

PATH_TABLE = TransitionTable(
    initial="intro",
    transitions={
        "intro": ("active",),
        "active": ("complete",),
    },
    timed=frozenset({"intro"}),
)


class PathScorer:
    """
    Running path scores for one session.

    Session-wide accuracy and smoothness are kept as running sums so memory
    stays bounded; only the current repetition's trail is buffered.
    """

    def __init__(self, config: SessionConfig, rep_distances: list[float]):
        self.config = config
        self.reference_path: tuple[Vec3, ...] = tuple(config.reference_path)
        self.rep_distances = rep_distances
        self.clear()

    @property
    def reference_valid(self) -> bool:
        return len(self.reference_path) >= 2

    def clear(self) -> None:
        """Forget every sample (session start or reset)."""
        self.trail: list[Vec3] = []
        self._distance_sum = 0.0
        self._distance_count = 0
        self._rep_distance_sum = 0.0
        self._rep_distance_count = 0
        self._jerk_sum = 0.0
        self._jerk_count = 0
        self._prev_position: Vec3 | None = None
        self._prev_speed: float | None = None

    def add_sample(self, position: Sequence[float], dt: float) -> None:
        """Score one tracked position sampled dt seconds after the previous one."""
        p: Vec3 = (float(position[0]), float(position[1]), float(position[2]))
        self.trail.append(p)

        d = distance_to_polyline(p, self.reference_path)
        if d is not None:
            self._distance_sum += d
            self._distance_count += 1
            self._rep_distance_sum += d
            self._rep_distance_count += 1

        speed = tick_speed(self._prev_position, p, dt) if self._prev_position is not None else None
        change = speed_change(self._prev_speed, speed)
        if change is not None:
            self._jerk_sum += change
            self._jerk_count += 1
        self._prev_speed = speed
        self._prev_position = p

    def close_repetition(self) -> float:
        """
        Record the current repetition's mean distance and clear its trail.

        The session-wide accuracy sums are kept.

        Returns:
            The recorded mean distance (0.0 without samples or geometry)
        """
        if self._rep_distance_count > 0:
            rep_distance = self._rep_distance_sum / self._rep_distance_count
        else:
            rep_distance = 0.0
        self.rep_distances.append(rep_distance)
        self.trail = []
        self._rep_distance_sum = 0.0
        self._rep_distance_count = 0
        self._prev_position = None
        self._prev_speed = None
        return rep_distance

    # ------------------------------------------------------------------

    @property
    def average_distance(self) -> float | None:
        if not self.reference_valid:
            return None
        if self._distance_count == 0:
            return 0.0
        return self._distance_sum / self._distance_count

    def accuracy(self) -> float:
        return accuracy_percent(self.average_distance, self.config.accuracy_scale)

    def smoothness(self) -> float:
        jerk = self._jerk_sum / self._jerk_count if self._jerk_count > 0 else None
        return smoothness_score(jerk, self.config.smoothness_scale)

    def consistency(self) -> float:
        return consistency_percent(self.rep_distances, self.config.consistency_scale)

    def feedback(self) -> str:
        """
        The single most relevant message.

        Accuracy outranks smoothness, which outranks consistency.
        """
        c = self.config
        if self.accuracy() < c.accuracy_cutoff:
            return "move_closer"
        if self.smoothness() < c.smoothness_cutoff:
            return "slow_down"
        if self.consistency() < c.consistency_cutoff:
            return "repeat_consistently"
        return "excellent_control"


class MovementAccuracySession(ExerciseSession):
    kind = "movement_accuracy"
    table = PATH_TABLE
    sensor_phases = frozenset({"active"})

    def _setup(self) -> None:
        self.scorer = PathScorer(self.config, self.state.rep_distances)

    def _on_reset(self) -> None:
        # SessionState was refreshed in place; rebind to its new history list
        self.scorer.rep_distances = self.state.rep_distances
        self.scorer.clear()

    def _phase_handlers(self) -> dict[str, PhaseHandler]:
        return {"intro": self._intro, "active": self._active}

    def _read(self, sample: Sample | None) -> Vec3 | None:
        if sample is None or sample.position is None or not all_finite(sample.position):
            return None
        return sample.position

    def _intro(self, position: Vec3 | None, dt: float, elapsed: float) -> str | None:
        return "active" if elapsed >= self.config.intro_seconds else None

    def _active(self, position: Vec3, dt: float, elapsed: float) -> str | None:
        self.scorer.add_sample(position, dt)
        self.state.feedback_key = self._key(self.scorer.feedback())
        return None

    def _on_enter(self, phase: str) -> None:
        if phase == "intro":
            self.state.instruction_key = self._key("intro")
            self.state.feedback_key = ""
        elif phase == "active":
            self.state.instruction_key = self._key("trace_path")
        elif phase == "complete":
            self.state.instruction_key = self._key("complete")
            self.state.feedback_key = self._key(self.scorer.feedback())
            self.state.progress_fraction = 1.0

    def begin_exercise(self):
        if self.state.phase != "intro":
            return self.snapshot()
        return self._transition("active")

    def record_repetition(self):
        """
        Close the current repetition.

        No-op outside the active phase, including after the last repetition.
        """
        if self.state.phase != "active":
            return self.snapshot()
        self.scorer.close_repetition()
        self.state.current_rep += 1
        self.state.total_reps += 1
        self.state.progress_fraction = self.state.current_rep / self.config.max_repetitions
        if self.state.current_rep >= self.config.max_repetitions:
            return self._transition("complete")
        return self.snapshot()

    def _metrics(self) -> MetricSet:
        metrics = super()._metrics()
        metrics.accuracy = self.scorer.accuracy()
        metrics.smoothness = self.scorer.smoothness()
        metrics.consistency = self.scorer.consistency()
        return metrics

    def _detail(self) -> dict[str, Any]:
        return {
            "reference_valid": self.scorer.reference_valid,
            "average_distance": self.scorer.average_distance,
            "rep_distances": list(self.state.rep_distances),
            "trail_length": len(self.scorer.trail),
            "max_repetitions": self.config.max_repetitions,
        }
