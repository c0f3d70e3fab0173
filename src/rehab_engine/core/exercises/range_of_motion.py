"""
Range-of-motion assessment.

Tracks the hand's angle against a reference orientation, reports the
largest angle achieved, and finishes after a fixed number of repetitions
(a rise above a fraction of the target range followed by a return near
the start).

Lifecycle: intro -> active -> complete
"""

from typing import Any

from ..metrics import inverse_lerp
from ..models import Sample
from ..phase_machine import TransitionTable
from .base import ExerciseSession, PhaseHandler
from .repetition import RepetitionTracker, sample_angle

RANGE_OF_MOTION_TABLE = TransitionTable(
    initial="intro",
    transitions={
        "intro": ("active",),
        "active": ("complete",),
    },
    timed=frozenset({"intro"}),
)


class RangeOfMotionAssessment(ExerciseSession):
    kind = "range_of_motion"
    table = RANGE_OF_MOTION_TABLE
    sensor_phases = frozenset({"active"})

    def _setup(self) -> None:
        c = self.config
        self.tracker = RepetitionTracker(
            self.state,
            top_threshold=c.range_max_deg * c.rom_rep_fraction,
            start_threshold=c.range_min_deg + c.tolerance_deg + c.start_margin_deg,
            fill_target=c.range_max_deg,
            reps_per_set=c.reps_per_set,
            sets=1,
        )

    def _phase_handlers(self) -> dict[str, PhaseHandler]:
        return {"intro": self._intro, "active": self._active}

    def _read(self, sample: Sample | None) -> float | None:
        return sample_angle(sample, use_forward=True)

    def _intro(self, angle: float | None, dt: float, elapsed: float) -> str | None:
        return "active" if elapsed >= self.config.intro_seconds else None

    def _active(self, angle: float, dt: float, elapsed: float) -> str | None:
        previous_max = self.state.max_angle
        event = self.tracker.update(angle)
        if event == "top":
            # No hold sub-phase here: the top counts immediately
            self.tracker.finish_hold()
        # The bar follows the target range in both directions
        self.state.progress_fraction = inverse_lerp(self.config.range_min_deg, self.config.range_max_deg, angle)

        if event in ("rep", "set"):
            self.state.feedback_key = self._key("repetition_complete")
            return None
        elif event == "done":
            return "complete"

        if angle > previous_max:
            self.state.feedback_key = self._key("new_max")
        return None

    def _on_enter(self, phase: str) -> None:
        if phase == "intro":
            self.state.instruction_key = self._key("hand_at_side")
            self.state.feedback_key = ""
        elif phase == "active":
            self.state.instruction_key = self._key("raise_forward")
        elif phase == "complete":
            self.state.instruction_key = self._key("complete")
            self.state.feedback_key = self._key("max_angle")
            self.state.progress_fraction = 1.0

    def begin_exercise(self):
        if self.state.phase != "intro":
            return self.snapshot()
        return self._transition("active")

    def _metrics(self):
        metrics = super()._metrics()
        # A single set: report completed repetitions rather than the set roll-over
        metrics.rep_count = self.state.total_reps
        return metrics

    def _detail(self) -> dict[str, Any]:
        return {
            "angle_deg": self.state.last_angle,
            "max_angle_deg": self.state.max_angle,
            "repetitions": self.state.total_reps,
            "target_repetitions": self.config.reps_per_set,
        }
