"""
Joint mobility training.

The user raises the hand toward a target angle relative to a shoulder
reference, holds briefly at the top, and lowers back to the start. Reps are
grouped into sets with a timed rest between them.

Lifecycle: intro -> warmup -> active <-> hold_top, active <-> rest -> complete
"""

from typing import Any

from ..config import LIFT_NICE_DEG, LIFT_START_DEG, WARMUP_FILL_ANGLE_DEG
from ..metrics import clamp01
from ..models import Sample
from ..phase_machine import TransitionTable
from .base import ExerciseSession, PhaseHandler
from .repetition import RepetitionTracker, sample_angle

JOINT_MOBILITY_TABLE = TransitionTable(
    initial="intro",
    transitions={
        "intro": ("warmup",),
        "warmup": ("active",),
        "active": ("hold_top", "rest", "complete"),
        "hold_top": ("active",),
        "rest": ("active",),
    },
    timed=frozenset({"intro", "warmup", "hold_top", "rest"}),
)


class JointMobilitySession(ExerciseSession):
    """Shoulder-raise repetitions with hysteresis, holds and rests."""

    kind = "joint_mobility"
    table = JOINT_MOBILITY_TABLE
    sensor_phases = frozenset({"warmup", "active"})

    def _setup(self) -> None:
        c = self.config
        self.tracker = RepetitionTracker(
            self.state,
            top_threshold=c.target_angle_deg - c.tolerance_deg,
            start_threshold=c.tolerance_deg + c.start_margin_deg,
            fill_target=c.target_angle_deg,
            reps_per_set=c.reps_per_set,
            sets=c.sets,
        )

    def _phase_handlers(self) -> dict[str, PhaseHandler]:
        return {
            "intro": self._intro,
            "warmup": self._warmup,
            "active": self._active,
            "hold_top": self._hold_top,
            "rest": self._rest,
        }

    def _read(self, sample: Sample | None) -> float | None:
        return sample_angle(sample)

    def _expected_seconds(self, phase: str) -> float:
        c = self.config
        return {
            "intro": c.intro_seconds,
            "warmup": c.warmup_seconds,
            "hold_top": c.hold_seconds,
            "rest": c.rest_seconds,
        }.get(phase, 0.0)

    # ------------------------------------------------------------------

    def _intro(self, angle: float | None, dt: float, elapsed: float) -> str | None:
        return "warmup" if elapsed >= self.config.intro_seconds else None

    def _warmup(self, angle: float, dt: float, elapsed: float) -> str | None:
        self.state.last_angle = angle
        # Warm-up bar is full at a shallow angle
        self.state.progress_fraction = clamp01(angle / WARMUP_FILL_ANGLE_DEG)
        self.state.feedback_key = self._key("move_slowly")
        return "active" if elapsed >= self.config.warmup_seconds else None

    def _active(self, angle: float, dt: float, elapsed: float) -> str | None:
        event = self.tracker.update(angle)
        if event == "top":
            return "hold_top"
        if event == "set":
            return "rest"
        if event == "done":
            return "complete"
        if event == "rep":
            self.state.instruction_key = self._key("lift_to_limit")
            self.state.feedback_key = self._key("good_lowering")
            return None
        self.state.feedback_key = self._feedback(angle)
        return None

    def _hold_top(self, angle: float | None, dt: float, elapsed: float) -> str | None:
        # Time-gated: the hold always runs its full length once triggered
        if angle is not None:
            self.state.last_angle = angle
        if elapsed >= self.config.hold_seconds:
            self.tracker.finish_hold()
            return "active"
        return None

    def _rest(self, angle: float | None, dt: float, elapsed: float) -> str | None:
        self.state.progress_fraction = self.tracker.rest_fraction(elapsed, self.config.rest_seconds)
        return "active" if elapsed >= self.config.rest_seconds else None

    # ------------------------------------------------------------------

    def _feedback(self, angle: float) -> str:
        if angle >= self.tracker.top_threshold:
            return self._key("target_reached")
        if angle > LIFT_NICE_DEG:
            return self._key("nice_lift")
        if angle > LIFT_START_DEG:
            return self._key("good_start")
        return self._key("begin_when_ready")

    def _on_enter(self, phase: str) -> None:
        state = self.state
        if phase == "intro":
            state.instruction_key = self._key("relax_arm")
            state.feedback_key = ""
        elif phase == "warmup":
            state.instruction_key = self._key("warmup")
            state.progress_fraction = 0.0
        elif phase == "active":
            if state.reached_top:
                state.instruction_key = self._key("lower")
            else:
                state.instruction_key = self._key("raise")
                state.progress_fraction = 0.0
                state.feedback_key = ""
        elif phase == "hold_top":
            state.instruction_key = self._key("hold")
            state.feedback_key = self._key("good_hold")
        elif phase == "rest":
            state.instruction_key = self._key("rest")
            state.feedback_key = self._key("slow_breathing")
            state.progress_fraction = 0.0
        elif phase == "complete":
            state.instruction_key = self._key("complete")
            state.feedback_key = self._key("great_job")
            state.progress_fraction = 1.0

    def begin_exercise(self):
        """Skip the remaining intro time."""
        if self.state.phase != "intro":
            return self.snapshot()
        return self._transition("warmup")

    def _detail(self) -> dict[str, Any]:
        return {
            "angle_deg": self.state.last_angle,
            "holding": self.state.holding,
            "reached_top": self.state.reached_top,
            "total_reps": self.state.total_reps,
            "sets": self.config.sets,
            "reps_per_set": self.config.reps_per_set,
        }
