"""
Guided stretch routine.

Runs an ordered list of stretches. Each stretch is previewed until the user
confirms, then performed either as breathing-paced repetitions or as a
timed hold, then followed by a pain check the user must confirm (with a
rating) or skip before the next stretch's preview.

Lifecycle: intro -> (instruction_preview -> active -> pain_check)* -> complete

The breathing bar is a pure function of time in phase, so the routine can
be paused, resumed or cancelled at any tick.
"""

from typing import Any

from ..config import PAIN_SCALE_MAX, PAIN_SCALE_MIN
from ..metrics import breathing_cue, instruction_steps, lerp
from ..models import MetricSet, StretchDefinition
from ..phase_machine import TransitionTable
from .base import ExerciseSession, PhaseHandler

STRETCH_TABLE = TransitionTable(
    initial="intro",
    transitions={
        "intro": ("instruction_preview", "complete"),
        "instruction_preview": ("active",),
        "active": ("pain_check",),
        "pain_check": ("instruction_preview", "complete"),
    },
    timed=frozenset({"active"}),
)


class StretchRoutine(ExerciseSession):
    kind = "stretch"
    table = STRETCH_TABLE

    def _setup(self) -> None:
        self.stretches: tuple[StretchDefinition, ...] = tuple(self.config.stretches)
        self._cue = ""

    def _on_reset(self) -> None:
        self._cue = ""

    def _phase_handlers(self) -> dict[str, PhaseHandler]:
        return {
            "intro": self._waiting,
            "instruction_preview": self._waiting,
            "active": self._active,
            "pain_check": self._waiting,
        }

    def _expected_seconds(self, phase: str) -> float:
        stretch = self.current_stretch
        if phase != "active" or stretch is None:
            return 0.0
        if stretch.is_rep_based:
            return stretch.reps * (stretch.inhale_seconds + stretch.exhale_seconds)
        return stretch.hold_seconds

    @property
    def current_stretch(self) -> StretchDefinition | None:
        if self.state.stretch_index < len(self.stretches):
            return self.stretches[self.state.stretch_index]
        return None

    # ------------------------------------------------------------------

    def _waiting(self, reading: Any, dt: float, elapsed: float) -> str | None:
        # Suspension points: only explicit actions move on
        return None

    def _active(self, reading: Any, dt: float, elapsed: float) -> str | None:
        stretch = self.current_stretch
        if stretch is None:
            return "pain_check"

        # Reps take precedence when a stretch declares both
        if stretch.is_rep_based:
            cycle = stretch.inhale_seconds + stretch.exhale_seconds
            if elapsed >= stretch.reps * cycle:
                self._set_reps(stretch.reps)
                self.state.progress_fraction = 0.0
                return "pain_check"
            cue, fraction, completed = breathing_cue(elapsed, stretch.inhale_seconds, stretch.exhale_seconds)
            self._cue = cue
            self.state.progress_fraction = fraction
            self._set_reps(completed)
            return None

        if stretch.hold_seconds > 0 and elapsed < stretch.hold_seconds:
            self._cue = "hold"
            self.state.progress_fraction = lerp(0.0, 1.0, elapsed / stretch.hold_seconds)
            return None

        self.state.progress_fraction = 1.0 if stretch.hold_seconds > 0 else 0.0
        return "pain_check"

    def _set_reps(self, reps: int) -> None:
        if reps == self.state.current_rep:
            return
        self.state.current_rep = reps
        # Alternate encouragement every repetition
        if reps % 2 == 0:
            self.state.feedback_key = self._key("nice_rhythm")
        else:
            self.state.feedback_key = self._key("good_work")

    # ------------------------------------------------------------------

    def _on_enter(self, phase: str) -> None:
        state = self.state
        if phase == "intro":
            state.instruction_key = ""
            state.feedback_key = self._key("press_start")
        elif phase == "instruction_preview":
            state.instruction_key = self._key("instruction")
            state.feedback_key = self._key("read_then_begin")
            state.current_rep = 0
            state.progress_fraction = 0.0
            self._cue = ""
        elif phase == "active":
            stretch = self.current_stretch
            state.current_rep = 0
            state.feedback_key = ""
            if stretch is not None and stretch.is_rep_based:
                state.instruction_key = self._key("breathe")
                self._cue = "inhale"
            else:
                state.instruction_key = self._key("hold_position")
                self._cue = "hold"
        elif phase == "pain_check":
            state.instruction_key = ""
            state.feedback_key = self._key("rate_pain")
            self._cue = ""
        elif phase == "complete":
            state.instruction_key = ""
            state.feedback_key = self._key("routine_complete")
            state.progress_fraction = 0.0
            self._cue = ""

    def begin_exercise(self):
        """Start the routine (from intro) or the previewed stretch."""
        if self.state.phase == "intro":
            if not self.stretches:
                return self._transition("complete")
            return self._transition("instruction_preview")
        if self.state.phase == "instruction_preview":
            return self._transition("active")
        return self.snapshot()

    def confirm(self, rating: int | None = None):
        """
        Confirm the instruction preview, or submit a pain rating.

        In the pain check a rating is required; without one the call is a
        no-op (use skip() to move on unrated).

        Raises:
            ValueError: If rating is outside the pain scale
        """
        if self.state.phase in ("intro", "instruction_preview"):
            return self.begin_exercise()
        if self.state.phase != "pain_check" or rating is None:
            return self.snapshot()
        value = int(rating)
        if not PAIN_SCALE_MIN <= value <= PAIN_SCALE_MAX:
            raise ValueError(f"Pain rating must be within [{PAIN_SCALE_MIN}, {PAIN_SCALE_MAX}], got {rating}")
        return self._next_stretch(value)

    def skip(self):
        """Skip the pain check and move on."""
        if self.state.phase != "pain_check":
            return self.snapshot()
        return self._next_stretch(None)

    def _next_stretch(self, rating: int | None):
        stretch = self.current_stretch
        if stretch is not None:
            self.state.pain_ratings.append((stretch.name, rating))
        self.state.stretch_index += 1
        self.state.current_set = self.state.stretch_index
        if self.state.stretch_index >= len(self.stretches):
            return self._transition("complete")
        return self._transition("instruction_preview")

    # ------------------------------------------------------------------

    def _metrics(self) -> MetricSet:
        metrics = super()._metrics()
        metrics.set_count = self.state.stretch_index
        return metrics

    def _detail(self) -> dict[str, Any]:
        stretch = self.current_stretch
        return {
            "stretch_index": self.state.stretch_index,
            "stretch_count": len(self.stretches),
            "stretch_name": stretch.name if stretch is not None else None,
            "instruction_lines": instruction_steps(stretch.instruction) if stretch is not None else [],
            "target_reps": stretch.reps if stretch is not None else 0,
            "breathing_cue": self._cue,
            "pain_ratings": list(self.state.pain_ratings),
        }
