"""
Daily-activity simulation: opening a jar lid.

The lid turns only while the grip stays inside an ergonomic window. Too
much pressure or too little stops the rotation; letting go before the lid
is open snaps it back to the start.

Lifecycle: intro -> active -> complete
"""

import math
from typing import Any

from ..metrics import clamp01
from ..models import Sample
from ..phase_machine import TransitionTable
from .base import ExerciseSession, PhaseHandler

JAR_LID_TABLE = TransitionTable(
    initial="intro",
    transitions={
        "intro": ("active",),
        "active": ("complete",),
    },
    timed=frozenset({"intro"}),
)


class JarLidActivity(ExerciseSession):
    kind = "jar_lid"
    table = JAR_LID_TABLE
    sensor_phases = frozenset({"active"})

    def _setup(self) -> None:
        self.lid_angle = 0.0
        self._grip: float | None = None

    def _on_reset(self) -> None:
        self._setup()

    def _phase_handlers(self) -> dict[str, PhaseHandler]:
        return {"intro": self._intro, "active": self._active}

    def _read(self, sample: Sample | None) -> float | None:
        if sample is None or sample.grip is None or not math.isfinite(sample.grip):
            return None
        return clamp01(float(sample.grip))

    def _intro(self, grip: float | None, dt: float, elapsed: float) -> str | None:
        return "active" if elapsed >= self.config.intro_seconds else None

    def _active(self, grip: float, dt: float, elapsed: float) -> str | None:
        c = self.config
        self._grip = grip

        if c.grip_safe <= grip <= c.grip_max:
            self.state.feedback_key = self._key("good_grip")
            self.state.instruction_key = self._key("twist_lid")
            self.lid_angle = min(c.open_angle_deg, self.lid_angle + c.rotation_speed_deg * dt)
        elif grip > c.grip_max:
            self.state.feedback_key = self._key("too_much_pressure")
        else:
            self.state.feedback_key = self._key("grip_too_weak")
            if grip < c.release_threshold and self.lid_angle > 0:
                # Released before opening: the lid snaps back
                self.lid_angle = 0.0
                self.state.instruction_key = self._key("grip_jar")

        self.state.progress_fraction = clamp01(self.lid_angle / c.open_angle_deg)
        return "complete" if self.lid_angle >= c.open_angle_deg else None

    def _on_enter(self, phase: str) -> None:
        if phase == "complete":
            self.state.instruction_key = self._key("complete")
            self.state.feedback_key = self._key("jar_opened")
            self.state.progress_fraction = 1.0
        else:
            self.state.instruction_key = self._key("grip_jar")
            self.state.feedback_key = ""

    def begin_exercise(self):
        if self.state.phase != "intro":
            return self.snapshot()
        return self._transition("active")

    def _detail(self) -> dict[str, Any]:
        return {
            "grip": self._grip,
            "lid_angle_deg": self.lid_angle,
            "open_angle_deg": self.config.open_angle_deg,
        }
