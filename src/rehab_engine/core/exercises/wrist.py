"""
Wrist posture monitor for typing ergonomics.

Compares each wrist's orientation with a captured neutral posture and
classifies the deviation as neutral, caution or unsafe. The haptic level is
reported as an output key only; driving the controller is up to the caller.

Lifecycle: intro -> calibrate -> active -> complete
"""

from typing import Any

from ..metrics import all_finite, clamp01, quaternion_angle
from ..models import Quat, Sample
from ..phase_machine import TransitionTable
from .base import ExerciseSession, PhaseHandler

WRIST_TABLE = TransitionTable(
    initial="intro",
    transitions={
        "intro": ("calibrate",),
        "calibrate": ("active",),
        "active": ("complete",),
    },
    timed=frozenset({"intro"}),
)

_ZONE_RANK = {"neutral": 0, "caution": 1, "unsafe": 2}
_HAPTIC = {"neutral": "none", "caution": "mild", "unsafe": "strong"}


def posture_zone(deviation_deg: float, safe_deg: float, max_deg: float) -> str:
    """Classify a deviation: neutral (<= safe), caution (<= max), else unsafe."""
    if deviation_deg <= safe_deg:
        return "neutral"
    if deviation_deg <= max_deg:
        return "caution"
    return "unsafe"


class WristPostureMonitor(ExerciseSession):
    kind = "wrist"
    table = WRIST_TABLE
    sensor_phases = frozenset({"calibrate", "active"})

    def _setup(self) -> None:
        self._neutral: dict[str, Quat] = {}
        self._current: dict[str, Quat] = {}
        self._deviation: dict[str, float] = {}

    def _on_reset(self) -> None:
        self._setup()

    def _phase_handlers(self) -> dict[str, PhaseHandler]:
        return {
            "intro": self._intro,
            "calibrate": self._monitor,
            "active": self._active,
        }

    def _read(self, sample: Sample | None) -> dict[str, Quat] | None:
        if sample is None or sample.rotation is None or not all_finite(sample.rotation):
            return None
        reading = {"right": sample.rotation}
        if sample.left_rotation is not None and all_finite(sample.left_rotation):
            reading["left"] = sample.left_rotation
        return reading

    # ------------------------------------------------------------------

    def _intro(self, reading: dict[str, Quat] | None, dt: float, elapsed: float) -> str | None:
        if reading is not None:
            self._observe(reading)
        return "calibrate" if elapsed >= self.config.intro_seconds else None

    def _monitor(self, reading: dict[str, Quat], dt: float, elapsed: float) -> str | None:
        self._observe(reading)
        return None

    def _active(self, reading: dict[str, Quat], dt: float, elapsed: float) -> str | None:
        self._observe(reading)
        limit = self.config.session_seconds
        if limit > 0 and elapsed >= limit:
            return "complete"
        return None

    def _observe(self, reading: dict[str, Quat]) -> None:
        self._current.update(reading)
        for side, rotation in reading.items():
            # The first reading per side is a provisional neutral
            self._neutral.setdefault(side, rotation)
            self._deviation[side] = quaternion_angle(self._neutral[side], rotation)

        worst = self._worst_zone()
        self.state.feedback_key = self._key(worst)
        self.state.progress_fraction = clamp01(max(self._deviation.values(), default=0.0) / self.config.wrist_max_deg)

    def _zone(self, side: str) -> str:
        return posture_zone(self._deviation.get(side, 0.0), self.config.wrist_safe_deg, self.config.wrist_max_deg)

    def _worst_zone(self) -> str:
        zones = [self._zone(side) for side in self._deviation] or ["neutral"]
        return max(zones, key=_ZONE_RANK.__getitem__)

    # ------------------------------------------------------------------

    def set_neutral(self):
        """Capture the latest orientations as the neutral posture."""
        if not self._current:
            return self.snapshot()
        self._neutral = dict(self._current)
        self._deviation = {side: 0.0 for side in self._current}
        self.state.feedback_key = self._key("calibrated")
        self.state.progress_fraction = 0.0
        if self.state.phase == "calibrate":
            return self._transition("active")
        return self.snapshot()

    def confirm(self, rating: int | None = None):
        if self.state.phase in ("calibrate", "active"):
            return self.set_neutral()
        return self.snapshot()

    def begin_exercise(self):
        if self.state.phase == "intro":
            return self._transition("calibrate")
        if self.state.phase == "calibrate":
            return self.set_neutral()
        return self.snapshot()

    def _on_enter(self, phase: str) -> None:
        if phase == "intro":
            self.state.instruction_key = self._key("home_row")
            self.state.feedback_key = ""
        elif phase == "calibrate":
            self.state.instruction_key = self._key("set_neutral")
        elif phase == "active":
            self.state.instruction_key = self._key("keep_aligned")
            self.state.feedback_key = self._key("calibrated")
        elif phase == "complete":
            self.state.instruction_key = self._key("complete")

    def _detail(self) -> dict[str, Any]:
        sides = {}
        for side, deviation in self._deviation.items():
            zone = self._zone(side)
            sides[side] = {
                "deviation_deg": deviation,
                "fill": clamp01(deviation / self.config.wrist_max_deg),
                "zone": zone,
                "haptic": _HAPTIC[zone],
            }
        worst = self._worst_zone()
        return {"sides": sides, "zone": worst, "haptic": _HAPTIC[worst]}
