"""
Grip strength assessment.

Guides the user through a warm-up squeeze, a calibration squeeze that sets
the reference maximum, and a series of fixed-length trials separated by
short pauses. Each trial's peak is recorded; the session summary reports
peak, average and endurance across trials.

Lifecycle: intro -> warmup -> calibrate -> (ready -> active -> rest)* -> complete
"""

import math
from dataclasses import dataclass
from typing import Any, Sequence

from ..config import EXCELLENT_PEAK_FRACTION
from ..metrics import clamp01, effort_band, endurance_percent, mean, relative_effort, round_percent
from ..models import MetricSet, Sample
from ..phase_machine import TransitionTable
from .base import ExerciseSession, PhaseHandler

GRIP_TABLE = TransitionTable(
    initial="intro",
    transitions={
        "intro": ("warmup",),
        "warmup": ("calibrate",),
        "calibrate": ("ready",),
        "ready": ("active",),
        "active": ("rest", "complete"),
        "rest": ("ready",),
    },
    timed=frozenset({"intro", "warmup", "calibrate", "ready", "active", "rest"}),
)


@dataclass(frozen=True)
class GripSummary:
    """Aggregate of all recorded trials (values 0..1, endurance a whole percent)."""

    peak: float
    avg: float
    endurance: int


def summarize_trials(trials: Sequence[float], calibrated_max: float) -> GripSummary:
    """
    Aggregate trial peaks.

    peak = max(trials), avg = mean(trials) (zero-valued trials count),
    endurance = round(clamp01(avg / calibrated_max) * 100), rounded half-up
    and falling back to avg when the calibration is degenerate.

    Args:
        trials: Recorded per-trial peaks (0..1)
        calibrated_max: Calibrated maximum grip (0..1)

    Returns:
        GripSummary; all zeros when no trial was recorded
    """
    if not trials:
        return GripSummary(peak=0.0, avg=0.0, endurance=0)
    avg = mean(trials)
    return GripSummary(
        peak=max(trials),
        avg=avg,
        endurance=round_percent(endurance_percent(avg, calibrated_max)),
    )


class GripStrengthAssessment(ExerciseSession):
    kind = "grip"
    table = GRIP_TABLE
    sensor_phases = frozenset({"warmup", "calibrate", "active"})

    def _setup(self) -> None:
        self._reset_live_stats()
        self._squeezed = False
        self._last_grip: float | None = None

    def _on_reset(self) -> None:
        self._setup()

    def _reset_live_stats(self) -> None:
        self._live_peak = 0.0
        self._live_sum = 0.0
        self._live_count = 0

    def _phase_handlers(self) -> dict[str, PhaseHandler]:
        return {
            "intro": self._intro,
            "warmup": self._warmup,
            "calibrate": self._calibrate,
            "ready": self._ready,
            "active": self._squeezing,
            "rest": self._rest,
        }

    def _read(self, sample: Sample | None) -> float | None:
        if sample is None or sample.grip is None or not math.isfinite(sample.grip):
            return None
        grip = clamp01(float(sample.grip))
        self._last_grip = grip
        return grip

    def _expected_seconds(self, phase: str) -> float:
        c = self.config
        return {
            "intro": c.intro_seconds,
            "warmup": c.warmup_min_seconds,
            "calibrate": c.calibrate_min_seconds,
            "ready": c.ready_seconds,
            "active": c.trial_seconds,
            "rest": c.trial_rest_seconds,
        }.get(phase, 0.0)

    # ------------------------------------------------------------------

    def _intro(self, grip: float | None, dt: float, elapsed: float) -> str | None:
        return "warmup" if elapsed >= self.config.intro_seconds else None

    def _warmup(self, grip: float, dt: float, elapsed: float) -> str | None:
        c = self.config
        if grip > c.min_calibration_grip:
            self._squeezed = True
            self.state.feedback_key = self._key("gentle_squeeze")
        # Squeeze, then full release, and a phase-local minimum duration
        if self._squeezed and grip < c.release_threshold and elapsed >= c.warmup_min_seconds:
            return "calibrate"
        return None

    def _calibrate(self, grip: float, dt: float, elapsed: float) -> str | None:
        c = self.config
        self.state.calibrated_max = max(self.state.calibrated_max, grip)
        if grip < c.release_threshold and elapsed >= c.calibrate_min_seconds:
            self.state.calibration_frozen = True
            return "ready"
        return None

    def _ready(self, grip: float | None, dt: float, elapsed: float) -> str | None:
        return "active" if elapsed >= self.config.ready_seconds else None

    def _squeezing(self, grip: float, dt: float, elapsed: float) -> str | None:
        self._live_peak = max(self._live_peak, grip)
        self._live_sum += grip
        self._live_count += 1

        band = effort_band(relative_effort(grip, self.state.calibrated_max))
        if band is not None:
            self.state.feedback_key = band

        if elapsed < self.config.trial_seconds:
            return None

        self._record_trial()
        self.state.feedback_key = self._key("release")
        if self.state.trial_index + 1 < self.config.total_trials:
            return "rest"
        return "complete"

    def _rest(self, grip: float | None, dt: float, elapsed: float) -> str | None:
        if elapsed >= self.config.trial_rest_seconds:
            self.state.trial_index += 1
            return "ready"
        return None

    def _record_trial(self) -> None:
        peaks = self.state.trial_peaks
        while len(peaks) <= self.state.trial_index:
            peaks.append(0.0)
        # Re-entrant: a re-run of the same trial never lowers its peak
        peaks[self.state.trial_index] = max(peaks[self.state.trial_index], self._live_peak)

    # ------------------------------------------------------------------

    def _on_enter(self, phase: str) -> None:
        state = self.state
        if phase == "active":
            self._reset_live_stats()
            state.instruction_key = self._key("squeeze_now")
            state.feedback_key = self._key("go")
        elif phase == "ready":
            state.instruction_key = self._key("trial_ready")
            if state.trial_index == 0:
                state.feedback_key = self._key("calibration_saved")
        elif phase == "rest":
            state.instruction_key = self._key("rest")
        elif phase == "complete":
            summary = self.summary()
            state.instruction_key = self._key("complete")
            if summary.peak >= state.calibrated_max * EXCELLENT_PEAK_FRACTION:
                state.feedback_key = self._key("excellent_effort")
            else:
                state.feedback_key = self._key("good_work")
        else:
            state.instruction_key = self._key(phase)
            state.feedback_key = self._key("tap_begin") if phase == "intro" else ""

    def begin_exercise(self):
        """Skip the remaining intro time."""
        if self.state.phase != "intro":
            return self.snapshot()
        return self._transition("warmup")

    def summary(self) -> GripSummary:
        """Session summary recomputed from the trial history."""
        return summarize_trials(self.state.trial_peaks, self.state.calibrated_max)

    def _metrics(self) -> MetricSet:
        metrics = super()._metrics()
        metrics.rep_count = len(self.state.trial_peaks)
        if self.state.phase == "complete":
            summary = self.summary()
            peak, avg, endurance = summary.peak, summary.avg, float(summary.endurance)
        else:
            current = self._last_grip if self._last_grip is not None else 0.0
            peak = max(self._live_peak, current)
            avg = self._live_sum / self._live_count if self._live_count > 0 else current
            endurance = endurance_percent(avg, self.state.calibrated_max)
        metrics.peak = clamp01(peak) * 100.0
        metrics.avg = clamp01(avg) * 100.0
        metrics.endurance = endurance
        metrics.progress_fraction = relative_effort(self._last_grip or 0.0, self.state.calibrated_max)
        return metrics

    def _detail(self) -> dict[str, Any]:
        return {
            "grip": self._last_grip,
            "trial_number": self.state.trial_index + 1,
            "total_trials": self.config.total_trials,
            "calibrated_max": self.state.calibrated_max,
            "calibration_frozen": self.state.calibration_frozen,
            "trial_peaks": list(self.state.trial_peaks),
        }
