"""
Base type for exercise engines.

ExerciseSession wires a SessionConfig, a SessionState and a PhaseMachine
together behind the tick contract ``advance(sample, dt) -> ScoreSnapshot``
and the explicit user actions (begin, confirm, skip, record repetition,
reset). Subclasses declare a transition table, the phases that need a sensor
reading, how to read that reading from a Sample, and one rule per phase.
"""

import math
from dataclasses import fields
from typing import Any, Callable

from ..metrics import clamp01
from ..models import MetricSet, Sample, ScoreSnapshot, SessionConfig, SessionState
from ..phase_machine import PhaseMachine, TransitionTable

# handler(reading, dt, phase_elapsed) -> next phase or None
PhaseHandler = Callable[[Any, float, float], "str | None"]


class ExerciseSession:
    """
    One exercise session: exclusive owner of its state.

    Sessions are not shared between threads; run one instance per
    concurrently active exercise.
    """

    kind: str = ""  # Key prefix for instruction/feedback keys
    table: TransitionTable
    sensor_phases: frozenset[str] = frozenset()

    def __init__(self, config: SessionConfig | None = None, exercise_id: str | None = None):
        self.config = config if config is not None else SessionConfig()
        self.exercise_id = exercise_id or self.kind
        self.state = SessionState()
        self.machine = PhaseMachine(
            self.table, self.state, self.config.stall_ceiling_seconds, expected_seconds=self._expected_seconds
        )
        self._setup()
        self._handlers: dict[str, PhaseHandler] = self._phase_handlers()
        self.reset()

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    def _setup(self) -> None:
        """Create collaborators that depend on the config (runs before the first reset)."""

    def _phase_handlers(self) -> dict[str, PhaseHandler]:
        raise NotImplementedError

    def _read(self, sample: Sample | None) -> Any:
        """Extract this exercise's reading from a sample; None means no valid reading."""
        return None

    def _on_enter(self, phase: str) -> None:
        """Phase entry effects (instruction/feedback keys, bar resets)."""
        self.state.instruction_key = self._key(phase)
        self.state.feedback_key = ""

    def _on_reset(self) -> None:
        """Clear buffers that live outside SessionState."""

    def _expected_seconds(self, phase: str) -> float:
        """Configured length of a timed phase (0 when it waits on the user or a sensor)."""
        return self.config.intro_seconds if phase == "intro" else 0.0

    def _metrics(self) -> MetricSet:
        return MetricSet(
            progress_fraction=clamp01(self.state.progress_fraction),
            rep_count=self.state.current_rep,
            set_count=self.state.current_set,
        )

    def _detail(self) -> dict[str, Any]:
        return {}

    # ------------------------------------------------------------------
    # Tick contract
    # ------------------------------------------------------------------

    @property
    def phase(self) -> str:
        return self.state.phase

    @property
    def is_complete(self) -> bool:
        return self.machine.is_complete

    def advance(self, sample: Sample | None, dt: float) -> ScoreSnapshot:
        """
        Process one tick.

        Args:
            sample: This tick's sensor reading (None or incomplete = sensor gap)
            dt: Seconds since the previous tick

        Returns:
            Snapshot after the tick

        Raises:
            ValueError: If dt is negative or not a finite number
        """
        if not math.isfinite(dt) or dt < 0:
            raise ValueError(f"dt must be a non-negative finite number, got {dt}")
        if self.machine.is_complete:
            return self.snapshot()

        reading = self._read(sample)
        if reading is None and self.state.phase in self.sensor_phases:
            self.machine.hold()
            return self.snapshot(sensor_gap=True)

        phase, transitioned = self.machine.advance(
            dt, lambda ph, elapsed: self._handlers[ph](reading, dt, elapsed)
        )
        if transitioned:
            self._on_enter(phase)
        return self.snapshot(transitioned=transitioned)

    def snapshot(self, transitioned: bool = False, sensor_gap: bool = False) -> ScoreSnapshot:
        """Build the read-only output for the current state."""
        return ScoreSnapshot(
            exercise_id=self.exercise_id,
            phase=self.state.phase,
            transitioned=transitioned,
            instruction_key=self.state.instruction_key,
            feedback_key=self.state.feedback_key,
            metrics=self._metrics(),
            stalled=self.state.stalled,
            sensor_gap=sensor_gap,
            detail=self._detail(),
        )

    # ------------------------------------------------------------------
    # Actions (out-of-order calls are silent no-ops)
    # ------------------------------------------------------------------

    def begin_exercise(self) -> ScoreSnapshot:
        return self.snapshot()

    def confirm(self, rating: int | None = None) -> ScoreSnapshot:
        return self.snapshot()

    def skip(self) -> ScoreSnapshot:
        return self.snapshot()

    def record_repetition(self) -> ScoreSnapshot:
        return self.snapshot()

    def reset(self) -> ScoreSnapshot:
        """
        Cancel the session from any phase.

        Returns to the initial phase with every counter and history cleared,
        including from complete or mid-hold.
        """
        fresh = SessionState(calibrated_max=self.config.initial_calibrated_max)
        for f in fields(SessionState):
            setattr(self.state, f.name, getattr(fresh, f.name))
        self.machine.reset()
        self._on_reset()
        self._on_enter(self.state.phase)
        return self.snapshot()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transition(self, phase: str) -> ScoreSnapshot:
        """Action-driven transition (no tick involved)."""
        self.machine.enter(phase)
        self._on_enter(phase)
        return self.snapshot(transitioned=True)

    def _key(self, name: str) -> str:
        return f"{self.kind}.{name}"
