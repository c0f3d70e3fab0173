"""
Generic phase lifecycle shared by every exercise.

Each exercise supplies a TransitionTable (which phases exist and where each
may lead) and a rule deciding, per tick, whether to move on. PhaseMachine
owns the phase timer, rejects undeclared transitions, keeps the terminal
phase absorbing, and reports timed phases that never end.
"""

import warnings
from dataclasses import dataclass, field
from typing import Callable

from .models import PHASES, SessionState

# rule(phase, phase_elapsed) -> next phase, or None to stay
TransitionRule = Callable[[str, float], "str | None"]


class PhaseTransitionError(ValueError):
    """Raised when an engine requests a transition its table does not declare."""


class StalledPhaseWarning(RuntimeWarning):
    """Emitted once when a timed phase runs past its configured length plus the stall ceiling."""


@dataclass(frozen=True)
class TransitionTable:
    """
    Declared phases and allowed transitions for one exercise.

    ``timed`` lists the phases that are expected to end on their own; only
    those are watched for stalls.
    """

    initial: str
    transitions: dict[str, tuple[str, ...]]
    timed: frozenset[str] = field(default_factory=frozenset)
    terminal: str = "complete"

    def __post_init__(self) -> None:
        """Validate the table."""
        declared = set(self.transitions) | {self.terminal}
        for phase in declared:
            if phase not in PHASES:
                raise ValueError(f"Unknown phase: {phase!r}")
        if self.initial not in declared:
            raise ValueError(f"Initial phase {self.initial!r} is not declared")
        for source, targets in self.transitions.items():
            for target in targets:
                if target not in declared:
                    raise ValueError(f"Transition {source!r} -> {target!r} targets an undeclared phase")
        if self.terminal in self.transitions and self.transitions[self.terminal]:
            raise ValueError("The terminal phase cannot have outgoing transitions")
        if not self.timed <= declared:
            raise ValueError("Timed phases must be declared")

    @property
    def phases(self) -> tuple[str, ...]:
        """Declared phases in lifecycle order."""
        declared = set(self.transitions) | {self.terminal}
        return tuple(p for p in PHASES if p in declared)

    def allows(self, source: str, target: str) -> bool:
        return target in self.transitions.get(source, ())


class PhaseMachine:
    """
    Phase and phase-timer bookkeeping over a SessionState.

    Timers are accumulations of the supplied dt, never wall-clock reads, so
    a recorded (sample, dt) sequence always replays identically.
    """

    def __init__(
        self,
        table: TransitionTable,
        state: SessionState,
        stall_ceiling_seconds: float,
        expected_seconds: Callable[[str], float] | None = None,
    ):
        self.table = table
        self.state = state
        self.stall_ceiling_seconds = stall_ceiling_seconds
        # Configured length of a phase; the ceiling counts from its end
        self.expected_seconds = expected_seconds or (lambda phase: 0.0)
        self._stall_reported = False
        state.phase = table.initial

    @property
    def phase(self) -> str:
        return self.state.phase

    @property
    def is_complete(self) -> bool:
        return self.state.phase == self.table.terminal

    def enter(self, phase: str) -> None:
        """
        Move to phase and restart the phase timer.

        Raises:
            PhaseTransitionError: If the table does not allow the transition
        """
        if not self.table.allows(self.state.phase, phase):
            raise PhaseTransitionError(f"Transition {self.state.phase!r} -> {phase!r} is not declared")
        self.state.phase = phase
        self.state.phase_elapsed = 0.0
        self.state.stalled = False
        self._stall_reported = False

    def advance(self, dt: float, rule: TransitionRule) -> tuple[str, bool]:
        """
        Accumulate dt, then ask rule whether to leave the current phase.

        Args:
            dt: Seconds elapsed since the previous tick (>= 0)
            rule: Callable returning the next phase or None

        Returns:
            (phase, transitioned)
        """
        if self.is_complete:
            return self.state.phase, False

        self.state.phase_elapsed += dt
        self.state.total_elapsed += dt

        nxt = rule(self.state.phase, self.state.phase_elapsed)
        if nxt is None or nxt == self.state.phase:
            self._check_stall()
            return self.state.phase, False

        self.enter(nxt)
        return nxt, True

    def hold(self) -> tuple[str, bool]:
        """Sensor-gap path: keep phase and timer untouched."""
        return self.state.phase, False

    def reset(self) -> None:
        """Return to the initial phase with a fresh timer."""
        self.state.phase = self.table.initial
        self.state.phase_elapsed = 0.0
        self.state.total_elapsed = 0.0
        self.state.stalled = False
        self._stall_reported = False

    def stall_limit(self, phase: str) -> float:
        """Seconds after which a timed phase counts as stalled."""
        return self.expected_seconds(phase) + self.stall_ceiling_seconds

    def _check_stall(self) -> None:
        if self.state.phase not in self.table.timed:
            return
        limit = self.stall_limit(self.state.phase)
        if self.state.phase_elapsed <= limit:
            return
        self.state.stalled = True
        if not self._stall_reported:
            self._stall_reported = True
            warnings.warn(
                f"rehab-engine: phase {self.state.phase!r} has not ended after "
                f"{self.state.phase_elapsed:.1f}s (limit {limit:.1f}s)",
                StalledPhaseWarning,
                stacklevel=3,
            )
