"""
Hysteresis-based repetition and set counting.

A repetition needs two crossings in order: reaching the top threshold, then
returning near the start. Jitter around either boundary alone never counts.
Used by joint mobility training and the range-of-motion assessment.
"""

import math
from typing import Literal

from ..config import LOWERING_FILL
from ..metrics import all_finite, angle_between, clamp01, vec_sub
from ..models import Sample, SessionState

RepEvent = Literal["top", "rep", "set", "done"]


def sample_angle(sample: Sample | None, use_forward: bool = False) -> float | None:
    """
    Joint angle for a tick, in degrees.

    Prefers a pre-computed ``angle_deg``. Otherwise measures the angle
    between the reference forward direction and either the offset from the
    reference to the hand (``position - reference_position``) or, with
    use_forward, the hand's own forward direction.

    Returns:
        Angle in degrees, or None when the sample lacks the needed fields
        or any of them is not a finite number
    """
    if sample is None:
        return None
    if sample.angle_deg is not None:
        return float(sample.angle_deg) if math.isfinite(sample.angle_deg) else None
    if use_forward:
        vectors = (sample.reference_forward, sample.forward)
    else:
        vectors = (sample.reference_forward, sample.position, sample.reference_position)
    if any(v is None or not all_finite(v) for v in vectors):
        return None
    if use_forward:
        return angle_between(sample.reference_forward, sample.forward)
    return angle_between(sample.reference_forward, vec_sub(sample.position, sample.reference_position))


class RepetitionTracker:
    """
    Repetition/set bookkeeping on a SessionState.

    Args:
        state: Session state to update (current_rep, current_set, flags)
        top_threshold: Angle at or above which the top is reached
        start_threshold: Angle at or below which the limb is back at start
        fill_target: Angle that fills the progress bar while raising
        reps_per_set: Repetitions per set
        sets: Number of sets
    """

    def __init__(
        self,
        state: SessionState,
        top_threshold: float,
        start_threshold: float,
        fill_target: float,
        reps_per_set: int,
        sets: int,
    ):
        if start_threshold >= top_threshold:
            raise ValueError("start_threshold must be below top_threshold")
        self.state = state
        self.top_threshold = top_threshold
        self.start_threshold = start_threshold
        self.fill_target = fill_target
        self.reps_per_set = reps_per_set
        self.sets = sets

    def near_target(self, angle: float) -> bool:
        return angle >= self.top_threshold

    def near_start(self, angle: float) -> bool:
        return angle <= self.start_threshold

    def update(self, angle: float) -> RepEvent | None:
        """
        Feed one angle reading.

        Returns:
            "top" when the top is first reached (caller starts the hold),
            "rep" when a repetition closes inside a set,
            "set" when a set closes with more to go,
            "done" when the last set closes, otherwise None
        """
        state = self.state
        state.last_angle = angle
        state.max_angle = max(state.max_angle, angle)

        if state.holding:
            return None

        if not state.reached_top:
            if self.near_target(angle):
                state.holding = True
                state.progress_fraction = 1.0
                return "top"
            state.progress_fraction = clamp01(angle / self.fill_target)
            return None

        if not self.near_start(angle):
            return None

        state.current_rep += 1
        state.total_reps += 1
        state.reached_top = False
        state.holding = False
        state.progress_fraction = 0.0

        if state.current_rep < self.reps_per_set:
            return "rep"

        state.current_set += 1
        state.current_rep = 0
        return "done" if state.current_set >= self.sets else "set"

    def finish_hold(self) -> None:
        """Close the hold: the top counts and the lowering half begins."""
        self.state.holding = False
        self.state.reached_top = True
        self.state.progress_fraction = LOWERING_FILL

    @staticmethod
    def rest_fraction(elapsed: float, rest_seconds: float) -> float:
        """Rest countdown bar: 0 -> 1 over the rest period."""
        if rest_seconds <= 0:
            return 1.0
        return clamp01(elapsed / rest_seconds)
