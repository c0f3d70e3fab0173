"""
JSONL-based replay logs of recorded sessions.

Handles reading and writing recorded ticks and user actions, and driving an
engine through them. Because engine timers only accumulate the recorded dt,
replaying a log always reproduces the same snapshots.
"""

import json
from pathlib import Path
from typing import Iterable

from ..core.exercises.base import ExerciseSession
from ..core.models import Sample, ScoreSnapshot
from .serializers import (
    ACTIONS,
    ActionRecord,
    TickRecord,
    ValidationError,
    json_line_to_record,
    record_to_dict,
)



class ReplayLog:
    """
    Manages a recorded session stored in JSONL format.

    One JSON object per line, either a tick::

        {"dt": 0.02, "grip": 0.41}

    or a user action::

        {"action": "confirm", "rating": 2}
    """

    def __init__(self, log_path: str | Path):
        """
        Initialize the replay log.

        Args:
            log_path: Path to the JSONL file
        """
        self.log_path = Path(log_path)

    def exists(self) -> bool:
        """Check if the log file exists."""
        return self.log_path.exists()

    def init(self) -> None:
        """
        Create an empty log file if it doesn't exist.

        Creates parent directories if needed.
        """
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.log_path.exists():
            self.log_path.touch()

    def append_tick(self, sample: Sample | None, dt: float) -> None:
        """Append one tick (a None sample is recorded as a sensor gap)."""
        self._append(TickRecord(sample=sample or Sample(), dt=dt))

    def append_action(self, name: str, rating: int | None = None) -> None:
        """
        Append one user action.

        Raises:
            ValidationError: If the action name is unknown
        """
        if name not in ACTIONS:
            raise ValidationError(f"Unknown action: {name!r}")
        self._append(ActionRecord(name=name, rating=rating))

    def _append(self, record: TickRecord | ActionRecord) -> None:
        if not self.log_path.exists():
            raise FileNotFoundError(f"Replay log not found: {self.log_path}. Call init() first.")
        with open(self.log_path, "a") as f:
            f.write(json.dumps(record_to_dict(record)) + "\n")

    def load_records(self) -> list[TickRecord | ActionRecord]:
        """
        Load all records in file order.

        Raises:
            FileNotFoundError: If the log file doesn't exist
            ValidationError: If any line is invalid
        """
        if not self.log_path.exists():
            raise FileNotFoundError(f"Replay log not found: {self.log_path}")

        records: list[TickRecord | ActionRecord] = []
        with open(self.log_path, "r") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(json_line_to_record(line))
                except ValidationError as e:
                    raise ValidationError(f"Error parsing line {line_num} in {self.log_path}: {e}") from e
        return records


def apply_record(session: ExerciseSession, record: TickRecord | ActionRecord) -> ScoreSnapshot:
    """Feed one record into an engine and return the resulting snapshot."""
    if isinstance(record, TickRecord):
        return session.advance(record.sample, record.dt)
    if record.name == "confirm":
        return session.confirm(record.rating)
    if record.name == "begin_exercise":
        return session.begin_exercise()
    if record.name == "skip":
        return session.skip()
    if record.name == "record_repetition":
        return session.record_repetition()
    return session.reset()


def replay(session: ExerciseSession, records: Iterable[TickRecord | ActionRecord]) -> list[ScoreSnapshot]:
    """
    Drive an engine through recorded ticks and actions.

    Returns:
        One snapshot per record, in order
    """
    return [apply_record(session, record) for record in records]
