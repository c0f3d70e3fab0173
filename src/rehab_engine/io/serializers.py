"""
JSON serialization for engine inputs and outputs.

Handles conversion between Samples, recorded ticks/actions and snapshots
and JSON-compatible dicts.
"""

import json
import math
from dataclasses import asdict, dataclass
from typing import Any

from ..core.metrics import all_finite
from ..core.models import Sample, ScoreSnapshot

ACTIONS: frozenset[str] = frozenset({"begin_exercise", "confirm", "skip", "record_repetition", "reset"})

_SCALAR_FIELDS = ("grip", "angle_deg")
_VECTOR_FIELDS = {
    "position": 3,
    "forward": 3,
    "reference_position": 3,
    "reference_forward": 3,
    "rotation": 4,
    "left_rotation": 4,
}


class ValidationError(Exception):
    """Raised when data validation fails."""

    pass


@dataclass(frozen=True)
class TickRecord:
    """One recorded tick: a (possibly empty) sample and its dt."""

    sample: Sample
    dt: float


@dataclass(frozen=True)
class ActionRecord:
    """One recorded user action."""

    name: str
    rating: int | None = None


def validate_non_negative(value: int | float, name: str) -> int | float:
    """
    Validate a value is non-negative.

    Raises:
        ValidationError: If value is negative
    """
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    return value


def _vector(value: Any, size: int, name: str) -> tuple[float, ...]:
    if not isinstance(value, (list, tuple)) or len(value) != size:
        raise ValidationError(f"{name} must be a list of {size} numbers, got {value!r}")
    try:
        return tuple(float(c) for c in value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must contain numbers, got {value!r}") from e


def sample_to_dict(sample: Sample) -> dict[str, Any]:
    """
    Convert a Sample to a dict, omitting absent fields.

    Non-finite readings (NaN, infinity) are omitted as well, so they reload
    as a sensor gap.
    """
    result: dict[str, Any] = {}
    for name in _SCALAR_FIELDS:
        value = getattr(sample, name)
        if value is not None and math.isfinite(value):
            result[name] = value
    for name in _VECTOR_FIELDS:
        value = getattr(sample, name)
        if value is not None and all_finite(value):
            result[name] = list(value)
    return result


def dict_to_sample(data: dict[str, Any]) -> Sample:
    """
    Convert a dict to a Sample.

    Unknown keys are ignored; missing keys leave the field empty, and so do
    non-finite numbers (the JSON NaN and Infinity literals).

    Raises:
        ValidationError: If a present field has the wrong shape
    """
    kwargs: dict[str, Any] = {}
    for name in _SCALAR_FIELDS:
        if data.get(name) is not None:
            try:
                value = float(data[name])
            except (TypeError, ValueError) as e:
                raise ValidationError(f"{name} must be a number, got {data[name]!r}") from e
            if math.isfinite(value):
                kwargs[name] = value
    for name, size in _VECTOR_FIELDS.items():
        if data.get(name) is not None:
            vector = _vector(data[name], size, name)
            if all_finite(vector):
                kwargs[name] = vector
    return Sample(**kwargs)


def parse_tick_record(data: dict[str, Any]) -> TickRecord | ActionRecord:
    """
    Convert one replay-log entry.

    An entry with an ``action`` key is an ActionRecord; anything else needs
    a ``dt`` and is a TickRecord.

    Raises:
        ValidationError: If the entry is malformed
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Record must be a JSON object, got {type(data).__name__}")

    if "action" in data:
        name = data["action"]
        if name not in ACTIONS:
            valid = ", ".join(sorted(ACTIONS))
            raise ValidationError(f"Unknown action: {name!r}. Valid actions: {valid}")
        rating = data.get("rating")
        if rating is not None:
            try:
                rating = int(rating)
            except (TypeError, ValueError, OverflowError) as e:
                raise ValidationError(f"rating must be an integer, got {rating!r}") from e
        return ActionRecord(name=name, rating=rating)

    if "dt" not in data:
        raise ValidationError("Tick record missing 'dt'")
    try:
        dt = float(data["dt"])
    except (TypeError, ValueError) as e:
        raise ValidationError(f"dt must be a number, got {data['dt']!r}") from e
    if not math.isfinite(dt):
        raise ValidationError(f"dt must be a finite number, got {data['dt']!r}")
    validate_non_negative(dt, "dt")
    return TickRecord(sample=dict_to_sample(data), dt=dt)


def record_to_dict(record: TickRecord | ActionRecord) -> dict[str, Any]:
    """Convert a tick or action record back to its log form."""
    if isinstance(record, ActionRecord):
        result: dict[str, Any] = {"action": record.name}
        if record.rating is not None:
            result["rating"] = record.rating
        return result
    result = {"dt": record.dt}
    result.update(sample_to_dict(record.sample))
    return result


def _rounded(value: Any) -> Any:
    if isinstance(value, float):
        return round(value, 4)
    if isinstance(value, dict):
        return {k: _rounded(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_rounded(v) for v in value]
    return value


def snapshot_to_dict(snapshot: ScoreSnapshot) -> dict[str, Any]:
    """
    Convert a ScoreSnapshot to a JSON-compatible dict.

    Floats are rounded to 4 decimals for stable output.
    """
    return {
        "exercise_id": snapshot.exercise_id,
        "phase": snapshot.phase,
        "transitioned": snapshot.transitioned,
        "instruction_key": snapshot.instruction_key,
        "feedback_key": snapshot.feedback_key,
        "metrics": _rounded(asdict(snapshot.metrics)),
        "stalled": snapshot.stalled,
        "sensor_gap": snapshot.sensor_gap,
        "detail": _rounded(snapshot.detail),
    }


def json_line_to_record(line: str) -> TickRecord | ActionRecord:
    """
    Parse a single JSONL line.

    Raises:
        ValidationError: If the line is not valid JSON or not a valid record
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON: {e}") from e
    return parse_tick_record(data)
