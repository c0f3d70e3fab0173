"""
Exercise registry.

All engine kinds and exercise presets are registered here. Use
get_exercise() to look up a preset by its exercise_id and create_session()
to build a ready-to-run engine for it.

Presets are loaded from per-exercise YAML files in the bundled
``src/rehab_engine/exercises/`` directory at import time. If no preset can
be loaded, a RuntimeError is raised; the engine cannot run without them.

User overrides: place matching files in ``~/.rehab-engine/exercises/``.
"""

import dataclasses
from typing import Any

from .base import ExerciseSession
from .grip import GripStrengthAssessment
from .jar_lid import JarLidActivity
from .joint_mobility import JointMobilitySession
from .loader import ExercisePreset
from .path import MovementAccuracySession
from .range_of_motion import RangeOfMotionAssessment
from .stretch import StretchRoutine
from .wrist import WristPostureMonitor

ENGINE_KINDS: dict[str, type[ExerciseSession]] = {
    cls.kind: cls
    for cls in (
        JointMobilitySession,
        RangeOfMotionAssessment,
        GripStrengthAssessment,
        MovementAccuracySession,
        StretchRoutine,
        WristPostureMonitor,
        JarLidActivity,
    )
}


def _build_registry() -> dict[str, ExercisePreset]:
    from .loader import load_presets_from_yaml

    loaded = load_presets_from_yaml()
    if not loaded:
        raise RuntimeError(
            "rehab-engine: no exercise presets could be loaded from YAML. "
            "Check that src/rehab_engine/exercises/*.yaml files are present and valid."
        )
    unknown = {p.exercise_id: p.kind for p in loaded.values() if p.kind not in ENGINE_KINDS}
    if unknown:
        raise RuntimeError(f"rehab-engine: presets reference unknown engine kinds: {unknown}")
    return loaded


EXERCISE_REGISTRY: dict[str, ExercisePreset] = _build_registry()


def get_exercise(exercise_id: str) -> ExercisePreset:
    """
    Return the ExercisePreset for the given exercise_id.

    Raises:
        ValueError: If exercise_id is not in the registry
    """
    if exercise_id not in EXERCISE_REGISTRY:
        valid = ", ".join(EXERCISE_REGISTRY)
        raise ValueError(f"Unknown exercise '{exercise_id}'. Valid IDs: {valid}")
    return EXERCISE_REGISTRY[exercise_id]


def create_session(exercise_id: str, **overrides: Any) -> ExerciseSession:
    """
    Build a fresh engine for a preset.

    Args:
        exercise_id: Preset ID (see EXERCISE_REGISTRY)
        **overrides: SessionConfig fields replacing the preset's values

    Returns:
        A new, independent ExerciseSession in its initial phase

    Raises:
        ValueError: If the preset is unknown or an override is invalid
    """
    preset = get_exercise(exercise_id)
    config = preset.config
    if overrides:
        try:
            config = dataclasses.replace(config, **overrides)
        except TypeError as exc:
            raise ValueError(f"Invalid config override for '{exercise_id}': {exc}") from exc
    return ENGINE_KINDS[preset.kind](config, exercise_id=preset.exercise_id)
