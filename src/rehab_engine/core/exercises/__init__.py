"""
Exercise engines for rehab-engine.

Each exercise is an ExerciseSession subclass driven by a per-exercise
transition table; presets bind an engine kind to a SessionConfig.
"""

from .base import ExerciseSession
from .loader import ExercisePreset
from .registry import ENGINE_KINDS, EXERCISE_REGISTRY, create_session, get_exercise

__all__ = [
    "ExerciseSession",
    "ExercisePreset",
    "ENGINE_KINDS",
    "EXERCISE_REGISTRY",
    "create_session",
    "get_exercise",
]
