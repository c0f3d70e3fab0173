"""
YAML → ExercisePreset loader.

Loads exercise presets from individual YAML files in the bundled
``src/rehab_engine/exercises/`` directory. Each file (e.g. grip_strength.yaml)
names the engine kind and the SessionConfig values for that preset.

User overrides: place matching files in ``~/.rehab-engine/exercises/``.
A user file is deep-merged over the bundled preset, so only changed keys
need to be listed. A user file whose name does not match any bundled file
is treated as a new preset and added to the registry.

Usage (internal, called by registry.py):
    from .loader import load_presets_from_yaml
    presets = load_presets_from_yaml()   # dict or None on failure
"""

from __future__ import annotations

import dataclasses
import os
import warnings
from pathlib import Path

import yaml

from ..models import SessionConfig, StretchDefinition

_REQUIRED_PRESET_FIELDS: frozenset[str] = frozenset(
    {
        "exercise_id",
        "display_name",
        "kind",
    }
)

_CONFIG_FIELDS: frozenset[str] = frozenset(f.name for f in dataclasses.fields(SessionConfig))


@dataclasses.dataclass(frozen=True)
class ExercisePreset:
    """A named exercise: which engine runs it and with what configuration."""

    exercise_id: str  # e.g. "grip_strength"
    display_name: str  # e.g. "Grip Strength Assessment"
    kind: str  # engine key, e.g. "grip"
    config: SessionConfig
    description: str = ""


def _stretch_from_dict(d: dict) -> StretchDefinition:
    if "name" not in d:
        raise ValueError(f"Stretch missing 'name': {d!r}")
    return StretchDefinition(
        name=str(d["name"]),
        instruction=str(d.get("instruction", "")),
        hold_seconds=float(d.get("hold_seconds", 0.0)),
        reps=int(d.get("reps", 0)),
        inhale_seconds=float(d.get("inhale_seconds", StretchDefinition.inhale_seconds)),
        exhale_seconds=float(d.get("exhale_seconds", StretchDefinition.exhale_seconds)),
    )


def config_from_dict(d: dict) -> SessionConfig:
    """Convert a raw ``config`` mapping to a SessionConfig.

    Raises ValueError on unknown keys or invalid values.
    """
    d = dict(d)
    unknown = set(d) - _CONFIG_FIELDS
    if unknown:
        raise ValueError(f"SessionConfig has no fields: {sorted(unknown)}")

    if "reference_path" in d:
        d["reference_path"] = tuple(tuple(float(c) for c in point) for point in d["reference_path"] or ())
    if "stretches" in d:
        d["stretches"] = tuple(_stretch_from_dict(s) for s in d["stretches"] or ())
    return SessionConfig(**d)


def preset_from_dict(d: dict) -> ExercisePreset:
    """Convert a raw dict (from YAML) to an ExercisePreset.

    Raises ValueError if any required field is absent.
    """
    missing = _REQUIRED_PRESET_FIELDS - set(d)
    if missing:
        raise ValueError(f"ExercisePreset missing fields: {sorted(missing)}")
    return ExercisePreset(
        exercise_id=str(d["exercise_id"]),
        display_name=str(d["display_name"]),
        kind=str(d["kind"]),
        config=config_from_dict(d.get("config") or {}),
        description=str(d.get("description", "")).strip(),
    )


def _load_yaml_file(path: Path) -> dict:
    """Load a YAML file; warn and return {} when it cannot be read or parsed."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        warnings.warn(f"rehab-engine: cannot read '{path}': {exc}", stacklevel=2)
        return {}
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def get_bundled_presets_dir() -> Path | None:
    """Return path to the bundled exercises/ data directory, or None if not found."""
    # loader.py lives at src/rehab_engine/core/exercises/loader.py
    # three levels up → src/rehab_engine/
    candidate = Path(__file__).parent.parent.parent / "exercises"
    return candidate if candidate.is_dir() else None


def get_user_presets_dir() -> Path | None:
    """Return ~/.rehab-engine/exercises/ if it exists, else None."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    p = home / ".rehab-engine" / "exercises"
    return p if p.is_dir() else None


def load_presets_from_yaml(
    bundled_dir: Path | None = None,
    user_dir: Path | None = None,
) -> dict[str, ExercisePreset] | None:
    """Return {exercise_id: ExercisePreset} loaded from per-exercise YAML files.

    Loads each ``<exercise_id>.yaml`` from the bundled exercises/ directory.
    If a matching file exists in the user directory it is deep-merged over
    the bundled preset. User-only files are loaded as new presets. Invalid
    presets are skipped with a warning.

    Args:
        bundled_dir: Override for the bundled directory (tests)
        user_dir: Override for the user directory (tests)

    Returns None when no preset could be loaded.
    """
    bundled_dir = bundled_dir if bundled_dir is not None else get_bundled_presets_dir()
    user_dir = user_dir if user_dir is not None else get_user_presets_dir()

    if bundled_dir is None and user_dir is None:
        return None

    # stem → bundled path
    stems: dict[str, Path] = {}
    if bundled_dir is not None:
        for p in sorted(bundled_dir.glob("*.yaml")):
            stems[p.stem] = p

    user_only: list[Path] = []
    if user_dir is not None:
        for p in sorted(user_dir.glob("*.yaml")):
            if p.stem not in stems:
                user_only.append(p)

    raw_presets: list[tuple[str, dict]] = []
    for stem, bundled_path in stems.items():
        raw = _load_yaml_file(bundled_path)
        if not raw:
            continue
        if user_dir is not None:
            user_path = user_dir / f"{stem}.yaml"
            if user_path.exists():
                user_raw = _load_yaml_file(user_path)
                if user_raw:
                    raw = _deep_merge(raw, user_raw)
        raw_presets.append((stem, raw))

    for p in user_only:
        raw = _load_yaml_file(p)
        if raw:
            raw_presets.append((p.stem, raw))

    result: dict[str, ExercisePreset] = {}
    for stem, raw in raw_presets:
        try:
            preset = preset_from_dict(raw)
        except (ValueError, TypeError) as exc:
            warnings.warn(f"rehab-engine: skipping preset '{stem}': {exc}", stacklevel=2)
            continue
        result[preset.exercise_id] = preset

    return result if result else None
