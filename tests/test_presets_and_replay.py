"""
Tests for preset loading, the exercise registry, JSON serializers and
replay logs.

Loader tests work on temporary preset directories so the user's
~/.rehab-engine/exercises/ never leaks in.
"""

import json
from pathlib import Path

import pytest

from rehab_engine.core.exercises import ENGINE_KINDS, EXERCISE_REGISTRY, create_session, get_exercise
from rehab_engine.core.exercises.loader import config_from_dict, load_presets_from_yaml, preset_from_dict
from rehab_engine.core.models import Sample
from rehab_engine.io.replay_log import ReplayLog, replay
from rehab_engine.io.serializers import (
    ActionRecord,
    TickRecord,
    ValidationError,
    dict_to_sample,
    json_line_to_record,
    parse_tick_record,
    sample_to_dict,
    snapshot_to_dict,
)

GRIP_YAML = """\
exercise_id: grip_strength
display_name: Grip Strength Assessment
kind: grip
description: Squeeze test.
config:
  total_trials: 3
  trial_seconds: 2.0
  initial_calibrated_max: 0.8
"""

# ===========================================================================
# Shared helpers
# ===========================================================================

def _write(directory: Path, name: str, text: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(text, encoding="utf-8")
    return path


def _write_log(path: Path, entries: list[dict]) -> Path:
    path.write_text("".join(json.dumps(e) + "\n" for e in entries), encoding="utf-8")
    return path


def _grip_session_log() -> list[dict]:
    """A complete grip assessment at 0.5 s ticks: trials peak at 0.4, 0.6, 0.5."""
    entries: list[dict] = []

    def ticks(grip: float, seconds: float) -> None:
        entries.extend({"dt": 0.5, "grip": grip} for _ in range(int(seconds / 0.5)))

    ticks(0.0, 2.0)  # intro
    ticks(0.5, 0.5)  # warm-up squeeze
    ticks(0.0, 1.5)  # release
    ticks(0.8, 1.0)  # calibration squeeze
    ticks(0.0, 1.0)
    ticks(0.0, 1.0)  # ready
    for i, peak in enumerate((0.4, 0.6, 0.5)):
        ticks(peak, 2.0)
        if i < 2:
            ticks(0.0, 3.0)  # rest
            ticks(0.0, 1.0)  # ready
    return entries


# ===========================================================================
# loader.py
# ===========================================================================

class TestPresetLoader:

    def test_loads_bundled_file(self, tmp_path):
        bundled = tmp_path / "bundled"
        _write(bundled, "grip_strength.yaml", GRIP_YAML)

        presets = load_presets_from_yaml(bundled_dir=bundled, user_dir=tmp_path / "none")

        assert set(presets) == {"grip_strength"}
        preset = presets["grip_strength"]
        assert preset.kind == "grip"
        assert preset.config.total_trials == 3
        assert preset.description == "Squeeze test."

    def test_user_file_is_deep_merged(self, tmp_path):
        bundled = tmp_path / "bundled"
        user = tmp_path / "user"
        _write(bundled, "grip_strength.yaml", GRIP_YAML)
        _write(user, "grip_strength.yaml", "config:\n  total_trials: 5\n")

        preset = load_presets_from_yaml(bundled_dir=bundled, user_dir=user)["grip_strength"]

        assert preset.config.total_trials == 5
        assert preset.config.trial_seconds == 2.0
        assert preset.display_name == "Grip Strength Assessment"

    def test_user_only_file_adds_preset(self, tmp_path):
        bundled = tmp_path / "bundled"
        user = tmp_path / "user"
        _write(bundled, "grip_strength.yaml", GRIP_YAML)
        _write(
            user,
            "quick_grip.yaml",
            "exercise_id: quick_grip\ndisplay_name: Quick Grip\nkind: grip\nconfig:\n  total_trials: 1\n",
        )

        presets = load_presets_from_yaml(bundled_dir=bundled, user_dir=user)

        assert set(presets) == {"grip_strength", "quick_grip"}
        assert presets["quick_grip"].config.total_trials == 1

    def test_invalid_preset_is_skipped_with_warning(self, tmp_path):
        bundled = tmp_path / "bundled"
        _write(bundled, "grip_strength.yaml", GRIP_YAML)
        _write(bundled, "broken.yaml", "exercise_id: broken\ndisplay_name: Broken\n")

        with pytest.warns(UserWarning, match="skipping preset 'broken'"):
            presets = load_presets_from_yaml(bundled_dir=bundled, user_dir=tmp_path / "none")

        assert set(presets) == {"grip_strength"}

    def test_unknown_config_key_is_skipped(self, tmp_path):
        bundled = tmp_path / "bundled"
        _write(bundled, "grip_strength.yaml", GRIP_YAML + "  squeeze_harder: true\n")

        with pytest.warns(UserWarning, match="squeeze_harder"):
            presets = load_presets_from_yaml(bundled_dir=bundled, user_dir=tmp_path / "none")

        assert presets is None

    def test_malformed_yaml_warns(self, tmp_path):
        bundled = tmp_path / "bundled"
        _write(bundled, "grip_strength.yaml", GRIP_YAML)
        _write(bundled, "bad.yaml", "exercise_id: [unclosed\n")

        with pytest.warns(UserWarning, match="cannot read"):
            presets = load_presets_from_yaml(bundled_dir=bundled, user_dir=tmp_path / "none")

        assert set(presets) == {"grip_strength"}

    def test_empty_directory_returns_none(self, tmp_path):
        (tmp_path / "bundled").mkdir()
        assert load_presets_from_yaml(bundled_dir=tmp_path / "bundled", user_dir=tmp_path / "none") is None

    def test_config_from_dict_converts_nested_values(self):
        config = config_from_dict(
            {
                "reference_path": [[0, 0, 0], [1, 0, 0]],
                "stretches": [{"name": "Finger Spread", "reps": 5}],
            }
        )
        assert config.reference_path == ((0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
        assert config.stretches[0].name == "Finger Spread"
        assert config.stretches[0].is_rep_based

    def test_preset_from_dict_requires_fields(self):
        with pytest.raises(ValueError, match="kind"):
            preset_from_dict({"exercise_id": "x", "display_name": "X"})

    def test_invalid_config_value_raises(self):
        with pytest.raises(ValueError):
            config_from_dict({"sets": 0})


# ===========================================================================
# registry.py
# ===========================================================================

class TestRegistry:

    def test_bundled_presets_present(self):
        expected = {
            "joint_mobility",
            "range_of_motion",
            "grip_strength",
            "movement_accuracy",
            "guided_stretch",
            "wrist_posture",
            "jar_lid",
        }
        assert expected <= set(EXERCISE_REGISTRY)
        for preset in EXERCISE_REGISTRY.values():
            assert preset.kind in ENGINE_KINDS

    def test_bundled_stretches_and_path(self):
        stretches = get_exercise("guided_stretch").config.stretches
        assert len(stretches) == 3
        assert not stretches[0].is_rep_based
        assert stretches[1].is_rep_based
        assert len(get_exercise("movement_accuracy").config.reference_path) >= 2

    def test_unknown_exercise(self):
        with pytest.raises(ValueError, match="Unknown exercise"):
            get_exercise("handstand")

    def test_create_session_applies_overrides(self):
        session = create_session("grip_strength", total_trials=1)
        assert session.config.total_trials == 1
        assert session.exercise_id == "grip_strength"
        assert session.phase == "intro"

    def test_sessions_are_independent(self):
        a = create_session("joint_mobility")
        b = create_session("joint_mobility")
        a.begin_exercise()
        assert a.phase == "warmup"
        assert b.phase == "intro"

    def test_unknown_override_field(self):
        with pytest.raises(ValueError, match="Invalid config override"):
            create_session("grip_strength", squeeze_harder=True)

    def test_invalid_override_value(self):
        with pytest.raises(ValueError):
            create_session("joint_mobility", sets=0)


# ===========================================================================
# serializers.py
# ===========================================================================

class TestSerializers:

    def test_sample_dict_omits_empty_fields(self):
        sample = Sample(grip=0.4, position=(1.0, 2.0, 3.0))
        assert sample_to_dict(sample) == {"grip": 0.4, "position": [1.0, 2.0, 3.0]}
        assert dict_to_sample(sample_to_dict(sample)) == sample

    def test_tick_record(self):
        record = parse_tick_record({"dt": 0.02, "angle_deg": 45})
        assert isinstance(record, TickRecord)
        assert record.dt == pytest.approx(0.02)
        assert record.sample.angle_deg == 45.0

    def test_action_record(self):
        record = parse_tick_record({"action": "confirm", "rating": "4"})
        assert record == ActionRecord(name="confirm", rating=4)

    @pytest.mark.parametrize(
        "data, message",
        [
            ({"grip": 0.3}, "missing 'dt'"),
            ({"dt": -0.1}, "non-negative"),
            ({"dt": "soon"}, "dt must be a number"),
            ({"dt": float("nan")}, "finite"),
            ({"dt": float("inf")}, "finite"),
            ({"dt": 0.1, "position": [1, 2]}, "position"),
            ({"dt": 0.1, "grip": "firm"}, "grip"),
            ({"action": "jump"}, "Unknown action"),
            ({"action": "confirm", "rating": "high"}, "rating"),
        ],
    )
    def test_malformed_records(self, data, message):
        with pytest.raises(ValidationError, match=message):
            parse_tick_record(data)

    def test_non_finite_readings_load_as_gaps(self):
        record = json_line_to_record('{"dt": 0.5, "grip": NaN, "angle_deg": 30, "position": [0, Infinity, 0]}')
        assert record.sample == Sample(angle_deg=30.0)

    def test_non_finite_readings_are_not_written(self):
        sample = Sample(grip=float("nan"), angle_deg=12.0, rotation=(0.0, 0.0, float("-inf"), 1.0))
        assert sample_to_dict(sample) == {"angle_deg": 12.0}

    def test_huge_rating_is_rejected(self):
        with pytest.raises(ValidationError, match="rating"):
            json_line_to_record('{"action": "confirm", "rating": Infinity}')

    def test_invalid_json_line(self):
        with pytest.raises(ValidationError, match="Invalid JSON"):
            json_line_to_record("{dt: 0.1")

    def test_snapshot_dict_is_json_ready(self):
        session = create_session("movement_accuracy")
        session.begin_exercise()
        snap = session.advance(Sample(position=(0.0, 1.1, 0.4)), 0.1)

        data = snapshot_to_dict(snap)

        assert data["phase"] == "active"
        assert 0.0 <= data["metrics"]["accuracy"] <= 100.0
        json.dumps(data)


# ===========================================================================
# replay_log.py
# ===========================================================================

class TestReplayLog:

    def test_append_and_load(self, tmp_path):
        log = ReplayLog(tmp_path / "logs" / "session.jsonl")
        assert not log.exists()
        log.init()
        assert log.exists()

        log.append_tick(Sample(grip=0.3), 0.5)
        log.append_tick(None, 0.5)
        log.append_action("confirm", rating=2)

        records = log.load_records()
        assert records == [
            TickRecord(sample=Sample(grip=0.3), dt=0.5),
            TickRecord(sample=Sample(), dt=0.5),
            ActionRecord(name="confirm", rating=2),
        ]

    def test_non_finite_tick_replays_as_gap(self, tmp_path):
        log = ReplayLog(tmp_path / "session.jsonl")
        log.init()
        log.append_tick(Sample(grip=float("nan")), 0.5)

        records = log.load_records()
        assert records == [TickRecord(sample=Sample(), dt=0.5)]

        session = create_session("grip_strength")
        session.begin_exercise()
        assert replay(session, records)[-1].sensor_gap

    def test_append_before_init(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ReplayLog(tmp_path / "missing.jsonl").append_tick(Sample(), 0.1)

    def test_unknown_action_rejected(self, tmp_path):
        log = ReplayLog(tmp_path / "session.jsonl")
        log.init()
        with pytest.raises(ValidationError):
            log.append_action("jump")

    def test_bad_line_reports_line_number(self, tmp_path):
        path = tmp_path / "session.jsonl"
        path.write_text('{"dt": 0.5}\n\n{"dt": -1}\n', encoding="utf-8")
        with pytest.raises(ValidationError, match="line 3"):
            ReplayLog(path).load_records()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ReplayLog(tmp_path / "nope.jsonl").load_records()

    def test_replay_is_deterministic(self, tmp_path):
        path = _write_log(tmp_path / "grip.jsonl", _grip_session_log())
        records = ReplayLog(path).load_records()

        first = replay(create_session("grip_strength"), records)
        second = replay(create_session("grip_strength"), records)

        assert first == second
        assert len(first) == len(records)
        final = first[-1]
        assert final.phase == "complete"
        assert final.metrics.peak == pytest.approx(60.0)
        assert final.metrics.avg == pytest.approx(50.0)
        assert final.metrics.endurance == 63

    def test_replay_dispatches_actions(self, tmp_path):
        entries = [
            {"action": "begin_exercise"},
            {"action": "confirm"},
            *({"dt": 0.5} for _ in range(40)),
            {"action": "confirm", "rating": 2},
        ]
        records = ReplayLog(_write_log(tmp_path / "stretch.jsonl", entries)).load_records()
        session = create_session("guided_stretch")

        snapshots = replay(session, records)

        assert snapshots[1].phase == "active"
        assert snapshots[-1].phase == "instruction_preview"
        assert session.state.pain_ratings == [("Wrist Flexor Stretch", 2)]

    def test_replay_reset_action(self, tmp_path):
        entries = [{"dt": 0.5, "angle_deg": 0.0}] * 6 + [{"action": "reset"}]
        records = ReplayLog(_write_log(tmp_path / "mobility.jsonl", entries)).load_records()

        snapshots = replay(create_session("joint_mobility"), records)

        assert snapshots[-2].phase == "warmup"
        assert snapshots[-1].phase == "intro"
