"""
Data models for rehab-engine.

Configuration, per-tick samples, mutable session state, and the read-only
snapshot handed to the presentation layer. Phase tags are plain strings;
each exercise declares which of them it uses in its transition table.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

from . import config as cfg

Phase = Literal[
    "intro",
    "warmup",
    "calibrate",
    "instruction_preview",
    "ready",
    "active",
    "hold_top",
    "rest",
    "pain_check",
    "complete",
]
PHASES: tuple[str, ...] = (
    "intro",
    "warmup",
    "calibrate",
    "instruction_preview",
    "ready",
    "active",
    "hold_top",
    "rest",
    "pain_check",
    "complete",
)

Vec3 = tuple[float, float, float]
Quat = tuple[float, float, float, float]  # (x, y, z, w)


@dataclass(frozen=True)
class StretchDefinition:
    """
    One stretch in a guided routine.

    Either rep-based (``reps > 0``, one inhale/exhale cycle per rep) or a
    static hold (``hold_seconds > 0``). When both are set, reps win.
    """

    name: str
    instruction: str = ""
    hold_seconds: float = cfg.STRETCH_HOLD_SECONDS
    reps: int = 0
    inhale_seconds: float = cfg.INHALE_SECONDS
    exhale_seconds: float = cfg.EXHALE_SECONDS

    def __post_init__(self) -> None:
        """Validate stretch data."""
        if not self.name:
            raise ValueError("Stretch name must be non-empty")
        if self.reps < 0:
            raise ValueError("reps must be non-negative")
        if self.hold_seconds < 0:
            raise ValueError("hold_seconds must be non-negative")
        if self.reps > 0 and (self.inhale_seconds <= 0 or self.exhale_seconds <= 0):
            raise ValueError("inhale_seconds and exhale_seconds must be positive for rep-based stretches")

    @property
    def is_rep_based(self) -> bool:
        return self.reps > 0


@dataclass(frozen=True)
class SessionConfig:
    """
    Immutable per-exercise parameters, supplied once at session creation.

    One flat structure covers every exercise; each engine reads only the
    fields relevant to it.
    """

    # Repetition tracking
    target_angle_deg: float = cfg.TARGET_ANGLE_DEG
    tolerance_deg: float = cfg.TOLERANCE_DEG
    start_margin_deg: float = cfg.START_MARGIN_DEG
    sets: int = cfg.SETS
    reps_per_set: int = cfg.REPS_PER_SET

    # Durations (seconds)
    intro_seconds: float = cfg.INTRO_SECONDS
    warmup_seconds: float = cfg.WARMUP_SECONDS
    hold_seconds: float = cfg.HOLD_TOP_SECONDS
    rest_seconds: float = cfg.REST_SECONDS
    ready_seconds: float = cfg.READY_SECONDS
    trial_seconds: float = cfg.TRIAL_SECONDS
    trial_rest_seconds: float = cfg.TRIAL_REST_SECONDS
    warmup_min_seconds: float = cfg.WARMUP_MIN_SECONDS
    calibrate_min_seconds: float = cfg.CALIBRATE_MIN_SECONDS
    session_seconds: float = 0.0  # 0 = open-ended monitoring
    stall_ceiling_seconds: float = cfg.STALL_CEILING_SECONDS

    # Range of motion
    range_min_deg: float = cfg.ROM_RANGE_MIN_DEG
    range_max_deg: float = cfg.ROM_RANGE_MAX_DEG
    rom_rep_fraction: float = cfg.ROM_REP_FRACTION

    # Grip
    total_trials: int = cfg.TOTAL_TRIALS
    min_calibration_grip: float = cfg.MIN_CALIBRATION_GRIP
    release_threshold: float = cfg.RELEASE_THRESHOLD
    initial_calibrated_max: float = cfg.INITIAL_CALIBRATED_MAX
    grip_safe: float = cfg.GRIP_SAFE
    grip_max: float = cfg.GRIP_MAX

    # Path scoring
    reference_path: tuple[Vec3, ...] = ()
    max_repetitions: int = cfg.MAX_REPETITIONS
    accuracy_scale: float = cfg.ACCURACY_SCALE
    smoothness_scale: float = cfg.SMOOTHNESS_SCALE
    consistency_scale: float = cfg.CONSISTENCY_SCALE
    accuracy_cutoff: float = cfg.ACCURACY_CUTOFF
    smoothness_cutoff: float = cfg.SMOOTHNESS_CUTOFF
    consistency_cutoff: float = cfg.CONSISTENCY_CUTOFF

    # Stretching
    stretches: tuple[StretchDefinition, ...] = ()

    # Wrist posture
    wrist_safe_deg: float = cfg.WRIST_SAFE_DEG
    wrist_max_deg: float = cfg.WRIST_MAX_DEG

    # Jar lid
    open_angle_deg: float = cfg.LID_OPEN_ANGLE_DEG
    rotation_speed_deg: float = cfg.LID_ROTATION_SPEED_DEG

    def __post_init__(self) -> None:
        """Validate config data."""
        if self.target_angle_deg <= 0:
            raise ValueError("target_angle_deg must be positive")
        if self.tolerance_deg < 0 or self.start_margin_deg < 0:
            raise ValueError("tolerance_deg and start_margin_deg must be non-negative")
        if self.tolerance_deg >= self.target_angle_deg:
            raise ValueError("tolerance_deg must be smaller than target_angle_deg")
        if self.sets <= 0 or self.reps_per_set <= 0:
            raise ValueError("sets and reps_per_set must be positive")
        if self.total_trials <= 0:
            raise ValueError("total_trials must be positive")
        if self.max_repetitions <= 0:
            raise ValueError("max_repetitions must be positive")

        durations = (
            "intro_seconds",
            "warmup_seconds",
            "hold_seconds",
            "rest_seconds",
            "ready_seconds",
            "trial_seconds",
            "trial_rest_seconds",
            "warmup_min_seconds",
            "calibrate_min_seconds",
            "session_seconds",
        )
        for name in durations:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.stall_ceiling_seconds <= 0:
            raise ValueError("stall_ceiling_seconds must be positive")

        if self.range_max_deg <= self.range_min_deg:
            raise ValueError("range_max_deg must be greater than range_min_deg")
        if not 0 < self.rom_rep_fraction <= 1:
            raise ValueError("rom_rep_fraction must be in (0, 1]")

        for name in ("min_calibration_grip", "release_threshold", "initial_calibrated_max", "grip_safe", "grip_max"):
            if not 0.0 <= getattr(self, name) <= 1.0:
                raise ValueError(f"{name} must be within [0, 1]")
        if self.grip_safe > self.grip_max:
            raise ValueError("grip_safe must not exceed grip_max")

        if self.wrist_safe_deg < 0 or self.wrist_max_deg <= 0:
            raise ValueError("wrist angles must be positive")
        if self.wrist_safe_deg > self.wrist_max_deg:
            raise ValueError("wrist_safe_deg must not exceed wrist_max_deg")
        if self.open_angle_deg <= 0 or self.rotation_speed_deg <= 0:
            raise ValueError("open_angle_deg and rotation_speed_deg must be positive")

        for point in self.reference_path:
            if len(point) != 3:
                raise ValueError(f"reference_path points must be 3-D, got {point!r}")


@dataclass(frozen=True)
class Sample:
    """
    One tick's normalized sensor reading.

    Only the fields an exercise needs are read; a sample lacking them is
    treated as a transient sensor gap.
    """

    grip: float | None = None  # 0..1 trigger/grip value
    angle_deg: float | None = None  # Pre-computed joint angle
    position: Vec3 | None = None  # Tracked hand position
    forward: Vec3 | None = None  # Tracked hand forward direction
    reference_position: Vec3 | None = None  # e.g. shoulder position
    reference_forward: Vec3 | None = None  # e.g. shoulder/torso forward
    rotation: Quat | None = None  # Right (or only) wrist orientation
    left_rotation: Quat | None = None  # Left wrist orientation


@dataclass
class SessionState:
    """
    Mutable state of one exercise session.

    Owned by exactly one engine instance. ``trial_peaks`` and
    ``rep_distances`` are the append-only per-trial peak and per-repetition distance
    histories.
    """

    phase: str = "intro"
    phase_elapsed: float = 0.0
    total_elapsed: float = 0.0
    stalled: bool = False

    current_set: int = 0
    current_rep: int = 0
    total_reps: int = 0
    holding: bool = False
    reached_top: bool = False
    progress_fraction: float = 0.0
    last_angle: float | None = None
    max_angle: float = 0.0

    calibrated_max: float = cfg.INITIAL_CALIBRATED_MAX
    calibration_frozen: bool = False
    trial_index: int = 0
    trial_peaks: list[float] = field(default_factory=list)
    rep_distances: list[float] = field(default_factory=list)

    stretch_index: int = 0
    pain_ratings: list[tuple[str, int | None]] = field(default_factory=list)

    instruction_key: str = ""
    feedback_key: str = ""


@dataclass
class MetricSet:
    """Numeric metrics reported with every snapshot."""

    progress_fraction: float = 0.0  # 0..1
    rep_count: int = 0
    set_count: int = 0
    accuracy: float = 100.0  # percentages, 0..100
    smoothness: float = 100.0
    consistency: float = 100.0
    endurance: float = 0.0
    peak: float = 0.0
    avg: float = 0.0


@dataclass(frozen=True)
class ScoreSnapshot:
    """
    Read-only output of one tick (or one action).

    ``detail`` carries exercise-specific numbers such as the current angle,
    trial number, breathing cue or wrist zone.
    """

    exercise_id: str
    phase: str
    transitioned: bool
    instruction_key: str
    feedback_key: str
    metrics: MetricSet
    stalled: bool = False
    sensor_gap: bool = False
    detail: dict[str, Any] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return self.phase == "complete"
