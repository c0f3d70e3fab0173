"""
Configuration constants for the exercise session engine.

All adjustable defaults are centralized here for easy tuning. Presets in
``src/rehab_engine/exercises/*.yaml`` override them per exercise.
"""

from typing import Final

# =============================================================================
# PHASE TIMING (seconds)
# =============================================================================

INTRO_SECONDS: Final[float] = 2.0  # Settle time before warm-up
WARMUP_SECONDS: Final[float] = 6.0  # Joint-mobility warm-up length
HOLD_TOP_SECONDS: Final[float] = 2.0  # Brief hold at the top of a rep
REST_SECONDS: Final[float] = 30.0  # Rest between sets
READY_SECONDS: Final[float] = 1.0  # Pause before each grip trial
TRIAL_SECONDS: Final[float] = 2.0  # Squeeze window per grip trial
TRIAL_REST_SECONDS: Final[float] = 3.0  # Pause between grip trials

# Phase-local minimums for the grip warm-up and calibration exits
WARMUP_MIN_SECONDS: Final[float] = 2.0
CALIBRATE_MIN_SECONDS: Final[float] = 2.0

# A timed phase lasting longer than this is reported as stalled
STALL_CEILING_SECONDS: Final[float] = 120.0

# =============================================================================
# REPETITION TRACKING (degrees)
# =============================================================================

TARGET_ANGLE_DEG: Final[float] = 90.0
TOLERANCE_DEG: Final[float] = 5.0
START_MARGIN_DEG: Final[float] = 2.0  # Extra slack on the "back at start" check
WARMUP_FILL_ANGLE_DEG: Final[float] = 40.0  # Warm-up bar is full at this angle
LOWERING_FILL: Final[float] = 0.85  # Bar value pinned when lowering begins

SETS: Final[int] = 2
REPS_PER_SET: Final[int] = 6

# Joint-mobility feedback breakpoints
LIFT_NICE_DEG: Final[float] = 50.0
LIFT_START_DEG: Final[float] = 20.0

# =============================================================================
# RANGE OF MOTION ASSESSMENT
# =============================================================================

ROM_RANGE_MIN_DEG: Final[float] = 0.0
ROM_RANGE_MAX_DEG: Final[float] = 90.0
ROM_REP_FRACTION: Final[float] = 0.8  # Fraction of range max that counts as a rep

# =============================================================================
# GRIP (normalized 0..1)
# =============================================================================

MIN_CALIBRATION_GRIP: Final[float] = 0.2  # Minimum signal counted as a squeeze
RELEASE_THRESHOLD: Final[float] = 0.05  # Below this the hand is relaxed
INITIAL_CALIBRATED_MAX: Final[float] = 0.8
CALIBRATION_FLOOR: Final[float] = 0.1  # At or below: degenerate calibration
TOTAL_TRIALS: Final[int] = 3
EXCELLENT_PEAK_FRACTION: Final[float] = 0.9

# Relative-effort breakpoints (descending) and their feedback keys
EFFORT_BANDS: Final[tuple[tuple[float, str], ...]] = (
    (0.9, "effort.great_peak"),
    (0.6, "effort.good_squeeze"),
    (0.3, "effort.keep_squeezing"),
)

# Ergonomic grip window for daily-activity simulations
GRIP_SAFE: Final[float] = 0.3
GRIP_MAX: Final[float] = 0.7

# =============================================================================
# PATH SCORING
# =============================================================================

ACCURACY_SCALE: Final[float] = 10.0  # Percent lost per scene unit of deviation
SMOOTHNESS_SCALE: Final[float] = 20.0  # Percent lost per unit of velocity change
CONSISTENCY_SCALE: Final[float] = 40.0  # Percent lost per unit of variance

ACCURACY_CUTOFF: Final[float] = 60.0
SMOOTHNESS_CUTOFF: Final[float] = 60.0
CONSISTENCY_CUTOFF: Final[float] = 70.0

MAX_REPETITIONS: Final[int] = 3

# =============================================================================
# STRETCHING
# =============================================================================

STRETCH_HOLD_SECONDS: Final[float] = 20.0
INHALE_SECONDS: Final[float] = 3.0
EXHALE_SECONDS: Final[float] = 4.0
PAIN_SCALE_MIN: Final[int] = 0
PAIN_SCALE_MAX: Final[int] = 10

# =============================================================================
# WRIST POSTURE
# =============================================================================

WRIST_SAFE_DEG: Final[float] = 15.0
WRIST_MAX_DEG: Final[float] = 45.0

# =============================================================================
# JAR LID
# =============================================================================

LID_OPEN_ANGLE_DEG: Final[float] = 90.0
LID_ROTATION_SPEED_DEG: Final[float] = 45.0  # Degrees per second while gripping
