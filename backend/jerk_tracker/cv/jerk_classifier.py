"""
Kettlebell Jerk Phase Classifier

Finite state machine that turns smoothed pose geometry into a discrete jerk
phase and a debounced repetition count.

PHASES:
1. Rack: Kettlebells at shoulder height, wrists close to the shoulders
2. Dip: Knees bending (knee angle dropping between frames)
3. Drive: Legs extending explosively while the arms start to extend
4. Lockout: Arms straight and vertical overhead, wrists level

PRIORITY: Lockout > Drive > Dip > Rack > Unknown. Several phases can be
geometrically plausible on the same frame; the first match wins.

COUNTING: A rep is counted on entering Lockout when more than
min_rep_duration_ms has elapsed since the last counted rep.

All state lives in an immutable ClassifierState that callers thread through
every call. Nothing is kept at module level, so independent sessions and
deterministic replays are possible.
"""

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple
import logging

from jerk_tracker.cv.pose import Pose, calculate_angle, shoulder_width, wrist_height

logger = logging.getLogger(__name__)


# =============================================================================
# SECTION 1: Core Data Structures
# =============================================================================

class ExercisePhase(Enum):
    """Movement phases of the kettlebell jerk."""
    UNKNOWN = "unknown"
    RACK = "rack"
    DIP = "dip"
    DRIVE = "drive"
    LOCKOUT = "lockout"


# Transitions that follow the canonical jerk order
CANONICAL_TRANSITIONS = frozenset({
    (ExercisePhase.RACK, ExercisePhase.DIP),
    (ExercisePhase.DIP, ExercisePhase.DRIVE),
    (ExercisePhase.DRIVE, ExercisePhase.LOCKOUT),
})

REQUIRED_KEYPOINTS: Tuple[str, ...] = (
    "left_shoulder", "right_shoulder",
    "left_elbow", "right_elbow",
    "left_wrist", "right_wrist",
    "left_hip", "right_hip",
    "left_knee", "right_knee",
    "left_ankle", "right_ankle",
)


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class JerkFSMConfig:
    """
    Thresholds for the jerk state machine.

    Distance thresholds are fractions of shoulder width so classification
    does not depend on image resolution or distance from the camera.
    """
    min_confidence: float = 0.3
    rack_height_threshold: float = 0.35     # Wrist-to-shoulder height tolerance
    dip_depth_threshold: float = 15.0       # Knee angle drop (degrees) for dip
    lockout_height_threshold: float = 0.5   # Wrists above shoulders for lockout
    lockout_angle_threshold: float = 160.0  # Minimum arm angle for lockout
    min_rep_duration_ms: float = 500.0      # Debounce between counted reps

    def __post_init__(self):
        object.__setattr__(self, "min_confidence", _clamp_unit(self.min_confidence))
        object.__setattr__(self, "min_rep_duration_ms", max(0.0, self.min_rep_duration_ms))

    @classmethod
    def from_settings(cls, settings) -> "JerkFSMConfig":
        return cls(
            min_confidence=settings.min_confidence,
            rack_height_threshold=settings.rack_height_threshold,
            dip_depth_threshold=settings.dip_depth_threshold,
            lockout_height_threshold=settings.lockout_height_threshold,
            lockout_angle_threshold=settings.lockout_angle_threshold,
            min_rep_duration_ms=settings.min_rep_duration_ms,
        )


@dataclass(frozen=True)
class PhaseMeasurements:
    """Per-frame geometry shared by all phase predicates."""
    knee_angle: float              # Left hip-knee-ankle, degrees
    left_arm_angle: float
    right_arm_angle: float
    left_wrist_height: float       # Above shoulder, pixels
    right_wrist_height: float
    left_wrist_offset_x: float     # |wrist.x - shoulder.x|, pixels
    right_wrist_offset_x: float
    wrist_level_difference: float  # |left_wrist.y - right_wrist.y|, pixels
    shoulder_width: float

    @classmethod
    def from_pose(cls, pose: Pose, min_confidence: float) -> Optional["PhaseMeasurements"]:
        """Measure a pose, or None when a required landmark is unconfident."""
        kp = pose.confident_set(REQUIRED_KEYPOINTS, min_confidence)
        if kp is None:
            return None

        return cls(
            knee_angle=calculate_angle(kp["left_hip"], kp["left_knee"], kp["left_ankle"]),
            left_arm_angle=calculate_angle(kp["left_shoulder"], kp["left_elbow"], kp["left_wrist"]),
            right_arm_angle=calculate_angle(kp["right_shoulder"], kp["right_elbow"], kp["right_wrist"]),
            left_wrist_height=wrist_height(kp["left_shoulder"], kp["left_wrist"]),
            right_wrist_height=wrist_height(kp["right_shoulder"], kp["right_wrist"]),
            left_wrist_offset_x=abs(kp["left_wrist"].x - kp["left_shoulder"].x),
            right_wrist_offset_x=abs(kp["right_wrist"].x - kp["right_shoulder"].x),
            wrist_level_difference=abs(kp["left_wrist"].y - kp["right_wrist"].y),
            shoulder_width=shoulder_width(kp["left_shoulder"], kp["right_shoulder"]),
        )


@dataclass(frozen=True)
class ClassifierState:
    """
    Working memory of the jerk state machine.

    Created once per tracking session and reset explicitly at session
    boundaries. The cached measurements hold the previous confident frame
    for the delta-based dip and drive predicates.
    """
    current_phase: ExercisePhase = ExercisePhase.UNKNOWN
    previous_phase: ExercisePhase = ExercisePhase.UNKNOWN
    rep_count: int = 0
    last_rep_time_ms: Optional[float] = None
    last_transition_time_ms: Optional[float] = None

    # Previous-frame cache
    knee_angle: Optional[float] = None
    left_arm_angle: Optional[float] = None
    right_arm_angle: Optional[float] = None
    left_wrist_height: Optional[float] = None
    right_wrist_height: Optional[float] = None

    is_valid_rep: bool = False

    def with_measurements(self, m: PhaseMeasurements) -> "ClassifierState":
        return replace(
            self,
            knee_angle=m.knee_angle,
            left_arm_angle=m.left_arm_angle,
            right_arm_angle=m.right_arm_angle,
            left_wrist_height=m.left_wrist_height,
            right_wrist_height=m.right_wrist_height,
        )


def reset_state() -> ClassifierState:
    """Initial state for a new tracking session."""
    return ClassifierState()


# =============================================================================
# SECTION 2: Phase Predicates
# =============================================================================

# Fractions of shoulder width
RACK_HORIZONTAL_TOLERANCE = 0.5
LOCKOUT_WRIST_LEVEL_TOLERANCE = 0.2
LOCKOUT_ARM_VERTICAL_TOLERANCE = 0.3

# Degrees
DRIVE_KNEE_EXTENSION_DELTA = 5.0
DRIVE_MIN_KNEE_ANGLE = 160.0
DRIVE_ARM_ANGLE_RANGE = (90.0, 150.0)
DIP_MAX_KNEE_ANGLE = 170.0


def is_lockout(m: PhaseMeasurements, config: JerkFSMConfig) -> bool:
    """Arms straight, wrists well above and level, arms vertical."""
    width = m.shoulder_width
    return (
        m.left_arm_angle > config.lockout_angle_threshold
        and m.right_arm_angle > config.lockout_angle_threshold
        and m.left_wrist_height > config.lockout_height_threshold * width
        and m.right_wrist_height > config.lockout_height_threshold * width
        and m.wrist_level_difference < LOCKOUT_WRIST_LEVEL_TOLERANCE * width
        and m.left_wrist_offset_x < LOCKOUT_ARM_VERTICAL_TOLERANCE * width
        and m.right_wrist_offset_x < LOCKOUT_ARM_VERTICAL_TOLERANCE * width
    )


def is_drive(
    m: PhaseMeasurements,
    previous_knee_angle: Optional[float],
    config: JerkFSMConfig
) -> bool:
    """Legs extending into near-straight while the arms are mid-extension."""
    if previous_knee_angle is None:
        return False
    low, high = DRIVE_ARM_ANGLE_RANGE
    return (
        m.knee_angle - previous_knee_angle > DRIVE_KNEE_EXTENSION_DELTA
        and m.knee_angle > DRIVE_MIN_KNEE_ANGLE
        and low < m.left_arm_angle < high
        and low < m.right_arm_angle < high
    )


def is_dip(
    m: PhaseMeasurements,
    previous_knee_angle: Optional[float],
    config: JerkFSMConfig
) -> bool:
    """Knees bending by more than the configured depth since the last frame."""
    if previous_knee_angle is None:
        return False
    return (
        previous_knee_angle - m.knee_angle > config.dip_depth_threshold
        and m.knee_angle < DIP_MAX_KNEE_ANGLE
    )


def is_rack(m: PhaseMeasurements, config: JerkFSMConfig) -> bool:
    """Both wrists near shoulder height and close to the shoulders."""
    width = m.shoulder_width
    return (
        abs(m.left_wrist_height) < config.rack_height_threshold * width
        and abs(m.right_wrist_height) < config.rack_height_threshold * width
        and m.left_wrist_offset_x < RACK_HORIZONTAL_TOLERANCE * width
        and m.right_wrist_offset_x < RACK_HORIZONTAL_TOLERANCE * width
    )


def detect_phase(
    m: PhaseMeasurements,
    previous_knee_angle: Optional[float],
    config: JerkFSMConfig
) -> ExercisePhase:
    """Evaluate predicates in priority order; first match wins."""
    if is_lockout(m, config):
        return ExercisePhase.LOCKOUT
    if is_drive(m, previous_knee_angle, config):
        return ExercisePhase.DRIVE
    if is_dip(m, previous_knee_angle, config):
        return ExercisePhase.DIP
    if is_rack(m, config):
        return ExercisePhase.RACK
    return ExercisePhase.UNKNOWN


# =============================================================================
# SECTION 3: State Machine
# =============================================================================

def classify(
    pose: Pose,
    state: ClassifierState,
    config: Optional[JerkFSMConfig] = None,
    timestamp_ms: Optional[float] = None
) -> Tuple[ClassifierState, int]:
    """
    Classify one smoothed pose and advance the state machine.

    Args:
        pose: Smoothed pose for this frame
        state: State returned by the previous call (or reset_state())
        config: Thresholds; defaults to JerkFSMConfig()
        timestamp_ms: Frame time in milliseconds; defaults to wall clock

    Returns:
        Tuple of (new_state, rep_count). When any required landmark is below
        min_confidence the input state is returned unchanged.
    """
    config = config or JerkFSMConfig()
    now = timestamp_ms if timestamp_ms is not None else time.time() * 1000.0

    measurements = PhaseMeasurements.from_pose(pose, config.min_confidence)
    if measurements is None:
        logger.debug(f"t={now:.0f}ms: required keypoints not confident, state frozen "
                     f"in {state.current_phase.name}")
        return state, state.rep_count

    new_phase = detect_phase(measurements, state.knee_angle, config)
    new_state = state.with_measurements(measurements)

    if new_phase != state.current_phase:
        new_state = _transition(new_state, state.current_phase, new_phase, now, config)

    return new_state, new_state.rep_count


def _transition(
    state: ClassifierState,
    from_phase: ExercisePhase,
    to_phase: ExercisePhase,
    now: float,
    config: JerkFSMConfig
) -> ClassifierState:
    """Record a phase change and count a rep on a debounced lockout entry."""
    rep_count = state.rep_count
    last_rep_time = state.last_rep_time_ms
    counted = False

    if to_phase == ExercisePhase.LOCKOUT:
        if last_rep_time is None or now - last_rep_time > config.min_rep_duration_ms:
            rep_count += 1
            last_rep_time = now
            counted = True
            logger.info(f"t={now:.0f}ms: rep {rep_count} counted "
                        f"({from_phase.name} → LOCKOUT)")
        else:
            logger.debug(f"t={now:.0f}ms: LOCKOUT re-entry within "
                         f"{config.min_rep_duration_ms:.0f}ms, not counted")

    is_valid = counted or (from_phase, to_phase) in CANONICAL_TRANSITIONS

    logger.info(f"t={now:.0f}ms: {from_phase.name} → {to_phase.name} "
                f"(valid={is_valid})")

    return replace(
        state,
        previous_phase=from_phase,
        current_phase=to_phase,
        last_transition_time_ms=now,
        rep_count=rep_count,
        last_rep_time_ms=last_rep_time,
        is_valid_rep=is_valid,
    )


class JerkPhaseClassifier:
    """
    Configured front end for the jerk state machine.

    Holds thresholds only; the ClassifierState is owned by the caller.

    Usage:
        classifier = JerkPhaseClassifier()
        state = classifier.initial_state()
        for t, pose in frames:
            state, reps = classifier.classify(pose, state, timestamp_ms=t)
    """

    def __init__(self, config: Optional[JerkFSMConfig] = None):
        self.config = config or JerkFSMConfig()
        logger.info(f"JerkPhaseClassifier initialized: "
                    f"lockout>{self.config.lockout_angle_threshold:.0f}°, "
                    f"debounce={self.config.min_rep_duration_ms:.0f}ms")

    @classmethod
    def from_settings(cls, settings) -> "JerkPhaseClassifier":
        return cls(JerkFSMConfig.from_settings(settings))

    def initial_state(self) -> ClassifierState:
        return reset_state()

    def classify(
        self,
        pose: Pose,
        state: ClassifierState,
        timestamp_ms: Optional[float] = None
    ) -> Tuple[ClassifierState, int]:
        return classify(pose, state, self.config, timestamp_ms)
