"""
Rule-based form analysis for the kettlebell jerk.

Each phase has a fixed, ordered list of independent geometric checks. A
check that fails produces one FormIssue with a fixed severity; the form
score starts at 100 and loses 5/10/20 points per Low/Moderate/High issue.

CRITICAL: Checks never guess. A check whose landmarks are missing or below
min_confidence is skipped silently: no issue and no penalty.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import math

from jerk_tracker.cv.jerk_classifier import ExercisePhase
from jerk_tracker.cv.pose import (
    Keypoint, Pose, calculate_angle, midpoint, offset, shoulder_width
)

logger = logging.getLogger(__name__)


class FormIssueSeverity(Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


SEVERITY_PENALTIES: Dict[FormIssueSeverity, int] = {
    FormIssueSeverity.LOW: 5,
    FormIssueSeverity.MODERATE: 10,
    FormIssueSeverity.HIGH: 20,
}


@dataclass(frozen=True)
class FormIssue:
    """A single form fault detected on one frame."""
    id: str
    phase: ExercisePhase
    message: str
    severity: FormIssueSeverity
    body_part: str


@dataclass(frozen=True)
class FormAnalysisResult:
    """Form issues and aggregate score for one frame."""
    issues: Tuple[FormIssue, ...] = field(default_factory=tuple)
    overall_score: int = 100
    timestamp_ms: float = 0.0

    @property
    def has_issues(self) -> bool:
        return len(self.issues) > 0


def compute_score(issues: Sequence[FormIssue]) -> int:
    """100 minus severity penalties, clamped to [0, 100]."""
    score = 100 - sum(SEVERITY_PENALTIES[issue.severity] for issue in issues)
    return max(0, min(100, score))


# =============================================================================
# Checks
# =============================================================================

class FormCheck:
    """Base class for a single geometric form check."""

    issue_id: str = "base_check"
    phase: ExercisePhase = ExercisePhase.UNKNOWN
    message: str = ""
    severity: FormIssueSeverity = FormIssueSeverity.MODERATE
    body_part: str = ""
    required: Tuple[str, ...] = ()

    def is_faulty(self, kp: Dict[str, Keypoint]) -> bool:
        """
        Evaluate the check on confident keypoints.

        Args:
            kp: Every name in `required`, all at or above min_confidence

        Returns:
            True if the fault is present
        """
        raise NotImplementedError

    def run(self, pose: Pose, min_confidence: float) -> Optional[FormIssue]:
        kp = pose.confident_set(self.required, min_confidence)
        if kp is None:
            logger.debug(f"Check {self.issue_id} skipped: keypoints not confident")
            return None
        if not self.is_faulty(kp):
            return None
        return FormIssue(
            id=self.issue_id,
            phase=self.phase,
            message=self.message,
            severity=self.severity,
            body_part=self.body_part,
        )


class SidedCheck(FormCheck):
    """Check applied to one side of the body; names use a {side} template."""

    issue_template: str = ""
    message_template: str = ""
    body_part_template: str = ""
    required_template: Tuple[str, ...] = ()

    def __init__(self, side: str):
        self.side = side
        self.issue_id = self.issue_template.format(side=side)
        self.message = self.message_template.format(side=side)
        self.body_part = self.body_part_template.format(side=side)
        self.required = tuple(name.format(side=side) for name in self.required_template)

    def point(self, kp: Dict[str, Keypoint], joint: str) -> Keypoint:
        return kp[f"{self.side}_{joint}"]


# --- Rack --------------------------------------------------------------------

RACK_ELBOW_TO_HIP_MAX = 0.4    # Fraction of shoulder width
RACK_WRIST_HEIGHT_MAX = 0.2    # Fraction of shoulder width


class RackElbowPositionCheck(SidedCheck):
    """Elbow should sit close to the hip in the rack."""

    phase = ExercisePhase.RACK
    severity = FormIssueSeverity.MODERATE
    issue_template = "rack_{side}_elbow_position"
    message_template = "Keep {side} elbow closer to your body"
    body_part_template = "{side}_elbow"
    required_template = ("left_shoulder", "right_shoulder", "{side}_elbow", "{side}_hip")

    def is_faulty(self, kp):
        width = shoulder_width(kp["left_shoulder"], kp["right_shoulder"])
        if width <= 0:
            return False
        distance = abs(self.point(kp, "elbow").x - self.point(kp, "hip").x)
        return distance > width * RACK_ELBOW_TO_HIP_MAX


class RackWristHeightCheck(SidedCheck):
    """Kettlebell should rest at shoulder height."""

    phase = ExercisePhase.RACK
    severity = FormIssueSeverity.MODERATE
    issue_template = "rack_{side}_wrist_height"
    message_template = "Adjust {side} kettlebell to shoulder height"
    body_part_template = "{side}_wrist"
    required_template = ("left_shoulder", "right_shoulder", "{side}_wrist")

    def is_faulty(self, kp):
        width = shoulder_width(kp["left_shoulder"], kp["right_shoulder"])
        if width <= 0:
            return False
        difference = abs(self.point(kp, "wrist").y - self.point(kp, "shoulder").y)
        return difference > width * RACK_WRIST_HEIGHT_MAX


# --- Dip ---------------------------------------------------------------------

DIP_SHALLOW_KNEE_ANGLE = 160.0
DIP_DEEP_KNEE_ANGLE = 120.0
DIP_MAX_KNEE_ASYMMETRY = 15.0
DIP_MAX_TORSO_LEAN = 15.0      # Degrees from vertical

LEGS = ("left_hip", "right_hip", "left_knee", "right_knee", "left_ankle", "right_ankle")
TORSO = ("left_shoulder", "right_shoulder", "left_hip", "right_hip")
ARMS = ("left_shoulder", "right_shoulder", "left_elbow", "right_elbow", "left_wrist", "right_wrist")


def _knee_angles(kp: Dict[str, Keypoint]) -> Tuple[float, float]:
    left = calculate_angle(kp["left_hip"], kp["left_knee"], kp["left_ankle"])
    right = calculate_angle(kp["right_hip"], kp["right_knee"], kp["right_ankle"])
    return left, right


class DipTooShallowCheck(FormCheck):
    issue_id = "dip_too_shallow"
    phase = ExercisePhase.DIP
    message = "Deepen your dip for more power"
    severity = FormIssueSeverity.MODERATE
    body_part = "knees"
    required = LEGS

    def is_faulty(self, kp):
        left, _ = _knee_angles(kp)
        return left > DIP_SHALLOW_KNEE_ANGLE


class DipTooDeepCheck(FormCheck):
    issue_id = "dip_too_deep"
    phase = ExercisePhase.DIP
    message = "Dip is too deep, aim for quarter squat"
    severity = FormIssueSeverity.MODERATE
    body_part = "knees"
    required = LEGS

    def is_faulty(self, kp):
        left, _ = _knee_angles(kp)
        return left < DIP_DEEP_KNEE_ANGLE


class DipKneeSymmetryCheck(FormCheck):
    issue_id = "dip_uneven_knees"
    phase = ExercisePhase.DIP
    message = "Keep knees evenly bent"
    severity = FormIssueSeverity.MODERATE
    body_part = "knees"
    required = LEGS

    def is_faulty(self, kp):
        left, right = _knee_angles(kp)
        return abs(left - right) > DIP_MAX_KNEE_ASYMMETRY


class DipTorsoLeanCheck(FormCheck):
    """Torso should stay upright through the dip."""

    issue_id = "dip_leaning_forward"
    phase = ExercisePhase.DIP
    message = "Keep torso more upright"
    severity = FormIssueSeverity.HIGH
    body_part = "torso"
    required = TORSO

    def is_faulty(self, kp):
        shoulders = midpoint(kp["left_shoulder"], kp["right_shoulder"])
        hips = midpoint(kp["left_hip"], kp["right_hip"])
        if shoulders.y == hips.y and shoulders.x == hips.x:
            return False
        vertical = offset(hips, dy=-100.0)
        return calculate_angle(shoulders, hips, vertical) > DIP_MAX_TORSO_LEAN


# --- Drive -------------------------------------------------------------------

DRIVE_MAX_ARM_ASYMMETRY = 20.0
DRIVE_MIN_LEG_EXTENSION = 160.0


class DriveArmSymmetryCheck(FormCheck):
    issue_id = "drive_uneven_arms"
    phase = ExercisePhase.DRIVE
    message = "Extend arms evenly"
    severity = FormIssueSeverity.MODERATE
    body_part = "arms"
    required = ARMS

    def is_faulty(self, kp):
        left = calculate_angle(kp["left_shoulder"], kp["left_elbow"], kp["left_wrist"])
        right = calculate_angle(kp["right_shoulder"], kp["right_elbow"], kp["right_wrist"])
        return abs(left - right) > DRIVE_MAX_ARM_ASYMMETRY


class DriveLegExtensionCheck(FormCheck):
    """Thighs should be close to vertical as the legs finish the drive."""

    issue_id = "drive_incomplete_leg_extension"
    phase = ExercisePhase.DRIVE
    message = "Fully extend legs for maximum power"
    severity = FormIssueSeverity.MODERATE
    body_part = "legs"
    required = ("left_hip", "right_hip", "left_knee", "right_knee")

    def is_faulty(self, kp):
        for side in ("left", "right"):
            knee = kp[f"{side}_knee"]
            extension = calculate_angle(kp[f"{side}_hip"], knee, offset(knee, dy=100.0))
            if extension < DRIVE_MIN_LEG_EXTENSION:
                return True
        return False


# --- Lockout -----------------------------------------------------------------

LOCKOUT_MIN_ARM_ANGLE = 160.0
LOCKOUT_MAX_WRIST_LEVEL_DIFF = 0.1   # Fraction of shoulder width
LOCKOUT_MAX_ARM_TILT = 15.0          # Degrees from vertical


class LockoutArmExtensionCheck(SidedCheck):
    phase = ExercisePhase.LOCKOUT
    severity = FormIssueSeverity.HIGH
    issue_template = "lockout_{side}_arm_not_extended"
    message_template = "Fully extend {side} arm overhead"
    body_part_template = "{side}_arm"
    required_template = ("{side}_shoulder", "{side}_elbow", "{side}_wrist")

    def is_faulty(self, kp):
        angle = calculate_angle(
            self.point(kp, "shoulder"), self.point(kp, "elbow"), self.point(kp, "wrist")
        )
        return angle < LOCKOUT_MIN_ARM_ANGLE


class LockoutWristLevelCheck(FormCheck):
    issue_id = "lockout_uneven_wrists"
    phase = ExercisePhase.LOCKOUT
    message = "Keep wrists at the same height"
    severity = FormIssueSeverity.MODERATE
    body_part = "wrists"
    required = ("left_shoulder", "right_shoulder", "left_wrist", "right_wrist")

    def is_faulty(self, kp):
        width = shoulder_width(kp["left_shoulder"], kp["right_shoulder"])
        if width <= 0:
            return False
        difference = abs(kp["left_wrist"].y - kp["right_wrist"].y)
        return difference > width * LOCKOUT_MAX_WRIST_LEVEL_DIFF


class LockoutArmVerticalCheck(SidedCheck):
    phase = ExercisePhase.LOCKOUT
    severity = FormIssueSeverity.MODERATE
    issue_template = "lockout_{side}_arm_not_vertical"
    message_template = "Position {side} arm more vertically"
    body_part_template = "{side}_arm"
    required_template = ("{side}_shoulder", "{side}_wrist")

    def is_faulty(self, kp):
        shoulder = self.point(kp, "shoulder")
        wrist = self.point(kp, "wrist")
        tilt = abs(math.degrees(math.atan2(wrist.x - shoulder.x, shoulder.y - wrist.y)))
        return tilt > LOCKOUT_MAX_ARM_TILT


# =============================================================================
# Analyzer
# =============================================================================

class FormAnalyzer:
    """
    Phase-dispatched form scoring engine.

    CHECKS_BY_PHASE covers every ExercisePhase; UNKNOWN maps to no checks
    and therefore always scores 100.
    """

    CHECKS_BY_PHASE: Dict[ExercisePhase, Tuple[FormCheck, ...]] = {
        ExercisePhase.UNKNOWN: (),
        ExercisePhase.RACK: (
            RackElbowPositionCheck("left"),
            RackElbowPositionCheck("right"),
            RackWristHeightCheck("left"),
            RackWristHeightCheck("right"),
        ),
        ExercisePhase.DIP: (
            DipTooShallowCheck(),
            DipTooDeepCheck(),
            DipKneeSymmetryCheck(),
            DipTorsoLeanCheck(),
        ),
        ExercisePhase.DRIVE: (
            DriveArmSymmetryCheck(),
            DriveLegExtensionCheck(),
        ),
        ExercisePhase.LOCKOUT: (
            LockoutArmExtensionCheck("left"),
            LockoutArmExtensionCheck("right"),
            LockoutWristLevelCheck(),
            LockoutArmVerticalCheck("left"),
            LockoutArmVerticalCheck("right"),
        ),
    }

    def __init__(self, min_confidence: float = 0.3):
        self.min_confidence = max(0.0, min(1.0, min_confidence))

    @classmethod
    def from_settings(cls, settings) -> "FormAnalyzer":
        return cls(min_confidence=settings.min_confidence)

    def analyze(
        self,
        pose: Pose,
        phase: ExercisePhase,
        timestamp_ms: Optional[float] = None
    ) -> FormAnalysisResult:
        """
        Score a pose against the checks for its phase.

        Args:
            pose: Smoothed pose
            phase: Phase reported by the classifier
            timestamp_ms: Capture time; defaults to wall clock

        Returns:
            FormAnalysisResult with issues in check order
        """
        now = timestamp_ms if timestamp_ms is not None else time.time() * 1000.0

        issues: List[FormIssue] = []
        for check in self.CHECKS_BY_PHASE[phase]:
            issue = check.run(pose, self.min_confidence)
            if issue is not None:
                issues.append(issue)

        score = compute_score(issues)
        if issues:
            logger.debug(f"{phase.name}: {len(issues)} issue(s), score={score} "
                         f"[{', '.join(issue.id for issue in issues)}]")

        return FormAnalysisResult(issues=tuple(issues), overall_score=score, timestamp_ms=now)


def analyze_form(
    pose: Pose,
    phase: ExercisePhase,
    min_confidence: float = 0.3,
    timestamp_ms: Optional[float] = None
) -> FormAnalysisResult:
    """Convenience wrapper around FormAnalyzer.analyze."""
    return FormAnalyzer(min_confidence).analyze(pose, phase, timestamp_ms)
