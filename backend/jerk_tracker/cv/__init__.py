"""
Computer Vision core for live kettlebell jerk tracking.

PIPELINE COMPONENTS:
1. Pose: Named keypoints, three-point angles, MoveNet array conversion
2. KeypointSmoother: Uniform or confidence-weighted moving average over a
   bounded pose history
3. JerkPhaseClassifier: Rack/Dip/Drive/Lockout state machine with
   debounced rep counting
4. FormAnalyzer: Phase-specific geometric checks and a 0-100 form score

Usage:
    from jerk_tracker.tracker import FrameProcessor

    processor = FrameProcessor()
    for timestamp_ms, pose in stream:
        result = processor.process_frame(pose, timestamp_ms)
        print(f"{result.phase.value}: {result.rep_count} reps, form {result.form_score}")
"""

from jerk_tracker.cv.pose import (
    Keypoint, Pose, MOVENET_KEYPOINT_NAMES, calculate_angle
)
from jerk_tracker.cv.keypoint_smoother import (
    KeypointSmoother, smooth_pose, smooth_keypoint,
    confidence_weighted_smooth_keypoint, update_history
)
from jerk_tracker.cv.jerk_classifier import (
    ExercisePhase, ClassifierState, JerkFSMConfig, JerkPhaseClassifier,
    PhaseMeasurements, classify, reset_state, REQUIRED_KEYPOINTS
)
from jerk_tracker.cv.form_analyzer import (
    FormAnalyzer, FormAnalysisResult, FormIssue, FormIssueSeverity,
    analyze_form, compute_score
)
from jerk_tracker.cv.rep_counter import (
    OverheadCounterConfig, OverheadCounterState, count_overhead_rep
)

__all__ = [
    # Pose model
    "Keypoint",
    "Pose",
    "MOVENET_KEYPOINT_NAMES",
    "calculate_angle",

    # Smoothing
    "KeypointSmoother",
    "smooth_pose",
    "smooth_keypoint",
    "confidence_weighted_smooth_keypoint",
    "update_history",

    # Phase classification
    "ExercisePhase",
    "ClassifierState",
    "JerkFSMConfig",
    "JerkPhaseClassifier",
    "PhaseMeasurements",
    "classify",
    "reset_state",
    "REQUIRED_KEYPOINTS",

    # Form analysis
    "FormAnalyzer",
    "FormAnalysisResult",
    "FormIssue",
    "FormIssueSeverity",
    "analyze_form",
    "compute_score",

    # Simple overhead counter
    "OverheadCounterConfig",
    "OverheadCounterState",
    "count_overhead_rep",
]
