"""
Temporal keypoint smoothing over a bounded pose history.

SMOOTHING STRATEGY:
1. Uniform mode: blend the current position with the plain mean of the
   same landmark across the history buffer
2. Confidence-weighted mode: drop low-confidence history samples, weight the
   rest (and the current sample) by their own scores, then blend

The smoothing factor alpha trades responsiveness (low alpha) for stability
(high alpha). Confidence weighting keeps low-confidence historical noise from
dominating a high-confidence current reading.

The history buffer belongs to the caller. Functions here take it as input,
never keep a reference to it, and return new Poses and new buffers.
"""

import numpy as np
from typing import List, Optional, Sequence, Tuple
import logging

from jerk_tracker.cv.pose import Keypoint, Pose

logger = logging.getLogger(__name__)


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def _ordered(keypoints: Sequence[Keypoint]) -> List[Keypoint]:
    # Fixed summation order so the result does not depend on buffer order
    return sorted(keypoints, key=lambda kp: (kp.x, kp.y, kp.score if kp.score is not None else -1.0))


def _blend(current: Keypoint, avg_x: float, avg_y: float, factor: float) -> Keypoint:
    smoothed_x = current.x * (1 - factor) + avg_x * factor
    smoothed_y = current.y * (1 - factor) + avg_y * factor
    return current.moved_to(smoothed_x, smoothed_y)


def smooth_keypoint(
    current: Keypoint,
    previous: Sequence[Keypoint],
    smoothing_factor: float = 0.5
) -> Keypoint:
    """
    Moving-average smoothing of one keypoint.

    Args:
        current: Keypoint from the current frame
        previous: Same-named keypoints from the history buffer
        smoothing_factor: Weight given to the historical average (0-1)

    Returns:
        New keypoint; the score is always the current keypoint's score
    """
    if not previous or smoothing_factor <= 0:
        return current.moved_to(current.x, current.y)

    factor = _clamp_unit(smoothing_factor)
    positions = np.array([[kp.x, kp.y] for kp in _ordered(previous)], dtype=float)
    avg_x, avg_y = positions.mean(axis=0)

    return _blend(current, float(avg_x), float(avg_y), factor)


def confidence_weighted_smooth_keypoint(
    current: Keypoint,
    previous: Sequence[Keypoint],
    smoothing_factor: float = 0.5,
    min_confidence: float = 0.3
) -> Keypoint:
    """
    Confidence-weighted smoothing of one keypoint.

    History samples below min_confidence are ignored. If none remain the
    current keypoint is returned unchanged. The current sample joins the
    weighted set using its own score (min_confidence when it has none).
    """
    if not previous or smoothing_factor <= 0:
        return current.moved_to(current.x, current.y)

    min_confidence = _clamp_unit(min_confidence)
    confident = [
        kp for kp in previous
        if kp.score is not None and kp.score >= min_confidence
    ]
    if not confident:
        return current.moved_to(current.x, current.y)

    samples = _ordered(confident)
    positions = np.array([[kp.x, kp.y] for kp in samples] + [[current.x, current.y]], dtype=float)
    weights = np.array(
        [kp.score for kp in samples]
        + [current.score if current.score is not None else min_confidence],
        dtype=float
    )

    total_weight = weights.sum()
    if total_weight <= 0:
        return current.moved_to(current.x, current.y)

    avg_x, avg_y = (positions * weights[:, None]).sum(axis=0) / total_weight

    return _blend(current, float(avg_x), float(avg_y), _clamp_unit(smoothing_factor))


def smooth_pose(
    current_pose: Pose,
    history: Sequence[Pose],
    smoothing_factor: float = 0.5,
    use_confidence_weighting: bool = True,
    min_confidence: float = 0.3
) -> Pose:
    """
    Smooth every keypoint of a pose against the history buffer.

    Args:
        current_pose: Pose from the current frame
        history: Recent smoothed poses (any order)
        smoothing_factor: Weight given to history (0-1)
        use_confidence_weighting: Confidence-weighted instead of uniform mean
        min_confidence: Minimum history score in weighted mode

    Returns:
        New Pose; the input pose and buffer are left untouched
    """
    if not history or smoothing_factor <= 0 or not current_pose.keypoints:
        return current_pose.copy()

    smoothed = []
    for keypoint in current_pose.keypoints:
        # Poses without this landmark are skipped, not treated as zero
        previous = [
            match for match in (pose.get(keypoint.name) for pose in history)
            if match is not None
        ]

        if use_confidence_weighting:
            smoothed.append(confidence_weighted_smooth_keypoint(
                keypoint, previous, smoothing_factor, min_confidence
            ))
        else:
            smoothed.append(smooth_keypoint(keypoint, previous, smoothing_factor))

    return Pose(keypoints=tuple(smoothed), score=current_pose.score)


def update_history(
    history: Sequence[Pose],
    pose: Pose,
    capacity: int = 5
) -> List[Pose]:
    """Append a pose and evict the oldest entries beyond capacity."""
    capacity = max(1, capacity)
    updated = list(history) + [pose]
    if len(updated) > capacity:
        evicted = len(updated) - capacity
        logger.debug(f"Pose history full: evicting {evicted} oldest pose(s)")
        updated = updated[evicted:]
    return updated


class KeypointSmoother:
    """
    Configured front end for pose smoothing.

    Holds configuration only. The pose history is passed in and returned by
    each call so that the caller owns all mutable state.
    """

    def __init__(
        self,
        alpha: float = 0.5,
        use_confidence_weighting: bool = True,
        confidence_threshold: float = 0.3,
        history_capacity: int = 5
    ):
        """
        Initialize smoother.

        Args:
            alpha: Smoothing factor (0 = no smoothing, 1 = history only)
            use_confidence_weighting: Weight history samples by their score
            confidence_threshold: Minimum confidence to use a history sample
            history_capacity: Maximum number of poses kept in the buffer
        """
        self.alpha = _clamp_unit(alpha)
        self.use_confidence_weighting = use_confidence_weighting
        self.confidence_threshold = _clamp_unit(confidence_threshold)
        self.history_capacity = max(1, history_capacity)

    @classmethod
    def from_settings(cls, settings) -> "KeypointSmoother":
        return cls(
            alpha=settings.smoothing_factor,
            use_confidence_weighting=settings.use_confidence_weighting,
            confidence_threshold=settings.min_confidence,
            history_capacity=settings.pose_history_capacity,
        )

    def smooth(self, pose: Pose, history: Sequence[Pose]) -> Pose:
        return smooth_pose(
            pose,
            history,
            smoothing_factor=self.alpha,
            use_confidence_weighting=self.use_confidence_weighting,
            min_confidence=self.confidence_threshold,
        )

    def process(
        self,
        pose: Pose,
        history: Optional[Sequence[Pose]] = None
    ) -> Tuple[Pose, List[Pose]]:
        """
        Smooth a pose and push the result onto the history.

        Returns:
            Tuple of (smoothed_pose, updated_history)
        """
        history = history or []
        smoothed = self.smooth(pose, history)
        return smoothed, update_history(history, smoothed, self.history_capacity)
