"""
Simple overhead rep counter.

Counts a rep each time the working arm goes from "down" to "up". Up means
the higher wrist is above its shoulder by more than rep_threshold shoulder
widths and that arm is extended past 150 degrees. Up-edges closer together
than the debounce window are ignored.

This is a lighter alternative to the phase state machine in
jerk_classifier for single-arm work where dip/drive are not tracked.
"""

import time
from dataclasses import dataclass, replace
from typing import Optional, Tuple
import logging

from jerk_tracker.cv.pose import Pose, calculate_angle, shoulder_width, wrist_height

logger = logging.getLogger(__name__)

ARM_KEYPOINTS = (
    "left_shoulder", "right_shoulder",
    "left_elbow", "right_elbow",
    "left_wrist", "right_wrist",
)

OVERHEAD_ARM_ANGLE = 150.0


@dataclass(frozen=True)
class OverheadCounterConfig:
    min_confidence: float = 0.3
    rep_threshold: float = 0.5         # Wrist above shoulder, fraction of shoulder width
    min_rep_duration_ms: float = 500.0

    def __post_init__(self):
        object.__setattr__(self, "min_confidence", max(0.0, min(1.0, self.min_confidence)))
        object.__setattr__(self, "min_rep_duration_ms", max(0.0, self.min_rep_duration_ms))

    @classmethod
    def from_settings(cls, settings) -> "OverheadCounterConfig":
        return cls(
            min_confidence=settings.min_confidence,
            rep_threshold=settings.rep_threshold,
            min_rep_duration_ms=settings.min_rep_duration_ms,
        )


@dataclass(frozen=True)
class OverheadCounterState:
    is_up: bool = False
    rep_count: int = 0
    last_rep_time_ms: Optional[float] = None
    last_wrist_height: float = 0.0
    active_side: Optional[str] = None


def count_overhead_rep(
    pose: Pose,
    state: OverheadCounterState,
    config: Optional[OverheadCounterConfig] = None,
    timestamp_ms: Optional[float] = None
) -> Tuple[OverheadCounterState, int]:
    """
    Update the overhead counter with one pose.

    Returns:
        Tuple of (new_state, rep_count); low-confidence frames leave the
        state unchanged.
    """
    config = config or OverheadCounterConfig()
    now = timestamp_ms if timestamp_ms is not None else time.time() * 1000.0

    kp = pose.confident_set(ARM_KEYPOINTS, config.min_confidence)
    if kp is None:
        return state, state.rep_count

    # Working arm is the one with the higher wrist (smaller y)
    side = "left" if kp["left_wrist"].y < kp["right_wrist"].y else "right"
    shoulder = kp[f"{side}_shoulder"]
    elbow = kp[f"{side}_elbow"]
    wrist = kp[f"{side}_wrist"]

    arm_angle = calculate_angle(shoulder, elbow, wrist)
    height = wrist_height(shoulder, wrist)
    width = shoulder_width(kp["left_shoulder"], kp["right_shoulder"])

    is_overhead = (
        width > 0
        and height > config.rep_threshold * width
        and arm_angle > OVERHEAD_ARM_ANGLE
    )

    rep_count = state.rep_count
    last_rep_time = state.last_rep_time_ms
    is_up = state.is_up

    if is_overhead and not is_up:
        is_up = True
        if last_rep_time is None or now - last_rep_time > config.min_rep_duration_ms:
            rep_count += 1
            last_rep_time = now
            logger.info(f"t={now:.0f}ms: overhead rep {rep_count} ({side} arm, "
                        f"angle={arm_angle:.0f}°)")
    elif not is_overhead and is_up:
        is_up = False

    new_state = replace(
        state,
        is_up=is_up,
        rep_count=rep_count,
        last_rep_time_ms=last_rep_time,
        last_wrist_height=height,
        active_side=side,
    )
    return new_state, rep_count
