"""Pose input schemas."""

from typing import List, Optional
from pydantic import BaseModel, Field

from jerk_tracker.cv.pose import Keypoint, Pose


class KeypointPayload(BaseModel):
    """Schema for one landmark as delivered by the pose estimator."""
    name: str
    x: float
    y: float
    score: Optional[float] = Field(None, ge=0.0, le=1.0)


class PoseFrame(BaseModel):
    """Schema for one recorded frame (one JSON line in a replay file)."""
    timestamp_ms: float
    keypoints: List[KeypointPayload] = Field(default_factory=list)
    score: Optional[float] = None

    def to_pose(self) -> Pose:
        return Pose.from_keypoints(
            (Keypoint(name=kp.name, x=kp.x, y=kp.y, score=kp.score) for kp in self.keypoints),
            score=self.score,
        )
