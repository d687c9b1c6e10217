"""
Pose data model and geometry helpers for kettlebell jerk analysis.

Landmarks are identified by name (MoveNet vocabulary) and carry image
coordinates in pixels, y increasing downward. Poses are immutable: every
pipeline stage returns a new Pose instead of mutating its input.

Keypoints (MoveNet order):
0: nose, 1: left_eye, 2: right_eye, 3: left_ear, 4: right_ear,
5: left_shoulder, 6: right_shoulder, 7: left_elbow, 8: right_elbow,
9: left_wrist, 10: right_wrist, 11: left_hip, 12: right_hip,
13: left_knee, 14: right_knee, 15: left_ankle, 16: right_ankle
"""

import math
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Optional, Tuple

import numpy as np


MOVENET_KEYPOINT_NAMES: Tuple[str, ...] = (
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
)


@dataclass(frozen=True)
class Keypoint:
    """Single named landmark with 2D position and optional confidence."""
    name: str
    x: float
    y: float
    score: Optional[float] = None

    def is_confident(self, min_confidence: float) -> bool:
        """Missing scores count as zero confidence."""
        return (self.score or 0.0) >= min_confidence

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [x, y]."""
        return np.array([self.x, self.y], dtype=float)

    def distance_to(self, other: "Keypoint") -> float:
        """Euclidean distance to another keypoint."""
        return float(np.linalg.norm(self.to_array() - other.to_array()))

    def moved_to(self, x: float, y: float) -> "Keypoint":
        """Copy with a new position; name and score are preserved."""
        return replace(self, x=float(x), y=float(y))


@dataclass(frozen=True)
class Pose:
    """All landmarks for one detected person at one instant."""
    keypoints: Tuple[Keypoint, ...] = ()
    score: Optional[float] = None

    @classmethod
    def from_keypoints(
        cls,
        keypoints: Iterable[Keypoint],
        score: Optional[float] = None
    ) -> "Pose":
        return cls(keypoints=tuple(keypoints), score=score)

    @classmethod
    def from_array(
        cls,
        keypoints: np.ndarray,
        width: float = 1.0,
        height: float = 1.0,
        names: Tuple[str, ...] = MOVENET_KEYPOINT_NAMES
    ) -> "Pose":
        """
        Create a Pose from a MoveNet-style array.

        Args:
            keypoints: Array of shape (N, 3) with (y, x, confidence) per keypoint
            width: Scale applied to normalized x
            height: Scale applied to normalized y
            names: Landmark name for each row

        Returns:
            Pose whose overall score is the mean keypoint confidence
        """
        array = np.asarray(keypoints, dtype=float).reshape(-1, 3)
        points = tuple(
            Keypoint(name=name, x=float(x * width), y=float(y * height), score=float(conf))
            for name, (y, x, conf) in zip(names, array)
        )
        overall = float(np.mean(array[: len(points), 2])) if points else None
        return cls(keypoints=points, score=overall)

    @property
    def is_valid(self) -> bool:
        """Check if any landmark was detected."""
        return len(self.keypoints) > 0

    def get(self, name: str) -> Optional[Keypoint]:
        """First keypoint with the given name, if any."""
        for keypoint in self.keypoints:
            if keypoint.name == name:
                return keypoint
        return None

    def confident(self, name: str, min_confidence: float) -> Optional[Keypoint]:
        """Keypoint by name, or None when missing or below min_confidence."""
        keypoint = self.get(name)
        if keypoint is None or not keypoint.is_confident(min_confidence):
            return None
        return keypoint

    def confident_set(
        self,
        names: Iterable[str],
        min_confidence: float
    ) -> Optional[Dict[str, Keypoint]]:
        """All named keypoints, or None if any one is missing or unconfident."""
        found: Dict[str, Keypoint] = {}
        for name in names:
            keypoint = self.confident(name, min_confidence)
            if keypoint is None:
                return None
            found[name] = keypoint
        return found

    def has_confident(self, names: Iterable[str], min_confidence: float) -> bool:
        return self.confident_set(names, min_confidence) is not None

    def copy(self) -> "Pose":
        """Shallow copy; keypoints are immutable so sharing them is safe."""
        return Pose(keypoints=tuple(self.keypoints), score=self.score)


def calculate_angle(a: Keypoint, b: Keypoint, c: Keypoint) -> float:
    """
    Angle ABC in degrees with B as the vertex.

    Returns a value in [0, 180]; reflex angles are folded back as 360 - angle.
    """
    radians = math.atan2(c.y - b.y, c.x - b.x) - math.atan2(a.y - b.y, a.x - b.x)
    angle = abs(math.degrees(radians))
    if angle > 180.0:
        angle = 360.0 - angle
    return angle


def midpoint(a: Keypoint, b: Keypoint, name: str = "midpoint") -> Keypoint:
    """Synthetic keypoint halfway between two landmarks."""
    score = None
    if a.score is not None and b.score is not None:
        score = min(a.score, b.score)
    return Keypoint(name=name, x=(a.x + b.x) / 2, y=(a.y + b.y) / 2, score=score)


def offset(point: Keypoint, dx: float = 0.0, dy: float = 0.0, name: str = "offset") -> Keypoint:
    """Synthetic keypoint displaced from a landmark, used as an angle reference."""
    return Keypoint(name=name, x=point.x + dx, y=point.y + dy, score=point.score)


def shoulder_width(left_shoulder: Keypoint, right_shoulder: Keypoint) -> float:
    """Distance between the shoulders; the scale unit for distance tolerances."""
    return left_shoulder.distance_to(right_shoulder)


def wrist_height(shoulder: Keypoint, wrist: Keypoint) -> float:
    """Height of the wrist above the shoulder (positive = above)."""
    return shoulder.y - wrist.y
