import numpy as np
import pytest

from jerk_tracker.cv.pose import (
    Keypoint, Pose, MOVENET_KEYPOINT_NAMES, calculate_angle, shoulder_width
)


def kp(x, y, name="p", score=0.9):
    return Keypoint(name=name, x=x, y=y, score=score)


def test_calculate_angle_right_angle():
    assert calculate_angle(kp(0, 10), kp(0, 0), kp(10, 0)) == pytest.approx(90.0)


def test_calculate_angle_straight_line():
    assert calculate_angle(kp(0, -10), kp(0, 0), kp(0, 10)) == pytest.approx(180.0)


def test_calculate_angle_folds_reflex_angles():
    # Raw atan2 difference is 270 degrees
    angle = calculate_angle(kp(0, -10), kp(0, 0), kp(-10, 0))
    assert angle == pytest.approx(90.0)
    assert 0.0 <= angle <= 180.0


def test_confident_treats_missing_score_as_absent():
    pose = Pose.from_keypoints([Keypoint("left_wrist", 1, 2, None), kp(3, 4, "right_wrist")])
    assert pose.confident("left_wrist", 0.3) is None
    assert pose.confident("right_wrist", 0.3) is not None
    assert pose.confident("nose", 0.3) is None


def test_confident_set_requires_every_name():
    pose = Pose.from_keypoints([kp(0, 0, "a"), kp(1, 1, "b", score=0.1)])
    assert pose.confident_set(["a"], 0.3) is not None
    assert pose.confident_set(["a", "b"], 0.3) is None


def test_from_array_swaps_movenet_axes_and_scales():
    array = np.zeros((17, 3))
    array[5] = [0.25, 0.5, 0.8]  # left_shoulder (y, x, conf)
    array[:, 2] = 0.5
    array[5, 2] = 0.8

    pose = Pose.from_array(array, width=640, height=480)

    shoulder = pose.get("left_shoulder")
    assert len(pose.keypoints) == len(MOVENET_KEYPOINT_NAMES)
    assert shoulder.x == pytest.approx(320.0)
    assert shoulder.y == pytest.approx(120.0)
    assert shoulder.score == pytest.approx(0.8)
    assert pose.score == pytest.approx((16 * 0.5 + 0.8) / 17)


def test_shoulder_width_is_euclidean():
    assert shoulder_width(kp(0, 0), kp(30, 40)) == pytest.approx(50.0)
