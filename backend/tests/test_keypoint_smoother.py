import itertools

import pytest

from jerk_tracker.cv.keypoint_smoother import (
    KeypointSmoother,
    confidence_weighted_smooth_keypoint,
    smooth_keypoint,
    smooth_pose,
    update_history,
)
from jerk_tracker.cv.pose import Keypoint, Pose

from builders import rack_pose


def single(x, y, score=0.9, name="left_wrist"):
    return Pose.from_keypoints([Keypoint(name=name, x=x, y=y, score=score)])


def test_empty_history_returns_unaliased_copy():
    pose = rack_pose()
    smoothed = smooth_pose(pose, [])
    assert smoothed == pose
    assert smoothed is not pose


@pytest.mark.parametrize("alpha", [0.0, -0.5])
def test_non_positive_alpha_returns_input(alpha):
    pose = single(10, 10)
    smoothed = smooth_pose(pose, [single(100, 100)], smoothing_factor=alpha)
    assert smoothed == pose
    assert smoothed is not pose


def test_uniform_mode_blends_with_history_mean():
    current = Keypoint("left_wrist", 10, 10, 0.9)
    previous = [Keypoint("left_wrist", 0, 0, 0.9), Keypoint("left_wrist", 20, 40, 0.9)]

    smoothed = smooth_keypoint(current, previous, smoothing_factor=0.5)

    assert smoothed.x == pytest.approx(10.0)
    assert smoothed.y == pytest.approx(15.0)
    assert smoothed.score == 0.9


def test_uniform_mode_ignores_history_confidence():
    current = Keypoint("left_wrist", 0, 0, 0.9)
    previous = [Keypoint("left_wrist", 100, 0, 0.01)]
    assert smooth_keypoint(current, previous, 1.0).x == pytest.approx(100.0)


def test_weighted_mode_drops_low_confidence_history():
    current = Keypoint("left_wrist", 10, 10, 0.9)
    previous = [
        Keypoint("left_wrist", 0, 0, 0.9),
        Keypoint("left_wrist", 100, 100, 0.1),
    ]

    smoothed = confidence_weighted_smooth_keypoint(current, previous, 0.5, min_confidence=0.3)

    # Weighted mean of (0,0)@0.9 and current (10,10)@0.9 is (5,5)
    assert smoothed.x == pytest.approx(7.5)
    assert smoothed.y == pytest.approx(7.5)


def test_weighted_mode_falls_back_when_no_confident_history():
    current = Keypoint("left_wrist", 10, 10, 0.9)
    previous = [Keypoint("left_wrist", 100, 100, 0.1), Keypoint("left_wrist", 50, 50, None)]

    smoothed = confidence_weighted_smooth_keypoint(current, previous, 0.5, min_confidence=0.3)

    assert smoothed == current


def test_weighted_mode_uses_min_confidence_for_unscored_current():
    current = Keypoint("left_wrist", 30, 0, None)
    previous = [Keypoint("left_wrist", 0, 0, 0.6)]

    smoothed = confidence_weighted_smooth_keypoint(current, previous, 1.0, min_confidence=0.3)

    assert smoothed.x == pytest.approx((30 * 0.3) / 0.9)
    assert smoothed.score is None


def test_smoothing_never_changes_confidence():
    pose = single(10, 10, score=0.42)
    history = [single(0, 0, score=0.95), single(5, 5, score=0.8)]

    for weighted in (True, False):
        smoothed = smooth_pose(pose, history, 0.7, use_confidence_weighting=weighted)
        assert smoothed.get("left_wrist").score == 0.42


def test_missing_history_landmarks_are_skipped():
    pose = Pose.from_keypoints([
        Keypoint("left_wrist", 10, 10, 0.9),
        Keypoint("nose", 50, 50, 0.9),
    ])
    history = [single(0, 0), single(0, 0)]

    smoothed = smooth_pose(pose, history, 0.5, use_confidence_weighting=False)

    assert smoothed.get("left_wrist").x == pytest.approx(5.0)
    assert smoothed.get("nose") == pose.get("nose")


@pytest.mark.parametrize("weighted", [True, False])
def test_output_is_invariant_to_history_order(weighted):
    pose = single(12.5, -3.25, score=0.7)
    history = [
        single(0.1, 0.7, 0.95),
        single(13.3, 2.9, 0.35),
        single(-7.7, 1.1, 0.61),
        single(4.4, -9.9, 0.2),
        single(101.0, 55.5, 0.88),
    ]

    results = {
        smooth_pose(pose, list(order), 0.6, weighted, 0.3)
        for order in itertools.permutations(history)
    }

    assert len(results) == 1


def test_smoothing_does_not_mutate_inputs():
    pose = single(10, 10)
    history = [single(0, 0)]
    smooth_pose(pose, history)
    assert pose == single(10, 10)
    assert history == [single(0, 0)]


def test_update_history_evicts_oldest_first():
    poses = [single(i, i) for i in range(7)]
    history = []
    for pose in poses:
        history = update_history(history, pose, capacity=5)

    assert history == poses[2:]


def test_update_history_returns_new_list():
    history = [single(0, 0)]
    updated = update_history(history, single(1, 1), capacity=5)
    assert len(history) == 1
    assert len(updated) == 2


def test_smoother_process_appends_smoothed_pose():
    smoother = KeypointSmoother(alpha=0.5, use_confidence_weighting=False, history_capacity=2)
    history = []

    first, history = smoother.process(single(0, 0), history)
    second, history = smoother.process(single(10, 0), history)

    assert first == single(0, 0)
    assert second.get("left_wrist").x == pytest.approx(5.0)
    assert history == [first, second]


def test_smoother_clamps_configuration():
    smoother = KeypointSmoother(alpha=3.0, confidence_threshold=-1.0, history_capacity=0)
    assert smoother.alpha == 1.0
    assert smoother.confidence_threshold == 0.0
    assert smoother.history_capacity == 1
