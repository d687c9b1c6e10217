import threading

import pytest

from jerk_tracker.config import Settings
from jerk_tracker.cv.jerk_classifier import ExercisePhase
from jerk_tracker.cv.pose import Pose
from jerk_tracker.tracker import FrameProcessor

from builders import (
    DRIVE_ARMS, HIPS, SHOULDERS, STRAIGHT_LEGS,
    build_pose, dip_pose, drive_pose, lockout_pose, rack_pose,
)

CYCLE = [rack_pose, dip_pose, drive_pose, lockout_pose]
CYCLE_TIMES = [0, 100, 300, 450, 500, 600, 800, 1100]


def two_cycles():
    return [(t, CYCLE[i % 4]()) for i, t in enumerate(CYCLE_TIMES)]


def test_pipeline_counts_canonical_cycles(settings):
    processor = FrameProcessor(settings)
    results = processor.process_poses(two_cycles())

    assert [r.phase for r in results[:4]] == [
        ExercisePhase.RACK, ExercisePhase.DIP, ExercisePhase.DRIVE, ExercisePhase.LOCKOUT
    ]
    assert results[3].rep_count == 1
    assert results[3].is_valid_rep
    assert results[-1].rep_count == 2
    assert all(r.form_score == 100 for r in results)


def test_history_is_bounded(settings):
    processor = FrameProcessor(settings)
    for t in range(8):
        processor.process_frame(rack_pose(), t * 33.0)

    assert len(processor.history) == settings.pose_history_capacity


def test_empty_pose_leaves_session_untouched(settings):
    processor = FrameProcessor(settings)
    processor.process_frame(rack_pose(), 0)
    result = processor.process_frame(Pose(), 33)

    assert result.phase == ExercisePhase.RACK
    assert result.form_score == 100
    assert len(processor.history) == 1


def test_occluded_frame_keeps_phase(settings):
    processor = FrameProcessor(settings)
    processor.process_frame(rack_pose(), 0)
    result = processor.process_frame(lockout_pose(scores={"right_wrist": 0.05}), 33)

    assert result.phase == ExercisePhase.RACK
    assert result.rep_count == 0


def test_reset_starts_new_session(settings):
    processor = FrameProcessor(settings)
    processor.process_poses(two_cycles())
    processor.reset()

    assert processor.rep_count == 0
    assert processor.state.current_phase == ExercisePhase.UNKNOWN
    assert processor.history == ()
    assert processor.summary().frames_processed == 0


def test_summary(settings):
    processor = FrameProcessor(settings)
    processor.process_poses(two_cycles())

    summary = processor.summary()

    assert summary.exercise_type == "kettlebell_jerk"
    assert summary.reps == 2
    assert summary.duration_seconds == 1.1
    assert summary.frames_processed == 8
    assert summary.average_form_score == 100.0
    assert summary.final_phase == "lockout"


def test_smoothing_keeps_static_pose_stable():
    processor = FrameProcessor(Settings(smoothing_factor=0.5))
    for t in range(5):
        result = processor.process_frame(rack_pose(), t * 33.0)

    assert result.phase == ExercisePhase.RACK
    for smoothed, raw in zip(result.smoothed_pose.keypoints, rack_pose().keypoints):
        assert smoothed.x == pytest.approx(raw.x)
        assert smoothed.y == pytest.approx(raw.y)


def test_concurrent_frames_are_serialised(settings):
    processor = FrameProcessor(settings)

    def feed(offset):
        for t in range(20):
            processor.process_frame(rack_pose(), offset + t)

    threads = [threading.Thread(target=feed, args=(i * 1000,)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert processor.summary().frames_processed == 80
    assert len(processor.history) == settings.pose_history_capacity


def test_default_smoothing_still_tracks_canonical_cycle():
    processor = FrameProcessor(Settings())
    assert processor.smoother.alpha == 0.5
    assert processor.smoother.use_confidence_weighting

    results = processor.process_poses(two_cycles()[:4])

    assert [(r.phase, r.rep_count, r.is_valid_rep) for r in results] == [
        (ExercisePhase.RACK, 0, False),
        (ExercisePhase.DIP, 0, True),
        (ExercisePhase.DRIVE, 0, True),
        (ExercisePhase.LOCKOUT, 1, True),
    ]


def test_average_form_score_skips_unknown_frames(settings):
    processor = FrameProcessor(settings)
    processor.process_frame(rack_pose(), 0)
    processor.process_frame(rack_pose(overrides={"left_elbow": (200, 300)}), 33)
    unknown = processor.process_frame(build_pose(SHOULDERS, HIPS, STRAIGHT_LEGS, DRIVE_ARMS), 66)

    assert unknown.phase == ExercisePhase.UNKNOWN
    summary = processor.summary()
    assert summary.frames_processed == 3
    assert summary.average_form_score == pytest.approx(95.0)
