"""
Per-frame processing pipeline for live kettlebell jerk tracking.

PIPELINE STAGES (once per delivered pose):
1. Keypoint smoothing against the bounded pose history
2. Phase classification and debounced rep counting
3. Form analysis for the classified phase

The processor is the single owner of the pose history and the
ClassifierState. Each frame runs under a lock and its results are committed
together, so a concurrent reader never sees history and state from
different frames.
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Tuple
import logging

from jerk_tracker.config import Settings, get_settings
from jerk_tracker.cv.form_analyzer import FormAnalysisResult, FormAnalyzer
from jerk_tracker.cv.jerk_classifier import ClassifierState, ExercisePhase, JerkPhaseClassifier
from jerk_tracker.cv.keypoint_smoother import KeypointSmoother
from jerk_tracker.cv.pose import Pose
from jerk_tracker.schemas.session import SessionSummary

logger = logging.getLogger(__name__)


@dataclass
class FrameResult:
    """Everything the UI needs for one frame."""
    timestamp_ms: float
    smoothed_pose: Pose
    phase: ExercisePhase
    rep_count: int
    is_valid_rep: bool
    form: FormAnalysisResult = field(default_factory=FormAnalysisResult)

    @property
    def form_score(self) -> int:
        return self.form.overall_score


class FrameProcessor:
    """
    Live tracking session.

    Usage:
        processor = FrameProcessor()
        for timestamp_ms, pose in stream:
            result = processor.process_frame(pose, timestamp_ms)
            print(result.phase.value, result.rep_count, result.form_score)
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize processor.

        Args:
            settings: Tracker settings (default: cached environment settings)
        """
        self.settings = settings or get_settings()
        self.smoother = KeypointSmoother.from_settings(self.settings)
        self.classifier = JerkPhaseClassifier.from_settings(self.settings)
        self.analyzer = FormAnalyzer.from_settings(self.settings)

        self._lock = threading.Lock()
        self._reset_unlocked()

    def _reset_unlocked(self):
        self._history: List[Pose] = []
        self._state: ClassifierState = self.classifier.initial_state()
        self._frames_processed = 0
        self._first_timestamp_ms: Optional[float] = None
        self._last_timestamp_ms: Optional[float] = None
        self._form_score_total = 0
        self._scored_frames = 0
        self._started_at = datetime.now()

    def reset(self):
        """Start a new session: clear history, classifier state and stats."""
        with self._lock:
            self._reset_unlocked()
        logger.info("Tracking session reset")

    @property
    def state(self) -> ClassifierState:
        with self._lock:
            return self._state

    @property
    def history(self) -> Tuple[Pose, ...]:
        with self._lock:
            return tuple(self._history)

    @property
    def rep_count(self) -> int:
        return self.state.rep_count

    def process_frame(
        self,
        pose: Pose,
        timestamp_ms: Optional[float] = None
    ) -> FrameResult:
        """
        Run one pose through smoothing, classification and form analysis.

        Args:
            pose: Raw pose from the estimator
            timestamp_ms: Capture time in milliseconds (default: wall clock)

        Returns:
            FrameResult for this frame
        """
        now = timestamp_ms if timestamp_ms is not None else time.time() * 1000.0

        with self._lock:
            if not pose.is_valid:
                logger.debug(f"t={now:.0f}ms: no pose detected")
                return FrameResult(
                    timestamp_ms=now,
                    smoothed_pose=pose.copy(),
                    phase=self._state.current_phase,
                    rep_count=self._state.rep_count,
                    is_valid_rep=self._state.is_valid_rep,
                    form=FormAnalysisResult(timestamp_ms=now),
                )

            smoothed, history = self.smoother.process(pose, self._history)
            state, rep_count = self.classifier.classify(smoothed, self._state, timestamp_ms=now)
            form = self.analyzer.analyze(smoothed, state.current_phase, timestamp_ms=now)

            # Commit the frame
            self._history = history
            self._state = state
            self._frames_processed += 1
            if self._first_timestamp_ms is None:
                self._first_timestamp_ms = now
            self._last_timestamp_ms = now
            if state.current_phase != ExercisePhase.UNKNOWN:
                self._form_score_total += form.overall_score
                self._scored_frames += 1

        return FrameResult(
            timestamp_ms=now,
            smoothed_pose=smoothed,
            phase=state.current_phase,
            rep_count=rep_count,
            is_valid_rep=state.is_valid_rep,
            form=form,
        )

    def process_poses(
        self,
        frames: Iterable[Tuple[float, Pose]]
    ) -> List[FrameResult]:
        """Replay a recorded sequence of (timestamp_ms, pose) pairs."""
        return [self.process_frame(pose, timestamp_ms) for timestamp_ms, pose in frames]

    def summary(self) -> SessionSummary:
        """Summary of the current session."""
        with self._lock:
            duration_ms = 0.0
            if self._first_timestamp_ms is not None and self._last_timestamp_ms is not None:
                duration_ms = self._last_timestamp_ms - self._first_timestamp_ms

            average_score = None
            if self._scored_frames:
                average_score = self._form_score_total / self._scored_frames

            return SessionSummary(
                exercise_type=self.settings.exercise_type,
                reps=self._state.rep_count,
                duration_seconds=duration_ms / 1000.0,
                timestamp=self._started_at,
                frames_processed=self._frames_processed,
                average_form_score=average_score,
                final_phase=self._state.current_phase.value,
            )
