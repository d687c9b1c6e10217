"""Session and form feedback schemas."""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from jerk_tracker.cv.form_analyzer import FormAnalysisResult, FormIssue
from jerk_tracker.cv.jerk_classifier import ExercisePhase


PHASE_DISPLAY_NAMES = {
    ExercisePhase.UNKNOWN: "Unknown",
    ExercisePhase.RACK: "Rack Position",
    ExercisePhase.DIP: "Dip Phase",
    ExercisePhase.DRIVE: "Drive Phase",
    ExercisePhase.LOCKOUT: "Lockout",
}


def phase_display_name(phase: ExercisePhase) -> str:
    return PHASE_DISPLAY_NAMES[phase]


def score_band(score: float) -> str:
    """
    Feedback band for a form score.

    - good: 80 and above
    - fair: 60 to 79
    - poor: below 60
    """
    if score >= 80:
        return "good"
    if score >= 60:
        return "fair"
    return "poor"


class FormIssueResponse(BaseModel):
    """Schema for a single form issue."""
    id: str
    phase: str
    message: str
    severity: str
    body_part: str

    @classmethod
    def from_issue(cls, issue: FormIssue) -> "FormIssueResponse":
        return cls(
            id=issue.id,
            phase=issue.phase.value,
            message=issue.message,
            severity=issue.severity.value,
            body_part=issue.body_part,
        )


class FormAnalysisResponse(BaseModel):
    """Schema for the form analysis of one frame."""
    issues: List[FormIssueResponse] = Field(default_factory=list)
    overall_score: int = Field(..., ge=0, le=100)
    score_band: str
    timestamp_ms: float

    @classmethod
    def from_result(cls, result: FormAnalysisResult) -> "FormAnalysisResponse":
        return cls(
            issues=[FormIssueResponse.from_issue(issue) for issue in result.issues],
            overall_score=result.overall_score,
            score_band=score_band(result.overall_score),
            timestamp_ms=result.timestamp_ms,
        )


class SessionSummary(BaseModel):
    """Summary of a tracking session."""
    exercise_type: str
    reps: int = Field(..., ge=0)
    duration_seconds: float = Field(..., ge=0)
    timestamp: datetime
    frames_processed: int = 0
    average_form_score: Optional[float] = None
    final_phase: str = ExercisePhase.UNKNOWN.value
