"""Pydantic schemas for serialising tracking results."""

from jerk_tracker.schemas.session import (
    FormIssueResponse,
    FormAnalysisResponse,
    SessionSummary,
    phase_display_name,
    score_band,
)
from jerk_tracker.schemas.pose import (
    KeypointPayload,
    PoseFrame,
)

__all__ = [
    "FormIssueResponse",
    "FormAnalysisResponse",
    "SessionSummary",
    "phase_display_name",
    "score_band",
    "KeypointPayload",
    "PoseFrame",
]
