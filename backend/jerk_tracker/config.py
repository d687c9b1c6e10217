"""Tracker configuration."""

from functools import lru_cache
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Tracker settings loaded from environment variables."""

    # Application
    app_name: str = "Kettlebell Jerk Tracker"
    debug: bool = False
    exercise_type: str = "kettlebell_jerk"

    # Pose confidence
    min_confidence: float = 0.3  # Landmarks below this are treated as absent

    # Smoothing
    smoothing_factor: float = 0.5  # 0 = raw current frame, 1 = history only
    use_confidence_weighting: bool = True
    pose_history_capacity: int = 5

    # Phase classification thresholds
    rack_height_threshold: float = 0.35  # Wrist-to-shoulder height, fraction of shoulder width
    dip_depth_threshold: float = 15.0  # Knee angle drop (degrees) between frames
    lockout_height_threshold: float = 0.5  # Wrist above shoulder, fraction of shoulder width
    lockout_angle_threshold: float = 160.0  # Arms nearly straight
    min_rep_duration_ms: float = 500.0  # Debounce between counted reps

    # Simple overhead counter
    rep_threshold: float = 0.5  # Wrist above shoulder, fraction of shoulder width

    @field_validator("min_confidence", "smoothing_factor")
    @classmethod
    def clamp_unit_interval(cls, v: float) -> float:
        return max(0.0, min(1.0, v))

    @field_validator("pose_history_capacity")
    @classmethod
    def positive_capacity(cls, v: int) -> int:
        return max(1, v)

    class Config:
        env_file = ".env"
        env_prefix = "JERK_"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
