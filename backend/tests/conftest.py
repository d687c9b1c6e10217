import pytest

from jerk_tracker.config import Settings


@pytest.fixture
def settings() -> Settings:
    # No smoothing so the test geometry reaches the classifier unchanged
    return Settings(smoothing_factor=0.0)
