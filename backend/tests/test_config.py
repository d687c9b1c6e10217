from jerk_tracker.config import Settings, get_settings


def test_defaults():
    settings = Settings()
    assert settings.min_confidence == 0.3
    assert settings.smoothing_factor == 0.5
    assert settings.use_confidence_weighting is True
    assert settings.pose_history_capacity == 5
    assert settings.lockout_angle_threshold == 160.0
    assert settings.min_rep_duration_ms == 500.0


def test_unit_interval_values_are_clamped():
    settings = Settings(min_confidence=1.4, smoothing_factor=-0.3)
    assert settings.min_confidence == 1.0
    assert settings.smoothing_factor == 0.0


def test_capacity_is_at_least_one():
    assert Settings(pose_history_capacity=0).pose_history_capacity == 1


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("JERK_MIN_REP_DURATION_MS", "750")
    assert Settings().min_rep_duration_ms == 750.0


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
