"""Live kettlebell jerk phase tracking, rep counting and form scoring."""

__version__ = "0.1.0"
