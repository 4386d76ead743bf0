"""
Artifact recording module exports.
"""

from hazelpilot.recorder.artifact_recorder import (
    LOG_FILENAME,
    REPORT_FILENAME,
    VIDEO_FILENAME,
    ArtifactRecorder,
    BestEffortOutcome,
    screenshot_name,
)

__all__ = [
    "LOG_FILENAME",
    "REPORT_FILENAME",
    "VIDEO_FILENAME",
    "ArtifactRecorder",
    "BestEffortOutcome",
    "screenshot_name",
]
