"""Edit capture: snapshot cache, change detection and the activity logger."""

from activity_tracker.capture.cache import ContentCache
from activity_tracker.capture.detector import detect_changes
from activity_tracker.capture.logger import ActivityLogger
from activity_tracker.capture.models import (
    ActivityRecord,
    ChangeSummary,
    ChangeType,
    LineStats,
    NameChanges,
)

__all__ = [
    "ActivityLogger",
    "ActivityRecord",
    "ChangeSummary",
    "ChangeType",
    "ContentCache",
    "LineStats",
    "NameChanges",
    "detect_changes",
]
