"""Batch sync: per-project activity queue and the periodic supervisor."""

from activity_tracker.sync.models import FlushResult, SupervisorState
from activity_tracker.sync.queue import ActivityQueue
from activity_tracker.sync.supervisor import PeriodicSupervisor

__all__ = [
    "ActivityQueue",
    "FlushResult",
    "PeriodicSupervisor",
    "SupervisorState",
]
