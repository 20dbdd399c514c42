"""Models for queue flushes and the periodic supervisor."""

from dataclasses import dataclass, field
from enum import Enum

from activity_tracker.constants import SUPERVISOR_STATE_RUNNING, SUPERVISOR_STATE_STOPPED


class SupervisorState(str, Enum):
    """Lifecycle states of the periodic supervisor."""

    STOPPED = SUPERVISOR_STATE_STOPPED
    RUNNING = SUPERVISOR_STATE_RUNNING


@dataclass
class FlushResult:
    """Result of one queue flush.

    Attributes:
        skipped: True when another flush was already in flight.
        projects_written: Projects whose log was written successfully.
        records_written: Total records appended to remote logs.
        records_dropped: Records lost because their project's write failed.
        records_requeued: Records put back in the buffer after a failure.
        errors: Error message per failed project.
    """

    skipped: bool = False
    projects_written: list[str] = field(default_factory=list)
    records_written: int = 0
    records_dropped: int = 0
    records_requeued: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors
