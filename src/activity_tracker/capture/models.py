"""Models for captured activity.

Defines the Pydantic models that make up the remote activity log format.
Field aliases match the JSON layout of ``projects/<project>/activity-log.json``:

    {
      "file": "...", "project": "...", "timestamp": "2024-06-15T12:00:00Z",
      "changes": {
        "functions": {"added": [], "modified": [], "removed": []},
        "classes":   {"added": [], "modified": [], "removed": []},
        "imports":   {"added": [], "modified": [], "removed": []},
        "lineStats": {"addedLines": 0, "modifiedLines": 0, "totalLines": 0},
        "type": ["FUNCTION_ADDED", ...]
      }
    }
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChangeType(str, Enum):
    """Categories a change summary can be classified into."""

    FUNCTION_ADDED = "FUNCTION_ADDED"
    FUNCTION_MODIFIED = "FUNCTION_MODIFIED"
    FUNCTION_REMOVED = "FUNCTION_REMOVED"
    CLASS_ADDED = "CLASS_ADDED"
    CLASS_MODIFIED = "CLASS_MODIFIED"
    IMPORT_ADDED = "IMPORT_ADDED"
    CODE_MODIFIED = "CODE_MODIFIED"


class NameChanges(BaseModel):
    """Names added, modified and removed between two snapshots."""

    model_config = ConfigDict(frozen=True)

    added: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)


class LineStats(BaseModel):
    """Coarse line statistics between two snapshots.

    ``modified_lines`` is ``abs(added_lines)``, not a real diff count.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    added_lines: int = Field(alias="addedLines")
    modified_lines: int = Field(alias="modifiedLines")
    total_lines: int = Field(alias="totalLines")


class ChangeSummary(BaseModel):
    """Structured summary of one edit.

    ``classes`` and ``imports`` are always empty and ``functions.modified``
    is always empty: the detector only looks at function declarations.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    functions: NameChanges = Field(default_factory=NameChanges)
    classes: NameChanges = Field(default_factory=NameChanges)
    imports: NameChanges = Field(default_factory=NameChanges)
    line_stats: LineStats = Field(alias="lineStats")
    type: list[ChangeType] = Field(default_factory=list)


class ActivityRecord(BaseModel):
    """One captured edit, as stored in a project's remote activity log."""

    model_config = ConfigDict(frozen=True)

    file: str
    project: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    changes: ChangeSummary

    def to_log_entry(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible dict written to the remote log."""
        return self.model_dump(mode="json", by_alias=True)
