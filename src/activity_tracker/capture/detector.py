"""Lightweight change detection between two snapshots of a file.

This is a heuristic, not a parser. Function names are found with a single
regular expression for ``function name(`` declarations, and line
statistics compare line counts only. The output shape is part of the
remote log format, so the heuristics are kept exactly as they are:

- ``functions.modified`` is always empty (detecting a modified body would
  need real parsing).
- ``modified_lines`` is ``abs(new_count - old_count)``, not a diff count.
"""

import re

from activity_tracker.capture.models import ChangeSummary, ChangeType, LineStats, NameChanges
from activity_tracker.constants import FUNCTION_DECLARATION_PATTERN, LINE_SEPARATOR

_FUNCTION_RE = re.compile(FUNCTION_DECLARATION_PATTERN)


def extract_function_names(content: str) -> list[str]:
    """Return declared function names in order of appearance."""
    return _FUNCTION_RE.findall(content)


def detect_function_changes(old_content: str, new_content: str) -> NameChanges:
    """Compare declared function names between two snapshots."""
    old_functions = extract_function_names(old_content)
    new_functions = extract_function_names(new_content)
    old_set = set(old_functions)
    new_set = set(new_functions)

    return NameChanges(
        added=[name for name in new_functions if name not in old_set],
        modified=[],
        removed=[name for name in old_functions if name not in new_set],
    )


def count_lines(content: str) -> int:
    """Count newline-separated segments; an empty string is one line."""
    return len(content.split(LINE_SEPARATOR))


def get_line_changes(old_content: str, new_content: str) -> LineStats:
    """Compute coarse line statistics from line counts alone."""
    old_count = count_lines(old_content)
    new_count = count_lines(new_content)
    delta = new_count - old_count
    return LineStats(added_lines=delta, modified_lines=abs(delta), total_lines=new_count)


def classify_changes(
    functions: NameChanges,
    classes: NameChanges,
    imports: NameChanges,
    line_stats: LineStats,
) -> list[ChangeType]:
    """Tag every category with a nonzero count.

    The result is a set in spirit; it is returned as a list in a stable
    order so the JSON output is deterministic.
    """
    checks = (
        (ChangeType.FUNCTION_ADDED, functions.added),
        (ChangeType.FUNCTION_MODIFIED, functions.modified),
        (ChangeType.FUNCTION_REMOVED, functions.removed),
        (ChangeType.CLASS_ADDED, classes.added),
        (ChangeType.CLASS_MODIFIED, classes.modified),
        (ChangeType.IMPORT_ADDED, imports.added),
    )
    types = [change_type for change_type, names in checks if names]
    if line_stats.modified_lines > 0:
        types.append(ChangeType.CODE_MODIFIED)
    return types


def detect_changes(old_content: str, new_content: str) -> ChangeSummary:
    """Summarize the change from ``old_content`` to ``new_content``."""
    functions = detect_function_changes(old_content, new_content)
    classes = NameChanges()
    imports = NameChanges()
    line_stats = get_line_changes(old_content, new_content)

    return ChangeSummary(
        functions=functions,
        classes=classes,
        imports=imports,
        line_stats=line_stats,
        type=classify_changes(functions, classes, imports, line_stats),
    )
