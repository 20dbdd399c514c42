"""Shared utilities for activity-tracker."""

from activity_tracker.utils.console import (
    console,
    print_error,
    print_header,
    print_info,
    print_success,
    print_warning,
)

__all__ = [
    "console",
    "print_error",
    "print_header",
    "print_info",
    "print_success",
    "print_warning",
]
