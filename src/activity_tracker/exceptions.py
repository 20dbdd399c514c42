"""Custom exceptions for activity-tracker.

All exceptions inherit from TrackerError, allowing callers to catch every
tracker-related error with a single except clause if desired.

Exception hierarchy:
    TrackerError (base)
    ├── ConfigurationError
    │   └── ValidationError
    ├── CaptureError
    ├── RemoteError
    │   ├── TransientRemoteError
    │   ├── ConcurrencyConflictError
    │   ├── RemoteAuthError
    │   └── RemoteNotFoundError
    └── SupervisorExhaustedError
"""

from pathlib import Path
from typing import Any


class TrackerError(Exception):
    """Base exception for all activity-tracker errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize tracker error.

        Args:
            message: Error description.
            details: Optional dictionary with additional context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation."""
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(TrackerError):
    """Raised when configuration is invalid or the tracker cannot be activated.

    Examples:
        - Missing credential for the remote store
        - Destination repository unreachable at startup
        - Invalid YAML in the config file
    """

    def __init__(
        self,
        message: str,
        config_file: Path | None = None,
        key: str | None = None,
    ):
        """Initialize configuration error.

        Args:
            message: Error description.
            config_file: Path to the problematic config file.
            key: The configuration key that caused the error.
        """
        details = {}
        if config_file:
            details["config_file"] = str(config_file)
        if key:
            details["key"] = key
        super().__init__(message, details)
        self.config_file = config_file
        self.key = key


class ValidationError(ConfigurationError):
    """Raised when configuration values fail validation."""

    def __init__(
        self,
        message: str,
        field: str,
        value: Any = None,
        expected: str | None = None,
    ):
        """Initialize validation error.

        Args:
            message: Error description.
            field: The field that failed validation.
            value: The invalid value (truncated if too long).
            expected: Description of the expected value.
        """
        super().__init__(message)
        self.details["field"] = field
        if value is not None:
            value_str = str(value)
            self.details["value"] = value_str[:100] + "..." if len(value_str) > 100 else value_str
        if expected:
            self.details["expected"] = expected
        self.field = field
        self.value = value
        self.expected = expected


# =============================================================================
# Capture Errors
# =============================================================================


class CaptureError(TrackerError):
    """Raised when a change summary cannot be computed for a file."""

    def __init__(self, message: str, file: str | None = None):
        details = {"file": file} if file else None
        super().__init__(message, details)
        self.file = file


# =============================================================================
# Remote Store Errors
# =============================================================================


class RemoteError(TrackerError):
    """Raised when a remote store operation fails.

    Attributes:
        repository: Destination repository name.
        path: File path inside the repository, if any.
        status_code: HTTP status code, if the failure came from a response.
    """

    def __init__(
        self,
        message: str,
        repository: str | None = None,
        path: str | None = None,
        status_code: int | None = None,
    ):
        details: dict[str, Any] = {}
        if repository:
            details["repository"] = repository
        if path:
            details["path"] = path
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details)
        self.repository = repository
        self.path = path
        self.status_code = status_code


class TransientRemoteError(RemoteError):
    """Network failure, timeout, rate limit or server error.

    Worth retrying later; never retried inside the remote client itself.
    """


class ConcurrencyConflictError(RemoteError):
    """The concurrency token passed to a write no longer matches the remote."""


class RemoteAuthError(RemoteError):
    """The credential was rejected or lacks access to the destination."""


class RemoteNotFoundError(RemoteError):
    """The destination repository does not exist."""


# =============================================================================
# Supervisor Errors
# =============================================================================


class SupervisorExhaustedError(TrackerError):
    """Raised when the periodic supervisor gives up after repeated failures.

    Attributes:
        failures: Number of consecutive failed ticks.
        last_error: The exception raised by the last failed tick.
    """

    def __init__(self, message: str, failures: int, last_error: BaseException | None = None):
        details: dict[str, Any] = {"failures": failures}
        if last_error is not None:
            details["last_error"] = str(last_error)
        super().__init__(message, details)
        self.failures = failures
        self.last_error = last_error
