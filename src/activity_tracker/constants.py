"""Constants for activity-tracker.

This module centralizes the magic strings and numbers used throughout the
package. Constants are organized by domain:
- Version
- Capture defaults and limits
- Queue and supervisor timing
- Remote store layout and HTTP details
- Configuration keys and environment variables
- Logging
- User-facing messages
"""

from typing import Final

from activity_tracker import __version__

# =============================================================================
# Version
# =============================================================================

VERSION: Final[str] = __version__

# =============================================================================
# Capture
# =============================================================================

DEFAULT_MAX_CACHED_FILES: Final[int] = 100
MIN_MAX_CACHED_FILES: Final[int] = 1
MAX_MAX_CACHED_FILES: Final[int] = 100_000

DEFAULT_RETRY_ATTEMPTS: Final[int] = 3
MIN_RETRY_ATTEMPTS: Final[int] = 1
MAX_RETRY_ATTEMPTS: Final[int] = 20

DEFAULT_RETRY_DELAY_MS: Final[int] = 1000
MAX_RETRY_DELAY_MS: Final[int] = 60_000

# Heuristic "function declaration" pattern; group 1 is the function name
FUNCTION_DECLARATION_PATTERN: Final[str] = r"function\s+(\w+)\s*\("

LINE_SEPARATOR: Final[str] = "\n"

# =============================================================================
# Queue
# =============================================================================

DEFAULT_FLUSH_INTERVAL_MS: Final[int] = 5000
MIN_FLUSH_INTERVAL_MS: Final[int] = 100
MAX_FLUSH_INTERVAL_MS: Final[int] = 3_600_000

# Pause between writes to different projects (remote rate limit)
DEFAULT_WRITE_DELAY_MS: Final[int] = 1000
MAX_WRITE_DELAY_MS: Final[int] = 60_000

DEFAULT_REQUEUE_ON_FAILURE: Final[bool] = False

# =============================================================================
# Supervisor
# =============================================================================

DEFAULT_SUPERVISOR_INTERVAL_MS: Final[int] = 30 * 60 * 1000
MIN_SUPERVISOR_INTERVAL_MS: Final[int] = 1000
MAX_SUPERVISOR_INTERVAL_MS: Final[int] = 24 * 60 * 60 * 1000

DEFAULT_MAX_SUPERVISOR_RETRIES: Final[int] = 3
MIN_MAX_SUPERVISOR_RETRIES: Final[int] = 1
MAX_MAX_SUPERVISOR_RETRIES: Final[int] = 100

SUPERVISOR_STATE_STOPPED: Final[str] = "stopped"
SUPERVISOR_STATE_RUNNING: Final[str] = "running"

# =============================================================================
# Remote Store
# =============================================================================

REMOTE_BACKEND_GITHUB: Final[str] = "github"
REMOTE_BACKEND_LOCAL: Final[str] = "local"
VALID_REMOTE_BACKENDS: Final[tuple[str, ...]] = (
    REMOTE_BACKEND_GITHUB,
    REMOTE_BACKEND_LOCAL,
)
DEFAULT_REMOTE_BACKEND: Final[str] = REMOTE_BACKEND_GITHUB

DEFAULT_GITHUB_API_URL: Final[str] = "https://api.github.com"
DEFAULT_REPOSITORY_NAME: Final[str] = "activity-tracker"
DEFAULT_REMOTE_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_LOCAL_REMOTE_DIR: Final[str] = ".activity-tracker/remote"

# Path of a project's activity log inside the destination repository
ACTIVITY_LOG_PATH_TEMPLATE: Final[str] = "projects/{project}/activity-log.json"
ACTIVITY_LOG_COMMIT_MESSAGE: Final[str] = "Update activity log with {count} entries"
ACTIVITY_LOG_JSON_INDENT: Final[int] = 2

GITHUB_ACCEPT_HEADER: Final[str] = "application/vnd.github+json"
GITHUB_API_VERSION_HEADER: Final[str] = "X-GitHub-Api-Version"
GITHUB_API_VERSION: Final[str] = "2022-11-28"
GITHUB_USER_AGENT: Final[str] = f"activity-tracker/{__version__}"
GITHUB_CONTENT_TYPE_FILE: Final[str] = "file"
# Files over 1 MB come back from the contents API without inline content
GITHUB_CONTENT_ENCODING_NONE: Final[str] = "none"
GITHUB_RAW_ACCEPT_HEADER: Final[str] = "application/vnd.github.raw+json"
GITHUB_RATE_LIMIT_REMAINING_HEADER: Final[str] = "x-ratelimit-remaining"

HTTP_STATUS_UNAUTHORIZED: Final[int] = 401
HTTP_STATUS_FORBIDDEN: Final[int] = 403
HTTP_STATUS_NOT_FOUND: Final[int] = 404
HTTP_STATUS_CONFLICT: Final[int] = 409
HTTP_STATUS_UNPROCESSABLE: Final[int] = 422
HTTP_STATUS_TOO_MANY_REQUESTS: Final[int] = 429
HTTP_STATUS_SERVER_ERROR_MIN: Final[int] = 500

# =============================================================================
# Configuration
# =============================================================================

CONFIG_DIR: Final[str] = ".activity-tracker"
CONFIG_FILENAME: Final[str] = "config.yaml"
CONFIG_ROOT_KEY: Final[str] = "activity_tracker"

CONFIG_KEY_CAPTURE: Final[str] = "capture"
CONFIG_KEY_QUEUE: Final[str] = "queue"
CONFIG_KEY_SUPERVISOR: Final[str] = "supervisor"
CONFIG_KEY_REMOTE: Final[str] = "remote"
CONFIG_KEY_LOG_LEVEL: Final[str] = "log_level"
CONFIG_KEY_LOG_ROTATION: Final[str] = "log_rotation"

ENV_DEBUG: Final[str] = "ACTIVITY_TRACKER_DEBUG"
ENV_LOG_LEVEL: Final[str] = "ACTIVITY_TRACKER_LOG_LEVEL"
ENV_TOKEN: Final[str] = "ACTIVITY_TRACKER_TOKEN"
ENV_GITHUB_TOKEN: Final[str] = "GITHUB_TOKEN"
ENV_TRUTHY_VALUES: Final[tuple[str, ...]] = ("1", "true", "yes", "on")

# =============================================================================
# Logging
# =============================================================================

LOG_LEVEL_DEBUG: Final[str] = "DEBUG"
LOG_LEVEL_INFO: Final[str] = "INFO"
LOG_LEVEL_WARNING: Final[str] = "WARNING"
LOG_LEVEL_ERROR: Final[str] = "ERROR"
VALID_LOG_LEVELS: Final[tuple[str, ...]] = (
    LOG_LEVEL_DEBUG,
    LOG_LEVEL_INFO,
    LOG_LEVEL_WARNING,
    LOG_LEVEL_ERROR,
)

PACKAGE_LOGGER_NAME: Final[str] = "activity_tracker"
NOISY_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore", "watchdog")

DEFAULT_LOG_ROTATION_ENABLED: Final[bool] = True
DEFAULT_LOG_MAX_SIZE_MB: Final[int] = 10
MIN_LOG_MAX_SIZE_MB: Final[int] = 1
MAX_LOG_MAX_SIZE_MB: Final[int] = 500
DEFAULT_LOG_BACKUP_COUNT: Final[int] = 3
MAX_LOG_BACKUP_COUNT: Final[int] = 20

# =============================================================================
# Watcher
# =============================================================================

# Coalesce bursts of modify events for the same file into one save event
WATCHER_DEBOUNCE_SECONDS: Final[float] = 0.5
WATCHER_IGNORED_DIRECTORIES: Final[frozenset[str]] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".venv",
        "venv",
        "node_modules",
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        CONFIG_DIR,
    }
)

# =============================================================================
# Messages
# =============================================================================

MSG_TRACKING_STARTED: Final[str] = "Activity tracking started"
MSG_TRACKING_STOPPED: Final[str] = "Activity tracking stopped"
MSG_CAPTURE_FAILED: Final[str] = "Failed to log activity after {attempts} attempts: {error}"
MSG_SUPERVISOR_EXHAUSTED: Final[str] = "Periodic sync stopped after {failures} consecutive failures"
MSG_ACTIVATION_FAILED: Final[str] = "Activation failed: {error}"
