"""Configuration management for activity-tracker.

Configuration follows a priority hierarchy:
1. Environment variables (ACTIVITY_TRACKER_*)
2. Project config (.activity-tracker/config.yaml)
3. Hardcoded defaults in this module
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from activity_tracker.constants import (
    CONFIG_DIR,
    CONFIG_FILENAME,
    CONFIG_KEY_CAPTURE,
    CONFIG_KEY_LOG_LEVEL,
    CONFIG_KEY_LOG_ROTATION,
    CONFIG_KEY_QUEUE,
    CONFIG_KEY_REMOTE,
    CONFIG_KEY_SUPERVISOR,
    CONFIG_ROOT_KEY,
    DEFAULT_FLUSH_INTERVAL_MS,
    DEFAULT_GITHUB_API_URL,
    DEFAULT_LOCAL_REMOTE_DIR,
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_MAX_SIZE_MB,
    DEFAULT_LOG_ROTATION_ENABLED,
    DEFAULT_MAX_CACHED_FILES,
    DEFAULT_MAX_SUPERVISOR_RETRIES,
    DEFAULT_REMOTE_BACKEND,
    DEFAULT_REMOTE_TIMEOUT_SECONDS,
    DEFAULT_REPOSITORY_NAME,
    DEFAULT_REQUEUE_ON_FAILURE,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY_MS,
    DEFAULT_SUPERVISOR_INTERVAL_MS,
    DEFAULT_WRITE_DELAY_MS,
    ENV_DEBUG,
    ENV_GITHUB_TOKEN,
    ENV_LOG_LEVEL,
    ENV_TOKEN,
    ENV_TRUTHY_VALUES,
    LOG_LEVEL_DEBUG,
    LOG_LEVEL_INFO,
    MAX_FLUSH_INTERVAL_MS,
    MAX_LOG_BACKUP_COUNT,
    MAX_LOG_MAX_SIZE_MB,
    MAX_MAX_CACHED_FILES,
    MAX_MAX_SUPERVISOR_RETRIES,
    MAX_RETRY_ATTEMPTS,
    MAX_RETRY_DELAY_MS,
    MAX_SUPERVISOR_INTERVAL_MS,
    MAX_WRITE_DELAY_MS,
    MIN_FLUSH_INTERVAL_MS,
    MIN_LOG_MAX_SIZE_MB,
    MIN_MAX_CACHED_FILES,
    MIN_MAX_SUPERVISOR_RETRIES,
    MIN_RETRY_ATTEMPTS,
    MIN_SUPERVISOR_INTERVAL_MS,
    REMOTE_BACKEND_GITHUB,
    VALID_LOG_LEVELS,
    VALID_REMOTE_BACKENDS,
)
from activity_tracker.exceptions import ValidationError

logger = logging.getLogger(__name__)

# Repository names accepted by GitHub
_REPOSITORY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


def _check_range(name: str, value: int | float, minimum: int | float, maximum: int | float) -> None:
    """Raise ValidationError unless minimum <= value <= maximum."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(
            f"{name} must be a number",
            field=name,
            value=value,
            expected="number",
        )
    if value < minimum:
        raise ValidationError(
            f"{name} must be at least {minimum}",
            field=name,
            value=value,
            expected=f">= {minimum}",
        )
    if value > maximum:
        raise ValidationError(
            f"{name} must be at most {maximum}",
            field=name,
            value=value,
            expected=f"<= {maximum}",
        )


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    """Return a config section, treating an empty YAML key as an empty section."""
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ValidationError(
            f"Config section '{key}' must be a mapping",
            field=key,
            value=section,
            expected="mapping",
        )
    return section


def _resolve_env_reference(value: str | None) -> str | None:
    """Resolve ``${ENV_VAR}`` syntax to the variable's value."""
    if value and value.startswith("${") and value.endswith("}"):
        return os.environ.get(value[2:-1])
    return value


@dataclass
class CaptureConfig:
    """Configuration for edit capture and submission retries.

    Attributes:
        max_cached_files: Maximum number of file snapshots kept for diffing.
        retry_attempts: Submission attempts per edit event.
        retry_delay_ms: Base delay; attempt N waits retry_delay_ms * N.
    """

    max_cached_files: int = DEFAULT_MAX_CACHED_FILES
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        _check_range(
            "max_cached_files", self.max_cached_files, MIN_MAX_CACHED_FILES, MAX_MAX_CACHED_FILES
        )
        _check_range("retry_attempts", self.retry_attempts, MIN_RETRY_ATTEMPTS, MAX_RETRY_ATTEMPTS)
        _check_range("retry_delay_ms", self.retry_delay_ms, 0, MAX_RETRY_DELAY_MS)

    @property
    def retry_delay_seconds(self) -> float:
        """Base retry delay in seconds."""
        return self.retry_delay_ms / 1000

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CaptureConfig":
        """Create config from dictionary."""
        return cls(
            max_cached_files=data.get("max_cached_files", DEFAULT_MAX_CACHED_FILES),
            retry_attempts=data.get("retry_attempts", DEFAULT_RETRY_ATTEMPTS),
            retry_delay_ms=data.get("retry_delay_ms", DEFAULT_RETRY_DELAY_MS),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "max_cached_files": self.max_cached_files,
            "retry_attempts": self.retry_attempts,
            "retry_delay_ms": self.retry_delay_ms,
        }


@dataclass
class QueueConfig:
    """Configuration for the per-project activity queue.

    Attributes:
        flush_interval_ms: Period of the background flush task.
        write_delay_ms: Pause after each project write, to respect rate limits.
        requeue_on_failure: Put a failed batch back in the buffer instead of
            dropping it.
    """

    flush_interval_ms: int = DEFAULT_FLUSH_INTERVAL_MS
    write_delay_ms: int = DEFAULT_WRITE_DELAY_MS
    requeue_on_failure: bool = DEFAULT_REQUEUE_ON_FAILURE

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        _check_range(
            "flush_interval_ms",
            self.flush_interval_ms,
            MIN_FLUSH_INTERVAL_MS,
            MAX_FLUSH_INTERVAL_MS,
        )
        _check_range("write_delay_ms", self.write_delay_ms, 0, MAX_WRITE_DELAY_MS)

    @property
    def flush_interval_seconds(self) -> float:
        return self.flush_interval_ms / 1000

    @property
    def write_delay_seconds(self) -> float:
        return self.write_delay_ms / 1000

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueueConfig":
        """Create config from dictionary."""
        return cls(
            flush_interval_ms=data.get("flush_interval_ms", DEFAULT_FLUSH_INTERVAL_MS),
            write_delay_ms=data.get("write_delay_ms", DEFAULT_WRITE_DELAY_MS),
            requeue_on_failure=data.get("requeue_on_failure", DEFAULT_REQUEUE_ON_FAILURE),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "flush_interval_ms": self.flush_interval_ms,
            "write_delay_ms": self.write_delay_ms,
            "requeue_on_failure": self.requeue_on_failure,
        }


@dataclass
class SupervisorConfig:
    """Configuration for the periodic full-state sync supervisor.

    Attributes:
        enabled: Whether the supervisor runs at all.
        interval_ms: Period between sync attempts.
        max_retries: Consecutive failures before the supervisor stops itself.
    """

    enabled: bool = True
    interval_ms: int = DEFAULT_SUPERVISOR_INTERVAL_MS
    max_retries: int = DEFAULT_MAX_SUPERVISOR_RETRIES

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        _check_range(
            "interval_ms", self.interval_ms, MIN_SUPERVISOR_INTERVAL_MS, MAX_SUPERVISOR_INTERVAL_MS
        )
        _check_range(
            "max_retries", self.max_retries, MIN_MAX_SUPERVISOR_RETRIES, MAX_MAX_SUPERVISOR_RETRIES
        )

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SupervisorConfig":
        """Create config from dictionary."""
        return cls(
            enabled=data.get("enabled", True),
            interval_ms=data.get("interval_ms", DEFAULT_SUPERVISOR_INTERVAL_MS),
            max_retries=data.get("max_retries", DEFAULT_MAX_SUPERVISOR_RETRIES),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "enabled": self.enabled,
            "interval_ms": self.interval_ms,
            "max_retries": self.max_retries,
        }


@dataclass
class RemoteConfig:
    """Configuration for the remote store.

    Attributes:
        backend: Remote backend (github, local).
        api_url: Base URL of the GitHub REST API.
        owner: Repository owner (None = the authenticated user).
        repository: Destination repository name.
        branch: Branch to commit to (None = repository default).
        token: Access token (supports ${ENV_VAR} syntax).
        local_path: Directory used by the local backend.
        timeout: Request timeout in seconds.
    """

    backend: str = DEFAULT_REMOTE_BACKEND
    api_url: str = DEFAULT_GITHUB_API_URL
    owner: str | None = None
    repository: str = DEFAULT_REPOSITORY_NAME
    branch: str | None = None
    token: str | None = None
    local_path: str = DEFAULT_LOCAL_REMOTE_DIR
    timeout: float = DEFAULT_REMOTE_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.backend not in VALID_REMOTE_BACKENDS:
            raise ValidationError(
                f"Invalid remote backend: {self.backend}",
                field="backend",
                value=self.backend,
                expected=f"one of {VALID_REMOTE_BACKENDS}",
            )

        if not isinstance(self.repository, str) or not _REPOSITORY_NAME_PATTERN.match(
            self.repository
        ):
            raise ValidationError(
                f"Invalid repository name: {self.repository}",
                field="repository",
                value=self.repository,
                expected="letters, digits, '.', '_' or '-'",
            )

        if not isinstance(self.api_url, str) or not re.match(
            r"^https?://", self.api_url, re.IGNORECASE
        ):
            raise ValidationError(
                f"Invalid API URL: {self.api_url}",
                field="api_url",
                value=self.api_url,
                expected="valid HTTP(S) URL",
            )

        if (
            isinstance(self.timeout, bool)
            or not isinstance(self.timeout, (int, float))
            or self.timeout <= 0
        ):
            raise ValidationError(
                "Timeout must be positive",
                field="timeout",
                value=self.timeout,
                expected="positive number",
            )

        if self.token is not None and not isinstance(self.token, str):
            raise ValidationError(
                "Token must be a string",
                field="token",
                expected="string or ${ENV_VAR} reference",
            )

        if self.token and not self.token.startswith("${"):
            logger.warning(
                "Token appears to be hardcoded in config. "
                "For security, use ${ENV_VAR_NAME} syntax instead."
            )

    def get_token(self) -> str | None:
        """Resolve the access token.

        Priority: explicit config value (with ${ENV_VAR} expansion), then
        ACTIVITY_TRACKER_TOKEN, then GITHUB_TOKEN.
        """
        resolved = _resolve_env_reference(self.token)
        if resolved:
            return resolved
        return os.environ.get(ENV_TOKEN) or os.environ.get(ENV_GITHUB_TOKEN) or None

    def get_local_path(self, project_root: Path) -> Path:
        """Resolve the local backend directory against the project root."""
        path = Path(self.local_path).expanduser()
        if not path.is_absolute():
            path = project_root / path
        return path

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteConfig":
        """Create config from dictionary."""
        return cls(
            backend=data.get("backend", DEFAULT_REMOTE_BACKEND),
            api_url=data.get("api_url", DEFAULT_GITHUB_API_URL),
            owner=data.get("owner"),
            repository=data.get("repository", DEFAULT_REPOSITORY_NAME),
            branch=data.get("branch"),
            token=data.get("token"),
            local_path=data.get("local_path", DEFAULT_LOCAL_REMOTE_DIR),
            timeout=data.get("timeout", DEFAULT_REMOTE_TIMEOUT_SECONDS),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "backend": self.backend,
            "api_url": self.api_url,
            "owner": self.owner,
            "repository": self.repository,
            "branch": self.branch,
            "token": self.token,
            "local_path": self.local_path,
            "timeout": self.timeout,
        }


@dataclass
class LogRotationConfig:
    """Configuration for log file rotation.

    Attributes:
        enabled: Whether to enable log rotation.
        max_size_mb: Maximum log file size in megabytes before rotation.
        backup_count: Number of rotated files to keep.
    """

    enabled: bool = DEFAULT_LOG_ROTATION_ENABLED
    max_size_mb: int = DEFAULT_LOG_MAX_SIZE_MB
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        _check_range("max_size_mb", self.max_size_mb, MIN_LOG_MAX_SIZE_MB, MAX_LOG_MAX_SIZE_MB)
        _check_range("backup_count", self.backup_count, 0, MAX_LOG_BACKUP_COUNT)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogRotationConfig":
        """Create config from dictionary."""
        return cls(
            enabled=data.get("enabled", DEFAULT_LOG_ROTATION_ENABLED),
            max_size_mb=data.get("max_size_mb", DEFAULT_LOG_MAX_SIZE_MB),
            backup_count=data.get("backup_count", DEFAULT_LOG_BACKUP_COUNT),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "enabled": self.enabled,
            "max_size_mb": self.max_size_mb,
            "backup_count": self.backup_count,
        }

    def get_max_bytes(self) -> int:
        """Get maximum log file size in bytes."""
        return self.max_size_mb * 1024 * 1024


@dataclass
class TrackerConfig:
    """Top-level activity-tracker configuration.

    Attributes:
        capture: Edit capture and retry configuration.
        queue: Activity queue configuration.
        supervisor: Periodic supervisor configuration.
        remote: Remote store configuration.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_rotation: Log file rotation configuration.
    """

    capture: CaptureConfig = field(default_factory=CaptureConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    supervisor: SupervisorConfig = field(default_factory=SupervisorConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    log_level: str = LOG_LEVEL_INFO
    log_rotation: LogRotationConfig = field(default_factory=LogRotationConfig)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not isinstance(self.log_level, str) or self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValidationError(
                f"Invalid log level: {self.log_level}",
                field="log_level",
                value=self.log_level,
                expected=f"one of {VALID_LOG_LEVELS}",
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackerConfig":
        """Create config from dictionary.

        Raises:
            ValidationError: If configuration values are invalid.
        """
        return cls(
            capture=CaptureConfig.from_dict(_section(data, CONFIG_KEY_CAPTURE)),
            queue=QueueConfig.from_dict(_section(data, CONFIG_KEY_QUEUE)),
            supervisor=SupervisorConfig.from_dict(_section(data, CONFIG_KEY_SUPERVISOR)),
            remote=RemoteConfig.from_dict(_section(data, CONFIG_KEY_REMOTE)),
            log_level=data.get(CONFIG_KEY_LOG_LEVEL) or LOG_LEVEL_INFO,
            log_rotation=LogRotationConfig.from_dict(_section(data, CONFIG_KEY_LOG_ROTATION)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            CONFIG_KEY_CAPTURE: self.capture.to_dict(),
            CONFIG_KEY_QUEUE: self.queue.to_dict(),
            CONFIG_KEY_SUPERVISOR: self.supervisor.to_dict(),
            CONFIG_KEY_REMOTE: self.remote.to_dict(),
            CONFIG_KEY_LOG_LEVEL: self.log_level,
            CONFIG_KEY_LOG_ROTATION: self.log_rotation.to_dict(),
        }

    def get_effective_log_level(self) -> str:
        """Get effective log level, considering environment variable overrides.

        Priority (highest to lowest):
        1. ACTIVITY_TRACKER_DEBUG=1 → DEBUG
        2. ACTIVITY_TRACKER_LOG_LEVEL
        3. Config file log_level
        4. Default: INFO
        """
        if os.environ.get(ENV_DEBUG, "").lower() in ENV_TRUTHY_VALUES:
            return LOG_LEVEL_DEBUG

        env_level = os.environ.get(ENV_LOG_LEVEL, "").upper()
        if env_level in VALID_LOG_LEVELS:
            return env_level

        if self.log_level.upper() in VALID_LOG_LEVELS:
            return self.log_level.upper()

        return LOG_LEVEL_INFO

    @property
    def uses_github(self) -> bool:
        return self.remote.backend == REMOTE_BACKEND_GITHUB


def get_config_path(project_root: Path) -> Path:
    """Return the config file location for a project."""
    return project_root / CONFIG_DIR / CONFIG_FILENAME


def load_tracker_config(project_root: Path) -> TrackerConfig:
    """Load activity-tracker configuration from a project.

    Reads .activity-tracker/config.yaml under the 'activity_tracker' key.

    Args:
        project_root: Project root directory.

    Returns:
        TrackerConfig with settings (defaults if not configured).

    Note:
        Returns defaults on error rather than raising, so a broken config
        file never prevents tracking from starting.
    """
    config_file = get_config_path(project_root)

    if not config_file.exists():
        logger.debug(f"No config file at {config_file}, using defaults")
        return TrackerConfig()

    try:
        with open(config_file, encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValidationError(
                "Config file must contain a mapping",
                field=CONFIG_ROOT_KEY,
                value=config_data,
                expected="mapping",
            )
        config = TrackerConfig.from_dict(_section(config_data, CONFIG_ROOT_KEY))
        logger.debug(
            f"Loaded tracker config: backend={config.remote.backend}, "
            f"repository={config.remote.repository}"
        )
        return config

    except ValidationError as e:
        logger.warning(f"Invalid tracker config in {config_file}: {e}")
        logger.info("Using default configuration")
        return TrackerConfig()

    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse config YAML from {config_file}: {e}")
        return TrackerConfig()

    except OSError as e:
        logger.warning(f"Failed to read config from {config_file}: {e}")
        return TrackerConfig()


def save_tracker_config(project_root: Path, config: TrackerConfig) -> Path:
    """Save configuration to the project's config file.

    Other top-level keys already present in the file are preserved.

    Args:
        project_root: Project root directory.
        config: Configuration to write.

    Returns:
        Path of the written config file.
    """
    config_file = get_config_path(project_root)
    config_file.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, Any] = {}
    if config_file.exists():
        try:
            with open(config_file, encoding="utf-8") as f:
                existing = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            logger.warning(f"Overwriting unreadable config {config_file}: {e}")
    if not isinstance(existing, dict):
        logger.warning(f"Overwriting non-mapping config {config_file}")
        existing = {}

    existing[CONFIG_ROOT_KEY] = config.to_dict()
    with open(config_file, "w", encoding="utf-8") as f:
        yaml.safe_dump(existing, f, default_flow_style=False, sort_keys=False)

    logger.debug(f"Saved tracker config to {config_file}")
    return config_file
