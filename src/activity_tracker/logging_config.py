"""Logging setup for the activity-tracker process."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from activity_tracker.config import LogRotationConfig
from activity_tracker.constants import NOISY_LOGGERS, PACKAGE_LOGGER_NAME


def configure_logging(
    log_level: str,
    log_file: Path | None = None,
    log_rotation: LogRotationConfig | None = None,
) -> logging.Logger:
    """Configure the package logger.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional log file path; logs go to stderr when omitted.
        log_rotation: Optional log rotation configuration.

    Returns:
        The configured package logger.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    package_logger.setLevel(level)
    package_logger.propagate = False

    # Reconfiguring must not stack handlers
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    # Client libraries log every request at INFO
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level == logging.DEBUG else logging.WARNING)

    if level == logging.DEBUG:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
            datefmt="%H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%H:%M:%S",
        )

    handler: logging.Handler
    if log_file:
        rotation = log_rotation or LogRotationConfig()
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            if rotation.enabled:
                handler = RotatingFileHandler(
                    log_file,
                    mode="a",
                    maxBytes=rotation.get_max_bytes(),
                    backupCount=rotation.backup_count,
                    encoding="utf-8",
                )
            else:
                handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        except OSError as e:
            handler = logging.StreamHandler()
            handler.setFormatter(formatter)
            package_logger.addHandler(handler)
            package_logger.warning(f"Could not set up file logging to {log_file}: {e}")
            return package_logger
    else:
        handler = logging.StreamHandler()

    handler.setFormatter(formatter)
    package_logger.addHandler(handler)
    return package_logger
