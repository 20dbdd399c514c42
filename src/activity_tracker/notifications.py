"""User-visible notifications.

The core never talks to a UI directly; it reports through a Notifier.
The CLI plugs in ConsoleNotifier, library users get LoggingNotifier.
"""

import logging
from abc import ABC, abstractmethod

from activity_tracker.utils import print_error, print_info

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Abstract sink for operator-facing messages."""

    @abstractmethod
    def info(self, message: str) -> None:
        """Report an informational message."""
        ...

    @abstractmethod
    def error(self, message: str) -> None:
        """Report a failure the operator should see."""
        ...


class LoggingNotifier(Notifier):
    """Notifier that only writes to the package log."""

    def info(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.error(message)


class ConsoleNotifier(Notifier):
    """Notifier that prints to the terminal through rich."""

    def info(self, message: str) -> None:
        print_info(message)

    def error(self, message: str) -> None:
        print_error(message)
