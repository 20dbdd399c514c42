"""Bounded snapshot cache used as the diff baseline for each file."""

import logging

from activity_tracker.constants import DEFAULT_MAX_CACHED_FILES

logger = logging.getLogger(__name__)


class ContentCache:
    """Map from file identity to the last content seen for that file.

    Eviction is strict first-insertion order: when a new file would exceed
    ``max_entries``, the file inserted longest ago is dropped. Overwriting
    an existing file keeps its original position, so frequently edited
    files are not protected from eviction.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_CACHED_FILES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        # dict preserves insertion order and keeps it on overwrite
        self._entries: dict[str, str] = {}

    def get(self, file: str) -> str:
        """Return the cached snapshot, or an empty string if none exists."""
        return self._entries.get(file, "")

    def put(self, file: str, content: str) -> str | None:
        """Store a snapshot, evicting the oldest entry if needed.

        Returns:
            The evicted file identity, if any.
        """
        evicted: str | None = None
        if file not in self._entries and len(self._entries) >= self.max_entries:
            evicted = next(iter(self._entries))
            del self._entries[evicted]
            logger.debug(f"Evicted cached snapshot for {evicted}")
        self._entries[file] = content
        return evicted

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, file: object) -> bool:
        return file in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        """File identities in eviction order (oldest first)."""
        return list(self._entries)
