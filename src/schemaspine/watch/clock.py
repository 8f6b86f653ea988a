"""
Change detection and the persisted last-run timestamp.

A run is due when any watched file changed after the last run started. Both
sides are whole epoch seconds: two edits within the same second as the last
run are indistinguishable, which is an accepted limitation.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from pathlib import Path

from schemaspine.core.cache import CacheBackend
from schemaspine.core.logging import get_logger
from schemaspine.watch.registry import WatchEntry

logger = get_logger(__name__)

LAST_RUN_KEY = "schemaspine-last-run"


class ChangeClock:
    """Compares file modification times against the last run."""

    @staticmethod
    def latest_change(entries: Iterable[WatchEntry]) -> int:
        """Newest mtime (seconds) across the distinct files behind ``entries``.

        Many callbacks declared in one file count once. Files that vanished
        since registration are skipped. Returns 0 for no entries.
        """
        latest = 0
        for path in sorted({entry.path for entry in entries}):
            try:
                mtime = int(Path(path).stat().st_mtime)
            except FileNotFoundError:
                logger.debug("clock.file_vanished", path=path)
                continue
            latest = max(latest, mtime)
        return latest

    @staticmethod
    def is_due(
        last_run: int, latest_change: int, force: bool = False, always_run: bool = False
    ) -> bool:
        return force or always_run or last_run < latest_change


class LastRunStore:
    """The last-run timestamp, persisted in a cache entry that never expires."""

    def __init__(self, cache: CacheBackend, key: str = LAST_RUN_KEY) -> None:
        self._cache = cache
        self.key = key

    def get(self) -> int:
        value = self._cache.get(self.key)
        return int(value) if value is not None else 0

    def mark(self, timestamp: int | None = None) -> int:
        """Store ``timestamp`` (default: now) and return it."""
        value = int(time.time()) if timestamp is None else int(timestamp)
        self._cache.set(self.key, value, ttl_seconds=None)
        logger.debug("clock.marked", last_run=value)
        return value

    def reset(self) -> None:
        """Zero the timestamp so the next evaluation is due."""
        self.mark(0)


__all__ = ["ChangeClock", "LastRunStore", "LAST_RUN_KEY"]
