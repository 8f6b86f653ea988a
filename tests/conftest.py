"""
Shared pytest fixtures for schema-spine tests.

This module provides:
- Settings cache isolation (no SCHEMASPINE_* leakage between tests)
- An in-memory content store wired to an event bus
- Migration contexts in quiet and debug output modes
- A helper writing migration files with a controlled modification time
"""

import os
import sys
import time
from collections.abc import Callable
from pathlib import Path

import pytest

# Ensure schemaspine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from schemaspine.core.cache import InMemoryCache
from schemaspine.core.context import MigrationContext
from schemaspine.core.enums import OutputMode
from schemaspine.core.events import EventBus
from schemaspine.core.settings import clear_settings_cache
from schemaspine.reconcile.memory import InMemoryContentStore
from schemaspine.watch.clock import LastRunStore


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch):
    """Drop SCHEMASPINE_* variables and the cached settings around each test."""
    for key in list(os.environ):
        if key.startswith("SCHEMASPINE_"):
            monkeypatch.delenv(key, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Store and context
# =============================================================================


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def store(events: EventBus) -> InMemoryContentStore:
    return InMemoryContentStore(events=events, locales=("default", "german"))


@pytest.fixture
def ctx(store: InMemoryContentStore, events: EventBus) -> MigrationContext:
    return MigrationContext(store=store, events=events, privileged=True)


@pytest.fixture
def debug_ctx(store: InMemoryContentStore, events: EventBus) -> MigrationContext:
    return MigrationContext(
        store=store, events=events, privileged=True, output_mode=OutputMode.DEBUG
    )


@pytest.fixture
def last_run() -> LastRunStore:
    return LastRunStore(InMemoryCache())


# =============================================================================
# Files
# =============================================================================


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[..., Path]:
    """Write ``content`` to ``tmp_path / name`` and optionally pin its mtime.

    Usage:
        path = write_file("migrate.yaml", "fields: {}", mtime=1_000)
    """

    def _write(name: str, content: str = "", mtime: int | None = None) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _write


@pytest.fixture
def now() -> int:
    return int(time.time())
