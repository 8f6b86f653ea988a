"""Tests for schemaspine.watch.clock - ChangeClock and LastRunStore."""

import os

import pytest

from schemaspine.core.cache import FileCache, InMemoryCache
from schemaspine.watch.clock import LAST_RUN_KEY, ChangeClock, LastRunStore
from schemaspine.watch.registry import WatchRegistry


class TestLatestChange:
    def test_empty_registry(self):
        assert ChangeClock.latest_change(WatchRegistry()) == 0

    def test_max_mtime(self, write_file):
        registry = WatchRegistry()
        registry.register(write_file("a.yaml", mtime=1_000))
        registry.register(write_file("b.yaml", mtime=3_000))
        registry.register(write_file("c.yaml", mtime=2_000))
        assert ChangeClock.latest_change(registry) == 3_000

    def test_vanished_file_skipped(self, write_file):
        registry = WatchRegistry()
        registry.register(write_file("a.yaml", mtime=1_000))
        gone = write_file("b.yaml", mtime=5_000)
        registry.register(gone)
        gone.unlink()
        assert ChangeClock.latest_change(registry) == 1_000

    def test_callbacks_count_their_file_once(self):
        registry = WatchRegistry()
        registry.register(lambda ctx: None)
        registry.register(lambda ctx: None)
        assert len({e.path for e in registry}) == 1
        assert ChangeClock.latest_change(registry) > 0

    def test_whole_seconds(self, write_file):
        registry = WatchRegistry()
        path = write_file("a.yaml")
        os.utime(path, (1_000.7, 1_000.7))
        registry.register(path)
        assert ChangeClock.latest_change(registry) == 1_000


class TestIsDue:
    @pytest.mark.parametrize(
        ("last_run", "latest", "force", "always", "expected"),
        [
            (100, 200, False, False, True),
            (200, 200, False, False, False),
            (300, 200, False, False, False),
            (300, 200, True, False, True),
            (300, 200, False, True, True),
        ],
    )
    def test_is_due(self, last_run, latest, force, always, expected):
        assert ChangeClock.is_due(last_run, latest, force=force, always_run=always) is expected


class TestLastRunStore:
    def test_defaults_to_zero(self):
        assert LastRunStore(InMemoryCache()).get() == 0

    def test_mark_explicit(self):
        store = LastRunStore(InMemoryCache())
        assert store.mark(1234) == 1234
        assert store.get() == 1234

    def test_mark_now(self, now):
        store = LastRunStore(InMemoryCache())
        assert store.mark() >= now

    def test_reset(self):
        store = LastRunStore(InMemoryCache())
        store.mark(99)
        store.reset()
        assert store.get() == 0

    def test_persisted_in_file(self, tmp_path):
        path = tmp_path / "state.json"
        LastRunStore(FileCache(path)).mark(4321)
        assert FileCache(path).get(LAST_RUN_KEY) == 4321
        assert LastRunStore(FileCache(path)).get() == 4321
