"""
Tests for schemaspine.core.cache module.

Covers:
- CacheBackend protocol compliance
- InMemoryCache: get/set/delete/exists/clear, LRU eviction, TTL expiry
- FileCache: persistence across instances, never-expiring entries
"""

import json

from schemaspine.core.cache import CacheBackend, FileCache, InMemoryCache


class TestInMemoryCache:
    """Test InMemoryCache backend."""

    def test_basic_get_set(self):
        cache = InMemoryCache(max_size=100)
        cache.set("key1", {"data": [1, 2, 3]})
        assert cache.get("key1") == {"data": [1, 2, 3]}

    def test_get_missing_key(self):
        assert InMemoryCache().get("missing") is None

    def test_delete(self):
        cache = InMemoryCache()
        cache.set("key1", "value1")
        cache.delete("key1")
        assert not cache.exists("key1")

    def test_clear(self):
        cache = InMemoryCache()
        cache.set("k1", 1)
        cache.set("k2", 2)
        cache.clear()
        assert cache.size() == 0

    def test_lru_eviction(self):
        """Least recently used key is evicted at capacity."""
        cache = InMemoryCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.exists("a")
        assert not cache.exists("b")
        assert cache.exists("c")

    def test_expired_entry_is_gone(self, monkeypatch):
        cache = InMemoryCache()
        monkeypatch.setattr("schemaspine.core.cache.time.time", lambda: 1_000.0)
        cache.set("temp", "value", ttl_seconds=5)
        monkeypatch.setattr("schemaspine.core.cache.time.time", lambda: 1_010.0)
        assert cache.get("temp") is None

    def test_protocol(self):
        assert isinstance(InMemoryCache(), CacheBackend)


class TestFileCache:
    """Test the JSON file backend used for the last-run timestamp."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "state" / "state.json"
        FileCache(path).set("schemaspine-last-run", 1234)
        assert FileCache(path).get("schemaspine-last-run") == 1234

    def test_file_layout(self, tmp_path):
        path = tmp_path / "state.json"
        FileCache(path).set("k", 5)
        data = json.loads(path.read_text())
        assert data == {"k": {"value": 5, "expires_at": None}}

    def test_missing_file_reads_empty(self, tmp_path):
        cache = FileCache(tmp_path / "nope.json")
        assert cache.get("k") is None
        assert not cache.exists("k")

    def test_delete_and_clear(self, tmp_path):
        cache = FileCache(tmp_path / "state.json")
        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2
        cache.clear()
        assert not cache.exists("b")

    def test_ttl_expiry(self, tmp_path, monkeypatch):
        cache = FileCache(tmp_path / "state.json")
        monkeypatch.setattr("schemaspine.core.cache.time.time", lambda: 1_000.0)
        cache.set("k", "v", ttl_seconds=10)
        assert cache.get("k") == "v"
        monkeypatch.setattr("schemaspine.core.cache.time.time", lambda: 1_011.0)
        assert cache.get("k") is None

    def test_no_temp_files_left(self, tmp_path):
        cache = FileCache(tmp_path / "state.json")
        cache.set("k", 1)
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_protocol(self, tmp_path):
        assert isinstance(FileCache(tmp_path / "s.json"), CacheBackend)
