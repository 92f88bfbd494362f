"""Tests for the in-memory TTL cache."""
from unittest.mock import patch

from questline.core.cache import SimpleCache


class TestSimpleCache:

    def test_set_and_get(self):
        cache = SimpleCache()
        cache.set("template:default", {"id": "default"})

        assert cache.get("template:default") == {"id": "default"}
        assert cache.get("missing") is None

    def test_expiry(self):
        cache = SimpleCache(default_ttl=10)

        with patch("questline.core.cache.time.monotonic", return_value=100.0):
            cache.set("key", "value")
        with patch("questline.core.cache.time.monotonic", return_value=105.0):
            assert cache.get("key") == "value"
        with patch("questline.core.cache.time.monotonic", return_value=111.0):
            assert cache.get("key") is None

        assert len(cache) == 0

    def test_lru_eviction(self):
        """Reading a key protects it from eviction."""
        cache = SimpleCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")

        cache.set("c", 3)

        assert cache.get("a") == 1
        assert cache.get("b") is None
        assert cache.get("c") == 3

    def test_delete_and_clear(self):
        cache = SimpleCache()
        cache.set("a", 1)
        cache.set("b", 2)

        cache.delete("a")
        cache.delete("never-set")
        assert cache.get("a") is None
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0
