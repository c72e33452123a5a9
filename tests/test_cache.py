"""
Tests for cache.py - TTL/LRU cache and its persistence.
"""

import json

import pytest
from lazything.cache import (
    MISSING, TTLCache, create_caches, DATE_CACHE_ID, PROXY_CACHE_ID
)
from lazything.core import HuntConfig


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def make_cache(tmp_path, clock, ttl=60, max_size=3, cache_id="testCache"):
    return TTLCache(cache_id, ttl=ttl, max_size=max_size, cache_dir=str(tmp_path), clock=clock)


class TestMissing:
    """Tests for the MISSING sentinel."""

    def test_singleton(self):
        assert type(MISSING)() is MISSING

    def test_falsy(self):
        assert not MISSING
        assert repr(MISSING) == "MISSING"


class TestTTLCache:
    """Tests for get/set, expiry and eviction."""

    def test_invalid_parameters(self, tmp_path):
        with pytest.raises(ValueError):
            TTLCache("c", ttl=0, max_size=1, cache_dir=str(tmp_path))
        with pytest.raises(ValueError):
            TTLCache("c", ttl=1, max_size=0, cache_dir=str(tmp_path))

    def test_miss_returns_sentinel(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock)
        assert cache.get("nope") is MISSING
        assert cache.get("nope", "fallback") == "fallback"
        assert "nope" not in cache

    def test_cached_none_is_a_hit(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock)
        cache.set("sha", None)
        assert cache.get("sha") is None
        assert "sha" in cache

    def test_ttl_boundary(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock, ttl=60)
        cache.set("k", "v")

        clock.advance(59.999)
        assert cache.get("k") == "v"

        clock.advance(0.002)
        assert cache.get("k") is MISSING

    def test_ttl_measured_from_insertion(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock, ttl=60)
        cache.set("k", "v")
        clock.advance(50)
        assert cache.get("k") == "v"  # reading does not extend the TTL
        clock.advance(11)
        assert cache.get("k") is MISSING

    def test_overwrite_resets_ttl(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock, ttl=60)
        cache.set("k", "old")
        clock.advance(50)
        cache.set("k", "new")
        clock.advance(50)
        assert cache.get("k") == "new"

    def test_lru_eviction(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock, max_size=3)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        cache.set("d", 4)

        assert cache.get("a") is MISSING
        assert [cache.get(k) for k in ("b", "c", "d")] == [2, 3, 4]

    def test_read_refreshes_recency(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock, max_size=3)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        cache.get("a")
        cache.set("d", 4)

        assert cache.get("b") is MISSING
        assert cache.get("a") == 1
        assert cache.get("c") == 3
        assert cache.get("d") == 4

    def test_len_and_prune(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock, ttl=10)
        cache.set("a", 1)
        clock.advance(5)
        cache.set("b", 2)
        assert len(cache) == 2

        clock.advance(6)
        assert cache.prune() == 1
        assert len(cache) == 1

    def test_clear(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock)
        cache.set("a", 1)
        cache.clear()
        assert len(cache) == 0


class TestPersistence:
    """Tests for load/save."""

    def test_save_and_load(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock)
        cache.set("date", "2024-01-01T00:00:00Z")
        cache.set("none", None)
        cache.set("list", [{"name": "a", "password": "x"}])
        cache.save()

        assert cache.path.exists()

        reloaded = make_cache(tmp_path, clock)
        assert reloaded.load() is True
        assert reloaded.get("date") == "2024-01-01T00:00:00Z"
        assert reloaded.get("none") is None
        assert reloaded.get("list") == [{"name": "a", "password": "x"}]

    def test_save_format(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock, ttl=60)
        cache.set("k", "v")
        cache.save()

        data = json.loads(cache.path.read_text(encoding="utf-8"))
        assert data["cache_id"] == "testCache"
        assert data["entries"] == [{"key": "k", "expires": clock.now + 60, "value": "v"}]

    def test_expiry_survives_reload(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock, ttl=60)
        cache.set("k", "v")
        cache.save()

        clock.advance(61)
        reloaded = make_cache(tmp_path, clock, ttl=60)
        reloaded.load()
        assert reloaded.get("k") is MISSING

    def test_load_missing_file(self, tmp_path, clock):
        cache = make_cache(tmp_path / "absent", clock)
        assert cache.load() is False
        assert len(cache) == 0

    def test_load_corrupt_file(self, tmp_path, clock):
        (tmp_path / "testCache").write_text("{not json", encoding="utf-8")
        cache = make_cache(tmp_path, clock)
        assert cache.load() is False
        assert len(cache) == 0

    def test_load_wrong_shape(self, tmp_path, clock):
        (tmp_path / "testCache").write_text('["a", "b"]', encoding="utf-8")
        cache = make_cache(tmp_path, clock)
        assert cache.load() is False

    def test_load_idempotent(self, tmp_path, clock):
        cache = make_cache(tmp_path, clock)
        cache.set("k", "v")
        cache.save()

        reloaded = make_cache(tmp_path, clock)
        reloaded.load()
        reloaded.set("k", "changed")
        reloaded.load()
        assert reloaded.get("k") == "changed"

    def test_load_respects_max_size(self, tmp_path, clock):
        big = make_cache(tmp_path, clock, max_size=5)
        for i in range(5):
            big.set(f"k{i}", i)
        big.save()

        small = make_cache(tmp_path, clock, max_size=2)
        small.load()
        assert len(small) == 2
        assert small.get("k4") == 4
        assert small.get("k0") is MISSING

    def test_save_creates_directory(self, tmp_path, clock):
        cache = make_cache(tmp_path / "nested" / "dir", clock)
        cache.set("k", 1)
        cache.save()
        assert cache.path.exists()


class TestCreateCaches:
    """Tests for create_caches."""

    def test_instances(self, tmp_path):
        date_cache, proxy_cache = create_caches(HuntConfig(), cache_dir=str(tmp_path))

        assert date_cache.cache_id == DATE_CACHE_ID
        assert date_cache.ttl == 3600
        assert date_cache.max_size == 1000
        assert date_cache.path == tmp_path / "dateCache"

        assert proxy_cache.cache_id == PROXY_CACHE_ID
        assert proxy_cache.ttl == 7200
        assert proxy_cache.max_size == 500
        assert proxy_cache.path == tmp_path / "proxyCache"
