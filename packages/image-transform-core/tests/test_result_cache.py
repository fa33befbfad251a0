import pytest
from image_transform_core import ResultCache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResultCache(capacity=3, ttl_seconds=60, clock=clock)


class TestResultCache:
    def test_get_missing_returns_none(self, cache):
        assert cache.get("missing") is None

    def test_put_then_get(self, cache):
        cache.put("key1", "data:image/jpeg;base64,AAA")

        assert cache.get("key1") == "data:image/jpeg;base64,AAA"

    def test_entry_expiry_window(self, cache, clock):
        entry = cache.put("key1", "result")

        assert entry.expires_at == entry.created_at + 60
        assert entry.expires_at > entry.created_at

        clock.advance(59)
        assert cache.get("key1") == "result"

        clock.advance(1)
        assert cache.get("key1") is None
        assert len(cache) == 0

    def test_read_does_not_extend_expiry(self, cache, clock):
        cache.put("key1", "result")

        clock.advance(30)
        assert cache.get("key1") == "result"
        clock.advance(30)

        assert cache.get("key1") is None

    def test_evicts_oldest_inserted_at_capacity(self, cache):
        cache.put("a", "1")
        cache.put("b", "2")
        cache.put("c", "3")

        # Reading "a" does not promote it
        assert cache.get("a") == "1"

        cache.put("d", "4")

        assert len(cache) == 3
        assert cache.get("a") is None
        assert cache.get("b") == "2"
        assert cache.get("d") == "4"

    def test_reput_counts_as_new_insertion(self, cache):
        cache.put("a", "1")
        cache.put("b", "2")
        cache.put("c", "3")
        cache.put("a", "1b")
        cache.put("d", "4")

        assert cache.get("a") == "1b"
        assert cache.get("b") is None

    def test_never_exceeds_capacity(self, cache):
        for i in range(20):
            cache.put(f"key{i}", str(i))
            assert len(cache) <= cache.capacity

    def test_contains_respects_expiry(self, cache, clock):
        cache.put("key1", "result")
        assert "key1" in cache

        clock.advance(61)
        assert "key1" not in cache

    def test_clear(self, cache):
        cache.put("a", "1")
        cache.get("a")

        cache.clear()

        assert len(cache) == 0
        assert cache.stats()["hits"] == 0

    def test_stats(self, cache, clock):
        cache.put("a", "1")
        clock.advance(5)
        cache.put("b", "2")
        cache.get("a")
        cache.get("missing")

        stats = cache.stats()

        assert stats["size"] == 2
        assert stats["capacity"] == 3
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5
        assert stats["oldest_entry"] == 1000.0

    def test_empty_stats(self, cache):
        stats = cache.stats()

        assert stats["size"] == 0
        assert stats["hit_rate"] == 0.0
        assert stats["oldest_entry"] is None

    @pytest.mark.parametrize("capacity, ttl", [(0, 60), (5, 0), (5, -1)])
    def test_invalid_configuration(self, capacity, ttl):
        with pytest.raises(ValueError):
            ResultCache(capacity=capacity, ttl_seconds=ttl)
