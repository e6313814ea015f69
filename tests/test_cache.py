"""Unit tests for the TTL cache."""

from devstats.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_set_and_get():
    """Stored values are served until they expire."""
    clock = FakeClock()
    cache = TTLCache(default_ttl=60, clock=clock)

    cache.set("tables", ["CSE_A"])
    assert cache.get("tables") == ["CSE_A"]
    assert "tables" in cache

    clock.now += 61
    assert cache.get("tables") is None
    # Expired entries are evicted on read
    assert cache.get_timestamp("tables") is None


def test_per_entry_ttl():
    """An explicit TTL overrides the default."""
    clock = FakeClock()
    cache = TTLCache(default_ttl=3600, clock=clock)

    cache.set("last_update", [1], ttl=10)
    clock.now += 11
    assert cache.get("last_update") is None


def test_remove_and_clear():
    cache = TTLCache(clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)

    cache.remove("a")
    cache.remove("missing")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.clear()
    assert cache.get("b") is None


def test_clear_expired():
    """Only expired entries are dropped."""
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.set("short", 1, ttl=5)
    cache.set("long", 2, ttl=500)

    clock.now += 10
    assert cache.clear_expired() == 1
    assert cache.get("long") == 2


def test_is_stale():
    """Entries cached before a server change are stale."""
    clock = FakeClock(now=1000.0)
    cache = TTLCache(clock=clock)
    cache.set("student_data_CSE_A", [])

    assert cache.is_stale("student_data_CSE_A", 1500.0) is True
    assert cache.is_stale("student_data_CSE_A", 900.0) is False
    assert cache.is_stale("student_data_missing", 1.0) is True
