from __future__ import annotations

from src.sources.cache import TTLCache


class Ticker:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl():
    clock = Ticker()
    cache: TTLCache[str] = TTLCache(max_size=10, clock=clock)
    cache.set("a", "alpha", ttl=60)

    clock.now = 60
    assert cache.get("a") == "alpha"
    clock.now = 60.5
    assert cache.get("a") is None
    assert len(cache) == 0


def test_least_recently_used_is_evicted():
    cache: TTLCache[int] = TTLCache(max_size=2, clock=Ticker())
    cache.set("a", 1, ttl=60)
    cache.set("b", 2, ttl=60)
    cache.get("a")
    cache.set("c", 3, ttl=60)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


def test_stats_and_clear():
    cache: TTLCache[int] = TTLCache(max_size=5, clock=Ticker())
    cache.set("a", 1, ttl=60)
    cache.get("a")
    cache.get("missing")

    assert cache.stats() == {"hits": 1, "misses": 1, "hit_rate": 0.5, "size": 1}

    cache.clear()
    assert cache.stats() == {"hits": 0, "misses": 0, "hit_rate": 0.0, "size": 0}
