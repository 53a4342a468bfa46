import pytest

from presale_radio.services.status_cache import LiveStatusCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_local_cache_hit_and_expiry():
    clock = FakeClock()
    cache = LiveStatusCache(ttl_seconds=3, clock=clock)

    await cache.set("artist-1", {"is_live": True})
    assert await cache.get("artist-1") == {"is_live": True}

    clock.now += 3
    assert await cache.get("artist-1") is None


@pytest.mark.asyncio
async def test_expired_entries_are_evicted_on_write():
    clock = FakeClock()
    cache = LiveStatusCache(ttl_seconds=3, clock=clock)

    for i in range(100):
        await cache.set(f"stranger-{i}", {"is_live": False})
    clock.now += 5
    await cache.set("artist-1", {"is_live": True})

    assert list(cache._local) == ["artist-1"]


@pytest.mark.asyncio
async def test_zero_ttl_disables_caching():
    cache = LiveStatusCache(ttl_seconds=0)
    await cache.set("artist-1", {"is_live": True})
    assert await cache.get("artist-1") is None
    assert cache._local == {}


@pytest.mark.asyncio
async def test_invalidate_drops_entry():
    cache = LiveStatusCache(ttl_seconds=3, clock=FakeClock())
    await cache.set("artist-1", {"is_live": True})
    await cache.invalidate("artist-1")
    assert await cache.get("artist-1") is None
