import asyncio
import os

import pytest

from toolflow.cache import InMemoryCache, get_cache
from toolflow.config import ToolflowConfig


@pytest.mark.asyncio
async def test_inmemory_get_set_delete():
    cache = InMemoryCache()
    assert await cache.get("k") is None
    await cache.set("k", "v")
    assert await cache.get("k") == "v"
    await cache.delete("k")
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_inmemory_ttl_expiry():
    cache = InMemoryCache()
    await cache.set("k", "v", ttl_s=0.01)
    await asyncio.sleep(0.05)
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_set_if_absent():
    cache = InMemoryCache()
    assert await cache.set_if_absent("lock", "a", 1000)
    assert not await cache.set_if_absent("lock", "b", 1000)
    assert await cache.get("lock") == "a"


@pytest.mark.asyncio
async def test_set_if_absent_after_expiry():
    cache = InMemoryCache()
    assert await cache.set_if_absent("lock", "a", 10)
    await asyncio.sleep(0.05)
    assert await cache.set_if_absent("lock", "b", 1000)


@pytest.mark.asyncio
async def test_delete_if_equals_only_removes_matching_value():
    cache = InMemoryCache()
    await cache.set("lock", "mine")
    assert not await cache.delete_if_equals("lock", "theirs")
    assert await cache.get("lock") == "mine"
    assert await cache.delete_if_equals("lock", "mine")
    assert await cache.get("lock") is None
    assert not await cache.delete_if_equals("lock", "mine")

def test_get_cache_factory(monkeypatch):
    monkeypatch.delenv("TOOLFLOW_CACHE", raising=False)
    assert isinstance(get_cache(config=ToolflowConfig()), InMemoryCache)
    with pytest.raises(ValueError):
        get_cache("memcached", config=ToolflowConfig())


@pytest.mark.asyncio
async def test_redis_cache_lock():
    pytest.importorskip("redis")
    if not os.getenv("REDIS_URL") and not os.getenv("TOOLFLOW_TEST_REDIS"):
        pytest.skip("Redis not configured")
    from toolflow.cache.redis import RedisCache

    cache = RedisCache(prefix="toolflow-test:")
    try:
        await cache.connect()
    except Exception:
        pytest.skip("Redis not available")
    try:
        await cache.delete("lock")
        assert await cache.set_if_absent("lock", "a", 1000)
        assert not await cache.set_if_absent("lock", "b", 1000)
        assert not await cache.delete_if_equals("lock", "b")
        assert await cache.delete_if_equals("lock", "a")
        assert await cache.get("lock") is None
        await cache.set("k", "v", ttl_s=10)
        assert await cache.get("k") == "v"
    finally:
        await cache.delete("lock")
        await cache.delete("k")
        await cache.disconnect()
