"""
Tests for the background cache cleanup service.
"""
import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from game_gallery.cache import SearchCache
from game_gallery.controllers import CacheCleanupService
from game_gallery.models import SteamApp


@pytest.fixture
def cache(clock):
    upstream = AsyncMock(return_value=[SteamApp(app_id=620, name="Portal 2")])
    return SearchCache(upstream, ttl=600, clock=clock)


def test_cleanup_service_initialization(cache):
    service = CacheCleanupService(cache, interval=300)
    assert service.running == False
    assert service.task is None
    assert service.interval == 300


@pytest.mark.asyncio
async def test_run_once_sweeps_expired_entries(cache, clock):
    service = CacheCleanupService(cache)
    await cache.search("portal", 10)
    clock.advance(601)
    await cache.search("hades", 10)

    removed = await service.run_once()

    assert removed == 1
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_loop_sweeps_on_interval_and_stops(cache, clock):
    service = CacheCleanupService(cache, interval=0.01)
    await cache.search("portal", 10)
    clock.advance(601)

    await service.start()
    for _ in range(100):
        if len(cache) == 0:
            break
        await asyncio.sleep(0.01)
    await service.stop()

    assert len(cache) == 0
    assert service.running == False
    assert service.task is None


@pytest.mark.asyncio
async def test_start_twice_keeps_single_task(cache):
    service = CacheCleanupService(cache, interval=60)
    await service.start()
    task = service.task
    await service.start()

    assert service.task is task
    await service.stop()
    assert task.done()


@pytest.mark.asyncio
async def test_loop_survives_sweep_errors():
    calls = []

    async def flaky_sweep():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return 0

    cache = Mock(sweep=AsyncMock(side_effect=flaky_sweep))
    service = CacheCleanupService(cache, interval=0.01)

    await service.start()
    for _ in range(100):
        if cache.sweep.await_count >= 2:
            break
        await asyncio.sleep(0.01)
    await service.stop()

    assert cache.sweep.await_count >= 2
