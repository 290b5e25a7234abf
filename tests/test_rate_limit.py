import asyncio

import pytest
from limits.aio.storage import MemoryStorage, RedisStorage

from vision_gateway.utils.errors import RateLimitError
from vision_gateway.utils.rate_limit import RateLimiter, build_storage

from conftest import make_settings


@pytest.fixture
def limiter():
    return RateLimiter(MemoryStorage(), max_requests=3, window_ms=60_000)


@pytest.mark.asyncio
async def test_requests_up_to_max_are_allowed(limiter):
    statuses = [await limiter.check("key:a") for _ in range(3)]
    assert [s.remaining for s in statuses] == [2, 1, 0]
    headers = statuses[0].headers()
    assert headers["RateLimit-Limit"] == "3"
    assert headers["RateLimit-Reset"] == "60"


@pytest.mark.asyncio
async def test_request_over_max_is_rejected(limiter):
    for _ in range(3):
        await limiter.check("key:a")
    with pytest.raises(RateLimitError) as exc:
        await limiter.check("key:a")
    assert exc.value.status_code == 429
    assert exc.value.headers["Retry-After"] == "60"
    assert exc.value.headers["RateLimit-Remaining"] == "0"


@pytest.mark.asyncio
async def test_other_identity_is_unaffected(limiter):
    for _ in range(3):
        await limiter.check("key:a")
    status = await limiter.check("key:b")
    assert status.remaining == 2


@pytest.mark.asyncio
async def test_window_resets_after_elapsing():
    limiter = RateLimiter(MemoryStorage(), max_requests=2, window_ms=1000)
    for _ in range(2):
        await limiter.check("ip:1.2.3.4")
    with pytest.raises(RateLimitError):
        await limiter.check("ip:1.2.3.4")

    await asyncio.sleep(1.1)
    status = await limiter.check("ip:1.2.3.4")
    assert status.remaining == 1


def test_sub_second_window_rounds_up_to_one_second():
    limiter = RateLimiter(MemoryStorage(), max_requests=1, window_ms=250)
    assert limiter.item.get_expiry() == 1


@pytest.mark.asyncio
async def test_reset_clears_one_identity(limiter):
    for _ in range(3):
        await limiter.check("key:a")
        await limiter.check("key:b")

    await limiter.reset("key:a")

    assert (await limiter.check("key:a")).remaining == 2
    with pytest.raises(RateLimitError):
        await limiter.check("key:b")


@pytest.mark.asyncio
async def test_instances_sharing_storage_share_counters():
    storage = MemoryStorage()
    first = RateLimiter(storage, max_requests=2, window_ms=60_000)
    second = RateLimiter(storage, max_requests=2, window_ms=60_000)

    await first.check("key:a")
    await second.check("key:a")
    with pytest.raises(RateLimitError):
        await first.check("key:a")


@pytest.mark.asyncio
async def test_memory_backend_is_healthy():
    limiter = RateLimiter.from_settings(make_settings())
    assert isinstance(limiter.storage, MemoryStorage)
    assert limiter.backend == "memory"
    assert await limiter.healthy() is True


def test_redis_backend_builds_shared_storage():
    storage = build_storage(make_settings(rate_limit_backend="redis", redis_url="redis://cache:6379/1"))
    assert isinstance(storage, RedisStorage)


@pytest.mark.asyncio
async def test_unreachable_redis_reports_unhealthy():
    settings = make_settings(rate_limit_backend="redis", redis_url="redis://127.0.0.1:1/0")
    limiter = RateLimiter.from_settings(settings)
    assert limiter.backend == "redis"
    assert await limiter.healthy() is False
