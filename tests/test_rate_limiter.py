import asyncio

import pytest

from reelhouse.core.rate_limiter import SlidingWindowRateLimiter


class FakeTime:
    def __init__(self):
        self.now = 100.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


async def test_requests_under_the_ceiling_do_not_wait(fake_time):
    limiter = SlidingWindowRateLimiter(3, 1.0, clock=fake_time.clock, sleep=fake_time.sleep)

    waits = [await limiter.acquire() for _ in range(3)]

    assert waits == [0.0, 0.0, 0.0]
    assert fake_time.sleeps == []
    assert limiter.recent_requests == 3


async def test_request_over_the_ceiling_waits_for_the_oldest_to_expire(fake_time):
    limiter = SlidingWindowRateLimiter(2, 1.0, clock=fake_time.clock, sleep=fake_time.sleep)
    await limiter.acquire()
    fake_time.now += 0.25
    await limiter.acquire()

    waited = await limiter.acquire()

    assert waited == pytest.approx(0.75)
    assert fake_time.sleeps == [pytest.approx(0.75)]
    # the first timestamp was pruned, the second is still inside the window
    assert limiter.recent_requests == 2


async def test_window_prunes_old_timestamps(fake_time):
    limiter = SlidingWindowRateLimiter(2, 60.0, clock=fake_time.clock, sleep=fake_time.sleep)
    await limiter.acquire()
    await limiter.acquire()

    fake_time.now += 60.0

    assert limiter.recent_requests == 0
    assert await limiter.acquire() == 0.0


async def test_limiters_are_independent(fake_time):
    tmdb = SlidingWindowRateLimiter(1, 1.0, name="tmdb", clock=fake_time.clock, sleep=fake_time.sleep)
    openai = SlidingWindowRateLimiter(1, 60.0, name="openai", clock=fake_time.clock, sleep=fake_time.sleep)

    await tmdb.acquire()

    assert await openai.acquire() == 0.0


async def test_concurrent_callers_are_serialized(fake_time):
    limiter = SlidingWindowRateLimiter(1, 1.0, clock=fake_time.clock, sleep=fake_time.sleep)

    waits = await asyncio.gather(*(limiter.acquire() for _ in range(3)))

    assert sorted(waits) == [0.0, pytest.approx(1.0), pytest.approx(1.0)]
    assert len(fake_time.sleeps) == 2


@pytest.mark.parametrize("max_requests,window", [(0, 1.0), (5, 0.0), (5, -1.0)])
def test_invalid_configuration_is_rejected(max_requests, window):
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(max_requests, window)
