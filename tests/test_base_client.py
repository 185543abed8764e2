import asyncio

import httpx
import pytest

from reelhouse.core.base_client import BaseClient
from reelhouse.core.exceptions import NotFoundError, UpstreamError, UpstreamTimeoutError
from reelhouse.core.rate_limiter import SlidingWindowRateLimiter


class Recorder:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_client(handler, sleeps: list[float] | None = None, **kwargs) -> BaseClient:
    async def fake_sleep(seconds: float) -> None:
        if sleeps is not None:
            sleeps.append(seconds)

    return BaseClient(
        base_url="https://api.example.test",
        transport=httpx.MockTransport(handler),
        sleep=fake_sleep,
        name="example",
        **kwargs,
    )


async def test_get_returns_json():
    handler = Recorder([httpx.Response(200, json={"ok": True})])
    client = make_client(handler)

    assert await client.get("/thing") == {"ok": True}
    assert handler.calls == 1
    await client.close()


async def test_transient_failures_retry_with_exponential_backoff():
    handler = Recorder(
        [
            httpx.Response(500),
            httpx.Response(429),
            httpx.Response(200, json={"ok": True}),
        ]
    )
    sleeps: list[float] = []
    client = make_client(handler, sleeps, max_retries=3, retry_base_delay=1.0)

    assert await client.get("/thing") == {"ok": True}
    assert handler.calls == 3
    assert sleeps == [1.0, 2.0]
    await client.close()


async def test_network_errors_are_retried():
    handler = Recorder([httpx.ConnectError("refused"), httpx.Response(200, json={"ok": 1})])
    client = make_client(handler, [], max_retries=2)

    assert await client.get("/thing") == {"ok": 1}
    assert handler.calls == 2
    await client.close()


@pytest.mark.parametrize("status", [400, 401, 403, 422])
async def test_auth_and_bad_request_failures_are_not_retried(status):
    handler = Recorder([httpx.Response(status, text="nope")])
    client = make_client(handler, [], max_retries=3)

    with pytest.raises(UpstreamError) as exc_info:
        await client.get("/thing")

    assert exc_info.value.status_code == status
    assert handler.calls == 1
    await client.close()


async def test_not_found_surfaces_as_not_found_error():
    handler = Recorder([httpx.Response(404)])
    client = make_client(handler, [], max_retries=3)

    with pytest.raises(NotFoundError):
        await client.get("/movie/1")
    assert handler.calls == 1
    await client.close()


async def test_retry_budget_is_finite():
    handler = Recorder([httpx.Response(503)])
    sleeps: list[float] = []
    client = make_client(handler, sleeps, max_retries=3, retry_base_delay=0.5)

    with pytest.raises(UpstreamError) as exc_info:
        await client.get("/thing")

    assert exc_info.value.status_code == 503
    assert handler.calls == 3
    assert sleeps == [0.5, 1.0]
    await client.close()


async def test_deadline_turns_into_timeout_error():
    async def slow_handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json={})

    client = BaseClient(base_url="https://api.example.test", transport=httpx.MockTransport(slow_handler))

    with pytest.raises(UpstreamTimeoutError):
        await client.get("/slow", deadline=0.01)
    await client.close()


async def test_each_attempt_counts_against_the_rate_limiter():
    handler = Recorder([httpx.Response(500), httpx.Response(200, json={})])
    limiter = SlidingWindowRateLimiter(10, 1.0)
    client = make_client(handler, [], max_retries=2, rate_limiter=limiter)

    await client.get("/thing")

    assert limiter.recent_requests == 2
    await client.close()


def test_retry_classification():
    request = httpx.Request("GET", "https://api.example.test")
    assert BaseClient.is_retryable(httpx.HTTPStatusError("x", request=request, response=httpx.Response(500)))
    assert not BaseClient.is_retryable(httpx.HTTPStatusError("x", request=request, response=httpx.Response(401)))
    assert BaseClient.is_retryable(httpx.ReadTimeout("slow"))
    assert not BaseClient.is_retryable(ValueError("bad"))
