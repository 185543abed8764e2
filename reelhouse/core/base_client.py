import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from loguru import logger

from reelhouse.core.exceptions import NotFoundError, UpstreamError, UpstreamTimeoutError
from reelhouse.core.rate_limiter import SlidingWindowRateLimiter

# Authentication and bad-request answers will not change on retry
NON_RETRYABLE_STATUS = frozenset({400, 401, 403, 404, 422})


class BaseClient:
    """
    Base asynchronous HTTP client with rate limiting, retry logic and logging.

    One instance exists per external provider. Its rate limiter is owned by the
    instance, so providers never wait on each other's quota.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 10.0,
        max_retries: int = 3,
        headers: dict[str, str] | None = None,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        retry_base_delay: float = 1.0,
        deadline: float = 20.0,
        name: str = "api",
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.headers = headers or {}
        self.rate_limiter = rate_limiter
        self.retry_base_delay = retry_base_delay
        self.deadline = deadline
        self.name = name
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx.AsyncClient instance."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def is_retryable(exc: Exception) -> bool:
        if isinstance(exc, httpx.HTTPStatusError):
            return exc.response.status_code not in NON_RETRYABLE_STATUS
        return isinstance(exc, httpx.RequestError)

    def _to_service_error(self, exc: Exception, method: str, url: str) -> UpstreamError | NotFoundError:
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            if status == 404:
                return NotFoundError(f"{self.name} has no resource at {url}", details={"status": status})
            return UpstreamError(
                f"{self.name} request failed with HTTP {status} ({method} {url})",
                details=exc.response.text[:500],
                status_code=status,
            )
        if isinstance(exc, httpx.TimeoutException):
            return UpstreamTimeoutError(f"{self.name} request timed out ({method} {url})")
        return UpstreamError(f"{self.name} request failed ({method} {url}): {exc}")

    async def _request(
        self, method: str, url: str, max_tries: int | None = None, deadline: float | None = None, **kwargs
    ) -> httpx.Response:
        """Issue a request under the caller's deadline (rate-limit waits and retries included)."""
        budget = deadline if deadline is not None else self.deadline
        try:
            return await asyncio.wait_for(self._request_with_retries(method, url, max_tries, **kwargs), timeout=budget)
        except asyncio.TimeoutError as exc:
            logger.warning(f"[{self.name}] {method} {url} exceeded its {budget}s deadline")
            raise UpstreamTimeoutError(f"{self.name} request exceeded its {budget}s deadline ({method} {url})") from exc

    async def _request_with_retries(
        self, method: str, url: str, max_tries: int | None = None, **kwargs
    ) -> httpx.Response:
        """Internal request handler with retry logic."""
        client = await self.get_client()
        tries = max_tries or self.max_retries
        last_exception: Exception | None = None

        for attempt in range(1, tries + 1):
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()
            try:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                last_exception = e
                if not self.is_retryable(e):
                    logger.warning(f"[{self.name}] Non-retryable failure ({method} {url}): {e}")
                    raise self._to_service_error(e, method, url) from e
                if attempt < tries:
                    wait_time = self.retry_base_delay * (2 ** (attempt - 1))  # Exponential backoff
                    logger.warning(
                        f"[{self.name}] Request failed ({method} {url}): {str(e)}. "
                        f"Retrying in {wait_time}s... (Attempt {attempt}/{tries})"
                    )
                    await self._sleep(wait_time)
                else:
                    logger.error(f"[{self.name}] Request failed after {tries} attempts: {str(e)}")

        if last_exception:
            raise self._to_service_error(last_exception, method, url) from last_exception
        raise UpstreamError(f"{self.name} request failed for unknown reasons ({method} {url})")

    async def get(
        self, url: str, params: dict[str, Any] | None = None, deadline: float | None = None, **kwargs
    ) -> dict[str, Any]:
        """Perform a GET request and return the JSON response."""
        response = await self._request("GET", url, params=params, deadline=deadline, **kwargs)
        return response.json()

    async def post(
        self, url: str, json: dict[str, Any] | None = None, deadline: float | None = None, **kwargs
    ) -> dict[str, Any]:
        """Perform a POST request and return the JSON response."""
        response = await self._request("POST", url, json=json, deadline=deadline, **kwargs)
        return response.json()
