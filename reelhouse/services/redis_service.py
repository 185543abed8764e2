from collections.abc import Iterator
from contextlib import contextmanager

import redis.asyncio as redis
from loguru import logger

from reelhouse.core.config import settings
from reelhouse.core.exceptions import DatabaseError


class RedisService:
    """
    Owns the shared Redis connection pool and the key namespace.

    Stores call `errors()` around their commands so that connection and
    command failures surface as DatabaseError instead of raw redis exceptions.
    """

    def __init__(
        self,
        url: str | None = None,
        key_prefix: str | None = None,
        client: redis.Redis | None = None,
    ) -> None:
        self.url = url or settings.REDIS_URL
        self.key_prefix = settings.REDIS_KEY_PREFIX if key_prefix is None else key_prefix
        self._client: redis.Redis | None = client

    async def get_client(self) -> redis.Redis:
        if self._client is None:
            pool = redis.ConnectionPool.from_url(
                self.url,
                decode_responses=True,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30,
            )
            self._client = redis.Redis.from_pool(pool)
            host = self.url.rsplit("@", 1)[-1]
            logger.info(f"[redis] Created connection pool for {host} (max {settings.REDIS_MAX_CONNECTIONS})")
        return self._client

    def key(self, template: str, **fields) -> str:
        return f"{self.key_prefix}{template.format(**fields)}"

    @contextmanager
    def errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except (redis.RedisError, OSError) as exc:
            logger.error(f"[redis] Failed to {action}: {exc}")
            raise DatabaseError(f"Failed to {action}", details=str(exc)) from exc

    async def ping(self) -> bool:
        try:
            client = await self.get_client()
            return bool(await client.ping())
        except (redis.RedisError, OSError) as exc:
            logger.warning(f"[redis] Ping failed: {exc}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            try:
                await self._client.aclose()
                logger.info("[redis] Connection pool closed")
            except Exception as exc:
                logger.warning(f"[redis] Failed to close connection pool: {exc}")
            finally:
                self._client = None
