"""Redis-backed key-value store shared by every process instance.

Redis errors are not translated here; they propagate to the limiter, which
wraps them as read or write failures.
"""

from __future__ import annotations

import logging

import redis

from rate_bastion.adapters.store.base import AbstractKeyValueStore
from rate_bastion.core.errors import KeyNotFoundError

logger = logging.getLogger(__name__)


class RedisKeyValueStore(AbstractKeyValueStore):
    """Store bucket state as plain Redis strings (GET/SET)."""

    def __init__(self, client: redis.Redis) -> None:
        """Wrap an existing Redis client.

        Args:
            client: Client created with decode_responses=True so GET returns str.
        """
        self._client = client

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        socket_timeout: float | None = None,
        socket_connect_timeout: float | None = None,
    ) -> "RedisKeyValueStore":
        """Create a store with its own connection pool.

        Args:
            url: Redis connection URL (redis://, rediss:// or unix://).
            socket_timeout: Read/write timeout in seconds.
            socket_connect_timeout: Connect timeout in seconds.
        """
        client = redis.Redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
        )
        logger.info(
            "store.redis.created",
            extra={
                "socket_timeout_s": socket_timeout,
                "socket_connect_timeout_s": socket_connect_timeout,
            },
        )
        return cls(client)

    def get(self, key: str) -> str:
        value = self._client.get(key)
        if value is None:
            raise KeyNotFoundError(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        self._client.set(key, value)

    def ping(self) -> bool:
        """Check connectivity to the Redis server."""

        return bool(self._client.ping())

    def close(self) -> None:
        self._client.close()
