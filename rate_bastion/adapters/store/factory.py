"""Factory pattern for creating key-value store instances."""

from rate_bastion.adapters.store.base import AbstractKeyValueStore
from rate_bastion.adapters.store.in_memory import InMemoryKeyValueStore
from rate_bastion.adapters.store.redis_store import RedisKeyValueStore
from rate_bastion.core.config import StoreSettings, settings
from rate_bastion.core.errors import ConfigurationAppError


def create_store(store_settings: StoreSettings | None = None) -> AbstractKeyValueStore:
    """Instantiate the configured store backend.

    Args:
        store_settings: Optional store settings; defaults to global settings.

    Returns:
        AbstractKeyValueStore: Configured store instance.

    Raises:
        ConfigurationAppError: If backend-specific requirements are not met.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryKeyValueStore()

    if backend == "redis":
        if not cfg.redis_url:
            raise ConfigurationAppError(
                code="store_missing_redis_url",
                message="Redis store requires STORE_REDIS_URL environment variable",
            )
        return RedisKeyValueStore.from_url(
            cfg.redis_url,
            socket_timeout=cfg.socket_timeout_seconds,
            socket_connect_timeout=cfg.socket_connect_timeout_seconds,
        )

    raise ConfigurationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: memory, redis",
    )
