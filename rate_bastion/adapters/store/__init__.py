"""Key-value store adapters backing the shared bucket state."""

from rate_bastion.adapters.store.base import AbstractKeyValueStore
from rate_bastion.adapters.store.factory import create_store
from rate_bastion.adapters.store.in_memory import InMemoryKeyValueStore
from rate_bastion.adapters.store.redis_store import RedisKeyValueStore

__all__ = [
    "AbstractKeyValueStore",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "create_store",
]
