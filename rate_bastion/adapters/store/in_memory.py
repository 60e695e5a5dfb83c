"""In-memory key-value store.

Notes:
- Per-process only: running multiple workers gives each its own buckets.
- Thread-safe: uses a lock around shared state.
- Doubles as the store for unit tests; subclass it to inject failures.
"""

from __future__ import annotations

import threading

from rate_bastion.adapters.store.base import AbstractKeyValueStore
from rate_bastion.core.errors import KeyNotFoundError


class InMemoryKeyValueStore(AbstractKeyValueStore):
    """Dictionary-backed store with no expiry."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._lock = threading.RLock()
        self._values: dict[str, str] = dict(initial or {})

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryKeyValueStore(size={len(self._values)})"

    def get(self, key: str) -> str:
        with self._lock:
            try:
                return self._values[key]
            except KeyError:
                raise KeyNotFoundError(key) from None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def clear(self) -> None:
        """Remove all stored values."""

        with self._lock:
            self._values.clear()
