"""Key-value store interface.

The limiter depends on this abstraction (not a concrete client) so the
storage backend is injected at construction time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractKeyValueStore(ABC):
    """Minimal Get/Set capability over string keys and string values."""

    @abstractmethod
    def get(self, key: str) -> str:
        """Return the value stored for key.

        Args:
            key: Store key.

        Returns:
            The stored string value.

        Raises:
            KeyNotFoundError: If no value exists for key.
            Exception: Any other backend failure.
        """
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value.

        Raises:
            Exception: Any backend failure.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release connections held by the store. No-op by default."""
