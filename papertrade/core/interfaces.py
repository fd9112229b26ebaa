"""Abstract base classes — all storage backends must implement these interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Callable

# Resolves a symbol to its current price.
PriceLookup = Callable[[str], float]


class BaseKeyValueStore(ABC):
    """Interface for the opaque key-value store behind portfolio persistence."""

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the raw value stored under *key*, or ``None`` if absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    def set_many(self, items: Mapping[str, bytes]) -> None:
        """Store several entries together.

        The default writes one key at a time. Backends that can commit a
        batch atomically override this so a failure writes nothing.
        """
        for key, value in items.items():
            self.set(key, value)

    def close(self) -> None:
        """Release backend resources. Default implementation does nothing."""
