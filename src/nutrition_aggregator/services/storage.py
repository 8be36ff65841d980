"""Key-value storage abstractions."""

import threading
from dataclasses import dataclass, field
from typing import Protocol


class KVStore(Protocol):
    """Minimal string key-value store used by the cache and quota tracker."""

    def get(self, key: str) -> str | None:
        """Return the stored value, if present."""

    def set(self, key: str, value: str) -> None:
        """Store a value under a key, replacing any previous value."""

    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""

    def keys(self, prefix: str = "") -> list[str]:
        """Return all keys starting with the prefix."""


@dataclass
class InMemoryKVStore(KVStore):
    """Dict-backed store for tests and single-process deployments."""

    values: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        """Return the stored value, if present."""
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self.values[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self.values.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        """Return keys with the given prefix."""
        with self._lock:
            return [key for key in self.values if key.startswith(prefix)]
