"""In-memory StoragePort with monotonic-clock expiry."""

from __future__ import annotations

import copy
import time
from typing import TYPE_CHECKING, Any

from src.ports.storage_port import StoragePort

if TYPE_CHECKING:
    from collections.abc import Callable


class InMemoryStorageAdapter(StoragePort):
    """Process-local TTL cache for dev mode and tests."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._items: dict[str, tuple[Any, float | None]] = {}

    async def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None and ttl > 0 else None
        self._items[key] = (copy.deepcopy(value), expires_at)

    async def get(self, key: str) -> Any | None:
        entry = self._items.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._items[key]
            return None
        return copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._items.pop(key, None)
