"""StoragePort - expiring JSON cache shared by provider clients.

The only tenant today is the PayU token cache, keyed ``payu:token:<org_id>``.
A miss is always recoverable: the caller fetches the value again.

Implementations:
    RedisStorageAdapter    - when DATABASE_URL is configured
    InMemoryStorageAdapter - single-process dev and tests
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class StoragePort(ABC):
    @abstractmethod
    async def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store ``value`` (JSON-compatible). ``ttl`` is in seconds; None keeps it forever."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value or None once it is missing or expired."""

    @abstractmethod
    async def delete(self, key: str) -> None: ...
