"""Partition - an ObjectStorePort view bound to one organization.

Constructed once per request by the org resolver and handed to every
downstream operation. Nothing below this layer sees any other tenant.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from uuid import UUID

    from src.ports.object_store_port import ObjectStorePort
    from src.shared.types import NewObject, ObjectPage, ObjectRecord


class Partition:
    """Tenant-scoped object accessor."""

    def __init__(self, *, store: ObjectStorePort, org_id: str) -> None:
        self._store = store
        self.org_id = org_id

    def __repr__(self) -> str:
        return f"Partition(org_id={self.org_id!r})"

    async def create(
        self,
        type: str,  # noqa: A002
        data: dict[str, Any],
        metadata: dict[str, Any] | None = None,
        links: list[str] | None = None,
    ) -> ObjectRecord:
        return await self._store.create(
            self.org_id, type=type, data=data, metadata=metadata, links=links
        )

    async def create_many(self, items: Sequence[NewObject]) -> list[ObjectRecord]:
        return await self._store.create_many(self.org_id, items)

    async def get(self, object_id: UUID) -> ObjectRecord:
        return await self._store.get(self.org_id, object_id)

    async def list(
        self,
        type: str,  # noqa: A002
        *,
        filters: Mapping[str, Any] | None = None,
        limit: int = 50,
        cursor: str | None = None,
        skip: int = 0,
        descending: bool = False,
        exclude_deleted: bool = False,
    ) -> ObjectPage:
        return await self._store.list(
            self.org_id,
            type=type,
            filters=filters,
            limit=limit,
            cursor=cursor,
            skip=skip,
            descending=descending,
            exclude_deleted=exclude_deleted,
        )

    async def update(
        self,
        object_id: UUID,
        *,
        data: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        links: list[str] | None = None,
        increments: Mapping[str, int | float] | None = None,
    ) -> ObjectRecord:
        return await self._store.update(
            self.org_id,
            object_id,
            data=data,
            metadata=metadata,
            links=links,
            increments=increments,
        )

    async def soft_delete(self, object_id: UUID) -> ObjectRecord:
        return await self._store.soft_delete(self.org_id, object_id)

    async def find_by_link(
        self,
        target_id: str,
        *,
        type: str | None = None,  # noqa: A002
        exclude_deleted: bool = False,
    ) -> list[ObjectRecord]:
        return await self._store.find_by_link(
            self.org_id, target_id, type=type, exclude_deleted=exclude_deleted
        )

    async def transition(
        self,
        object_id: UUID,
        *,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> ObjectRecord | None:
        return await self._store.transition(
            self.org_id, object_id, expected=expected, changes=changes
        )
