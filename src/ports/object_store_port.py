"""ObjectStorePort - polymorphic document store interface.

Every domain concept (business records, AI sessions, messages, jobs) is
persisted through this one port as ``{type, data, metadata, links,
deleted_at}``. All operations take the tenant ``org_id`` explicitly; the
Partition wrapper binds it once per request.

Soft-deleted documents are never hidden implicitly. List and link queries
exclude them only when the caller passes ``exclude_deleted=True``.

Implementations:
    InMemoryObjectStore - dev and tests
    PgObjectStore       - PostgreSQL via SQLAlchemy async
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from uuid import UUID

    from src.shared.types import NewObject, ObjectPage, ObjectRecord


class ObjectStorePort(ABC):
    """Port: polymorphic object CRUD and queries."""

    @abstractmethod
    async def create(
        self,
        org_id: str,
        *,
        type: str,  # noqa: A002
        data: dict[str, Any],
        metadata: dict[str, Any] | None = None,
        links: list[str] | None = None,
    ) -> ObjectRecord:
        """Create a document.

        Raises:
            ValidationError: Missing type/data, non-map data, cyclic or
                non-JSON values.
        """

    @abstractmethod
    async def create_many(self, org_id: str, items: Sequence[NewObject]) -> list[ObjectRecord]:
        """Create several documents; all items are validated before any is written."""

    @abstractmethod
    async def get(self, org_id: str, object_id: UUID) -> ObjectRecord:
        """Fetch by id, soft-deleted or not.

        Raises:
            NotFoundError: No document with that id in the partition.
        """

    @abstractmethod
    async def list(
        self,
        org_id: str,
        *,
        type: str,  # noqa: A002
        filters: Mapping[str, Any] | None = None,
        limit: int = 50,
        cursor: str | None = None,
        skip: int = 0,
        descending: bool = False,
        exclude_deleted: bool = False,
    ) -> ObjectPage:
        """List documents of one type in creation order.

        Args:
            org_id: Tenant partition.
            type: Type discriminator to list.
            filters: Equality filters keyed by ``data.<path>`` or
                ``metadata.<path>`` (dotted paths descend into nested maps).
            limit: Maximum page size.
            cursor: Continuation cursor from a previous page.
            skip: Number of matching documents to skip after the cursor.
            descending: Newest first instead of oldest first.
            exclude_deleted: Drop soft-deleted documents.

        Returns:
            ObjectPage with ``next_cursor`` set when more results exist.

        Raises:
            ValidationError: Malformed cursor or filter key.
        """

    @abstractmethod
    async def update(
        self,
        org_id: str,
        object_id: UUID,
        *,
        data: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        links: list[str] | None = None,
        increments: Mapping[str, int | float] | None = None,
    ) -> ObjectRecord:
        """Merge ``data``/``metadata`` top-level keys, replace ``links``, and
        add ``increments`` to numeric ``data`` fields, atomically per document.

        Raises:
            NotFoundError: Unknown id.
            ValidationError: Bad payload or non-numeric increment target.
        """

    @abstractmethod
    async def soft_delete(self, org_id: str, object_id: UUID) -> ObjectRecord:
        """Stamp ``deleted_at`` (first stamp wins); idempotent.

        Raises:
            NotFoundError: Unknown id.
        """

    @abstractmethod
    async def find_by_link(
        self,
        org_id: str,
        target_id: str,
        *,
        type: str | None = None,  # noqa: A002
        exclude_deleted: bool = False,
    ) -> list[ObjectRecord]:
        """All documents whose ``links`` contain ``target_id``, in creation order."""

    @abstractmethod
    async def transition(
        self,
        org_id: str,
        object_id: UUID,
        *,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> ObjectRecord | None:
        """Compare-and-set on ``data``.

        Applies ``changes`` only if every key in ``expected`` currently holds
        the expected value. Returns the updated record, or None when the
        precondition did not hold.

        Raises:
            NotFoundError: Unknown id.
        """
