"""PostgreSQL adapter implementing ObjectStorePort via SQLAlchemy.

Every write runs in its own transaction and locks the target row with
SELECT ... FOR UPDATE, which gives per-document atomicity for merges,
increments, soft deletes and job-status compare-and-set without any
cross-document lock.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from src.infra.models import ObjectRow
from src.objects.payloads import (
    apply_increments,
    ensure_json_value,
    validate_document,
    validate_links,
)
from src.objects.query import (
    clamp_limit,
    decode_cursor,
    encode_cursor,
    parse_filters,
)
from src.ports.object_store_port import ObjectStorePort
from src.shared.errors import NotFoundError, ValidationError
from src.shared.types import ObjectPage, ObjectRecord

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from src.shared.types import NewObject

logger = logging.getLogger(__name__)


# An unescaped \u0000 in json text; jsonb rejects it.
_NUL_ESCAPE = r"(^|[^\\])(\\\\)*\\u0000"


def _path_equals(column: Any, path: list[str], value: Any) -> sa.ColumnElement[bool]:
    """``column #> path`` equals ``value``, compared as jsonb.

    Only the extracted value is cast, so a NUL elsewhere in the document
    cannot break the query; a NUL in the value itself never matches.
    Exact equality like the in-memory filter: a missing path never
    matches and ``1`` never equals ``true``.
    """
    extracted = column[tuple(path)]
    comparable = sa.case(
        (sa.cast(extracted, sa.Text).regexp_match(_NUL_ESCAPE), sa.null()),
        else_=sa.cast(extracted, postgresql.JSONB),
    )
    return comparable == sa.cast(sa.literal(value, postgresql.JSONB), postgresql.JSONB)


def _row_to_record(row: ObjectRow) -> ObjectRecord:
    return ObjectRecord(
        id=row.id,
        org_id=row.org_id,
        type=row.type,
        data=dict(row.data or {}),
        metadata=dict(row.metadata_ or {}),
        links=list(row.links or []),
        deleted_at=row.deleted_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        seq=row.seq or 0,
    )


def _new_row(
    org_id: str,
    type_: str,
    data: dict[str, Any],
    metadata: dict[str, Any] | None,
    links: list[str] | None,
) -> ObjectRow:
    now = datetime.now(UTC)
    return ObjectRow(
        id=uuid4(),
        org_id=org_id,
        type=type_,
        data=data,
        metadata_=metadata or {},
        links=list(links or []),
        deleted_at=None,
        created_at=now,
        updated_at=now,
    )


class PgObjectStore(ObjectStorePort):
    """PostgreSQL-backed implementation of ObjectStorePort."""

    def __init__(self, *, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    async def _locked_row(session: AsyncSession, org_id: str, object_id: UUID) -> ObjectRow:
        stmt = (
            sa.select(ObjectRow)
            .where(ObjectRow.org_id == org_id, ObjectRow.id == object_id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("Object", str(object_id))
        return row

    async def create(
        self,
        org_id: str,
        *,
        type: str,  # noqa: A002
        data: dict[str, Any],
        metadata: dict[str, Any] | None = None,
        links: list[str] | None = None,
    ) -> ObjectRecord:
        validate_document(type, data, metadata, links)
        row = _new_row(org_id, type, data, metadata, links)
        async with self._session_factory() as session:
            session.add(row)
            await session.commit()
        logger.debug("Created object id=%s type=%s org_id=%s", row.id, type, org_id)
        return _row_to_record(row)

    async def create_many(self, org_id: str, items: Sequence[NewObject]) -> list[ObjectRecord]:
        for item in items:
            validate_document(item.type, item.data, item.metadata, item.links)
        rows = [_new_row(org_id, i.type, i.data, i.metadata, i.links) for i in items]
        async with self._session_factory() as session:
            for row in rows:
                session.add(row)
            await session.commit()
        return [_row_to_record(row) for row in rows]

    async def get(self, org_id: str, object_id: UUID) -> ObjectRecord:
        stmt = sa.select(ObjectRow).where(ObjectRow.org_id == org_id, ObjectRow.id == object_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError("Object", str(object_id))
        return _row_to_record(row)

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
        limit = clamp_limit(limit)
        stmt = sa.select(ObjectRow).where(ObjectRow.org_id == org_id, ObjectRow.type == type)

        if exclude_deleted:
            stmt = stmt.where(ObjectRow.deleted_at.is_(None))

        for root, path, value in parse_filters(filters):
            column = ObjectRow.data if root == "data" else ObjectRow.metadata_
            stmt = stmt.where(_path_equals(column, path, value))

        if cursor:
            after = decode_cursor(cursor)
            stmt = stmt.where(ObjectRow.seq < after if descending else ObjectRow.seq > after)

        stmt = (
            stmt.order_by(ObjectRow.seq.desc() if descending else ObjectRow.seq.asc())
            .offset(max(skip, 0))
            .limit(limit + 1)
        )

        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            rows = result.all()

        items = [_row_to_record(row) for row in rows[:limit]]
        next_cursor = encode_cursor(items[-1].seq) if len(rows) > limit and items else None
        return ObjectPage(items=items, next_cursor=next_cursor)

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
        if data is not None:
            if not isinstance(data, dict):
                raise ValidationError('Field "data" must be an object', field="data")
            ensure_json_value(data, field="data")
        if metadata is not None:
            if not isinstance(metadata, dict):
                raise ValidationError('Field "metadata" must be an object', field="metadata")
            ensure_json_value(metadata, field="metadata")
        if links is not None:
            validate_links(links)

        async with self._session_factory() as session:
            row = await self._locked_row(session, org_id, object_id)
            new_data = dict(row.data or {})
            new_data.update(data or {})
            if increments:
                apply_increments(new_data, increments)
            new_metadata = dict(row.metadata_ or {})
            new_metadata.update(metadata or {})

            row.data = new_data
            row.metadata_ = new_metadata
            if links is not None:
                row.links = list(links)
            row.updated_at = datetime.now(UTC)
            await session.commit()
        return _row_to_record(row)

    async def soft_delete(self, org_id: str, object_id: UUID) -> ObjectRecord:
        async with self._session_factory() as session:
            row = await self._locked_row(session, org_id, object_id)
            if row.deleted_at is None:
                now = datetime.now(UTC)
                row.deleted_at = now
                row.updated_at = now
                await session.commit()
        return _row_to_record(row)

    async def find_by_link(
        self,
        org_id: str,
        target_id: str,
        *,
        type: str | None = None,  # noqa: A002
        exclude_deleted: bool = False,
    ) -> list[ObjectRecord]:
        stmt = sa.select(ObjectRow).where(
            ObjectRow.org_id == org_id,
            ObjectRow.links.contains([target_id]),
        )
        if type is not None:
            stmt = stmt.where(ObjectRow.type == type)
        if exclude_deleted:
            stmt = stmt.where(ObjectRow.deleted_at.is_(None))
        stmt = stmt.order_by(ObjectRow.seq.asc())

        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            rows = result.all()
        return [_row_to_record(row) for row in rows]

    async def transition(
        self,
        org_id: str,
        object_id: UUID,
        *,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> ObjectRecord | None:
        ensure_json_value(dict(changes), field="data")
        async with self._session_factory() as session:
            row = await self._locked_row(session, org_id, object_id)
            current = dict(row.data or {})
            if any(current.get(k) != v for k, v in expected.items()):
                return None
            current.update(changes)
            row.data = current
            row.updated_at = datetime.now(UTC)
            await session.commit()
        return _row_to_record(row)
