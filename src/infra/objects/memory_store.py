"""In-memory ObjectStorePort for dev mode and unit tests.

Documents are copied on the way in and on the way out, so callers can
never mutate stored state through a returned record.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

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
    matches_filters,
    parse_filters,
)
from src.ports.object_store_port import ObjectStorePort
from src.shared.errors import NotFoundError, ValidationError
from src.shared.types import ObjectPage, ObjectRecord

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from src.shared.types import NewObject

_Key = tuple[str, UUID]


def _copy_out(record: ObjectRecord) -> ObjectRecord:
    return replace(
        record,
        data=copy.deepcopy(record.data),
        metadata=copy.deepcopy(record.metadata),
        links=list(record.links),
    )


class InMemoryObjectStore(ObjectStorePort):
    """Dict-backed store with one asyncio.Lock per document."""

    def __init__(self) -> None:
        self._docs: dict[_Key, ObjectRecord] = {}
        self._locks: dict[_Key, asyncio.Lock] = {}
        self._seq = itertools.count(1)

    def _lock_for(self, key: _Key) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _require(self, key: _Key) -> ObjectRecord:
        record = self._docs.get(key)
        if record is None:
            raise NotFoundError("Object", str(key[1]))
        return record

    def _build(
        self,
        org_id: str,
        type_: str,
        data: dict[str, Any],
        metadata: dict[str, Any] | None,
        links: list[str] | None,
    ) -> ObjectRecord:
        now = datetime.now(UTC)
        return ObjectRecord(
            id=uuid4(),
            org_id=org_id,
            type=type_,
            data=copy.deepcopy(data),
            metadata=copy.deepcopy(metadata or {}),
            links=list(links or []),
            created_at=now,
            updated_at=now,
            seq=next(self._seq),
        )

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
        record = self._build(org_id, type, data, metadata, links)
        self._docs[(org_id, record.id)] = record
        return _copy_out(record)

    async def create_many(self, org_id: str, items: Sequence[NewObject]) -> list[ObjectRecord]:
        for item in items:
            validate_document(item.type, item.data, item.metadata, item.links)
        created: list[ObjectRecord] = []
        for item in items:
            record = self._build(org_id, item.type, item.data, item.metadata, item.links)
            self._docs[(org_id, record.id)] = record
            created.append(_copy_out(record))
        return created

    async def get(self, org_id: str, object_id: UUID) -> ObjectRecord:
        return _copy_out(self._require((org_id, object_id)))

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
        after = decode_cursor(cursor) if cursor else None
        parse_filters(filters)

        candidates = [
            r
            for (doc_org, _), r in self._docs.items()
            if doc_org == org_id
            and r.type == type
            and not (exclude_deleted and r.is_deleted)
            and matches_filters(r, filters)
        ]
        candidates.sort(key=lambda r: r.seq, reverse=descending)
        if after is not None:
            candidates = [
                r for r in candidates if (r.seq < after if descending else r.seq > after)
            ]

        window = candidates[max(skip, 0) : max(skip, 0) + limit + 1]
        has_more = len(window) > limit
        items = [_copy_out(r) for r in window[:limit]]
        next_cursor = encode_cursor(items[-1].seq) if has_more and items else None
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

        key = (org_id, object_id)
        async with self._lock_for(key):
            current = self._require(key)
            new_data = copy.deepcopy(current.data)
            new_data.update(copy.deepcopy(data or {}))
            if increments:
                apply_increments(new_data, increments)
            new_metadata = copy.deepcopy(current.metadata)
            new_metadata.update(copy.deepcopy(metadata or {}))
            updated = replace(
                current,
                data=new_data,
                metadata=new_metadata,
                links=list(links) if links is not None else current.links,
                updated_at=datetime.now(UTC),
            )
            self._docs[key] = updated
        return _copy_out(updated)

    async def soft_delete(self, org_id: str, object_id: UUID) -> ObjectRecord:
        key = (org_id, object_id)
        async with self._lock_for(key):
            current = self._require(key)
            if current.deleted_at is None:
                now = datetime.now(UTC)
                current = replace(current, deleted_at=now, updated_at=now)
                self._docs[key] = current
        return _copy_out(current)

    async def find_by_link(
        self,
        org_id: str,
        target_id: str,
        *,
        type: str | None = None,  # noqa: A002
        exclude_deleted: bool = False,
    ) -> list[ObjectRecord]:
        found = [
            r
            for (doc_org, _), r in self._docs.items()
            if doc_org == org_id
            and target_id in r.links
            and (type is None or r.type == type)
            and not (exclude_deleted and r.is_deleted)
        ]
        found.sort(key=lambda r: r.seq)
        return [_copy_out(r) for r in found]

    async def transition(
        self,
        org_id: str,
        object_id: UUID,
        *,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> ObjectRecord | None:
        ensure_json_value(dict(changes), field="data")
        key = (org_id, object_id)
        async with self._lock_for(key):
            current = self._require(key)
            if any(current.data.get(k) != v for k, v in expected.items()):
                return None
            new_data = copy.deepcopy(current.data)
            new_data.update(copy.deepcopy(dict(changes)))
            updated = replace(current, data=new_data, updated_at=datetime.now(UTC))
            self._docs[key] = updated
        return _copy_out(updated)
