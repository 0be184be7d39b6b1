"""Polymorphic object REST API.

- POST   /api/v1/dao/objects              -> create one object
- POST   /api/v1/dao/objects/bulk         -> create many (all validated first)
- GET    /api/v1/dao/objects              -> list by type with data./metadata. filters
- GET    /api/v1/dao/objects/{id}         -> one object (soft-deleted included)
- PUT    /api/v1/dao/objects/{id}         -> merge update
- PATCH  /api/v1/dao/objects/{id}         -> merge update
- DELETE /api/v1/dao/objects/{id}         -> soft delete
- GET    /api/v1/dao/objects/{id}/children -> objects linking to {id}

- GET    /api/v1/public/dao/objects[/{id}] -> read-only, live objects only
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from src.gateway.middleware.org_context import RequestContext  # noqa: TC001 -- runtime for FastAPI
from src.gateway.middleware.rbac import ALL_ROLES
from src.jobs.orchestrator import parse_object_id
from src.objects.payloads import ObjectType
from src.shared.errors import NotFoundError, ValidationError
from src.shared.types import NewObject

if TYPE_CHECKING:
    from starlette.datastructures import QueryParams

    from src.gateway.middleware.org_context import OrgConnectionResolver
    from src.gateway.middleware.rbac import RoleGate
    from src.shared.types import ObjectPage, ObjectRecord

logger = logging.getLogger(__name__)

_FILTER_PREFIXES = ("data.", "metadata.")

# Owned by the AI session API; the generic routes neither write nor expose them.
_RESERVED_TYPES = frozenset(
    t.value for t in (ObjectType.AI_SESSION, ObjectType.AI_MESSAGE, ObjectType.AI_CTX_JOB)
)


class CreateObjectRequest(BaseModel):
    """Body for object creation. Shape checks happen in the store."""

    type: Any = None
    data: Any = None
    metadata: Any = None
    links: Any = None


class BulkCreateRequest(BaseModel):
    objects: Any = None


class UpdateObjectRequest(BaseModel):
    data: Any = None
    metadata: Any = None
    links: Any = None
    increments: Any = None


def _query_value(raw: str) -> Any:
    """Query strings carry JSON scalars (``5``, ``true``, ``null``) or plain text."""
    try:
        value = json.loads(raw)
    except ValueError:
        return raw
    if value is None or isinstance(value, bool | int | float):
        return value
    return raw


def parse_query_filters(params: QueryParams) -> dict[str, Any]:
    """``data.k=v`` / ``metadata.k=v`` query parameters as store filters."""
    return {
        key: _query_value(value)
        for key, value in params.multi_items()
        if key.startswith(_FILTER_PREFIXES)
    }


def _page_body(page: ObjectPage) -> dict[str, Any]:
    return {
        "items": [record.to_dict() for record in page.items],
        "next_cursor": page.next_cursor,
    }


def _request_metadata(ctx: RequestContext, provided: Any) -> dict[str, Any]:
    """Caller-supplied metadata with the request identity stamped on top."""
    if provided is not None and not isinstance(provided, dict):
        raise ValidationError('Field "metadata" must be an object', field="metadata")
    metadata = dict(provided or {})
    metadata.update({"user_id": ctx.user_id, "org_id": ctx.org_id})
    if ctx.source:
        metadata["source"] = ctx.source
    return metadata


def _check_type(object_type: Any) -> None:
    if isinstance(object_type, str) and object_type in _RESERVED_TYPES:
        raise ValidationError(f'Type "{object_type}" is reserved', field="type")


def _require_type(object_type: str | None) -> str:
    if not object_type:
        raise ValidationError('Query parameter "type" is required', field="type")
    _check_type(object_type)
    return object_type


async def _get_generic(ctx: RequestContext, object_id: str) -> ObjectRecord:
    """Object ``object_id``; AI documents are reported as missing."""
    record = await ctx.partition.get(parse_object_id(object_id, field="id"))
    if record.type in _RESERVED_TYPES:
        raise NotFoundError("Object", object_id)
    return record


def _new_objects(ctx: RequestContext, objects: Any) -> list[NewObject]:
    if not isinstance(objects, list):
        raise ValidationError('Request body must contain an "objects" array', field="objects")
    items: list[NewObject] = []
    for obj in objects:
        if not isinstance(obj, dict) or not obj.get("type"):
            raise ValidationError(
                'Each object in the array must have a "type" field', field="objects"
            )
        _check_type(obj["type"])
        items.append(
            NewObject(
                type=obj["type"],
                data=obj.get("data"),
                metadata=_request_metadata(ctx, obj.get("metadata")),
                links=obj.get("links"),
            )
        )
    return items


def create_objects_router(*, resolver: OrgConnectionResolver, gate: RoleGate) -> APIRouter:
    """Tenant object routes. Any role within the active organization may call them."""
    router = APIRouter(prefix="/api/v1/dao/objects", tags=["objects"])
    member = gate.require(resolver.tenant_context, *ALL_ROLES)

    @router.post("", status_code=201)
    async def create_object(
        body: CreateObjectRequest,
        ctx: RequestContext = Depends(member),  # noqa: B008
    ) -> dict[str, Any]:
        _check_type(body.type)
        record = await ctx.partition.create(
            body.type,
            body.data,
            metadata=_request_metadata(ctx, body.metadata),
            links=body.links,
        )
        logger.info("Created %s object %s in org %s", record.type, record.id, ctx.org_id)
        return record.to_dict()

    @router.post("/bulk", status_code=201)
    async def create_objects_bulk(
        body: BulkCreateRequest,
        ctx: RequestContext = Depends(member),  # noqa: B008
    ) -> dict[str, Any]:
        records = await ctx.partition.create_many(_new_objects(ctx, body.objects))
        return {"count": len(records), "insertedIds": [str(r.id) for r in records]}

    @router.get("")
    async def list_objects(
        request: Request,
        type: str | None = None,  # noqa: A002
        limit: int = 50,
        skip: int = 0,
        cursor: str | None = None,
        include_deleted: bool = False,
        ctx: RequestContext = Depends(member),  # noqa: B008
    ) -> dict[str, Any]:
        page = await ctx.partition.list(
            _require_type(type),
            filters=parse_query_filters(request.query_params),
            limit=limit,
            cursor=cursor,
            skip=skip,
            exclude_deleted=not include_deleted,
        )
        return _page_body(page)

    @router.get("/{object_id}")
    async def get_object(
        object_id: str,
        ctx: RequestContext = Depends(member),  # noqa: B008
    ) -> dict[str, Any]:
        return (await _get_generic(ctx, object_id)).to_dict()

    async def _update(
        ctx: RequestContext, object_id: str, body: UpdateObjectRequest
    ) -> dict[str, Any]:
        if all(v is None for v in (body.data, body.metadata, body.links, body.increments)):
            raise ValidationError("nothing_to_update")
        if body.increments is not None and not isinstance(body.increments, dict):
            raise ValidationError('Field "increments" must be an object', field="increments")
        current = await _get_generic(ctx, object_id)
        record = await ctx.partition.update(
            current.id,
            data=body.data,
            metadata=body.metadata,
            links=body.links,
            increments=body.increments,
        )
        return record.to_dict()

    @router.put("/{object_id}")
    async def replace_object(
        object_id: str,
        body: UpdateObjectRequest,
        ctx: RequestContext = Depends(member),  # noqa: B008
    ) -> dict[str, Any]:
        return await _update(ctx, object_id, body)

    @router.patch("/{object_id}")
    async def patch_object(
        object_id: str,
        body: UpdateObjectRequest,
        ctx: RequestContext = Depends(member),  # noqa: B008
    ) -> dict[str, Any]:
        return await _update(ctx, object_id, body)

    @router.delete("/{object_id}")
    async def delete_object(
        object_id: str,
        ctx: RequestContext = Depends(member),  # noqa: B008
    ) -> dict[str, Any]:
        current = await _get_generic(ctx, object_id)
        record = await ctx.partition.soft_delete(current.id)
        logger.info("Soft-deleted object %s in org %s", record.id, ctx.org_id)
        return {"status": "object_deleted", "object": record.to_dict()}

    @router.get("/{object_id}/children")
    async def list_children(
        object_id: str,
        type: str | None = None,  # noqa: A002
        include_deleted: bool = False,
        ctx: RequestContext = Depends(member),  # noqa: B008
    ) -> dict[str, Any]:
        _check_type(type)
        target = await _get_generic(ctx, object_id)
        records = await ctx.partition.find_by_link(
            str(target.id), type=type, exclude_deleted=not include_deleted
        )
        return {"items": [r.to_dict() for r in records if r.type not in _RESERVED_TYPES]}

    return router


def _live(record: ObjectRecord, object_id: str) -> ObjectRecord:
    if record.is_deleted:
        raise NotFoundError("Object", object_id)
    return record


def create_public_objects_router(*, resolver: OrgConnectionResolver) -> APIRouter:
    """Anonymous read-only access to an organization's live objects."""
    router = APIRouter(prefix="/api/v1/public/dao/objects", tags=["public"])

    @router.get("")
    async def list_public_objects(
        request: Request,
        type: str | None = None,  # noqa: A002
        limit: int = 50,
        skip: int = 0,
        cursor: str | None = None,
        ctx: RequestContext = Depends(resolver.public_context),  # noqa: B008
    ) -> dict[str, Any]:
        page = await ctx.partition.list(
            _require_type(type),
            filters=parse_query_filters(request.query_params),
            limit=limit,
            cursor=cursor,
            skip=skip,
            exclude_deleted=True,
        )
        return _page_body(page)

    @router.get("/{object_id}")
    async def get_public_object(
        object_id: str,
        ctx: RequestContext = Depends(resolver.public_context),  # noqa: B008
    ) -> dict[str, Any]:
        record = await _get_generic(ctx, object_id)
        return _live(record, object_id).to_dict()

    return router
