"""OrgConnectionResolver - binds every request to one organization.

Produces an explicit RequestContext (identity, organization, source and
a Partition scoped to that organization) that route handlers receive as
a FastAPI dependency. Nothing downstream re-derives the organization.

Resolution modes:
  tenant   X-ORG-ID + the user's active binding (must match)
  admin    tenant + X-SOURCE
  binding  X-ORG-ID (or body ``orgId``) + X-SOURCE, no binding check
  public   X-ORG-ID + X-SOURCE, no identity required
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from fastapi import Request  # noqa: TC002 -- FastAPI resolves dependency signatures at runtime

from src.infra.credentials.env import ORG_ID_PATTERN
from src.objects.partition import Partition
from src.shared.errors import (
    AuthenticationError,
    InvalidSourceError,
    MissingOrgHeaderError,
    NoActiveOrganizationError,
    OrgIsolationError,
    ValidationError,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from src.ports.directory_port import DirectoryPort
    from src.ports.object_store_port import ObjectStorePort

logger = logging.getLogger(__name__)

ORG_HEADER = "X-ORG-ID"
SOURCE_HEADER = "X-SOURCE"
SOURCE_MIN_LENGTH = 6
SOURCE_MAX_LENGTH = 200


class ResolveMode(enum.Enum):
    TENANT = "tenant"
    ADMIN = "admin"
    BINDING = "binding"
    PUBLIC = "public"


@dataclass(frozen=True)
class RequestContext:
    """Per-request tenant context. ``role`` is set once RoleGate passes."""

    user_id: str | None
    org_id: str
    partition: Partition
    source: str | None = None
    role: str | None = None

    def with_role(self, role: str) -> RequestContext:
        return replace(self, role=role)


def _require_identity(user_id: str | None) -> str:
    if not user_id:
        raise AuthenticationError()
    return user_id


class OrgConnectionResolver:
    """Resolve and validate the organization a request operates against."""

    def __init__(self, *, store: ObjectStorePort, directory: DirectoryPort) -> None:
        self._store = store
        self._directory = directory

    async def _validated_org(self, raw_org_id: str | None) -> str:
        if not raw_org_id:
            raise MissingOrgHeaderError(ORG_HEADER)
        org_id = raw_org_id.strip()
        if not ORG_ID_PATTERN.match(org_id) or not await self._directory.org_exists(org_id):
            logger.warning("Rejected organization id %r", raw_org_id)
            raise ValidationError("Invalid organization ID", field=ORG_HEADER)
        return org_id

    @staticmethod
    def _validated_source(source: str | None) -> str:
        if source is None or not SOURCE_MIN_LENGTH <= len(source) <= SOURCE_MAX_LENGTH:
            raise InvalidSourceError(SOURCE_MIN_LENGTH, SOURCE_MAX_LENGTH)
        return source

    async def resolve(
        self,
        *,
        user_id: str | None,
        headers: Mapping[str, str],
        mode: ResolveMode,
        body_org_id: str | None = None,
    ) -> RequestContext:
        """Build the RequestContext for one request.

        Raises:
            AuthenticationError: Identity required but absent.
            MissingOrgHeaderError: No X-ORG-ID.
            ValidationError: Malformed or unregistered organization id.
            InvalidSourceError: X-SOURCE missing or wrong length.
            NoActiveOrganizationError: User has no active binding.
            OrgIsolationError: Header org differs from the active binding.
        """
        if mode is not ResolveMode.PUBLIC:
            _require_identity(user_id)

        raw_org = body_org_id if mode is ResolveMode.BINDING and body_org_id else None
        org_id = await self._validated_org(raw_org or headers.get(ORG_HEADER))

        source: str | None = None
        if mode is not ResolveMode.TENANT:
            source = self._validated_source(headers.get(SOURCE_HEADER))

        if mode in (ResolveMode.TENANT, ResolveMode.ADMIN):
            binding = await self._directory.get_active_binding(_require_identity(user_id))
            if binding is None:
                raise NoActiveOrganizationError()
            if binding.org_id != org_id:
                logger.warning(
                    "User %s sent %s=%s but is bound to %s",
                    user_id,
                    ORG_HEADER,
                    org_id,
                    binding.org_id,
                )
                raise OrgIsolationError()

        return RequestContext(
            user_id=user_id,
            org_id=org_id,
            partition=Partition(store=self._store, org_id=org_id),
            source=source,
        )

    # -- FastAPI dependencies --

    async def tenant_context(self, request: Request) -> RequestContext:
        return await self.resolve(
            user_id=_request_user(request), headers=request.headers, mode=ResolveMode.TENANT
        )

    async def admin_context(self, request: Request) -> RequestContext:
        return await self.resolve(
            user_id=_request_user(request), headers=request.headers, mode=ResolveMode.ADMIN
        )

    async def binding_context(self, request: Request) -> RequestContext:
        return await self.resolve(
            user_id=_request_user(request),
            headers=request.headers,
            mode=ResolveMode.BINDING,
            body_org_id=await _body_org_id(request),
        )

    async def public_context(self, request: Request) -> RequestContext:
        return await self.resolve(user_id=None, headers=request.headers, mode=ResolveMode.PUBLIC)


def _request_user(request: Request) -> str | None:
    return getattr(request.state, "user_id", None)


async def _body_org_id(request: Request) -> str | None:
    """``orgId`` from a JSON body, if there is one."""
    if request.method != "POST":
        return None
    try:
        body = await request.json()
    except ValueError:
        return None
    value = body.get("orgId") if isinstance(body, dict) else None
    return value if isinstance(value, str) else None
