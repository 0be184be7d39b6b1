"""Organization binding and administration API.

- POST  /api/v1/auth/bind-org              -> bind caller to org and make it active
- GET   /api/v1/auth/orgs                  -> caller's bindings
- GET   /api/v1/auth/active-org            -> caller's active org (or null)
- GET   /api/v1/admin/users                -> members of the active org (admin roles)
- PATCH /api/v1/admin/users/{uid}/role     -> set a member's role (admin roles)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.gateway.middleware.org_context import RequestContext  # noqa: TC001 -- runtime for FastAPI
from src.gateway.middleware.rbac import ADMIN_ROLES, ALL_ROLES, Role
from src.shared.errors import ValidationError

if TYPE_CHECKING:
    from src.gateway.middleware.org_context import OrgConnectionResolver
    from src.gateway.middleware.rbac import RoleGate
    from src.ports.directory_port import DirectoryPort

logger = logging.getLogger(__name__)


class SetRoleRequest(BaseModel):
    role: Any = None


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def create_auth_router(
    *,
    resolver: OrgConnectionResolver,
    directory: DirectoryPort,
) -> APIRouter:
    """Binding routes. They need X-SOURCE but not an existing active binding."""
    router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

    @router.post("/bind-org")
    async def bind_org(
        ctx: RequestContext = Depends(resolver.binding_context),  # noqa: B008
    ) -> dict[str, Any]:
        binding = await directory.bind_org(str(ctx.user_id), ctx.org_id, default_role=Role.USER)
        logger.info("User %s bound to org %s", binding.user_id, binding.org_id)
        return {"status": "bound_and_set_active", "orgId": binding.org_id}

    @router.get("/orgs")
    async def list_orgs(
        ctx: RequestContext = Depends(resolver.binding_context),  # noqa: B008
    ) -> dict[str, Any]:
        bindings = await directory.list_bindings(str(ctx.user_id))
        return {
            "orgs": [
                {"orgId": b.org_id, "active": b.active, "createdAt": _iso(b.created_at)}
                for b in bindings
            ]
        }

    @router.get("/active-org")
    async def active_org(
        ctx: RequestContext = Depends(resolver.binding_context),  # noqa: B008
    ) -> dict[str, Any]:
        binding = await directory.get_active_binding(str(ctx.user_id))
        return {"activeOrg": binding.org_id if binding else None}

    return router


def create_admin_router(
    *,
    resolver: OrgConnectionResolver,
    gate: RoleGate,
    directory: DirectoryPort,
) -> APIRouter:
    """Member administration for the caller's active organization."""
    router = APIRouter(prefix="/api/v1/admin", tags=["admin"])
    admin = gate.require(resolver.admin_context, *ADMIN_ROLES)

    @router.get("/users")
    async def list_users(
        ctx: RequestContext = Depends(admin),  # noqa: B008
    ) -> dict[str, Any]:
        members = await directory.list_members(ctx.org_id)
        return {
            "users": [
                {
                    "id": binding.user_id,
                    "role": assignment.role if assignment else Role.USER,
                    "active": binding.active,
                    "joinedAt": _iso(binding.created_at),
                }
                for binding, assignment in members
            ]
        }

    @router.patch("/users/{user_id}/role")
    async def set_user_role(
        user_id: str,
        body: SetRoleRequest,
        ctx: RequestContext = Depends(admin),  # noqa: B008
    ) -> dict[str, Any]:
        if body.role not in ALL_ROLES:
            raise ValidationError(f"role must be one of {', '.join(ALL_ROLES)}", field="role")
        assignment = await directory.set_role(user_id, ctx.org_id, body.role)
        logger.info(
            "User %s set role of %s to %s in org %s",
            ctx.user_id,
            assignment.user_id,
            assignment.role,
            assignment.org_id,
        )
        return {
            "status": "role_updated",
            "userId": assignment.user_id,
            "orgId": assignment.org_id,
            "role": assignment.role,
        }

    return router
