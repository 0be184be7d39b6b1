"""RoleGate - role check within the resolved organization.

- No identity -> 401 Unauthorized
- No role, or role outside the required set -> 403 Forbidden
- Directory lookup fault -> 500 (never mistaken for "no role")
- Success -> RequestContext carrying the role
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import Depends

from src.gateway.middleware.org_context import RequestContext  # noqa: TC001 -- runtime for FastAPI
from src.shared.errors import AuthenticationError, AuthorizationError, InternalError
from src.shared.logging.error_handler import log_structured_error

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.ports.directory_port import DirectoryPort

logger = logging.getLogger(__name__)


class Role:
    """Role constants."""

    USER = "USER"
    ADMIN = "ADMIN"
    SUB_ADMIN = "SUB_ADMIN"
    ORG_ADMIN = "ORG_ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


ALL_ROLES: tuple[str, ...] = (
    Role.USER,
    Role.ADMIN,
    Role.SUB_ADMIN,
    Role.ORG_ADMIN,
    Role.SUPER_ADMIN,
)
ADMIN_ROLES: tuple[str, ...] = (Role.ADMIN, Role.SUB_ADMIN, Role.ORG_ADMIN, Role.SUPER_ADMIN)


class RoleGate:
    """Load the caller's role and enforce a required role set."""

    def __init__(self, *, directory: DirectoryPort) -> None:
        self._directory = directory

    async def check(self, ctx: RequestContext, roles: tuple[str, ...]) -> RequestContext:
        """Return ``ctx`` with its role, or raise.

        Raises:
            AuthenticationError: No identity on the context.
            AuthorizationError: Missing role, or role not in ``roles``.
            InternalError: The directory lookup failed.
        """
        if not ctx.user_id:
            raise AuthenticationError()
        try:
            assignment = await self._directory.get_role(ctx.user_id, ctx.org_id)
        except Exception as exc:
            log_structured_error(
                logger,
                exc,
                error_code="ROLE_LOOKUP_FAILED",
                org_id=ctx.org_id,
                context={"user_id": ctx.user_id},
            )
            raise InternalError() from exc

        if assignment is None or assignment.role not in roles:
            raise AuthorizationError(roles)
        return ctx.with_role(assignment.role)

    def require(
        self,
        context_dependency: Callable[..., Awaitable[RequestContext]],
        *roles: str,
    ) -> Callable[..., Awaitable[RequestContext]]:
        """FastAPI dependency: resolve the context, then enforce ``roles``."""

        async def gate(
            ctx: RequestContext = Depends(context_dependency),  # noqa: B008
        ) -> RequestContext:
            return await self.check(ctx, roles)

        return gate
