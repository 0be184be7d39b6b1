"""DirectoryPort - organization registry, user bindings and roles.

Backs the OrgConnectionResolver (which org is the caller operating
against) and the RoleGate (which role does the caller hold there).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.shared.types import OrgBinding, RoleAssignment


class DirectoryPort(ABC):
    """Port: tenant directory lookups and binding writes."""

    @abstractmethod
    async def org_exists(self, org_id: str) -> bool:
        """Whether ``org_id`` is a registered, active organization."""

    @abstractmethod
    async def get_active_binding(self, user_id: str) -> OrgBinding | None:
        """The user's single active binding, if any."""

    @abstractmethod
    async def list_bindings(self, user_id: str) -> list[OrgBinding]:
        """All bindings of a user, active or not."""

    @abstractmethod
    async def bind_org(self, user_id: str, org_id: str, *, default_role: str) -> OrgBinding:
        """Make ``org_id`` the user's only active binding.

        Deactivates every other binding of the user, upserts the target
        binding as active and assigns ``default_role`` if the user has no
        role in that organization yet.
        """

    @abstractmethod
    async def get_role(self, user_id: str, org_id: str) -> RoleAssignment | None:
        """The user's role assignment in ``org_id``."""

    @abstractmethod
    async def set_role(self, user_id: str, org_id: str, role: str) -> RoleAssignment:
        """Create or replace the user's role in ``org_id``."""

    @abstractmethod
    async def list_members(self, org_id: str) -> list[tuple[OrgBinding, RoleAssignment | None]]:
        """Every user bound to ``org_id`` with their role (if assigned)."""
