"""In-memory DirectoryPort for dev mode and unit tests."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from src.ports.directory_port import DirectoryPort
from src.shared.types import OrgBinding, RoleAssignment

if TYPE_CHECKING:
    from collections.abc import Iterable


class InMemoryDirectory(DirectoryPort):
    """Dict-backed organization registry, bindings and roles."""

    def __init__(self, orgs: Iterable[str] = ()) -> None:
        self._orgs: set[str] = set(orgs)
        # (user_id, org_id) -> binding, insertion-ordered
        self._bindings: dict[tuple[str, str], OrgBinding] = {}
        # (org_id, user_id) -> role
        self._roles: dict[tuple[str, str], RoleAssignment] = {}

    def register_org(self, org_id: str) -> None:
        self._orgs.add(org_id)

    async def org_exists(self, org_id: str) -> bool:
        return org_id in self._orgs

    async def get_active_binding(self, user_id: str) -> OrgBinding | None:
        for (uid, _), binding in self._bindings.items():
            if uid == user_id and binding.active:
                return binding
        return None

    async def list_bindings(self, user_id: str) -> list[OrgBinding]:
        return [b for (uid, _), b in self._bindings.items() if uid == user_id]

    async def bind_org(self, user_id: str, org_id: str, *, default_role: str) -> OrgBinding:
        for key, binding in list(self._bindings.items()):
            if key[0] == user_id and binding.active and key[1] != org_id:
                self._bindings[key] = replace(binding, active=False)

        existing = self._bindings.get((user_id, org_id))
        if existing is None:
            bound = OrgBinding(
                user_id=user_id,
                org_id=org_id,
                active=True,
                created_at=datetime.now(UTC),
            )
        else:
            bound = replace(existing, active=True)
        self._bindings[(user_id, org_id)] = bound

        if (org_id, user_id) not in self._roles:
            self._roles[(org_id, user_id)] = RoleAssignment(
                user_id=user_id, org_id=org_id, role=default_role
            )
        return bound

    async def get_role(self, user_id: str, org_id: str) -> RoleAssignment | None:
        return self._roles.get((org_id, user_id))

    async def set_role(self, user_id: str, org_id: str, role: str) -> RoleAssignment:
        assignment = RoleAssignment(user_id=user_id, org_id=org_id, role=role)
        self._roles[(org_id, user_id)] = assignment
        return assignment

    async def list_members(self, org_id: str) -> list[tuple[OrgBinding, RoleAssignment | None]]:
        return [
            (binding, self._roles.get((org_id, uid)))
            for (uid, oid), binding in self._bindings.items()
            if oid == org_id
        ]
