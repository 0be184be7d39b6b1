"""PostgreSQL adapter implementing DirectoryPort via SQLAlchemy."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from src.infra.models import OrganizationRow, OrgBindingRow, RoleAssignmentRow
from src.ports.directory_port import DirectoryPort
from src.shared.types import OrgBinding, RoleAssignment

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


def _row_to_binding(row: OrgBindingRow) -> OrgBinding:
    return OrgBinding(
        user_id=row.user_id,
        org_id=row.org_id,
        active=bool(row.active),
        created_at=row.created_at,
    )


def _row_to_role(row: RoleAssignmentRow) -> RoleAssignment:
    return RoleAssignment(user_id=row.user_id, org_id=row.org_id, role=row.role)


class PgDirectory(DirectoryPort):
    """PostgreSQL-backed organization directory."""

    def __init__(self, *, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def register_org(self, org_id: str) -> None:
        """Insert the organization if it is not registered yet."""
        stmt = (
            postgresql.insert(OrganizationRow)
            .values(id=org_id)
            .on_conflict_do_nothing(index_elements=[OrganizationRow.id])
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def org_exists(self, org_id: str) -> bool:
        stmt = sa.select(OrganizationRow.id).where(
            OrganizationRow.id == org_id,
            OrganizationRow.is_active.is_(True),
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def get_active_binding(self, user_id: str) -> OrgBinding | None:
        stmt = (
            sa.select(OrgBindingRow)
            .where(OrgBindingRow.user_id == user_id, OrgBindingRow.active.is_(True))
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
        return _row_to_binding(row) if row is not None else None

    async def list_bindings(self, user_id: str) -> list[OrgBinding]:
        stmt = (
            sa.select(OrgBindingRow)
            .where(OrgBindingRow.user_id == user_id)
            .order_by(OrgBindingRow.created_at.asc())
        )
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            rows = result.all()
        return [_row_to_binding(row) for row in rows]

    async def bind_org(self, user_id: str, org_id: str, *, default_role: str) -> OrgBinding:
        """Deactivate, upsert and default the role in one transaction.

        A per-user advisory lock serializes concurrent binds, including the
        first one for a user when there are no rows to lock yet.
        """
        lock_user = sa.select(sa.func.pg_advisory_xact_lock(sa.func.hashtext(user_id)))
        deactivate = (
            sa.update(OrgBindingRow)
            .where(OrgBindingRow.user_id == user_id, OrgBindingRow.org_id != org_id)
            .values(active=False)
        )
        upsert_binding = (
            postgresql.insert(OrgBindingRow)
            .values(user_id=user_id, org_id=org_id, active=True)
            .on_conflict_do_update(
                constraint="uq_binding_user_org",
                set_={"active": True},
            )
            .returning(OrgBindingRow)
        )
        default_role_stmt = (
            postgresql.insert(RoleAssignmentRow)
            .values(user_id=user_id, org_id=org_id, role=default_role)
            .on_conflict_do_nothing(constraint="uq_role_org_user")
        )

        async with self._session_factory() as session:
            await session.execute(lock_user)
            await session.execute(deactivate)
            result = await session.execute(upsert_binding)
            row = result.scalar_one_or_none()
            await session.execute(default_role_stmt)
            await session.commit()

        logger.info("User %s bound to org %s", user_id, org_id)
        if row is None:
            return OrgBinding(user_id=user_id, org_id=org_id, active=True)
        return _row_to_binding(row)

    async def get_role(self, user_id: str, org_id: str) -> RoleAssignment | None:
        stmt = sa.select(RoleAssignmentRow).where(
            RoleAssignmentRow.org_id == org_id,
            RoleAssignmentRow.user_id == user_id,
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()
        return _row_to_role(row) if row is not None else None

    async def set_role(self, user_id: str, org_id: str, role: str) -> RoleAssignment:
        stmt = (
            postgresql.insert(RoleAssignmentRow)
            .values(user_id=user_id, org_id=org_id, role=role)
            .on_conflict_do_update(constraint="uq_role_org_user", set_={"role": role})
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()
        logger.info("Role of user %s in org %s set to %s", user_id, org_id, role)
        return RoleAssignment(user_id=user_id, org_id=org_id, role=role)

    async def list_members(self, org_id: str) -> list[tuple[OrgBinding, RoleAssignment | None]]:
        bindings_stmt = (
            sa.select(OrgBindingRow)
            .where(OrgBindingRow.org_id == org_id)
            .order_by(OrgBindingRow.created_at.asc())
        )
        roles_stmt = sa.select(RoleAssignmentRow).where(RoleAssignmentRow.org_id == org_id)
        async with self._session_factory() as session:
            bindings = (await session.scalars(bindings_stmt)).all()
            roles = (await session.scalars(roles_stmt)).all()

        by_user = {row.user_id: _row_to_role(row) for row in roles}
        return [(_row_to_binding(b), by_user.get(b.user_id)) for b in bindings]
