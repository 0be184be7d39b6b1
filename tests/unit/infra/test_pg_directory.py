"""PgDirectory against a fake async session."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy.dialects import postgresql

from src.infra.directory.pg import PgDirectory
from tests.fakes import FakeAsyncSession, FakeOrmRow, FakeSessionFactory


def _sql(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


def _binding(user_id: str, org_id: str, *, active: bool = True) -> FakeOrmRow:
    return FakeOrmRow(
        user_id=user_id, org_id=org_id, active=active, created_at=datetime.now(UTC)
    )


@pytest.fixture()
def session() -> FakeAsyncSession:
    return FakeAsyncSession()


@pytest.fixture()
def directory(session: FakeAsyncSession) -> PgDirectory:
    return PgDirectory(session_factory=FakeSessionFactory(session))


@pytest.mark.unit
class TestPgDirectoryReads:
    async def test_org_exists(self, directory, session) -> None:
        session.set_execute_result(scalar_one_or_none_value="org_alpha")
        assert await directory.org_exists("org_alpha") is True

    async def test_org_missing(self, directory, session) -> None:
        session.set_execute_result(scalar_one_or_none_value=None)
        assert await directory.org_exists("org_ghost") is False

    async def test_active_binding(self, directory, session) -> None:
        session.set_execute_result(scalar_one_or_none_value=_binding("u1", "org_alpha"))
        binding = await directory.get_active_binding("u1")
        assert binding is not None
        assert binding.org_id == "org_alpha"
        assert binding.active is True

    async def test_no_active_binding(self, directory, session) -> None:
        assert await directory.get_active_binding("u1") is None

    async def test_get_role(self, directory, session) -> None:
        session.set_execute_result(
            scalar_one_or_none_value=FakeOrmRow(user_id="u1", org_id="org_alpha", role="ADMIN")
        )
        role = await directory.get_role("u1", "org_alpha")
        assert role is not None
        assert role.role == "ADMIN"

    async def test_list_members_joins_roles(self, directory, session) -> None:
        session.set_scalars_results(
            [
                [_binding("u1", "org_alpha"), _binding("u2", "org_alpha", active=False)],
                [FakeOrmRow(user_id="u1", org_id="org_alpha", role="ADMIN")],
            ]
        )
        members = await directory.list_members("org_alpha")
        assert [(b.user_id, r.role if r else None) for b, r in members] == [
            ("u1", "ADMIN"),
            ("u2", None),
        ]


@pytest.mark.unit
class TestPgDirectoryWrites:
    async def test_bind_org_runs_in_one_transaction(self, directory, session) -> None:
        session.queue_execute_results([None, None, _binding("u1", "org_alpha"), None])
        binding = await directory.bind_org("u1", "org_alpha", default_role="USER")
        assert binding.org_id == "org_alpha"
        assert binding.active
        assert len(session.execute_calls) == 4
        assert session.commit_count == 1
        lock, deactivate, upsert, default_role = (_sql(s) for s in session.execute_calls)
        assert "pg_advisory_xact_lock(hashtext(" in lock
        assert deactivate.startswith("UPDATE user_org_bindings")
        assert "ON CONFLICT ON CONSTRAINT uq_binding_user_org DO UPDATE" in upsert
        assert "ON CONFLICT ON CONSTRAINT uq_role_org_user DO NOTHING" in default_role

    async def test_binds_for_one_user_share_a_lock_key(self, directory, session) -> None:
        await directory.bind_org("u1", "org_alpha", default_role="USER")
        await directory.bind_org("u1", "org_beta", default_role="USER")
        first, second = session.execute_calls[0], session.execute_calls[4]
        assert _sql(first) == _sql(second)
        assert first.compile().params == second.compile().params
        assert "u1" in first.compile().params.values()

    async def test_set_role_upserts(self, directory, session) -> None:
        assignment = await directory.set_role("u2", "org_alpha", "SUB_ADMIN")
        assert assignment.role == "SUB_ADMIN"
        assert "DO UPDATE" in _sql(session.execute_calls[0])
        assert session.committed

    async def test_register_org_ignores_existing(self, directory, session) -> None:
        await directory.register_org("org_alpha")
        assert "DO NOTHING" in _sql(session.execute_calls[0])
        assert session.committed
