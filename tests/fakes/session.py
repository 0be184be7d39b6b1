"""In-process stand-in for an AsyncSession and its sessionmaker.

PgObjectStore and PgDirectory only ever call ``add``, ``commit``,
``execute(...).scalar_one_or_none()`` and ``scalars(...).all()``, so
that is all this fake answers. Statements are recorded, not compiled.

    session = FakeAsyncSession()
    session.set_scalars_results([[binding_row], [role_row]])
    directory = PgDirectory(session_factory=FakeSessionFactory(session))
"""

from __future__ import annotations

from collections import deque
from typing import Any


class FakeResult:
    def __init__(self, value: Any = None) -> None:
        self._value = value

    def scalar_one_or_none(self) -> Any:
        return self._value


class FakeScalarsResult:
    def __init__(self, rows: list[Any] | None = None) -> None:
        self._rows = list(rows or [])

    def all(self) -> list[Any]:
        return list(self._rows)


class FakeAsyncSession:
    """Queued results are consumed first; then the configured default applies."""

    def __init__(self) -> None:
        self.added: list[Any] = []
        self.commit_count = 0
        self.execute_calls: list[Any] = []
        self.scalars_calls: list[Any] = []
        self._execute_queue: deque[FakeResult] = deque()
        self._scalars_queue: deque[FakeScalarsResult] = deque()
        self._execute_default = FakeResult()
        self._scalars_default = FakeScalarsResult()

    @property
    def committed(self) -> bool:
        return self.commit_count > 0

    def set_execute_result(self, *, scalar_one_or_none_value: Any = None) -> None:
        self._execute_default = FakeResult(scalar_one_or_none_value)

    def queue_execute_results(self, values: list[Any]) -> None:
        self._execute_queue.extend(FakeResult(value) for value in values)

    def set_scalars_result(self, rows: list[Any]) -> None:
        self._scalars_default = FakeScalarsResult(rows)

    def set_scalars_results(self, batches: list[list[Any]]) -> None:
        self._scalars_queue.extend(FakeScalarsResult(rows) for rows in batches)

    def add(self, obj: Any) -> None:
        self.added.append(obj)

    async def commit(self) -> None:
        self.commit_count += 1

    async def execute(self, statement: Any, params: Any = None) -> FakeResult:
        self.execute_calls.append(statement)
        return self._execute_queue.popleft() if self._execute_queue else self._execute_default

    async def scalars(self, statement: Any) -> FakeScalarsResult:
        self.scalars_calls.append(statement)
        return self._scalars_queue.popleft() if self._scalars_queue else self._scalars_default

    async def __aenter__(self) -> FakeAsyncSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None


class FakeSessionFactory:
    """Every call hands back the same session, so tests can inspect it afterwards."""

    def __init__(self, session: FakeAsyncSession) -> None:
        self.session = session
        self.calls = 0

    def __call__(self) -> FakeAsyncSession:
        self.calls += 1
        return self.session


class FakeOrmRow:
    """Attribute bag standing in for a mapped row."""

    def __init__(self, **columns: Any) -> None:
        self.__dict__.update(columns)
