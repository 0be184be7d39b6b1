"""Hand-written fakes for the ports: LLM, email and SMS adapters, SQLAlchemy session.

Each one records what it was asked to do and answers from preset values.
"""

from tests.fakes.llm import FakeLLM
from tests.fakes.providers import FakeEmailAdapter, FakeSmsAdapter
from tests.fakes.session import (
    FakeAsyncSession,
    FakeOrmRow,
    FakeResult,
    FakeScalarsResult,
    FakeSessionFactory,
)

__all__ = [
    "FakeAsyncSession",
    "FakeEmailAdapter",
    "FakeLLM",
    "FakeOrmRow",
    "FakeResult",
    "FakeScalarsResult",
    "FakeSessionFactory",
    "FakeSmsAdapter",
]
